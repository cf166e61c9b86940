"""Pacer Execution -- paced, bounded-concurrency batch processing.

WHY
───
Running a handler over many items needs the same controls every time:
a concurrency ceiling, a global delay between starts, per-attempt
timeouts, retries, pause/resume, an immediate stop and an error budget.
``pacer.execution`` packages those as one engine (``BatchProcessor``)
built from small, separately testable parts.

ARCHITECTURE
────────────
::

    BatchProcessor (bounded list or streaming pull)
      ├── ItemSource          ─ ListSource / CallbackSource / IteratorSource
      ├── AdmissionSequencer  ─ serialized pull + global pacing
      ├── PauseGate           ─ graceful stop / resume
      ├── TaskRunner          ─ retries around run_attempt()
      │     └── run_attempt   ─ handler vs. timeout vs. CancellationToken
      ├── ErrorBudget         ─ max_total_errors
      ├── ProcessorHooks      ─ fire-and-forget notifications
      └── CompletionSignal    ─ settles once → BatchResult
                                  └── Success / Failure per key

MODULE MAP (recommended reading order)
──────────────────────────────────────
  1. outcome.py       ─ Success, Failure, OutcomeKind
  2. sources.py       ─ WorkItem, EMPTY / EXHAUSTED, item sources
  3. options.py       ─ ProcessorOptions (pydantic)
  4. cancellation.py  ─ CancellationToken
  5. timeout.py       ─ run_attempt
  6. retry.py         ─ TaskRunner
  7. admission.py     ─ AdmissionSequencer, sleep_unless_stopped
  8. gate.py          ─ PauseGate
  9. budget.py        ─ ErrorBudget
 10. completion.py    ─ CompletionSignal, BatchResult, AbortReason
 11. hooks.py         ─ ProcessorHooks, logging_hooks
 12. processor.py     ─ BatchProcessor, process_items, process_stream
"""

from pacer.execution.admission import AdmissionSequencer, sleep_unless_stopped
from pacer.execution.budget import ErrorBudget
from pacer.execution.cancellation import CancellationToken
from pacer.execution.completion import AbortReason, BatchResult, CompletionSignal
from pacer.execution.gate import PauseGate
from pacer.execution.hooks import ProcessorHooks, logging_hooks
from pacer.execution.options import ProcessorOptions
from pacer.execution.outcome import (
    Failure,
    OutcomeKind,
    Success,
    TaskOutcome,
    partition_outcomes,
)
from pacer.execution.processor import (
    BatchProcessor,
    ProcessorStats,
    process_items,
    process_stream,
)
from pacer.execution.retry import TaskRunner
from pacer.execution.sources import (
    EMPTY,
    EXHAUSTED,
    CallbackSource,
    ItemSource,
    IteratorSource,
    ListSource,
    SourceSignal,
    WorkItem,
)
from pacer.execution.timeout import run_attempt

__all__ = [
    # Engine
    "BatchProcessor",
    "ProcessorStats",
    "process_items",
    "process_stream",
    # Configuration
    "ProcessorOptions",
    "ProcessorHooks",
    "logging_hooks",
    # Results
    "AbortReason",
    "BatchResult",
    "CompletionSignal",
    "Failure",
    "OutcomeKind",
    "Success",
    "TaskOutcome",
    "partition_outcomes",
    # Sources
    "EMPTY",
    "EXHAUSTED",
    "CallbackSource",
    "ItemSource",
    "IteratorSource",
    "ListSource",
    "SourceSignal",
    "WorkItem",
    # Building blocks
    "AdmissionSequencer",
    "CancellationToken",
    "ErrorBudget",
    "PauseGate",
    "TaskRunner",
    "run_attempt",
    "sleep_unless_stopped",
]
