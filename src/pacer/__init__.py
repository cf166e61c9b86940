"""
Pacer - paced, bounded-concurrency async batch processing.

- pacer.core: logging, errors and settings
- pacer.execution: the batch processor and its building blocks
"""

__version__ = "0.1.0"

from pacer.core import *  # noqa
from pacer.execution import *  # noqa
