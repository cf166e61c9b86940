"""Tests for ErrorBudget."""

from pacer.execution.budget import ErrorBudget


def test_unbounded_never_trips():
    budget = ErrorBudget()
    assert not any(budget.record() for _ in range(100))
    assert budget.count == 100
    assert budget.remaining is None
    assert not budget.tripped


def test_trips_exactly_once_at_limit():
    budget = ErrorBudget(limit=2)
    assert budget.record() is False
    assert budget.remaining == 1
    assert budget.record() is True
    assert budget.tripped
    assert budget.record() is False
    assert budget.count == 3
    assert budget.remaining == 0


def test_limit_of_one():
    budget = ErrorBudget(limit=1)
    assert budget.record() is True
