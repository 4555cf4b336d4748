"""
Step combinators for sequential and independent work.

``run_series`` is fail-fast and order-preserving: used wherever a later step
depends on an earlier one. ``run_each`` runs every item regardless of earlier
failures and reports all of them at the end.
"""

import logging
from collections.abc import Callable, Iterable
from typing import TypeVar

from extdeploy.domain.errors import AggregateExecutionError, ExtDeployError

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def run_series(steps: Iterable[Callable[[], R]]) -> list[R]:
    """Run steps in order, stopping at the first exception."""
    results: list[R] = []
    for step in steps:
        results.append(step())
    return results


def map_series(items: Iterable[T], fn: Callable[[T], R]) -> list[R]:
    """Apply fn to each item in order, stopping at the first exception."""
    return run_series(lambda item=item: fn(item) for item in items)


def run_each(items: Iterable[T], fn: Callable[[T], R], *, describe: Callable[[T], str] = str) -> list[R]:
    """Apply fn to every item independently and aggregate failures.

    Raises:
        AggregateExecutionError: If fn raised an ExtDeployError for any item
    """
    results: list[R] = []
    failures: list[tuple[T, ExtDeployError]] = []
    for item in items:
        try:
            results.append(fn(item))
        except ExtDeployError as err:
            logger.error("Failed for %s: %s", describe(item), err)
            failures.append((item, err))

    if failures:
        summary = "; ".join(f"{describe(item)}: {err}" for item, err in failures)
        raise AggregateExecutionError(
            message=f"{len(failures)} of {len(failures) + len(results)} targets failed: {summary}",
            failures=list(failures),
        )
    return results
