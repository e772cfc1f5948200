"""
Outcome aggregation.

Collects outcomes from concurrently running dispatch units into a BatchReport.
"""

import asyncio
from typing import Optional

import structlog

from broadcaster.core.outcome import BatchReport, TransactionOutcome

logger = structlog.get_logger(__name__)


class OutcomeAggregator:
    """
    Multi-producer / single-consumer collector of transaction outcomes.

    Every dispatch unit calls `submit()` exactly once; `collect()` returns
    once the expected number of outcomes has arrived, in arrival order.
    """

    def __init__(self, expected: int, report: Optional[BatchReport] = None):
        """
        Initialize the aggregator.

        Args:
            expected: Number of outcomes to wait for
            report: Report to fill (a new one is created if not provided)
        """
        if expected < 0:
            raise ValueError("expected must be non-negative")

        self.expected = expected
        self.report = report or BatchReport()
        self._queue: "asyncio.Queue[TransactionOutcome]" = asyncio.Queue()
        self._received = 0

    def submit(self, outcome: TransactionOutcome) -> None:
        """Hand an outcome to the aggregator. Safe to call from any unit."""
        self._queue.put_nowait(outcome)

    @property
    def received(self) -> int:
        return self._received

    @property
    def pending(self) -> int:
        return self.expected - self._received

    async def collect(self) -> BatchReport:
        """
        Wait for all expected outcomes.

        Returns:
            The completed batch report
        """
        while self._received < self.expected:
            outcome = await self._queue.get()
            self.report.add(outcome)
            self._received += 1
            logger.debug(
                "outcome_received",
                kind=outcome.kind.value,
                received=self._received,
                expected=self.expected,
            )

        self.report.mark_finished()
        return self.report
