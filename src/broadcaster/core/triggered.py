"""
Triggered single-pair sender.

Sends one transfer for a fixed (sender, receiver) pair every time a trigger
arrives, typically a block notification mentioning the sender.
"""

import asyncio
from typing import Any, AsyncIterable, Callable, List, Optional

import structlog

from broadcaster.core.dispatcher import Dispatcher
from broadcaster.core.outcome import TransactionOutcome
from broadcaster.core.request import TransferRequest

logger = structlog.get_logger(__name__)

TRIGGER_QUEUE_SIZE = 8

_STOP = object()


class TriggeredSender:
    """
    Runs a dispatch unit for one pair per trigger.

    Triggers are buffered in a bounded queue and consumed one at a time; a
    failed transfer is recorded and the loop keeps going.
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        request: TransferRequest,
        queue_size: int = TRIGGER_QUEUE_SIZE,
    ):
        self.dispatcher = dispatcher
        self.request = request
        self.outcomes: List[TransactionOutcome] = []
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue(maxsize=queue_size)
        self._on_outcome: Optional[Callable[[TransactionOutcome], None]] = None

    async def trigger(self, update: Any = None) -> None:
        """Queue one transfer."""
        await self._queue.put(update)

    async def stop(self) -> None:
        """Stop the loop once the triggers queued so far are processed."""
        await self._queue.put(_STOP)

    async def _feed(self, source: AsyncIterable[Any]) -> None:
        try:
            async for update in source:
                logger.debug("trigger_received", update=repr(update)[:80])
                await self.trigger(update)
        except Exception as e:
            logger.error("trigger_source_failed", error=str(e))
        await self.stop()

    async def run(self, source: Optional[AsyncIterable[Any]] = None) -> List[TransactionOutcome]:
        """
        Process triggers until stopped or the source is exhausted.

        Args:
            source: Async iterable whose items each trigger one transfer

        Returns:
            Outcomes of all transfers sent
        """
        feeder = asyncio.create_task(self._feed(source)) if source is not None else None
        sender, receiver = self.request.pair
        logger.info(
            "triggered_sender_started",
            sender=sender[:8] + "...",
            receiver=receiver[:8] + "...",
            amount=self.request.amount,
        )

        try:
            while True:
                item = await self._queue.get()
                if item is _STOP:
                    break

                outcome = await self.dispatcher.run_unit(self.request)
                self.outcomes.append(outcome)
                if self._on_outcome:
                    self._on_outcome(outcome)
        finally:
            if feeder is not None and not feeder.done():
                feeder.cancel()
                await asyncio.gather(feeder, return_exceptions=True)

        logger.info("triggered_sender_stopped", transfers=len(self.outcomes))
        return self.outcomes

    def on_outcome(self, callback: Callable[[TransactionOutcome], None]) -> None:
        """Register callback invoked after each transfer."""
        self._on_outcome = callback
