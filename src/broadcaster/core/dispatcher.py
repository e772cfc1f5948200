"""
Transfer Dispatcher.

Fans out one concurrent dispatch unit per (sender, receiver) pair and joins
their outcomes into a BatchReport.
"""

import asyncio
import time
from typing import Awaitable, Callable, Iterable, List, Optional, TypeVar

import structlog

from broadcaster.config import BroadcasterConfig, get_config
from broadcaster.core.aggregator import OutcomeAggregator
from broadcaster.core.outcome import BatchReport, TransactionOutcome
from broadcaster.core.request import TransferRequest
from broadcaster.core.wallet import WalletSet
from broadcaster.node.interface import (
    FinalizationStatus,
    LedgerInterface,
    TransactionSubmitError,
)
from broadcaster.tx.builder import TransactionBuilder

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class PhaseTimeout(Exception):
    """Raised when a ledger call exceeds its configured timeout."""

    def __init__(self, phase: str, seconds: float):
        super().__init__(f"timeout: {phase} did not complete within {seconds}s")
        self.phase = phase
        self.seconds = seconds


def describe_error(error: Exception) -> str:
    """Render an exception as an outcome reason."""
    if isinstance(error, PhaseTimeout):
        return str(error)
    if isinstance(error, TransactionSubmitError):
        return f"{type(error).__name__}({error.rejection.value}): {error}"
    return f"{type(error).__name__}: {error}"


class Dispatcher:
    """
    Concurrent transfer broadcaster.

    Each dispatch unit fetches a fresh blockhash, builds and signs its
    transaction, submits it, times the submission, and polls its finalization
    status once. Every failure is turned into an outcome at the unit boundary,
    so one failing pair never affects another.

    Usage:
        ```python
        dispatcher = Dispatcher(ledger=SolanaRpcAdapter(config), config=config)
        report = await dispatcher.broadcast(wallet_set)
        ```
    """

    def __init__(
        self,
        ledger: LedgerInterface,
        config: Optional[BroadcasterConfig] = None,
        builder: Optional[TransactionBuilder] = None,
    ):
        """
        Initialize the dispatcher.

        Args:
            ledger: Ledger adapter shared by all dispatch units
            config: Broadcaster configuration
            builder: Custom transaction builder
        """
        self.ledger = ledger
        self.config = config or get_config()
        self.builder = builder or TransactionBuilder()

        # One bound across every dispatch() call on this instance
        self._semaphore: Optional[asyncio.Semaphore] = (
            asyncio.Semaphore(self.config.max_concurrency)
            if self.config.max_concurrency
            else None
        )
        self._on_outcome: Optional[Callable[[TransactionOutcome], None]] = None

    async def broadcast(
        self,
        wallet_set: WalletSet,
        amount: Optional[int] = None,
    ) -> BatchReport:
        """
        Send a transfer for every (sender, receiver) pair of a wallet set.

        Args:
            wallet_set: Senders and receivers
            amount: Lamports per transfer (configured amount if not provided)

        Returns:
            Report with one outcome per pair
        """
        if amount is None:
            amount = self.config.amount_lamports
        return await self.dispatch(wallet_set.transfer_requests(amount))

    async def dispatch(self, requests: Iterable[TransferRequest]) -> BatchReport:
        """
        Run one dispatch unit per request concurrently and wait for all of them.

        Args:
            requests: Transfers to perform

        Returns:
            Report with one outcome per request, in completion order
        """
        requests = list(requests)
        aggregator = OutcomeAggregator(expected=len(requests))

        if not requests:
            logger.info("dispatch_empty")
            aggregator.report.mark_finished()
            return aggregator.report

        logger.info(
            "dispatch_starting",
            units=len(requests),
            max_concurrency=self.config.max_concurrency,
        )

        tasks: List[asyncio.Task] = [
            asyncio.create_task(self._unit_task(request, aggregator, self._semaphore))
            for request in requests
        ]

        try:
            report = await aggregator.collect()
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            if aggregator.pending:
                logger.warning(
                    "dispatch_incomplete",
                    received=aggregator.received,
                    expected=aggregator.expected,
                )

        logger.info(
            "dispatch_finished",
            units=report.size,
            submitted=report.submitted_count,
            failed=report.failed_count,
        )
        return report

    async def _unit_task(
        self,
        request: TransferRequest,
        aggregator: OutcomeAggregator,
        semaphore: Optional[asyncio.Semaphore],
    ) -> None:
        try:
            if semaphore is not None:
                async with semaphore:
                    outcome = await self.run_unit(request)
            else:
                outcome = await self.run_unit(request)
        except Exception as e:
            reason = describe_error(e)
            logger.error("dispatch_unit_failed", pair=request.pair, error=reason)
            outcome = TransactionOutcome.submit_failed(request, reason)

        aggregator.submit(outcome)

    async def _timed(self, awaitable: Awaitable[T], phase: str, seconds: float) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=seconds)
        except asyncio.TimeoutError as e:
            raise PhaseTimeout(phase, seconds) from e

    async def run_unit(self, request: TransferRequest) -> TransactionOutcome:
        """
        Perform one transfer and classify its outcome.

        Never raises (apart from cancellation).

        Args:
            request: Transfer to perform

        Returns:
            The unit's outcome
        """
        sender, receiver = request.pair
        log = logger.bind(sender=sender[:8] + "...", receiver=receiver[:8] + "...")
        if request.is_self_transfer:
            log.info("self_transfer", amount=request.amount)

        try:
            block_ref = await self._timed(
                self.ledger.fetch_block_reference(),
                "blockhash fetch",
                self.config.fetch_timeout_seconds,
            )
            start_time = time.monotonic()
            tx = self.builder.build_request(request, block_ref)
            signature = await self._timed(
                self.ledger.submit_and_await_acceptance(tx),
                "submission",
                self.config.submit_timeout_seconds,
            )
        except Exception as e:
            reason = describe_error(e)
            log.error("transfer_submit_failed", error=reason)
            return self._emit(TransactionOutcome.submit_failed(request, reason))

        elapsed = time.monotonic() - start_time
        log.info("transfer_submitted", signature=str(signature), elapsed=round(elapsed, 3))

        try:
            status = await self._timed(
                self.ledger.poll_finalization_status(signature),
                "status check",
                self.config.status_timeout_seconds,
            )
            finalization = FinalizationStatus(status.status)
            failure_reason = (
                f"Transaction failed: {status.error or 'unknown error'}"
                if status.is_failure
                else None
            )
        except Exception as e:
            reason = describe_error(e)
            log.error("transfer_confirm_failed", signature=str(signature), error=reason)
            return self._emit(
                TransactionOutcome.confirm_failed(request, str(signature), elapsed, reason)
            )

        if failure_reason is not None:
            log.error("transfer_confirm_failed", signature=str(signature), error=failure_reason)
            return self._emit(
                TransactionOutcome.confirm_failed(
                    request, str(signature), elapsed, failure_reason, finalization=finalization
                )
            )

        log.debug("transfer_status", signature=str(signature), status=finalization.value)
        return self._emit(
            TransactionOutcome.submitted(request, str(signature), elapsed, finalization)
        )

    def _emit(self, outcome: TransactionOutcome) -> TransactionOutcome:
        if self._on_outcome:
            try:
                self._on_outcome(outcome)
            except Exception as e:
                logger.error("outcome_callback_failed", error=str(e))
        return outcome

    # Callback registration

    def on_outcome(self, callback: Callable[[TransactionOutcome], None]) -> None:
        """Register callback invoked as each unit finishes."""
        self._on_outcome = callback
