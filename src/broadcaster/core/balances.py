"""
Balance and health checks.
"""

import asyncio
from dataclasses import dataclass
from typing import Iterable, List, Optional

import structlog

from broadcaster.node.interface import LedgerInterface, NodeConnectionError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class BalanceResult:
    """Balance of one wallet, or the reason it could not be fetched."""
    address: str
    balance: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def describe(self) -> str:
        if self.ok:
            return f"Wallet: {self.address}, Balance: {self.balance}"
        return f"Wallet: {self.address}, Error: {self.error}"


async def _fetch_balance(ledger: LedgerInterface, address: str) -> BalanceResult:
    try:
        balance = await ledger.get_balance(address)
    except Exception as e:
        logger.warning("balance_fetch_failed", address=address[:8] + "...", error=str(e))
        return BalanceResult(address=address, error=str(e))
    return BalanceResult(address=address, balance=balance)


async def fetch_balances(ledger: LedgerInterface, addresses: Iterable[str]) -> List[BalanceResult]:
    """
    Fetch the balances of many wallets concurrently.

    Args:
        ledger: Ledger adapter
        addresses: Wallet addresses

    Returns:
        One result per address, in input order
    """
    return list(await asyncio.gather(*(_fetch_balance(ledger, a) for a in addresses)))


async def wait_until_healthy(
    ledger: LedgerInterface,
    interval_seconds: float = 3.0,
    attempts: int = 10,
) -> None:
    """
    Poll the node's health until it reports healthy.

    Args:
        ledger: Ledger adapter
        interval_seconds: Delay between attempts
        attempts: Maximum number of health checks

    Raises:
        NodeConnectionError: If the node is still unhealthy after the last attempt
    """
    for attempt in range(1, attempts + 1):
        logger.info("health_check", attempt=attempt)
        if await ledger.health_check():
            logger.info("health_check_completed", attempt=attempt)
            return

        if attempt < attempts:
            logger.warning("node_not_responding", retry_in=interval_seconds)
            await asyncio.sleep(interval_seconds)

    raise NodeConnectionError(f"Node still unhealthy after {attempts} attempts")
