"""
Pytest configuration and shared fixtures for the test suite.
"""

import asyncio
from typing import Dict, List, Set, Tuple

import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from broadcaster.config import BroadcasterConfig, NetworkType
from broadcaster.core.request import ReceiverAddress, SenderIdentity, TransferRequest
from broadcaster.core.wallet import WalletSet
from broadcaster.node.interface import (
    BlockReference,
    FinalizationStatus,
    LedgerInterface,
    LedgerNetworkError,
    SignatureStatus,
    StatusCheckError,
    SubmitRejection,
    TransactionSubmitError,
)


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def test_config() -> BroadcasterConfig:
    """Create a test configuration."""
    return BroadcasterConfig(
        network=NetworkType.LOCAL,
        rpc_url="http://rpc.test",
        amount_lamports=2_000_000,
        fetch_timeout_seconds=2.0,
        submit_timeout_seconds=2.0,
        status_timeout_seconds=2.0,
        acceptance_poll_interval_seconds=0.01,
        log_level="DEBUG",
    )


# ============================================================================
# Test Data Generators
# ============================================================================

def make_senders(count: int) -> List[SenderIdentity]:
    """Create sender identities with fresh random keys."""
    return [SenderIdentity.from_keypair(Keypair()) for _ in range(count)]


def make_receivers(count: int) -> List[ReceiverAddress]:
    """Create receiver addresses."""
    return [ReceiverAddress(Pubkey.new_unique()) for _ in range(count)]


def make_wallet_set(senders: int, receivers: int) -> WalletSet:
    return WalletSet(senders=make_senders(senders), receivers=make_receivers(receivers))


def transfer_accounts(tx) -> Tuple[str, str]:
    """Get (sender, receiver) of a single-transfer transaction."""
    instruction = tx.message.instructions[0]
    keys = tx.message.account_keys
    return str(keys[instruction.accounts[0]]), str(keys[instruction.accounts[1]])


@pytest.fixture
def wallet_set() -> WalletSet:
    """Three senders and two receivers."""
    return make_wallet_set(3, 2)


@pytest.fixture
def sample_request() -> TransferRequest:
    return TransferRequest(
        sender=make_senders(1)[0],
        receiver=make_receivers(1)[0],
        amount=1_000,
    )


# ============================================================================
# Mock Ledger
# ============================================================================

class MockLedger(LedgerInterface):
    """
    Mock ledger for testing.

    Every call can be delayed or made to fail; calls are recorded so tests
    can assert on what each dispatch unit did.
    """

    def __init__(self):
        self.fetch_delay = 0.0
        self.submit_delay = 0.0
        self.status_delay = 0.0

        self.fail_fetch = False
        self.fail_submit_senders: Set[str] = set()
        self.fail_status = False
        self.signatures: Dict[Tuple[str, str], str] = {}
        self.statuses: Dict[str, SignatureStatus] = {}
        self.default_status = SignatureStatus(status=FinalizationStatus.FINALIZED_SUCCESS)
        self.balances: Dict[str, int] = {}
        self.healthy = True

        self.fetch_calls = 0
        self.blockhashes: List[Hash] = []
        self.submitted: List[Tuple[str, str]] = []
        self.polled: List[str] = []
        self.health_calls = 0
        self.balance_calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._connected = False

    async def connect(self) -> None:
        self._connected = True

    async def disconnect(self) -> None:
        self._connected = False

    async def fetch_block_reference(self) -> BlockReference:
        self.fetch_calls += 1
        if self.fetch_delay:
            await asyncio.sleep(self.fetch_delay)
        if self.fail_fetch:
            raise LedgerNetworkError("getLatestBlockhash request failed: connection refused")
        blockhash = Hash.new_unique()
        self.blockhashes.append(blockhash)
        return BlockReference(blockhash=blockhash, last_valid_block_height=1_000)

    async def submit_and_await_acceptance(self, tx):
        sender, receiver = transfer_accounts(tx)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.submit_delay:
                await asyncio.sleep(self.submit_delay)
            if sender in self.fail_submit_senders:
                raise TransactionSubmitError(
                    "Transaction submission failed: insufficient funds for fee",
                    rejection=SubmitRejection.INSUFFICIENT_FUNDS,
                )
            self.submitted.append((sender, receiver))
            return self.signatures.get((sender, receiver), tx.signatures[0])
        finally:
            self.in_flight -= 1

    async def poll_finalization_status(self, signature) -> SignatureStatus:
        self.polled.append(str(signature))
        if self.status_delay:
            await asyncio.sleep(self.status_delay)
        if self.fail_status:
            raise StatusCheckError(f"Failed to get status of {signature}")
        return self.statuses.get(str(signature), self.default_status)

    async def get_balance(self, address: str) -> int:
        self.balance_calls.append(address)
        if address not in self.balances:
            raise LedgerNetworkError("Failed to parse balance")
        return self.balances[address]

    async def health_check(self) -> bool:
        self.health_calls += 1
        return self.healthy


@pytest.fixture
def mock_ledger() -> MockLedger:
    """Create a mock ledger."""
    return MockLedger()


@pytest.fixture
def dispatcher(mock_ledger, test_config):
    """Create a dispatcher bound to the mock ledger."""
    from broadcaster.core.dispatcher import Dispatcher
    return Dispatcher(ledger=mock_ledger, config=test_config)
