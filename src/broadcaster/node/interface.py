"""
Abstract interface for Solana ledger access.

Defines the contract for ledger access that all node adapters must implement.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from solders.hash import Hash
from solders.signature import Signature
from solders.transaction import Transaction


@dataclass(frozen=True)
class BlockReference:
    """A recent blockhash and the last block height at which it is valid."""
    blockhash: Hash
    last_valid_block_height: Optional[int] = None


class FinalizationStatus(str, Enum):
    """Result of a single point-in-time signature status check."""
    PENDING = "pending"                       # Unknown or not finalized yet
    FINALIZED_SUCCESS = "finalized_success"   # Finalized without error
    FINALIZED_FAILURE = "finalized_failure"   # Finalized with a ledger error


@dataclass(frozen=True)
class SignatureStatus:
    """Signature status as reported by the ledger."""
    status: FinalizationStatus
    error: Optional[str] = None
    confirmation_status: Optional[str] = None
    slot: Optional[int] = None

    @property
    def is_failure(self) -> bool:
        return self.status == FinalizationStatus.FINALIZED_FAILURE


class LedgerInterface(ABC):
    """
    Abstract interface for Solana ledger access.

    This interface defines all ledger operations needed by the broadcaster:
    - Blockhash retrieval
    - Transaction submission
    - Signature status polling
    - Balance and health queries

    Implementations must be safe to share between concurrently running
    dispatch units.
    """

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish connection to the node.

        Raises:
            NodeConnectionError: If connection cannot be established
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close connection to the node."""
        pass

    @abstractmethod
    async def fetch_block_reference(self) -> BlockReference:
        """
        Fetch the latest blockhash.

        Must be called fresh for every transaction, right before building it.

        Returns:
            The latest block reference

        Raises:
            LedgerNetworkError: If the blockhash cannot be fetched
        """
        pass

    @abstractmethod
    async def submit_and_await_acceptance(self, tx: Transaction) -> Signature:
        """
        Submit a signed transaction and wait until the ledger accepts it.

        Acceptance means the transaction reached the configured acceptance
        commitment, not necessarily finalization.

        Args:
            tx: Signed transaction to submit

        Returns:
            Transaction signature

        Raises:
            TransactionSubmitError: If the ledger rejects the transaction
        """
        pass

    @abstractmethod
    async def poll_finalization_status(self, signature: Signature) -> SignatureStatus:
        """
        Check the finalization status of a signature once.

        Args:
            signature: Signature returned by submission

        Returns:
            The status observed at the time of the call

        Raises:
            StatusCheckError: If the status cannot be retrieved
        """
        pass

    @abstractmethod
    async def get_balance(self, address: str) -> int:
        """
        Get the balance of an account.

        Args:
            address: Base58 encoded account address

        Returns:
            Balance in lamports

        Raises:
            LedgerNetworkError: If the balance cannot be retrieved
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check that the node is reachable and healthy.

        Returns:
            True if the node reports itself healthy
        """
        pass


class SubmitRejection(str, Enum):
    """Why a transaction was not accepted."""
    INSUFFICIENT_FUNDS = "insufficient_funds"
    INVALID_SIGNATURE = "invalid_signature"
    EXPIRED_BLOCK_REFERENCE = "expired_block_reference"
    TIMEOUT = "timeout"
    NETWORK = "network"
    OTHER = "other"


class LedgerError(Exception):
    """Base class for ledger access failures."""
    pass


class NodeConnectionError(LedgerError):
    """Raised when connection to node fails."""
    pass


class LedgerNetworkError(LedgerError):
    """Raised when a request to the node fails in transport or returns an RPC error."""
    pass


class TransactionSubmitError(LedgerError):
    """Raised when transaction submission fails."""

    def __init__(
        self,
        message: str,
        rejection: SubmitRejection = SubmitRejection.OTHER,
        error_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.rejection = rejection
        self.error_code = error_code


class StatusCheckError(LedgerError):
    """Raised when a signature status cannot be retrieved."""
    pass


def classify_rejection(message: str) -> SubmitRejection:
    """Map a ledger error message onto a SubmitRejection."""
    text = message.lower()

    if "insufficient" in text:
        return SubmitRejection.INSUFFICIENT_FUNDS
    if "blockhash not found" in text or "blockhashnotfound" in text or "block height exceeded" in text:
        return SubmitRejection.EXPIRED_BLOCK_REFERENCE
    if "signature" in text and ("verif" in text or "invalid" in text):
        return SubmitRejection.INVALID_SIGNATURE
    return SubmitRejection.OTHER
