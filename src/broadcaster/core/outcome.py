"""
Outcome models.

A TransactionOutcome records what happened to one (sender, receiver) pair;
a BatchReport collects the outcomes of one run.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple

from broadcaster.core.request import TransferRequest
from broadcaster.node.interface import FinalizationStatus


class OutcomeKind(str, Enum):
    """Terminal result of a dispatch unit."""
    SUBMITTED = "submitted"           # Accepted by the ledger, not known to have failed
    SUBMIT_FAILED = "submit_failed"   # Never accepted; confirmation was not polled
    CONFIRM_FAILED = "confirm_failed" # Accepted, but the finalization check failed


@dataclass(frozen=True)
class TransactionOutcome:
    """
    Outcome of one transfer.

    Attributes:
        sender: Sender address
        receiver: Receiver address
        amount: Lamports the transfer was meant to move
        kind: Which terminal state the unit reached
        signature: Transaction signature (absent when submission failed)
        elapsed: Seconds from submission start to acceptance
        reason: Error description for failed outcomes
        finalization: Status observed by the finalization poll, if it ran
        completed_at: When the unit finished
    """

    sender: str
    receiver: str
    amount: int
    kind: OutcomeKind
    signature: Optional[str] = None
    elapsed: Optional[float] = None
    reason: Optional[str] = None
    finalization: Optional[FinalizationStatus] = None
    completed_at: datetime = field(default_factory=datetime.utcnow)

    @classmethod
    def submitted(
        cls,
        request: TransferRequest,
        signature: str,
        elapsed: float,
        finalization: FinalizationStatus,
    ) -> "TransactionOutcome":
        sender, receiver = request.pair
        return cls(
            sender=sender,
            receiver=receiver,
            amount=request.amount,
            kind=OutcomeKind.SUBMITTED,
            signature=signature,
            elapsed=elapsed,
            finalization=finalization,
        )

    @classmethod
    def submit_failed(cls, request: TransferRequest, reason: str) -> "TransactionOutcome":
        sender, receiver = request.pair
        return cls(
            sender=sender,
            receiver=receiver,
            amount=request.amount,
            kind=OutcomeKind.SUBMIT_FAILED,
            reason=reason,
        )

    @classmethod
    def confirm_failed(
        cls,
        request: TransferRequest,
        signature: str,
        elapsed: float,
        reason: str,
        finalization: Optional[FinalizationStatus] = None,
    ) -> "TransactionOutcome":
        sender, receiver = request.pair
        return cls(
            sender=sender,
            receiver=receiver,
            amount=request.amount,
            kind=OutcomeKind.CONFIRM_FAILED,
            signature=signature,
            elapsed=elapsed,
            reason=reason,
            finalization=finalization,
        )

    @property
    def pair(self) -> Tuple[str, str]:
        return self.sender, self.receiver

    @property
    def is_success(self) -> bool:
        return self.kind == OutcomeKind.SUBMITTED

    def describe(self) -> str:
        """Human-readable single line."""
        if self.kind == OutcomeKind.SUBMITTED:
            return (
                f"{self.sender} -> {self.receiver}: "
                f"Transaction Hash: {self.signature}, Time: {self.elapsed:.3f}s"
            )
        if self.kind == OutcomeKind.SUBMIT_FAILED:
            return f"Error sending from wallet {self.sender} to wallet {self.receiver}: {self.reason}"
        return (
            f"Error confirming {self.signature} from wallet {self.sender} "
            f"to wallet {self.receiver}: {self.reason}"
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "sender": self.sender,
            "receiver": self.receiver,
            "amount": self.amount,
            "kind": self.kind.value,
            "signature": self.signature,
            "elapsed_seconds": self.elapsed,
            "reason": self.reason,
            "finalization": self.finalization.value if self.finalization else None,
            "completed_at": self.completed_at.isoformat(),
        }


@dataclass
class BatchReport:
    """
    Outcomes of one broadcast run, in arrival order.

    Attributes:
        outcomes: One outcome per dispatched pair
        started_at: When dispatch started
        finished_at: When the last outcome arrived
    """

    outcomes: List[TransactionOutcome] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None

    def add(self, outcome: TransactionOutcome) -> None:
        self.outcomes.append(outcome)

    def mark_finished(self) -> None:
        self.finished_at = datetime.utcnow()

    @property
    def size(self) -> int:
        return len(self.outcomes)

    @property
    def is_empty(self) -> bool:
        return len(self.outcomes) == 0

    @property
    def submitted_count(self) -> int:
        return sum(1 for o in self.outcomes if o.kind == OutcomeKind.SUBMITTED)

    @property
    def failed_count(self) -> int:
        return self.size - self.submitted_count

    @property
    def all_failed(self) -> bool:
        """True when the batch is non-empty and no transfer was submitted."""
        return not self.is_empty and self.submitted_count == 0

    def count_by_kind(self) -> Dict[str, int]:
        counts = {kind.value: 0 for kind in OutcomeKind}
        for outcome in self.outcomes:
            counts[outcome.kind.value] += 1
        return counts

    def pairs(self) -> List[Tuple[str, str]]:
        return [o.pair for o in self.outcomes]

    def outcome_for(self, sender: str, receiver: str) -> Optional[TransactionOutcome]:
        """Find the outcome of a (sender, receiver) pair."""
        for outcome in self.outcomes:
            if outcome.sender == sender and outcome.receiver == receiver:
                return outcome
        return None

    def lines(self) -> List[str]:
        return [o.describe() for o in self.outcomes]

    def summary(self) -> str:
        return f"{self.submitted_count}/{self.size} transfers submitted, {self.failed_count} failed"

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "size": self.size,
            "submitted": self.submitted_count,
            "failed": self.failed_count,
            "by_kind": self.count_by_kind(),
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }

    def __repr__(self) -> str:
        return f"BatchReport(size={self.size}, submitted={self.submitted_count})"
