"""
Solana Transfer Broadcaster

Sends a lamport transfer from every configured sender wallet to every
configured receiver concurrently, times each submission, checks each
transaction's finalization status once, and reports one outcome per pair.
"""

__version__ = "0.1.0"

from broadcaster.core.dispatcher import Dispatcher
from broadcaster.core.outcome import BatchReport, OutcomeKind, TransactionOutcome
from broadcaster.core.request import ReceiverAddress, SenderIdentity, TransferRequest

__all__ = [
    "Dispatcher",
    "BatchReport",
    "OutcomeKind",
    "TransactionOutcome",
    "ReceiverAddress",
    "SenderIdentity",
    "TransferRequest",
]
