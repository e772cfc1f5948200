"""
Core broadcaster components.

This module contains the transfer and outcome models, wallet loading, and the
concurrent dispatch and aggregation of transfers.
"""

from broadcaster.core.request import ReceiverAddress, SenderIdentity, TransferRequest
from broadcaster.core.outcome import BatchReport, OutcomeKind, TransactionOutcome
from broadcaster.core.wallet import WalletSet, load_wallet_set
from broadcaster.core.aggregator import OutcomeAggregator
from broadcaster.core.dispatcher import Dispatcher
from broadcaster.core.triggered import TriggeredSender

__all__ = [
    "ReceiverAddress",
    "SenderIdentity",
    "TransferRequest",
    "BatchReport",
    "OutcomeKind",
    "TransactionOutcome",
    "WalletSet",
    "load_wallet_set",
    "OutcomeAggregator",
    "Dispatcher",
    "TriggeredSender",
]
