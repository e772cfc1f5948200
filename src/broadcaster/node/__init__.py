"""
Node Integration Layer.

Provides abstracted access to the Solana ledger: blockhashes, transaction
submission, signature status, balances and block notifications.
"""

from broadcaster.node.interface import (
    BlockReference,
    FinalizationStatus,
    LedgerInterface,
    SignatureStatus,
)
from broadcaster.node.solana_rpc import SolanaRpcAdapter
from broadcaster.node.subscription import BlockSubscription, BlockUpdate

__all__ = [
    "BlockReference",
    "FinalizationStatus",
    "LedgerInterface",
    "SignatureStatus",
    "SolanaRpcAdapter",
    "BlockSubscription",
    "BlockUpdate",
]
