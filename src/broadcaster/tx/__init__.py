"""
Transaction module.

Handles signing key loading and transfer transaction construction.
"""

from broadcaster.tx.builder import TransactionBuilder, TransactionBuildError
from broadcaster.tx.signer import KeyDecodeError, keypair_from_text, parse_key_bytes

__all__ = [
    "TransactionBuilder",
    "TransactionBuildError",
    "KeyDecodeError",
    "keypair_from_text",
    "parse_key_bytes",
]
