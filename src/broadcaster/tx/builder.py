"""
Transaction Builder - constructs transfer transactions.

Turns a transfer request and a fresh block reference into a signed System
Program transfer transaction.
"""

import structlog

from solders.message import Message
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction

from broadcaster.core.request import ReceiverAddress, SenderIdentity, TransferRequest
from broadcaster.node.interface import BlockReference

logger = structlog.get_logger(__name__)


class TransactionBuildError(Exception):
    """Raised when transaction construction or signing fails."""
    pass


class TransactionBuilder:
    """
    Builds and signs transfer transactions.

    Building is pure: the only ledger input is the block reference passed in
    by the caller, so a builder can be shared by any number of dispatch units.
    """

    def build(
        self,
        sender: SenderIdentity,
        receiver: ReceiverAddress,
        amount: int,
        block_ref: BlockReference,
    ) -> Transaction:
        """
        Build a signed transfer transaction.

        Args:
            sender: Paying and signing wallet (also the fee payer)
            receiver: Destination wallet
            amount: Lamports to transfer
            block_ref: Recent blockhash the transaction is anchored to

        Returns:
            Signed transaction

        Raises:
            TransactionBuildError: If the transaction cannot be built or signed
        """
        if not sender.key_matches_address:
            raise TransactionBuildError(
                f"Signing key does not belong to sender {sender.address}"
            )

        try:
            instruction = transfer(
                TransferParams(
                    from_pubkey=sender.address,
                    to_pubkey=receiver.address,
                    lamports=amount,
                )
            )
            message = Message.new_with_blockhash(
                [instruction],
                sender.address,
                block_ref.blockhash,
            )
            tx = Transaction.new_unsigned(message)
            tx.sign([sender.signing_key], block_ref.blockhash)
        except Exception as e:
            logger.error(
                "transaction_build_failed",
                sender=str(sender.address)[:8] + "...",
                receiver=str(receiver.address)[:8] + "...",
                error=str(e),
            )
            raise TransactionBuildError(f"Failed to build transaction: {e}") from e

        logger.debug(
            "transaction_built",
            sender=str(sender.address)[:8] + "...",
            receiver=str(receiver.address)[:8] + "...",
            amount=amount,
            signature=str(tx.signatures[0])[:16] + "...",
        )
        return tx

    def build_request(self, request: TransferRequest, block_ref: BlockReference) -> Transaction:
        """Build a signed transaction for a transfer request."""
        return self.build(request.sender, request.receiver, request.amount, block_ref)
