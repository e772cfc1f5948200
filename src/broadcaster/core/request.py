"""
Transfer request model.

Represents the identities involved in a transfer and the transfer itself.
"""

from dataclasses import dataclass, field
from typing import Tuple

from solders.keypair import Keypair
from solders.pubkey import Pubkey

MAX_LAMPORTS = 2**64 - 1


@dataclass(frozen=True)
class SenderIdentity:
    """
    A wallet that signs and pays for transfers.

    Attributes:
        signing_key: Keypair used to sign transactions
        address: Declared public address of the wallet
    """

    signing_key: Keypair = field(compare=False, repr=False)
    address: Pubkey

    @classmethod
    def from_keypair(cls, keypair: Keypair) -> "SenderIdentity":
        """Create an identity whose address is the keypair's public key."""
        return cls(signing_key=keypair, address=keypair.pubkey())

    @property
    def key_matches_address(self) -> bool:
        """Check that the signing key belongs to the declared address."""
        return self.signing_key.pubkey() == self.address

    def __str__(self) -> str:
        return str(self.address)


@dataclass(frozen=True)
class ReceiverAddress:
    """A wallet that receives transfers."""

    address: Pubkey

    @classmethod
    def from_string(cls, address: str) -> "ReceiverAddress":
        return cls(address=Pubkey.from_string(address))

    def __str__(self) -> str:
        return str(self.address)


@dataclass(frozen=True)
class TransferRequest:
    """
    A single transfer of lamports from a sender to a receiver.

    Attributes:
        sender: Paying and signing wallet
        receiver: Destination wallet
        amount: Lamports to move (unsigned 64-bit)
    """

    sender: SenderIdentity
    receiver: ReceiverAddress
    amount: int

    def __post_init__(self):
        """Validate the amount."""
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise ValueError(f"Amount must be an integer number of lamports, got {self.amount!r}")
        if not 0 <= self.amount <= MAX_LAMPORTS:
            raise ValueError(f"Amount {self.amount} does not fit in an unsigned 64-bit integer")

    @property
    def pair(self) -> Tuple[str, str]:
        """(sender address, receiver address) as strings."""
        return str(self.sender.address), str(self.receiver.address)

    @property
    def is_self_transfer(self) -> bool:
        return self.sender.address == self.receiver.address

    def __repr__(self) -> str:
        sender, receiver = self.pair
        return f"TransferRequest({sender[:8]}... -> {receiver[:8]}..., amount={self.amount})"
