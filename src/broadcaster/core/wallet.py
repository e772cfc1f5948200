"""
Wallet set loading.

Reads sender wallets and receiver addresses from a YAML wallet file. Two file
shapes are accepted:

    # Fan-out: every wallet sends to every receiver
    wallets:
      - private_key: "[12, 34, ...]"
        public_key: "<base58>"
      - "<base58>"                             # address only, balances only
    receivers:
      - "<base58>"
    rpc_url: "https://api.devnet.solana.com"   # optional, `rcp_url` also read

    # Single pair
    sender_private_key: "[12, 34, ...]"
    sender_public_key: "<base58>"
    recipient_wallet: "<base58>"
    amount: 2000000                             # optional
"""

from dataclasses import dataclass, field
from itertools import product
from pathlib import Path
from typing import Iterator, List, Optional, Union

import structlog
import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from solders.pubkey import Pubkey

from broadcaster.core.request import ReceiverAddress, SenderIdentity, TransferRequest
from broadcaster.tx.signer import KeyDecodeError, keypair_from_text

logger = structlog.get_logger(__name__)


class WalletConfigError(Exception):
    """Raised when a wallet file cannot be loaded."""
    pass


class WalletEntry(BaseModel):
    """A sender wallet as written in the wallet file."""
    model_config = ConfigDict(extra="ignore")

    private_key: str
    public_key: str


class FanOutWalletFile(BaseModel):
    """Wallet file listing many senders and many receivers."""
    model_config = ConfigDict(extra="ignore")

    wallets: List[Union[WalletEntry, str]] = Field(default_factory=list)
    receivers: List[str] = Field(default_factory=list)
    rpc_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("rpc_url", "rcp_url"),
    )
    amount: Optional[int] = Field(default=None, ge=0, lt=2**64)


class SinglePairWalletFile(BaseModel):
    """Wallet file naming one sender and one recipient."""
    model_config = ConfigDict(extra="ignore")

    sender_private_key: str
    sender_public_key: str
    recipient_wallet: str
    rpc_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("rpc_url", "solana_rpc_url"),
    )
    amount: Optional[int] = Field(default=None, ge=0, lt=2**64)


@dataclass
class WalletSet:
    """
    Senders and receivers taking part in a run.

    Attributes:
        senders: Signing wallets
        receivers: Destination addresses
        watched: Address-only wallets, listed for balances but never sending
        rpc_url: RPC endpoint named by the wallet file, if any
        amount: Transfer amount named by the wallet file, if any
    """

    senders: List[SenderIdentity] = field(default_factory=list)
    receivers: List[ReceiverAddress] = field(default_factory=list)
    watched: List[Pubkey] = field(default_factory=list)
    rpc_url: Optional[str] = None
    amount: Optional[int] = None

    @property
    def pair_count(self) -> int:
        return len(self.senders) * len(self.receivers)

    @property
    def is_single_pair(self) -> bool:
        return self.pair_count == 1

    def transfer_requests(self, amount: int) -> Iterator[TransferRequest]:
        """Yield one request per (sender, receiver) pair, senders outermost."""
        for sender, receiver in product(self.senders, self.receivers):
            yield TransferRequest(sender=sender, receiver=receiver, amount=amount)

    def addresses(self) -> List[str]:
        """Sender, then address-only wallet, then receiver addresses."""
        return (
            [str(s.address) for s in self.senders]
            + [str(w) for w in self.watched]
            + [str(r.address) for r in self.receivers]
        )


def _parse_pubkey(value: str, what: str) -> Pubkey:
    try:
        return Pubkey.from_string(value.strip())
    except Exception as e:
        raise WalletConfigError(f"Failed to parse {what} public key {value!r}: {e}") from e


def _build_sender(private_key: str, public_key: str, what: str) -> SenderIdentity:
    try:
        keypair = keypair_from_text(private_key)
    except KeyDecodeError as e:
        raise WalletConfigError(f"Failed to decode {what} private key: {e}") from e

    sender = SenderIdentity(signing_key=keypair, address=_parse_pubkey(public_key, what))
    if not sender.key_matches_address:
        # Left to the transaction builder so only this sender's transfers fail
        logger.warning(
            "sender_key_mismatch",
            sender=what,
            declared=str(sender.address)[:8] + "...",
            derived=str(keypair.pubkey())[:8] + "...",
        )
    return sender


def wallet_set_from_dict(data: dict) -> WalletSet:
    """
    Build a wallet set from parsed wallet file contents.

    Args:
        data: Mapping in either the fan-out or the single-pair shape

    Returns:
        The decoded wallet set
    """
    if not isinstance(data, dict):
        raise WalletConfigError("Wallet file must contain a mapping")

    parsed: Union[FanOutWalletFile, SinglePairWalletFile]
    try:
        if "sender_private_key" in data:
            parsed = SinglePairWalletFile.model_validate(data)
        else:
            parsed = FanOutWalletFile.model_validate(data)
    except ValidationError as e:
        raise WalletConfigError(f"Invalid wallet file: {e}") from e

    if isinstance(parsed, SinglePairWalletFile):
        return WalletSet(
            senders=[_build_sender(parsed.sender_private_key, parsed.sender_public_key, "sender")],
            receivers=[ReceiverAddress(_parse_pubkey(parsed.recipient_wallet, "recipient"))],
            rpc_url=parsed.rpc_url,
            amount=parsed.amount,
        )

    senders = []
    watched = []
    for i, entry in enumerate(parsed.wallets):
        if isinstance(entry, str):
            watched.append(_parse_pubkey(entry, f"wallets[{i}]"))
        else:
            senders.append(_build_sender(entry.private_key, entry.public_key, f"wallets[{i}]"))
    receivers = [
        ReceiverAddress(_parse_pubkey(address, f"receivers[{i}]"))
        for i, address in enumerate(parsed.receivers)
    ]

    if watched:
        logger.info("address_only_wallets", count=len(watched))

    return WalletSet(
        senders=senders,
        receivers=receivers,
        watched=watched,
        rpc_url=parsed.rpc_url,
        amount=parsed.amount,
    )


def load_wallet_set(path: str) -> WalletSet:
    """
    Load a wallet set from a YAML file.

    Args:
        path: Path to the wallet file

    Returns:
        The decoded wallet set

    Raises:
        WalletConfigError: If the file is missing, malformed or holds invalid keys
    """
    wallet_path = Path(path)
    if not wallet_path.exists():
        raise WalletConfigError(f"Wallet file not found: {path}")

    try:
        with open(wallet_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise WalletConfigError(f"Unable to parse wallet file {path}: {e}") from e

    wallet_set = wallet_set_from_dict(data or {})
    logger.info(
        "wallet_set_loaded",
        path=path,
        senders=len(wallet_set.senders),
        receivers=len(wallet_set.receivers),
    )
    return wallet_set
