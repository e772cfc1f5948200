"""
Test suite for wallet file loading.

Tests both wallet file shapes, pair ordering and the errors reported for
malformed files.
"""

import pytest
import yaml
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from broadcaster.core.wallet import (
    WalletConfigError,
    WalletSet,
    load_wallet_set,
    wallet_set_from_dict,
)
from broadcaster.tx.signer import keypair_to_text


def wallet_entry(keypair: Keypair) -> dict:
    return {"private_key": keypair_to_text(keypair), "public_key": str(keypair.pubkey())}


def write_yaml(tmp_path, data) -> str:
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(data))
    return str(path)


# ============================================================================
# Fan-out Wallet Files
# ============================================================================

class TestFanOutWalletFile:
    """Tests for files listing many wallets and receivers."""

    def test_load_wallets_and_receivers(self, tmp_path):
        keypairs = [Keypair(), Keypair()]
        receivers = [str(Pubkey.new_unique()) for _ in range(3)]
        path = write_yaml(tmp_path, {
            "wallets": [wallet_entry(kp) for kp in keypairs],
            "receivers": receivers,
            "rpc_url": "https://api.devnet.solana.com",
        })

        wallet_set = load_wallet_set(path)

        assert [s.address for s in wallet_set.senders] == [kp.pubkey() for kp in keypairs]
        assert [str(r.address) for r in wallet_set.receivers] == receivers
        assert wallet_set.rpc_url == "https://api.devnet.solana.com"
        assert wallet_set.amount is None
        assert wallet_set.pair_count == 6
        assert all(s.key_matches_address for s in wallet_set.senders)

    def test_requests_are_senders_outermost(self):
        keypairs = [Keypair(), Keypair()]
        receivers = [str(Pubkey.new_unique()) for _ in range(2)]
        wallet_set = wallet_set_from_dict({
            "wallets": [wallet_entry(kp) for kp in keypairs],
            "receivers": receivers,
        })

        pairs = [r.pair for r in wallet_set.transfer_requests(100)]

        assert pairs == [
            (str(keypairs[0].pubkey()), receivers[0]),
            (str(keypairs[0].pubkey()), receivers[1]),
            (str(keypairs[1].pubkey()), receivers[0]),
            (str(keypairs[1].pubkey()), receivers[1]),
        ]

    def test_empty_lists_allowed(self):
        wallet_set = wallet_set_from_dict({"wallets": [], "receivers": []})

        assert wallet_set.pair_count == 0
        assert list(wallet_set.transfer_requests(1)) == []

    def test_empty_file_is_empty_set(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")

        wallet_set = load_wallet_set(str(path))

        assert wallet_set.senders == []
        assert wallet_set.receivers == []

    def test_unknown_keys_ignored(self):
        wallet_set = wallet_set_from_dict({
            "wallets": [],
            "receivers": [str(Pubkey.new_unique())],
            "comment": "devnet accounts",
        })
        assert len(wallet_set.receivers) == 1

    def test_mismatched_public_key_is_kept(self):
        """A key/address mismatch only fails that sender's transfers later."""
        declared = Pubkey.new_unique()
        wallet_set = wallet_set_from_dict({
            "wallets": [{"private_key": keypair_to_text(Keypair()), "public_key": str(declared)}],
            "receivers": [],
        })

        assert wallet_set.senders[0].address == declared
        assert wallet_set.senders[0].key_matches_address is False

    def test_addresses_lists_senders_then_receivers(self):
        keypair = Keypair()
        receiver = str(Pubkey.new_unique())
        wallet_set = wallet_set_from_dict({
            "wallets": [wallet_entry(keypair)],
            "receivers": [receiver],
        })

        assert wallet_set.addresses() == [str(keypair.pubkey()), receiver]

    def test_address_only_wallets_are_watched(self, tmp_path):
        """Plain address entries are listed for balances but never send."""
        keypair = Keypair()
        watched = str(Pubkey.new_unique())
        receiver = str(Pubkey.new_unique())
        path = write_yaml(tmp_path, {
            "wallets": [watched, wallet_entry(keypair)],
            "receivers": [receiver],
            "rcp_url": "http://127.0.0.1:8899",
        })

        wallet_set = load_wallet_set(path)

        assert [s.address for s in wallet_set.senders] == [keypair.pubkey()]
        assert [str(w) for w in wallet_set.watched] == [watched]
        assert wallet_set.rpc_url == "http://127.0.0.1:8899"
        assert wallet_set.pair_count == 1
        assert wallet_set.addresses() == [str(keypair.pubkey()), watched, receiver]

    def test_address_only_file_has_no_pairs(self):
        addresses = [str(Pubkey.new_unique()) for _ in range(2)]
        wallet_set = wallet_set_from_dict({"wallets": addresses, "rcp_url": "http://rpc.test"})

        assert wallet_set.senders == []
        assert wallet_set.pair_count == 0
        assert wallet_set.addresses() == addresses
        assert wallet_set.rpc_url == "http://rpc.test"


# ============================================================================
# Single-pair Wallet Files
# ============================================================================

class TestSinglePairWalletFile:
    """Tests for files naming one sender and one recipient."""

    def test_load_single_pair(self, tmp_path):
        keypair = Keypair()
        recipient = str(Pubkey.new_unique())
        path = write_yaml(tmp_path, {
            "sender_private_key": keypair_to_text(keypair),
            "sender_public_key": str(keypair.pubkey()),
            "recipient_wallet": recipient,
            "solana_rpc_url": "http://127.0.0.1:8899",
            "amount": 5000,
        })

        wallet_set = load_wallet_set(path)

        assert wallet_set.is_single_pair
        assert wallet_set.senders[0].address == keypair.pubkey()
        assert str(wallet_set.receivers[0].address) == recipient
        assert wallet_set.rpc_url == "http://127.0.0.1:8899"
        assert wallet_set.amount == 5000

    def test_missing_recipient(self):
        keypair = Keypair()
        with pytest.raises(WalletConfigError, match="Invalid wallet file"):
            wallet_set_from_dict({
                "sender_private_key": keypair_to_text(keypair),
                "sender_public_key": str(keypair.pubkey()),
            })

    def test_negative_amount(self):
        keypair = Keypair()
        with pytest.raises(WalletConfigError):
            wallet_set_from_dict({
                "sender_private_key": keypair_to_text(keypair),
                "sender_public_key": str(keypair.pubkey()),
                "recipient_wallet": str(Pubkey.new_unique()),
                "amount": -1,
            })


# ============================================================================
# Errors
# ============================================================================

class TestWalletFileErrors:
    """Tests for malformed wallet files."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(WalletConfigError, match="Wallet file not found"):
            load_wallet_set(str(tmp_path / "nope.yaml"))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("wallets: [\n  - private_key: 'x'\n")

        with pytest.raises(WalletConfigError, match="Unable to parse"):
            load_wallet_set(str(path))

    def test_not_a_mapping(self):
        with pytest.raises(WalletConfigError, match="must contain a mapping"):
            wallet_set_from_dict(["a", "b"])

    def test_private_key_byte_out_of_range(self):
        with pytest.raises(WalletConfigError, match="out of byte range"):
            wallet_set_from_dict({
                "wallets": [{"private_key": "[1, 300]", "public_key": str(Pubkey.new_unique())}],
                "receivers": [],
            })

    def test_private_key_wrong_length(self):
        with pytest.raises(WalletConfigError, match="Expected 64 key bytes"):
            wallet_set_from_dict({
                "wallets": [{"private_key": "[1, 2, 3]", "public_key": str(Pubkey.new_unique())}],
                "receivers": [],
            })

    def test_bad_receiver_address(self):
        with pytest.raises(WalletConfigError, match="receivers\\[1\\]"):
            wallet_set_from_dict({
                "wallets": [],
                "receivers": [str(Pubkey.new_unique()), "not-a-key"],
            })

    def test_bad_public_key(self):
        with pytest.raises(WalletConfigError, match="wallets\\[0\\]"):
            wallet_set_from_dict({
                "wallets": [{"private_key": keypair_to_text(Keypair()), "public_key": "zzz"}],
                "receivers": [],
            })

    def test_bad_address_only_wallet(self):
        with pytest.raises(WalletConfigError, match="wallets\\[0\\]"):
            wallet_set_from_dict({"wallets": ["not-a-key"], "receivers": []})

    def test_private_key_with_non_ascii_digit(self):
        with pytest.raises(WalletConfigError, match="Failed to decode"):
            wallet_set_from_dict({
                "wallets": [{"private_key": "[², 1]", "public_key": str(Pubkey.new_unique())}],
                "receivers": [],
            })


class TestWalletSet:

    def test_default_is_empty(self):
        wallet_set = WalletSet()

        assert wallet_set.pair_count == 0
        assert wallet_set.is_single_pair is False
