"""
Signing key loading.

Decodes sender signing keys from the textual byte-array format used in wallet
files, which is also the `solana-keygen` keypair file format (`[12, 34, ...]`).
"""

from typing import List

from solders.keypair import Keypair

KEYPAIR_LENGTH = 64


class KeyDecodeError(ValueError):
    """Raised when signing key material cannot be decoded."""
    pass


def parse_key_bytes(text: str) -> bytes:
    """
    Decode a bracketed, comma-separated list of decimal byte values.

    Args:
        text: Key material such as "[12, 34, 255]"

    Returns:
        The decoded raw bytes

    Raises:
        KeyDecodeError: If an entry is not a number or is outside 0-255
    """
    trimmed = text.strip().strip("[]")
    values: List[int] = []

    for index, part in enumerate(trimmed.split(",")):
        token = part.strip()
        # isdigit() alone admits non-ASCII digits such as '²'
        if not (token.isascii() and token.isdigit()):
            raise KeyDecodeError(f"Failed to parse number at position {index}: {token!r}")
        number = int(token)
        if number > 255:
            raise KeyDecodeError(f"Number {number} out of byte range")
        values.append(number)

    return bytes(values)


def keypair_from_text(text: str) -> Keypair:
    """
    Build a keypair from textual key material.

    Args:
        text: 64 decimal byte values (secret key followed by public key)

    Returns:
        The decoded keypair
    """
    raw = parse_key_bytes(text)
    if len(raw) != KEYPAIR_LENGTH:
        raise KeyDecodeError(f"Expected {KEYPAIR_LENGTH} key bytes, got {len(raw)}")

    try:
        return Keypair.from_bytes(raw)
    except Exception as e:
        raise KeyDecodeError(f"Failed to parse private key: {e}") from e


def keypair_to_text(keypair: Keypair) -> str:
    """Encode a keypair in the textual byte-array format."""
    return "[" + ", ".join(str(b) for b in bytes(keypair)) + "]"
