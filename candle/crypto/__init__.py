"""
Hashing helpers for the candle auction engine.

This module provides:
- Hashing functions (SHA-256, Keccak-256)
- Hex conversion helpers
- Deterministic account identities for simulations and tests

Keccak-256 drives the reference entropy source: the random value for an
auction is derived from a seed and the reference block, so a fixed seed
always selects the same closing sample.
"""

import hashlib
import re

from Crypto.Hash import keccak


ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")


# =============================================================================
# Hashing
# =============================================================================


def sha256(data: bytes) -> bytes:
    """Compute SHA-256 hash."""
    return hashlib.sha256(data).digest()


def keccak256(data: bytes) -> bytes:
    """
    Compute Keccak-256 hash (Ethereum-style).

    Used for: entropy derivation, account identities.
    """
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


# =============================================================================
# Encoding
# =============================================================================


def bytes_to_hex(data: bytes) -> str:
    """Convert bytes to 0x-prefixed hex string."""
    return "0x" + data.hex()


def hex_to_bytes(hex_str: str) -> bytes:
    """Convert hex string (with or without 0x prefix) to bytes."""
    if hex_str.startswith("0x"):
        hex_str = hex_str[2:]
    return bytes.fromhex(hex_str)


def is_valid_address(address: str) -> bool:
    """Check whether a string is a 0x-prefixed 20-byte hex address."""
    return bool(ADDRESS_PATTERN.match(address))


def derive_account(name: str) -> str:
    """
    Derive a deterministic account address from a human-readable name.

    Address = last 20 bytes of keccak256(name), hex-encoded with 0x prefix.
    Handy for simulations where bidders are called "alice" and "bob".
    """
    return bytes_to_hex(keccak256(name.encode("utf-8"))[-20:])


__all__ = [
    "sha256",
    "keccak256",
    "bytes_to_hex",
    "hex_to_bytes",
    "is_valid_address",
    "derive_account",
]
