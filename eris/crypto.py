"""Primitives used by the encoder and decoder.

BLAKE2b-256 comes from ``hashlib``; the stream cipher is IETF ChaCha20 from
PyCryptodomex with a constant all-zero nonce. Reusing the nonce is safe only
because every block key is itself derived from the block's plaintext.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Optional

from argon2.low_level import Type as _ArgonType, hash_secret_raw as _argon_hash
from Cryptodome.Cipher import ChaCha20

from .constants import (
    ARGON_DEFAULT_SALT,
    ARGON_MEMORY_COST_KIB,
    ARGON_MIN_SALT_SIZE,
    ARGON_PARALLELISM,
    ARGON_TIME_COST,
    CHACHA_NONCE,
    CONVERGENCE_SECRET_SIZE,
    KEY_SIZE,
    PAD_MARKER,
)
from .errors import FormatError


def blake2b_256(message: bytes, key: Optional[bytes] = None) -> bytes:
    """BLAKE2b with a 32-byte digest; keyed when ``key`` is given (even all-zero)."""
    if key is None:
        return hashlib.blake2b(message, digest_size=32).digest()
    return hashlib.blake2b(message, digest_size=32, key=key).digest()


def chacha20(data: bytes, key: bytes) -> bytes:
    """XOR ``data`` with the ChaCha20 keystream; applying it twice is the identity."""
    if len(key) != KEY_SIZE:
        raise ValueError("ChaCha20 key must be 32 bytes")
    cipher = ChaCha20.new(key=key, nonce=CHACHA_NONCE)
    return cipher.encrypt(data)


def pad(buf: bytes, block_size: int) -> bytes:
    """Append 0x80 and zero fill up to the next multiple of ``block_size``.

    Always adds at least one byte, so a buffer that is already a multiple of
    ``block_size`` grows by a full block.
    """
    n = len(buf) // block_size + 1
    out = bytearray(n * block_size)
    out[: len(buf)] = buf
    out[len(buf)] = PAD_MARKER
    return bytes(out)


def unpad(buf: bytes, block_size: int) -> bytes:
    """Strip trailing zeros and the 0x80 marker added by :func:`pad`."""
    if len(buf) == 0 or len(buf) % block_size != 0:
        raise FormatError(f"padded buffer length {len(buf)} is not a multiple of {block_size}")
    i = len(buf) - 1
    while i >= 0 and buf[i] == 0:
        i -= 1
    if i < 0 or buf[i] != PAD_MARKER:
        raise FormatError("invalid padding: missing 0x80 marker")
    return bytes(buf[:i])


def constant_time_equal(a: bytes, b: bytes) -> bool:
    return hmac.compare_digest(a, b)


def is_zero(buf: bytes) -> bool:
    return not any(buf)


def derive_convergence_secret(passphrase: str, salt: bytes = ARGON_DEFAULT_SALT) -> bytes:
    """Derive a 32-byte convergence secret from a shared passphrase with Argon2id.

    The salt is fixed by default so every holder of the passphrase derives the
    same secret and their encodings deduplicate against each other.
    """
    if len(salt) < ARGON_MIN_SALT_SIZE:
        raise ValueError(f"salt must be at least {ARGON_MIN_SALT_SIZE} bytes")
    return _argon_hash(
        passphrase.encode("utf-8"),
        salt,
        time_cost=ARGON_TIME_COST,
        memory_cost=ARGON_MEMORY_COST_KIB,
        parallelism=ARGON_PARALLELISM,
        hash_len=CONVERGENCE_SECRET_SIZE,
        type=_ArgonType.ID,
    )
