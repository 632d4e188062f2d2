from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass

from .constants import (
    BLOCK_SIZE_TO_CLASS,
    CAPABILITY_SIZE,
    CLASS_TO_BLOCK_SIZE,
    KEY_SIZE,
    MAX_LEVEL,
    REFERENCE_SIZE,
    SLOT_SIZE,
    URN_PREFIX,
)
from .errors import FormatError, InvalidArityError


def b32encode(data: bytes) -> str:
    """RFC 4648 base32, lowercase, without ``=`` padding."""
    return base64.b32encode(data).decode("ascii").rstrip("=").lower()


def b32decode(text: str) -> bytes:
    padding = "=" * (-len(text) % 8)
    try:
        return base64.b32decode(text.upper() + padding)
    except (binascii.Error, ValueError) as exc:
        raise FormatError(f"invalid base32: {exc}") from exc


@dataclass(frozen=True)
class ReadCapability:
    block_size: int
    level: int
    root_reference: bytes
    root_key: bytes

    @property
    def arity(self) -> int:
        return self.block_size // SLOT_SIZE

    def to_bytes(self) -> bytes:
        cls_byte = BLOCK_SIZE_TO_CLASS.get(self.block_size)
        if cls_byte is None:
            raise InvalidArityError(f"unsupported arity: {self.arity}")
        if not 0 <= self.level <= MAX_LEVEL:
            raise ValueError(f"level out of range: {self.level}")
        if len(self.root_reference) != REFERENCE_SIZE:
            raise ValueError("root reference must be 32 bytes")
        if len(self.root_key) != KEY_SIZE:
            raise ValueError("root key must be 32 bytes")
        return bytes([cls_byte, self.level]) + self.root_reference + self.root_key

    @classmethod
    def from_bytes(cls, raw: bytes) -> "ReadCapability":
        if len(raw) != CAPABILITY_SIZE:
            raise FormatError(f"read capability must be {CAPABILITY_SIZE} bytes, got {len(raw)}")
        block_size = CLASS_TO_BLOCK_SIZE.get(raw[0])
        if block_size is None:
            raise FormatError(f"unknown block size class: {raw[0]}")
        level = raw[1]
        root_reference = bytes(raw[2 : 2 + REFERENCE_SIZE])
        root_key = bytes(raw[2 + REFERENCE_SIZE : CAPABILITY_SIZE])
        return cls(block_size, level, root_reference, root_key)

    @property
    def urn(self) -> str:
        return URN_PREFIX + b32encode(self.to_bytes())

    @classmethod
    def from_urn(cls, urn: str) -> "ReadCapability":
        if not urn.startswith(URN_PREFIX):
            raise FormatError(f"read capability must start with {URN_PREFIX!r}")
        return cls.from_bytes(b32decode(urn[len(URN_PREFIX) :]))

    def __str__(self) -> str:
        return self.urn


def encode_read_capability(arity: int, level: int, reference: bytes, key: bytes) -> str:
    """Render ``urn:erisx2:...`` for a tree root; only arities 16 and 512 are valid."""
    block_size = arity * SLOT_SIZE
    if block_size not in BLOCK_SIZE_TO_CLASS:
        raise InvalidArityError(f"unsupported arity: {arity}")
    return ReadCapability(block_size, level, reference, key).urn


def decode_read_capability(urn: str) -> ReadCapability:
    return ReadCapability.from_urn(urn)
