from __future__ import annotations

import logging
from typing import Dict, Generator, Iterator, List, NamedTuple, Optional, Tuple

from .capability import ReadCapability
from .chunker import ContentSource, StreamSource, as_source, pad_blocks
from .constants import (
    BLOCK_SIZE_TO_CLASS,
    CONVERGENCE_SECRET_SIZE,
    DEFAULT_BLOCK_SIZE,
    DEFAULT_CONVERGENCE_SECRET,
    MAX_LEVEL,
    ZERO_SLOT,
    arity_for_block_size,
)
from .crypto import blake2b_256, chacha20
from .errors import InvalidArityError
from .store import BlockStore

logger = logging.getLogger(__name__)


class EncodedBlock(NamedTuple):
    reference: bytes
    block: bytes


class EncryptedBlock(NamedTuple):
    block: bytes
    reference: bytes
    key: bytes


def encrypt_block(plaintext: bytes, convergence_secret: bytes) -> EncryptedBlock:
    """Convergent encryption of one leaf or node.

    The key is a keyed hash of the plaintext, so identical plaintext under the
    same secret always produces the identical block, reference and key.
    """
    key = blake2b_256(plaintext, key=convergence_secret)
    block = chacha20(plaintext, key)
    reference = blake2b_256(block)
    return EncryptedBlock(block, reference, key)


class TreeBuilder:
    """Incrementally builds the tree over a stream of leaf blocks.

    ``levels[n]`` holds reference-key pairs at level ``n`` that are not yet
    grouped under a parent. A level is collected the moment it holds ``arity``
    pairs, so at most ``arity`` pairs per level are ever pending.
    """

    def __init__(self, block_size: int, convergence_secret: bytes):
        self.block_size = block_size
        self.arity = arity_for_block_size(block_size)
        self.convergence_secret = convergence_secret
        self.levels: List[List[Tuple[bytes, bytes]]] = []
        self.leaf_count = 0
        self.node_count = 0

    def _append(self, level: int, reference: bytes, key: bytes) -> None:
        while len(self.levels) <= level:
            self.levels.append([])
        self.levels[level].append((reference, key))

    def _build_node(self, level: int) -> EncodedBlock:
        pairs = self.levels[level]
        slots = [ref + key for ref, key in pairs]
        slots.extend([ZERO_SLOT] * (self.arity - len(slots)))
        node = b"".join(slots)
        self.levels[level] = []
        enc = encrypt_block(node, self.convergence_secret)
        self._append(level + 1, enc.reference, enc.key)
        self.node_count += 1
        logger.debug("closed node at level %d with %d/%d children", level + 1, len(pairs), self.arity)
        return EncodedBlock(enc.reference, enc.block)

    def add_leaf(self, plaintext: bytes) -> Iterator[EncodedBlock]:
        enc = encrypt_block(plaintext, self.convergence_secret)
        self.leaf_count += 1
        yield EncodedBlock(enc.reference, enc.block)
        self._append(0, enc.reference, enc.key)
        yield from self.collect(0)

    def collect(self, level: int) -> Iterator[EncodedBlock]:
        while level < len(self.levels) and len(self.levels[level]) >= self.arity:
            yield self._build_node(level)
            level += 1

    def _top_level(self) -> int:
        return max(i for i, pairs in enumerate(self.levels) if pairs)

    def finalize(self) -> Generator[EncodedBlock, None, ReadCapability]:
        """Close every partially filled node and return the root capability.

        Unused slots in the closing nodes are 64 zero bytes.
        """
        level = 0
        while True:
            top = self._top_level()
            pending = self.levels[level]
            if level == top and len(pending) == 1:
                reference, key = pending[0]
                if level > MAX_LEVEL:
                    raise ValueError(f"tree too deep: level {level}")
                logger.debug(
                    "root reached at level %d after %d leaves and %d nodes",
                    level,
                    self.leaf_count,
                    self.node_count,
                )
                return ReadCapability(self.block_size, level, reference, key)
            if pending:
                yield self._build_node(level)
            level += 1


class Encoding:
    """Iterable of :class:`EncodedBlock`; ``read_capability`` is set once exhausted."""

    def __init__(self, source: ContentSource, block_size: int, convergence_secret: bytes):
        self.source = source
        self._stream_started = False
        self.block_size = block_size
        self.convergence_secret = convergence_secret
        self.read_capability: Optional[ReadCapability] = None

    def __iter__(self) -> Iterator[EncodedBlock]:
        if isinstance(self.source, StreamSource):
            # a stream can only be read once
            if self._stream_started:
                raise RuntimeError("stream content has already been encoded; it cannot be re-read")
            self._stream_started = True
        builder = TreeBuilder(self.block_size, self.convergence_secret)
        for leaf in pad_blocks(self.source.blocks(self.block_size), self.block_size):
            yield from builder.add_leaf(leaf)
        self.read_capability = yield from builder.finalize()

    @property
    def urn(self) -> Optional[str]:
        return self.read_capability.urn if self.read_capability is not None else None


def _check_params(block_size: int, convergence_secret: bytes) -> None:
    if block_size not in BLOCK_SIZE_TO_CLASS:
        raise InvalidArityError(
            f"unsupported block size {block_size} (arity {arity_for_block_size(block_size)}); "
            f"expected one of {sorted(BLOCK_SIZE_TO_CLASS)}"
        )
    if len(convergence_secret) != CONVERGENCE_SECRET_SIZE:
        raise ValueError("convergence secret must be 32 bytes")


def encode(
    content,
    block_size: int = DEFAULT_BLOCK_SIZE,
    convergence_secret: bytes = DEFAULT_CONVERGENCE_SECRET,
) -> Encoding:
    """Encode ``content`` (bytes, str, a content source or an iterable of byte chunks).

    Parameters are validated immediately; blocks are produced lazily while the
    returned :class:`Encoding` is iterated.
    """
    _check_params(block_size, convergence_secret)
    source = as_source(content)
    return Encoding(source, block_size, bytes(convergence_secret))


def encode_to_urn(
    content,
    block_size: int = DEFAULT_BLOCK_SIZE,
    convergence_secret: bytes = DEFAULT_CONVERGENCE_SECRET,
) -> str:
    encoding = encode(content, block_size, convergence_secret)
    for _ in encoding:
        pass
    return encoding.urn


def encode_to_map(
    content,
    block_size: int = DEFAULT_BLOCK_SIZE,
    convergence_secret: bytes = DEFAULT_CONVERGENCE_SECRET,
) -> Tuple[str, Dict[bytes, bytes]]:
    """Encode fully in memory; returns ``(urn, {reference: block})``."""
    blocks: Dict[bytes, bytes] = {}
    encoding = encode(content, block_size, convergence_secret)
    for reference, block in encoding:
        blocks[reference] = block
    return encoding.urn, blocks


def put(
    content,
    store: BlockStore,
    block_size: int = DEFAULT_BLOCK_SIZE,
    convergence_secret: bytes = DEFAULT_CONVERGENCE_SECRET,
) -> ReadCapability:
    """Encode ``content`` into ``store`` and return the read capability."""
    encoding = encode(content, block_size, convergence_secret)
    count = 0
    for reference, block in encoding:
        store.put(reference, block)
        count += 1
    logger.debug("stored %d blocks for %s", count, encoding.urn)
    return encoding.read_capability
