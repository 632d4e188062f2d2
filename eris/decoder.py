from __future__ import annotations

import logging
from typing import Iterator, List, Tuple, Union

from .capability import ReadCapability, b32encode
from .chunker import unpad_blocks
from .constants import REFERENCE_SIZE, SLOT_SIZE
from .crypto import blake2b_256, chacha20, constant_time_equal, is_zero, unpad
from .errors import FormatError, IntegrityError, NotFoundError
from .store import BlockStore

logger = logging.getLogger(__name__)

Capability = Union[str, ReadCapability]


def _as_capability(capability: Capability) -> ReadCapability:
    if isinstance(capability, ReadCapability):
        return capability
    return ReadCapability.from_urn(capability)


def fetch_block(store: BlockStore, reference: bytes, key: bytes, block_size: int) -> bytes:
    """Fetch, verify and decrypt one block.

    Verification happens before decryption so the plaintext of a corrupted
    block is never exposed.
    """
    block = store.get(reference)
    if block is None:
        raise NotFoundError(f"block not found: {b32encode(reference)}")
    if len(block) != block_size:
        raise FormatError(
            f"block {b32encode(reference)} is {len(block)} bytes, capability expects {block_size}"
        )
    if not constant_time_equal(blake2b_256(block), reference):
        raise IntegrityError(f"block corrupted: {b32encode(reference)}")
    return chacha20(block, key)


def _children(node: bytes) -> Iterator[Tuple[bytes, bytes]]:
    for pos in range(0, len(node), SLOT_SIZE):
        reference = node[pos : pos + REFERENCE_SIZE]
        # first all-zero reference ends the node
        if is_zero(reference):
            return
        yield reference, node[pos + REFERENCE_SIZE : pos + SLOT_SIZE]


def walk(
    level: int, reference: bytes, key: bytes, store: BlockStore, block_size: int
) -> Iterator[bytes]:
    """Yield decrypted leaf blocks of the tree rooted at ``reference`` in order.

    Depth-first and pre-order with an explicit stack of per-node child
    iterators; the stack never grows beyond the tree height.
    """
    stack: List[Tuple[int, Iterator[Tuple[bytes, bytes]]]] = [(level, iter([(reference, key)]))]
    while stack:
        node_level, children = stack[-1]
        child = next(children, None)
        if child is None:
            stack.pop()
            continue
        plaintext = fetch_block(store, child[0], child[1], block_size)
        logger.debug("fetched block %s at level %d", b32encode(child[0]), node_level)
        if node_level == 0:
            yield plaintext
        else:
            stack.append((node_level - 1, _children(plaintext)))


def decode(capability: Capability, store: BlockStore) -> Iterator[bytes]:
    """Lazily yield the original content as a sequence of byte blocks.

    The capability is parsed eagerly; a malformed one raises here rather than
    on first iteration.
    """
    cap = _as_capability(capability)
    leaves = walk(cap.level, cap.root_reference, cap.root_key, store, cap.block_size)
    return unpad_blocks(leaves, cap.block_size)


def decode_to_bytes(capability: Capability, store: BlockStore) -> bytes:
    return b"".join(decode(capability, store))


def decode_to_string(capability: Capability, store: BlockStore, encoding: str = "utf-8") -> str:
    return decode_to_bytes(capability, store).decode(encoding)


def get(capability: Capability, store: BlockStore) -> bytes:
    return decode_to_bytes(capability, store)


def verify(capability: Capability, store: BlockStore) -> int:
    """Check every block of the tree and the final padding; return the leaf count."""
    cap = _as_capability(capability)
    count = 0
    last = None
    for leaf in walk(cap.level, cap.root_reference, cap.root_key, store, cap.block_size):
        count += 1
        last = leaf
    if last is None:
        raise FormatError("tree has no leaf blocks")
    unpad(last, cap.block_size)
    return count
