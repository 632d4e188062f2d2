from __future__ import annotations

import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterator, Optional, Union

from .capability import b32decode, b32encode
from .constants import REFERENCE_SIZE

logger = logging.getLogger(__name__)


class BlockStore(ABC):
    """Content-addressed block storage: blocks are keyed by the hash of their ciphertext."""

    @abstractmethod
    def put(self, reference: bytes, block: bytes) -> None:
        ...

    @abstractmethod
    def get(self, reference: bytes) -> Optional[bytes]:
        """Return the block stored under ``reference`` or None if absent."""


class MemoryStore(BlockStore):
    def __init__(self, blocks: Optional[Dict[bytes, bytes]] = None):
        self.blocks: Dict[bytes, bytes] = dict(blocks or {})

    def put(self, reference: bytes, block: bytes) -> None:
        self.blocks[bytes(reference)] = bytes(block)

    def get(self, reference: bytes) -> Optional[bytes]:
        return self.blocks.get(bytes(reference))

    def __len__(self) -> int:
        return len(self.blocks)

    def __contains__(self, reference: bytes) -> bool:
        return bytes(reference) in self.blocks

    def __iter__(self) -> Iterator[bytes]:
        return iter(self.blocks)

    def __delitem__(self, reference: bytes) -> None:
        del self.blocks[bytes(reference)]


class NullStore(BlockStore):
    """Discards every block; useful to compute a capability without storing anything."""

    def put(self, reference: bytes, block: bytes) -> None:
        return None

    def get(self, reference: bytes) -> Optional[bytes]:
        return None


class DirectoryStore(BlockStore):
    """One file per block under ``root/<first two base32 chars>/<base32 reference>``.

    Writes go to a temporary file in the same directory and are moved into
    place with ``os.replace`` so a reader never observes a partial block.
    """

    def __init__(self, root: Union[str, Path], *, fsync: bool = False):
        self.root = Path(root)
        self.fsync = fsync
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, reference: bytes) -> Path:
        if len(reference) != REFERENCE_SIZE:
            raise ValueError("reference must be 32 bytes")
        name = b32encode(reference)
        return self.root / name[:2] / name

    def put(self, reference: bytes, block: bytes) -> None:
        path = self.path_for(reference)
        if path.exists():
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=str(path.parent), prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(block)
                if self.fsync:
                    fh.flush()
                    os.fsync(fh.fileno())
            os.replace(tmp, str(path))
        except BaseException:
            try:
                os.unlink(tmp)
            except FileNotFoundError:
                pass
            raise
        logger.debug("stored block %s (%d bytes)", path.name, len(block))

    def get(self, reference: bytes) -> Optional[bytes]:
        path = self.path_for(reference)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None

    def references(self) -> Iterator[bytes]:
        for sub in sorted(self.root.iterdir()):
            if not sub.is_dir():
                continue
            for entry in sorted(sub.iterdir()):
                if entry.name.startswith("."):
                    continue
                yield b32decode(entry.name)

    def __len__(self) -> int:
        return sum(1 for _ in self.references())
