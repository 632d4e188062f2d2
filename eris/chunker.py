from __future__ import annotations

from dataclasses import dataclass
from typing import BinaryIO, Iterable, Iterator, Union

from .crypto import pad, unpad
from .errors import FormatError


@dataclass(frozen=True)
class BytesSource:
    data: bytes

    def blocks(self, block_size: int) -> Iterator[bytes]:
        return split_blocks(self.data, block_size)


@dataclass(frozen=True)
class TextSource:
    text: str

    def blocks(self, block_size: int) -> Iterator[bytes]:
        return split_blocks(self.text.encode("utf-8"), block_size)


@dataclass(frozen=True)
class StreamSource:
    """Lazy byte source; chunks may have any size and are re-sliced into blocks."""

    chunks: Iterable[bytes]

    def blocks(self, block_size: int) -> Iterator[bytes]:
        return rechunk(self.chunks, block_size)

    @classmethod
    def from_file(cls, fh: BinaryIO, read_size: int = 1 << 16) -> "StreamSource":
        return cls(iter(lambda: fh.read(read_size), b""))


ContentSource = Union[BytesSource, TextSource, StreamSource]


def as_source(content: Union[ContentSource, bytes, bytearray, memoryview, str, Iterable[bytes]]) -> ContentSource:
    """Resolve caller-supplied content into one of the source variants."""
    if isinstance(content, (BytesSource, TextSource, StreamSource)):
        return content
    if isinstance(content, str):
        return TextSource(content)
    if isinstance(content, (bytes, bytearray, memoryview)):
        return BytesSource(bytes(content))
    return StreamSource(content)


def split_blocks(buf: bytes, block_size: int) -> Iterator[bytes]:
    """Yield full blocks of ``buf`` followed by the (non-empty) remainder."""
    pos = 0
    while len(buf) - pos >= block_size:
        yield buf[pos : pos + block_size]
        pos += block_size
    if pos < len(buf):
        yield buf[pos:]


def rechunk(chunks: Iterable[bytes], block_size: int) -> Iterator[bytes]:
    buf = bytearray()
    for chunk in chunks:
        buf += chunk
        while len(buf) >= block_size:
            yield bytes(buf[:block_size])
            del buf[:block_size]
    if buf:
        yield bytes(buf)


def pad_blocks(blocks: Iterable[bytes], block_size: int) -> Iterator[bytes]:
    """Pass blocks through, padding only the last one.

    One block of lookahead is held so the true final block can be recognised.
    Empty input still yields one block of pure padding.
    """
    last = b""
    for block in blocks:
        if last:
            yield last
        last = block
    yield from split_blocks(pad(last, block_size), block_size)


def unpad_blocks(blocks: Iterable[bytes], block_size: int) -> Iterator[bytes]:
    """Inverse of :func:`pad_blocks`: strip padding from the final block only."""
    last = None
    for block in blocks:
        if last is not None:
            yield last
        last = block
    if last is None:
        raise FormatError("tree has no leaf blocks")
    tail = unpad(last, block_size)
    if tail:
        yield tail
