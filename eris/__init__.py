"""
ERIS: Encoding for Robust Immutable Storage (urn:erisx2).

Content is split into fixed-size blocks (1 KiB or 32 KiB), each block is
encrypted with a key derived from its own plaintext and a convergence secret,
and the block references are assembled into a tree of the same block size.
The result is a set of opaque blocks addressed by their BLAKE2b-256 hash and
a read capability (``urn:erisx2:...``) holding the root reference and key.

Features:

- Streaming encode with memory bounded by tree height, not content size.
- Integrity-checked decode against any untrusted block store.
- Convergent encryption: identical content and secret give identical blocks.
- In-memory, directory-backed and null block stores.

Usage:
    from eris import put, get, MemoryStore
    store = MemoryStore()
    cap = put(b"Hello world!", store, block_size=1024)
    assert get(cap.urn, store) == b"Hello world!"
"""

from eris.capability import ReadCapability, encode_read_capability, decode_read_capability
from eris.chunker import BytesSource, TextSource, StreamSource
from eris.crypto import derive_convergence_secret
from eris.encoder import encode, encode_to_urn, encode_to_map, encrypt_block, put, EncodedBlock
from eris.decoder import decode, decode_to_bytes, decode_to_string, get, verify
from eris.store import BlockStore, MemoryStore, DirectoryStore, NullStore
from eris.errors import ErisError, FormatError, NotFoundError, IntegrityError, InvalidArityError

__version__ = "0.1"

__all__ = [
    "ReadCapability",
    "encode_read_capability",
    "decode_read_capability",
    "BytesSource",
    "TextSource",
    "StreamSource",
    "derive_convergence_secret",
    "encode",
    "encode_to_urn",
    "encode_to_map",
    "encrypt_block",
    "put",
    "EncodedBlock",
    "decode",
    "decode_to_bytes",
    "decode_to_string",
    "get",
    "verify",
    "BlockStore",
    "MemoryStore",
    "DirectoryStore",
    "NullStore",
    "ErisError",
    "FormatError",
    "NotFoundError",
    "IntegrityError",
    "InvalidArityError",
]
