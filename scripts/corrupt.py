from __future__ import annotations

import argparse
import os
import random
import sys
from typing import Optional

from eris.capability import b32decode, b32encode
from eris.errors import ErisError
from eris.store import DirectoryStore


def _flip_byte(path: str, offset: int, xor_val: int = 0xFF) -> None:
    if offset < 0:
        raise ValueError("Offset must be non-negative")
    with open(path, "r+b") as f:
        f.seek(offset)
        b = f.read(1)
        if not b:
            raise ValueError("Offset beyond end of block")
        f.seek(offset)
        f.write(bytes([b[0] ^ (xor_val & 0xFF)]))
        f.flush()
        os.fsync(f.fileno())


def _pick_reference(store: DirectoryStore, reference: Optional[str], seed: Optional[int]) -> bytes:
    if reference:
        return b32decode(reference)
    refs = list(store.references())
    if not refs:
        raise ValueError("Store holds no blocks")
    return random.Random(seed).choice(refs)


def cmd_flip(args: argparse.Namespace) -> None:
    store = DirectoryStore(args.store)
    ref = _pick_reference(store, args.reference, args.seed)
    path = store.path_for(ref)
    if not path.exists():
        raise ValueError(f"No block {b32encode(ref)} in store")
    _flip_byte(str(path), args.within, xor_val=args.xor)
    print(f"Flipped 1 byte in block {b32encode(ref)} at offset {args.within}")


def cmd_delete(args: argparse.Namespace) -> None:
    store = DirectoryStore(args.store)
    ref = _pick_reference(store, args.reference, args.seed)
    path = store.path_for(ref)
    if not path.exists():
        raise ValueError(f"No block {b32encode(ref)} in store")
    path.unlink()
    print(f"Deleted block {b32encode(ref)}")


def main(argv: Optional[list[str]] = None) -> None:
    ap = argparse.ArgumentParser(prog="eris.corrupt", description="Damage ERIS block directories for testing")
    sub = ap.add_subparsers(dest="cmd", required=True)

    p_flip = sub.add_parser("flip", help="Flip one byte in a block (random block unless --reference)")
    p_flip.add_argument("store", help="Block directory")
    p_flip.add_argument("--reference", help="Base32 reference of the block to damage")
    p_flip.add_argument("--within", type=int, default=10, help="Byte offset within block (default 10)")
    p_flip.add_argument("--xor", type=lambda x: int(x, 0), default=0xFF, help="XOR mask to apply (default 0xFF)")
    p_flip.add_argument("--seed", type=int, default=None, help="PRNG seed for reproducibility")
    p_flip.set_defaults(func=cmd_flip)

    p_del = sub.add_parser("delete", help="Delete one block (random block unless --reference)")
    p_del.add_argument("store", help="Block directory")
    p_del.add_argument("--reference", help="Base32 reference of the block to delete")
    p_del.add_argument("--seed", type=int, default=None, help="PRNG seed for reproducibility")
    p_del.set_defaults(func=cmd_delete)

    args = ap.parse_args(argv)
    try:
        args.func(args)
    except (ErisError, OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
