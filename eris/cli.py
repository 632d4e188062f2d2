from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import List, Optional

from eris.capability import ReadCapability, b32encode
from eris.chunker import StreamSource
from eris.constants import (
    BLOCK_SIZE_LARGE,
    BLOCK_SIZE_SMALL,
    CONVERGENCE_SECRET_SIZE,
    DEFAULT_CONVERGENCE_SECRET,
)
from eris.crypto import derive_convergence_secret
from eris.decoder import decode, verify
from eris.encoder import put
from eris.errors import ErisError, FormatError, IntegrityError, NotFoundError
from eris.store import DirectoryStore

# Content up to this size is encoded with 1 KiB blocks under --block-size auto
AUTO_SMALL_LIMIT = 16 * 1024


def _pick_block_size(choice: str, input_path: str) -> int:
    """Resolve the --block-size flag.

    Args:
        choice: "auto", "1024" or "32768".
        input_path: Source path, or "-" for stdin (size unknown, large blocks).

    Returns:
        The block size in bytes.
    """
    if choice != "auto":
        return int(choice)
    if input_path == "-":
        return BLOCK_SIZE_LARGE
    return BLOCK_SIZE_SMALL if os.path.getsize(input_path) <= AUTO_SMALL_LIMIT else BLOCK_SIZE_LARGE


def _resolve_secret(secret_hex: Optional[str], passphrase: Optional[str]) -> bytes:
    if secret_hex and passphrase:
        raise ValueError("use either --secret or --passphrase, not both")
    if passphrase:
        return derive_convergence_secret(passphrase)
    if secret_hex:
        try:
            secret = bytes.fromhex(secret_hex)
        except ValueError:
            raise ValueError("--secret must be hex")
        if len(secret) != CONVERGENCE_SECRET_SIZE:
            raise ValueError(f"--secret must be {CONVERGENCE_SECRET_SIZE} bytes ({CONVERGENCE_SECRET_SIZE * 2} hex digits)")
        return secret
    return DEFAULT_CONVERGENCE_SECRET


def cmd_encode(
    input_path: str,
    store_dir: str,
    *,
    block_size: str = "auto",
    secret_hex: Optional[str] = None,
    passphrase: Optional[str] = None,
    fsync: bool = False,
) -> str:
    """Encode a file (or stdin) into a block directory and print its URN.

    Args:
        input_path: File to encode, or "-" for stdin.
        store_dir: Block directory; created if missing.
        block_size: "auto", "1024" or "32768".
        secret_hex: Convergence secret as 64 hex digits.
        passphrase: Derive the convergence secret from this passphrase instead.
        fsync: fsync every block file before it is moved into place.

    Returns:
        The read capability URN.
    """
    size = _pick_block_size(block_size, input_path)
    secret = _resolve_secret(secret_hex, passphrase)
    store = DirectoryStore(store_dir, fsync=fsync)
    if input_path == "-":
        cap = put(StreamSource.from_file(sys.stdin.buffer), store, size, secret)
    else:
        with open(input_path, "rb") as fh:
            cap = put(StreamSource.from_file(fh), store, size, secret)
    print(cap.urn)
    return cap.urn


def cmd_decode(urn: str, store_dir: str, *, output: Optional[str] = None) -> None:
    """Reassemble content from a block directory.

    Output is written to a temporary sibling and renamed on success, so a
    failed decode never leaves a truncated file at ``output``.
    """
    store = DirectoryStore(store_dir)
    blocks = decode(urn, store)
    if output is None:
        out = sys.stdout.buffer
        for chunk in blocks:
            out.write(chunk)
        out.flush()
        return
    tmp = output + ".part"
    try:
        with open(tmp, "wb") as fh:
            for chunk in blocks:
                fh.write(chunk)
        os.replace(tmp, output)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


def cmd_verify(urn: str, store_dir: str) -> bool:
    """Verify every block reachable from ``urn``.

    Prints:
        "OK (<n> leaf blocks)" on success, "FAIL" on a missing or corrupted block.
    """
    store = DirectoryStore(store_dir)
    try:
        count = verify(urn, store)
    except (NotFoundError, IntegrityError) as e:
        print("FAIL")
        print(f"Reason: {e}", file=sys.stderr)
        return False
    print(f"OK ({count} leaf blocks)")
    return True


def cmd_info(urn: str) -> None:
    cap = ReadCapability.from_urn(urn)
    print(f"Block size: {cap.block_size}")
    print(f"Arity: {cap.arity}")
    print(f"Level: {cap.level}")
    print(f"Root reference: {b32encode(cap.root_reference)}")


def main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(
        prog="eris",
        description="Encode content into encrypted content-addressed blocks (urn:erisx2)",
        epilog="Anyone holding a URN can read the content; treat it as a secret.",
    )
    ap.add_argument("--verbose", "-v", action="store_true", help="Debug logging to stderr")
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_encode = sub.add_parser("encode", help="Encode a file into a block directory")
    ap_encode.add_argument("input", help="Input file, or - for stdin")
    ap_encode.add_argument("--store", required=True, help="Block directory")
    ap_encode.add_argument(
        "--block-size",
        choices=["auto", str(BLOCK_SIZE_SMALL), str(BLOCK_SIZE_LARGE)],
        default="auto",
        help=f"Block size (auto: {BLOCK_SIZE_SMALL} for inputs up to {AUTO_SMALL_LIMIT} bytes, else {BLOCK_SIZE_LARGE})",
    )
    ap_encode.add_argument("--secret", help="Convergence secret (64 hex digits; default all-zero)")
    ap_encode.add_argument("--passphrase", help="Derive the convergence secret from a passphrase (Argon2id)")
    ap_encode.add_argument("--fsync", action="store_true", help="fsync each block file")

    ap_decode = sub.add_parser("decode", help="Decode a URN from a block directory")
    ap_decode.add_argument("urn", help="Read capability (urn:erisx2:...)")
    ap_decode.add_argument("--store", required=True, help="Block directory")
    ap_decode.add_argument("--output", "-o", help="Output file (default: stdout)")

    ap_verify = sub.add_parser("verify", help="Verify every block of a URN")
    ap_verify.add_argument("urn", help="Read capability (urn:erisx2:...)")
    ap_verify.add_argument("--store", required=True, help="Block directory")

    ap_info = sub.add_parser("info", help="Show read capability fields")
    ap_info.add_argument("urn", help="Read capability (urn:erisx2:...)")

    args = ap.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    try:
        if args.cmd == "encode":
            cmd_encode(
                args.input,
                args.store,
                block_size=args.block_size,
                secret_hex=args.secret,
                passphrase=args.passphrase,
                fsync=args.fsync,
            )
        elif args.cmd == "decode":
            cmd_decode(args.urn, args.store, output=args.output)
        elif args.cmd == "verify":
            ok = cmd_verify(args.urn, args.store)
            sys.exit(0 if ok else 1)
        elif args.cmd == "info":
            cmd_info(args.urn)
        else:
            raise RuntimeError("Unknown command")
    except FormatError as e:
        print(f"Error: malformed capability or block: {e}", file=sys.stderr)
        sys.exit(2)
    except (ErisError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
