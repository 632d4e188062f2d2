from __future__ import annotations

import contextlib
import importlib.util
import io
import os
import tempfile
import unittest
from pathlib import Path
from typing import List, Tuple

from eris.capability import ReadCapability, b32encode
from eris.cli import main
from eris.store import DirectoryStore


def _load_corrupt_script():
    path = Path(__file__).resolve().parent / "scripts" / "corrupt.py"
    spec = importlib.util.spec_from_file_location("eris_corrupt_script", path)
    mod = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(mod)
    return mod


def _run(argv: List[str], entry=main) -> Tuple[int, str, str]:
    out, err = io.StringIO(), io.StringIO()
    code = 0
    with contextlib.redirect_stdout(out), contextlib.redirect_stderr(err):
        try:
            entry(argv)
        except SystemExit as e:
            code = e.code if isinstance(e.code, int) else 1
    return code, out.getvalue(), err.getvalue()


class CLIIntegrationTests(unittest.TestCase):
    def setUp(self):
        self._td = tempfile.TemporaryDirectory()
        self.root = Path(self._td.name)
        self.store = str(self.root / "blocks")
        self.src = self.root / "input.bin"
        self.data = os.urandom(40_000)
        self.src.write_bytes(self.data)

    def tearDown(self):
        self._td.cleanup()

    def _encode(self, *extra: str) -> str:
        code, out, err = _run(["encode", str(self.src), "--store", self.store, *extra])
        self.assertEqual(code, 0, err)
        urn = out.strip()
        self.assertTrue(urn.startswith("urn:erisx2:"))
        return urn

    def test_encode_decode_roundtrip(self):
        urn = self._encode("--block-size", "1024")
        dest = self.root / "out.bin"
        code, _, err = _run(["decode", urn, "--store", self.store, "--output", str(dest)])
        self.assertEqual(code, 0, err)
        self.assertEqual(dest.read_bytes(), self.data)

    def test_auto_block_size(self):
        urn = self._encode()
        self.assertEqual(ReadCapability.from_urn(urn).block_size, 32768)
        small = self.root / "small.txt"
        small.write_text("hello world\n" * 10, encoding="utf-8")
        code, out, _ = _run(["encode", str(small), "--store", self.store])
        self.assertEqual(code, 0)
        self.assertEqual(ReadCapability.from_urn(out.strip()).block_size, 1024)

    def test_secret_changes_urn(self):
        plain = self._encode("--block-size", "1024")
        salted = self._encode("--block-size", "1024", "--secret", "ab" * 32)
        self.assertNotEqual(plain, salted)
        self.assertEqual(salted, self._encode("--block-size", "1024", "--secret", "ab" * 32))

    def test_bad_secret(self):
        code, _, err = _run(["encode", str(self.src), "--store", self.store, "--secret", "abcd"])
        self.assertEqual(code, 2)
        self.assertIn("Error:", err)

    def test_missing_input(self):
        code, _, err = _run(["encode", str(self.root / "absent.bin"), "--store", self.store])
        self.assertEqual(code, 2)
        self.assertIn("Error:", err)

    def test_info(self):
        urn = self._encode("--block-size", "1024")
        code, out, _ = _run(["info", urn])
        self.assertEqual(code, 0)
        self.assertIn("Block size: 1024", out)
        self.assertIn("Arity: 16", out)
        self.assertIn("Level: 2", out)

    def test_malformed_urn(self):
        code, _, err = _run(["info", "urn:erisx2:abc"])
        self.assertEqual(code, 2)
        self.assertIn("Error:", err)
        code, _, err = _run(["decode", "urn:other:abc", "--store", self.store, "--output", str(self.root / "x")])
        self.assertEqual(code, 2)
        self.assertFalse((self.root / "x").exists())

    def test_verify_ok(self):
        urn = self._encode("--block-size", "1024")
        code, out, _ = _run(["verify", urn, "--store", self.store])
        self.assertEqual(code, 0)
        self.assertEqual(out.strip(), "OK (40 leaf blocks)")

    def test_verify_detects_flipped_block(self):
        urn = self._encode("--block-size", "1024")
        corrupt = _load_corrupt_script()
        code, out, err = _run(["flip", self.store, "--seed", "7"], entry=corrupt.main)
        self.assertEqual(code, 0, err)
        self.assertIn("Flipped 1 byte", out)
        code, out, err = _run(["verify", urn, "--store", self.store])
        self.assertEqual(code, 1)
        self.assertEqual(out.strip(), "FAIL")
        self.assertIn("corrupted", err)

    def test_verify_detects_deleted_block(self):
        urn = self._encode("--block-size", "1024")
        cap = ReadCapability.from_urn(urn)
        corrupt = _load_corrupt_script()
        store = DirectoryStore(self.store)
        code, _, err = _run(
            ["delete", self.store, "--reference", b32encode(cap.root_reference)], entry=corrupt.main
        )
        self.assertEqual(code, 0, err)
        self.assertIsNone(store.get(cap.root_reference))
        code, out, err = _run(["verify", urn, "--store", self.store])
        self.assertEqual(code, 1)
        self.assertIn("not found", err)

    def test_failed_decode_leaves_no_output(self):
        urn = self._encode("--block-size", "1024")
        corrupt = _load_corrupt_script()
        _run(["flip", self.store, "--seed", "1", "--within", "0"], entry=corrupt.main)
        dest = self.root / "out.bin"
        code, _, err = _run(["decode", urn, "--store", self.store, "--output", str(dest)])
        self.assertEqual(code, 2)
        self.assertIn("corrupted", err)
        self.assertFalse(dest.exists())
        self.assertFalse(Path(str(dest) + ".part").exists())


if __name__ == "__main__":
    unittest.main()
