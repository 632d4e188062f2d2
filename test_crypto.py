from __future__ import annotations

import random
import unittest

from eris.chunker import (
    BytesSource,
    StreamSource,
    TextSource,
    as_source,
    pad_blocks,
    rechunk,
    split_blocks,
    unpad_blocks,
)
from eris.crypto import blake2b_256, chacha20, constant_time_equal, derive_convergence_secret, is_zero, pad, unpad
from eris.errors import FormatError


class PrimitiveTests(unittest.TestCase):
    def test_blake2b_empty_digest(self):
        self.assertEqual(
            blake2b_256(b"").hex(),
            "0e5751c026e543b2e8ab2eb06099daa1d1e5df47778f7787faab45cdf12fe3a8",
        )

    def test_zero_key_is_still_keyed(self):
        msg = b"hello"
        self.assertNotEqual(blake2b_256(msg, key=bytes(32)), blake2b_256(msg))
        self.assertEqual(len(blake2b_256(msg, key=bytes(32))), 32)

    def test_chacha20_is_self_inverse(self):
        key = bytes(range(32))
        data = random.Random(1).randbytes(1024)
        enc = chacha20(data, key)
        self.assertEqual(len(enc), len(data))
        self.assertNotEqual(enc, data)
        self.assertEqual(chacha20(enc, key), data)

    def test_chacha20_rejects_short_key(self):
        with self.assertRaises(ValueError):
            chacha20(b"data", b"short")

    def test_compare_and_zero(self):
        self.assertTrue(constant_time_equal(b"abc", b"abc"))
        self.assertFalse(constant_time_equal(b"abc", b"abd"))
        self.assertTrue(is_zero(bytes(64)))
        self.assertFalse(is_zero(bytes(63) + b"\x01"))

    def test_derive_convergence_secret(self):
        a = derive_convergence_secret("correct horse")
        self.assertEqual(len(a), 32)
        self.assertEqual(a, derive_convergence_secret("correct horse"))
        with self.assertRaises(ValueError):
            derive_convergence_secret("correct horse", salt=b"short")


class PaddingTests(unittest.TestCase):
    def test_pad_partial_block(self):
        self.assertEqual(pad(b"ab", 4), b"ab\x80\x00")
        self.assertEqual(pad(b"", 4), b"\x80\x00\x00\x00")

    def test_pad_full_block_adds_block(self):
        self.assertEqual(pad(b"abcd", 4), b"abcd\x80\x00\x00\x00")

    def test_unpad_reverses_pad(self):
        for n in (0, 1, 1023, 1024, 1025):
            data = bytes([0x80]) * n  # marker byte inside content must survive
            self.assertEqual(unpad(pad(data, 1024), 1024), data)

    def test_unpad_rejects_missing_marker(self):
        with self.assertRaises(FormatError):
            unpad(bytes(1024), 1024)
        with self.assertRaises(FormatError):
            unpad(b"a" * 1023 + b"\x01", 1024)
        with self.assertRaises(FormatError):
            unpad(b"abc\x80", 1024)


class ChunkerTests(unittest.TestCase):
    def test_split_blocks(self):
        self.assertEqual(list(split_blocks(b"abcdefg", 3)), [b"abc", b"def", b"g"])
        self.assertEqual(list(split_blocks(b"abcdef", 3)), [b"abc", b"def"])
        self.assertEqual(list(split_blocks(b"", 3)), [])

    def test_rechunk_irregular_chunks(self):
        chunks = [b"a", b"bcdef", b"", b"gh", b"ijklmnop"]
        self.assertEqual(list(rechunk(chunks, 4)), [b"abcd", b"efgh", b"ijkl", b"mnop"])

    def test_pad_blocks_pads_only_last(self):
        blocks = list(pad_blocks(split_blocks(b"x" * 10, 4), 4))
        self.assertEqual(blocks, [b"xxxx", b"xxxx", b"xx\x80\x00"])
        blocks = list(pad_blocks(split_blocks(b"x" * 8, 4), 4))
        self.assertEqual(blocks, [b"xxxx", b"xxxx", b"\x80\x00\x00\x00"])

    def test_pad_blocks_empty_input(self):
        self.assertEqual(list(pad_blocks(iter(()), 4)), [b"\x80\x00\x00\x00"])

    def test_unpad_blocks(self):
        padded = list(pad_blocks(split_blocks(b"y" * 9, 4), 4))
        self.assertEqual(b"".join(unpad_blocks(padded, 4)), b"y" * 9)
        self.assertEqual(list(unpad_blocks([b"\x80\x00\x00\x00"], 4)), [])
        with self.assertRaises(FormatError):
            list(unpad_blocks(iter(()), 4))

    def test_sources(self):
        self.assertIsInstance(as_source(b"abc"), BytesSource)
        self.assertIsInstance(as_source(bytearray(b"abc")), BytesSource)
        self.assertIsInstance(as_source("abc"), TextSource)
        self.assertIsInstance(as_source(iter([b"abc"])), StreamSource)
        src = TextSource("héllo")
        self.assertIs(as_source(src), src)
        self.assertEqual(b"".join(src.blocks(2)), "héllo".encode("utf-8"))


if __name__ == "__main__":
    unittest.main()
