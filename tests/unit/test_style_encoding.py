from __future__ import annotations

import unittest

from stitcher.core.errors import MalformedRequest
from stitcher.core.styles import (
    alpha_byte,
    decode_color,
    encode_back_color,
    encode_border_color,
    encode_text_color,
    normalize_hex_color,
)


class TestStyleEncoding(unittest.TestCase):
    def test_back_color_reverses_channels_and_prefixes_alpha(self) -> None:
        self.assertEqual(encode_back_color("#112233", 100), "&H00332211&")
        self.assertEqual(encode_back_color("112233", 50), "&H80332211&")

    def test_back_color_defaults(self) -> None:
        self.assertEqual(encode_back_color(None, None), "&H80000000&")
        self.assertEqual(encode_back_color("", None), "&H80000000&")
        self.assertEqual(encode_border_color(None, 100), "&H00000000&")

    def test_text_color_has_no_alpha(self) -> None:
        self.assertEqual(encode_text_color(None), "&Hffffff&")
        self.assertEqual(encode_text_color("#FF8000"), "&H0080FF&")

    def test_zero_opacity_is_fully_transparent(self) -> None:
        self.assertEqual(alpha_byte(0), 0xFF)
        self.assertTrue(encode_back_color("000000", 0).startswith("&HFF"))

    def test_alpha_byte_rounding(self) -> None:
        self.assertEqual(alpha_byte(100), 0)
        self.assertEqual(alpha_byte(50), 128)
        self.assertEqual(alpha_byte(75), 64)
        self.assertEqual(alpha_byte(None), 128)

    def test_opacity_out_of_range(self) -> None:
        with self.assertRaises(MalformedRequest):
            alpha_byte(101)
        with self.assertRaises(MalformedRequest):
            alpha_byte(-1)

    def test_deterministic_and_rgb_recoverable(self) -> None:
        for color in ("a1B2c3", "#000000", "FFFFFF", "#12ab9F"):
            for opacity in (0, 1, 33, 50, 99, 100):
                first = encode_back_color(color, opacity)
                self.assertEqual(first, encode_back_color(color, opacity))
                rgb, alpha = decode_color(first)
                self.assertEqual(rgb, color.replace("#", ""))
                self.assertEqual(alpha, alpha_byte(opacity))
            rgb, alpha = decode_color(encode_text_color(color))
            self.assertEqual(rgb, color.replace("#", ""))
            self.assertIsNone(alpha)

    def test_invalid_colors_raise(self) -> None:
        for bad in ("12345", "1234567", "#GG0000", "red", "##1234"):
            with self.assertRaises(MalformedRequest):
                encode_back_color(bad, 50)
            with self.assertRaises(MalformedRequest):
                encode_text_color(bad)

    def test_normalize_strips_hash(self) -> None:
        self.assertEqual(normalize_hex_color("#abcdef", "000000"), "abcdef")

    def test_decode_rejects_garbage(self) -> None:
        with self.assertRaises(MalformedRequest):
            decode_color("&Hxyz&")


if __name__ == "__main__":
    unittest.main()
