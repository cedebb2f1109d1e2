from __future__ import annotations

import unittest

from spicegrid.values import (
    SuffixPolicy,
    format_engineering,
    parse_literal,
    parse_number,
    parse_value,
    suffix_multiplier,
)


class TestParseNumber(unittest.TestCase):
    def test_plain_numbers(self) -> None:
        self.assertEqual(parse_number("9e-9"), 9e-9)
        self.assertEqual(parse_number(" -0.5 "), -0.5)
        self.assertEqual(parse_number(".3"), 0.3)

    def test_rejects_names_and_non_finite(self) -> None:
        for token in ("vstage1", "", "inf", "nan", "1_000", "10k"):
            self.assertIsNone(parse_number(token), token)


class TestSuffixes(unittest.TestCase):
    def test_engineering_suffixes(self) -> None:
        self.assertAlmostEqual(parse_value("10k"), 1e4)
        self.assertAlmostEqual(parse_value("2.5u"), 2.5e-6)
        self.assertAlmostEqual(parse_value("3n"), 3e-9)
        self.assertAlmostEqual(parse_value("4p"), 4e-12)
        self.assertAlmostEqual(parse_value("1F"), 1e-15)
        self.assertAlmostEqual(parse_value("2Meg"), 2e6)
        self.assertAlmostEqual(parse_value("2MEG"), 2e6)

    def test_unit_letters_scale_by_one(self) -> None:
        self.assertAlmostEqual(parse_value("5V"), 5.0)
        self.assertAlmostEqual(parse_value("200Ohm"), 200.0)

    def test_m_follows_policy(self) -> None:
        self.assertAlmostEqual(suffix_multiplier("m", resistance=True), 1e6)
        self.assertAlmostEqual(suffix_multiplier("m", resistance=False), 1e-3)
        self.assertAlmostEqual(suffix_multiplier("M", resistance=True, policy=SuffixPolicy.MILLI), 1e-3)
        self.assertAlmostEqual(suffix_multiplier("m", policy=SuffixPolicy.MEGA), 1e6)
        self.assertAlmostEqual(suffix_multiplier("meg", policy=SuffixPolicy.MILLI), 1e6)

    def test_quoted_and_braced_values(self) -> None:
        self.assertAlmostEqual(parse_literal("'1.5k'"), 1500.0)
        self.assertAlmostEqual(parse_literal("{2}"), 2.0)

    def test_unreadable_values(self) -> None:
        self.assertIsNone(parse_literal("vstage1"))
        self.assertEqual(parse_value("vstage1"), 0.0)
        self.assertEqual(parse_value(None), 0.0)

    def test_policy_parse(self) -> None:
        self.assertIs(SuffixPolicy.parse("Mega"), SuffixPolicy.MEGA)
        self.assertIs(SuffixPolicy.parse(SuffixPolicy.MILLI), SuffixPolicy.MILLI)
        with self.assertRaises(ValueError):
            SuffixPolicy.parse("kilo")


class TestFormatEngineering(unittest.TestCase):
    def test_format(self) -> None:
        self.assertEqual(format_engineering(1e-15, "F"), "1fF")
        self.assertEqual(format_engineering(5e6), "5Meg")
        self.assertEqual(format_engineering(200.0, "Ohm"), "200Ohm")
        self.assertEqual(format_engineering(0.0, "F"), "0F")


if __name__ == "__main__":
    unittest.main()
