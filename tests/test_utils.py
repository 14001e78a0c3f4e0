import os
import sys
import unittest
from datetime import datetime

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from db.database import DB_PATH  # noqa: E402
from utils.config import DEFAULT_CARRIERS, Settings  # noqa: E402
from utils.pure import (  # noqa: E402
    display,
    format_currency,
    format_datetime,
    generate_markdown_table,
    parse_expiry,
    stars,
)


class PureTestCase(unittest.TestCase):
    def test_format_currency(self):
        self.assertEqual(format_currency(1234.5), "1.234,50 €")
        self.assertEqual(format_currency(5), "5,00 €")
        self.assertEqual(format_currency(-12.3), "-12,30 €")
        self.assertEqual(format_currency(1_000_000, "EUR"), "1.000.000,00 EUR")
        self.assertEqual(format_currency(3, ""), "3,00")

    def test_format_datetime(self):
        self.assertEqual(format_datetime(datetime(2026, 10, 19, 14, 5)), "19.10.2026, 14:05")
        self.assertEqual(format_datetime(None), "-")

    def test_parse_expiry(self):
        end_of_day = datetime(2026, 12, 31, 23, 59, 59)
        self.assertEqual(parse_expiry("31.12.2026"), end_of_day)
        self.assertEqual(parse_expiry(" 2026-12-31 "), end_of_day)
        self.assertIsNone(parse_expiry(""))
        with self.assertRaises(ValueError):
            parse_expiry("next week")

    def test_display(self):
        self.assertEqual(display(None), "-")
        self.assertEqual(display("  "), "-")
        self.assertEqual(display(" DHL "), "DHL")
        self.assertEqual(display(0), "0")
        self.assertEqual(display(None, "n/a"), "n/a")

    def test_stars(self):
        self.assertEqual(stars(None), "no reviews")
        self.assertEqual(stars(3.5), "★★★★☆ 3.5")

    def test_markdown_table(self):
        table = generate_markdown_table(["Item", "Qty"], [["Becher", 2], ["A|B", None]], ["l", "r"])
        self.assertEqual(
            table.splitlines(),
            [
                "| Item | Qty |",
                "| :--- | ---: |",
                "| Becher | 2 |",
                "| A\\|B | - |",
            ],
        )
        self.assertEqual(generate_markdown_table(["a"], []), "")
        with self.assertRaises(ValueError):
            generate_markdown_table(["a", "b"], [["1", "2"]], ["l"])


class SettingsTestCase(unittest.TestCase):
    def test_defaults(self):
        settings = Settings.from_env({})
        self.assertEqual(settings.db_path, DB_PATH)
        self.assertTrue(settings.seed_demo_data)
        self.assertEqual(settings.currency_symbol, "€")
        self.assertEqual(settings.carriers, DEFAULT_CARRIERS)
        self.assertIsNone(settings.log_file)
        self.assertFalse(settings.debug)

    def test_from_env(self):
        settings = Settings.from_env(
            {
                "SHOP_DB_PATH": ":memory:",
                "SHOP_SEED": "no",
                "SHOP_CARRIERS": " DHL, Hermes ,,",
                "SHOP_LOG_FILE": "shop.log",
                "DEBUG": "1",
            }
        )
        self.assertEqual(settings.db_path, ":memory:")
        self.assertFalse(settings.seed_demo_data)
        self.assertEqual(settings.carriers, ("DHL", "Hermes"))
        self.assertEqual(settings.log_file, "shop.log")
        self.assertTrue(settings.debug)


if __name__ == "__main__":
    unittest.main()
