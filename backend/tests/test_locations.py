from __future__ import annotations

import unittest

from classifieds.utils.locations import (
    matches_location,
    normalize_location_string,
    parse_location,
    province_for,
    province_variants,
)


class ParseLocationTestCase(unittest.TestCase):
    def test_city_and_province(self):
        self.assertEqual(parse_location("Montréal, QC"), {"city": "montreal", "province": "quebec"})
        self.assertEqual(parse_location("Toronto,Ontario"), {"city": "toronto", "province": "ontario"})

    def test_province_only(self):
        self.assertEqual(parse_location("Colombie-Britannique"), {"city": None, "province": "british columbia"})
        self.assertEqual(parse_location("on"), {"city": None, "province": "ontario"})

    def test_city_only(self):
        self.assertEqual(parse_location("Toronto"), {"city": "toronto", "province": None})

    def test_empty(self):
        self.assertEqual(parse_location(""), {"city": None, "province": None})
        self.assertEqual(parse_location(None), {"city": None, "province": None})

    def test_helpers(self):
        self.assertEqual(normalize_location_string("  Trois-Rivières "), "trois-rivieres")
        self.assertEqual(province_for("Québec"), "quebec")
        self.assertIsNone(province_for("Atlantis"))
        self.assertIn("qc", province_variants("quebec"))
        self.assertEqual(province_variants("Atlantis"), ("atlantis",))


class MatchesLocationTestCase(unittest.TestCase):
    def test_no_filter_matches_everything(self):
        self.assertTrue(matches_location({"city": "Toronto"}, ""))
        self.assertTrue(matches_location({"city": "Toronto"}, None))

    def test_city_and_province_variants(self):
        record = {"city": "Montreal", "province": "QC", "location": "Montreal, QC"}
        self.assertTrue(matches_location(record, "Montréal, Québec"))
        self.assertFalse(matches_location(record, "Montreal, Ontario"))

    def test_province_filter(self):
        record = {"city": "Toronto", "province": "ON", "location": "Toronto, ON"}
        self.assertTrue(matches_location(record, "Ontario"))
        self.assertFalse(matches_location(record, "Quebec"))

    def test_abbreviation_is_not_a_substring_match(self):
        record = {"city": "Moncton", "province": "New Brunswick", "location": "Moncton"}
        self.assertFalse(matches_location(record, "on"))

    def test_city_filter_checks_free_text_location(self):
        record = {"city": None, "province": None, "location": "Downtown Laval"}
        self.assertTrue(matches_location(record, "Laval"))


if __name__ == "__main__":
    unittest.main()
