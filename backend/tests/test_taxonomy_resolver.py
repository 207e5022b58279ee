from __future__ import annotations

import unittest

from classifieds.services.taxonomy import (
    CATEGORIES,
    SUBCATEGORY_MAPPINGS,
    category_tree,
    is_valid_subcategory,
    normalize_category,
    normalize_category_to_slug,
    resolve_category_input,
    resolve_subcategory_input,
    subcategories_for,
    to_search_key,
)


class SearchKeyTestCase(unittest.TestCase):
    def test_search_key_shapes(self):
        self.assertEqual(to_search_key("  Fashion & Beauty "), "fashion-beauty")
        self.assertEqual(to_search_key("TV & Audio"), "tv-audio")
        self.assertEqual(to_search_key("--Real   Estate--"), "real-estate")
        self.assertEqual(to_search_key(""), "")


class CategoryResolverTestCase(unittest.TestCase):
    def test_display_name_and_slug_resolve_to_same_entry(self):
        for raw in ("Real Estate", "real-estate", "REAL ESTATE"):
            resolved = resolve_category_input(raw)
            self.assertIsNotNone(resolved, raw)
            self.assertEqual(resolved.display_name, "Real Estate")
            self.assertEqual(resolved.slug, "real-estate")

    def test_alias(self):
        resolved = resolve_category_input("fashion-and-beauty")
        self.assertEqual(resolved.display_name, "Fashion & Beauty")
        self.assertEqual(resolved.slug, "fashion-beauty")

    def test_typo_within_threshold(self):
        self.assertEqual(resolve_category_input("electroncs").display_name, "Electronics")
        self.assertEqual(resolve_category_input("furnitre").display_name, "Furniture")

    def test_far_input_is_unresolved(self):
        self.assertIsNone(resolve_category_input("TV"))
        self.assertIsNone(resolve_category_input("zzzzqqq"))
        self.assertIsNone(resolve_category_input(""))
        self.assertIsNone(resolve_category_input(None))

    def test_normalize_helpers(self):
        self.assertEqual(normalize_category("electronics"), "Electronics")
        self.assertEqual(normalize_category("Mystery Box"), "Mystery Box")
        self.assertEqual(normalize_category(""), "")
        self.assertEqual(normalize_category_to_slug("Home Appliances"), "home-appliances")
        self.assertEqual(normalize_category_to_slug("Mystery Box"), "mystery-box")

    def test_to_dict(self):
        self.assertEqual(
            resolve_category_input("sports").to_dict(),
            {"display_name": "Sports", "slug": "sports"},
        )


class SubcategoryResolverTestCase(unittest.TestCase):
    def test_typo_resolves(self):
        resolved = resolve_subcategory_input("Coffee Makrs")
        self.assertEqual(resolved.display_name, "Coffee Makers")
        self.assertEqual(resolved.slug, "coffee-makers")

    def test_all_sentinel_and_empty(self):
        self.assertIsNone(resolve_subcategory_input("all"))
        self.assertIsNone(resolve_subcategory_input("ALL"))
        self.assertIsNone(resolve_subcategory_input("   "))

    def test_aliases(self):
        self.assertEqual(resolve_subcategory_input("fiction-books").display_name, "Fiction")
        self.assertEqual(resolve_subcategory_input("non-fiction-books").display_name, "Non-Fiction")
        self.assertEqual(resolve_subcategory_input("tv audio").slug, "tv-audio")

    def test_category_scope_restricts_candidates(self):
        self.assertEqual(resolve_subcategory_input("Accessories").display_name, "Accessories")
        scoped = resolve_subcategory_input("Accessories", "Mobile")
        self.assertEqual(scoped.display_name, "Mobile Accessories")

    def test_unknown_category_scope_falls_back_to_all_candidates(self):
        self.assertEqual(resolve_subcategory_input("laptop", "zzzzqqq").display_name, "Laptops")


class TaxonomyTreeTestCase(unittest.TestCase):
    def test_tree_covers_every_category(self):
        tree = category_tree()
        self.assertEqual([item["name"] for item in tree], [name for name, _slug in CATEGORIES])
        vehicles = tree[0]
        self.assertEqual(vehicles["slug"], "vehicles")
        self.assertEqual(len(vehicles["subcategories"]), len(SUBCATEGORY_MAPPINGS["Vehicles"]))

    def test_subcategories_for(self):
        names = [item.display_name for item in subcategories_for("pets-animals")]
        self.assertIn("Dogs", names)
        self.assertEqual(subcategories_for("nope nope nope"), [])

    def test_is_valid_subcategory(self):
        self.assertTrue(is_valid_subcategory("Electronics", "tv-audio"))
        self.assertFalse(is_valid_subcategory("Electronics", "dogs"))


if __name__ == "__main__":
    unittest.main()
