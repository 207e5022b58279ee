from __future__ import annotations

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Iterable

from classifieds.services.search.distance import fuzzy_threshold, levenshtein


def to_search_key(value: str) -> str:
    raw = (value or "").strip().lower()
    if not raw:
        return ""
    raw = raw.replace("&", " ")
    raw = re.sub(r"[^a-z0-9]+", "-", raw)
    return raw.strip("-")


CATEGORIES = [
    ("Vehicles", "vehicles"),
    ("Electronics", "electronics"),
    ("Mobile", "mobile"),
    ("Real Estate", "real-estate"),
    ("Fashion & Beauty", "fashion-beauty"),
    ("Pets & Animals", "pets-animals"),
    ("Furniture", "furniture"),
    ("Services", "services"),
    ("Sports", "sports"),
    ("Books & Education", "books-education"),
    ("Home Appliances", "home-appliances"),
    ("Free Stuff", "free-stuff"),
]

SUBCATEGORY_MAPPINGS = {
    "Vehicles": [
        "Cars", "Trucks", "Classic Cars", "Auto Parts", "Trailers",
        "Scooters", "Bicycles", "Motorcycles",
    ],
    "Electronics": [
        "Tablets", "Laptops", "Headphones", "Computers", "Cameras", "TV & Audio",
    ],
    "Mobile": [
        "Mobile Accessories", "Android Phones", "iPhones",
    ],
    "Real Estate": [
        "Roommates", "For Rent", "For Sale", "Land",
    ],
    "Fashion & Beauty": [
        "Shoes", "Accessories", "Women Clothing", "Men Clothing",
    ],
    "Pets & Animals": [
        "Cats", "Birds", "Other Pets", "Dogs", "Pet Supplies",
    ],
    "Furniture": [
        "Beds & Mattresses", "Book Shelves", "Chairs & Recliners", "Coffee Tables",
        "Sofa & Couches", "Dining Tables", "Wardrobes", "TV Tables",
    ],
    "Services": [
        "Nanny & Childcare", "Cleaners", "Financial & Legal", "Personal Trainer",
        "Food & Catering", "Health & Beauty", "Moving & Storage", "Music Lessons",
        "Photography & Video", "Skilled Trades", "Tutors & Languages", "Wedding",
    ],
    "Sports": [
        "Exercise Equipment", "Sportswear", "Outdoor Gear",
    ],
    "Books & Education": [
        "Fiction", "Textbooks", "Children Books", "Non-Fiction",
    ],
    "Home Appliances": [
        "Coffee Makers", "Cookers", "Dishwashers", "Heaters", "Irons",
        "Microwaves", "Juicers & Blenders", "Refrigerators & Freezers",
        "Gas Stoves", "Ovens", "Toasters", "Vacuums",
    ],
    "Free Stuff": [
        "Lost & Found", "Miscellaneous",
    ],
}

# Slugs that differ from to_search_key(display name).
_SUBCATEGORY_SLUG_OVERRIDES = {}

SUBCATEGORY_TO_SLUG = {
    name: _SUBCATEGORY_SLUG_OVERRIDES.get(name, to_search_key(name))
    for names in SUBCATEGORY_MAPPINGS.values()
    for name in names
}
SLUG_TO_SUBCATEGORY = {slug: name for name, slug in SUBCATEGORY_TO_SLUG.items()}

# Older slugs still present in stored listings and bookmarked URLs.
CATEGORY_ALIASES = {
    "fashion-and-beauty": "Fashion & Beauty",
    "pets-and-animals": "Pets & Animals",
    "books-and-education": "Books & Education",
    "realestate": "Real Estate",
    "home-appliance": "Home Appliances",
    "appliances": "Home Appliances",
    "free": "Free Stuff",
    "phones": "Mobile",
}

SUBCATEGORY_ALIASES = {
    "fiction-books": "Fiction",
    "non-fiction-books": "Non-Fiction",
    "tv-and-audio": "TV & Audio",
    "lost-and-found": "Lost & Found",
    "juicers-and-blenders": "Juicers & Blenders",
    "refrigerators-and-freezers": "Refrigerators & Freezers",
    "iphone": "iPhones",
}


@dataclass(frozen=True)
class CanonicalEntry:
    display_name: str
    slug: str
    search_keys: tuple
    parent: str | None = None


@dataclass(frozen=True)
class ResolvedCategory:
    display_name: str
    slug: str

    def to_dict(self) -> dict:
        return {"display_name": self.display_name, "slug": self.slug}


# Subcategories resolve to the same shape.
ResolvedSubcategory = ResolvedCategory


def _accepts(distance: int, length: int) -> bool:
    if length <= 3:
        return distance <= 1
    if length <= 6:
        return distance <= 2
    return distance <= fuzzy_threshold(length)


class CanonicalIndex:
    """Immutable lookup over one level of the taxonomy."""

    def __init__(self, entries: Iterable[CanonicalEntry], aliases: dict[str, str]):
        self.entries = tuple(entries)
        by_display = {entry.display_name: entry for entry in self.entries}
        by_key: dict[str, CanonicalEntry] = {}
        for entry in self.entries:
            for key in entry.search_keys:
                by_key.setdefault(key, entry)
        alias_map: dict[str, CanonicalEntry] = {}
        for alias, display_name in aliases.items():
            entry = by_display.get(display_name)
            if entry is not None:
                alias_map[to_search_key(alias)] = entry
        self.by_display = MappingProxyType(by_display)
        self.by_key = MappingProxyType(by_key)
        self.aliases = MappingProxyType(alias_map)

    def resolve(self, raw: str | None, *, candidates: Iterable[CanonicalEntry] | None = None) -> ResolvedCategory | None:
        key = to_search_key(raw or "")
        if not key:
            return None
        pool = tuple(candidates) if candidates is not None else self.entries

        aliased = self.aliases.get(key)
        if aliased is not None and aliased in pool:
            return ResolvedCategory(aliased.display_name, aliased.slug)

        exact = self.by_key.get(key)
        if exact is not None and exact in pool:
            return ResolvedCategory(exact.display_name, exact.slug)

        best_entry = None
        best_distance = None
        best_length = 0
        for entry in pool:
            for candidate in entry.search_keys:
                distance = levenshtein(key, candidate)
                if best_distance is None or distance < best_distance:
                    best_entry = entry
                    best_distance = distance
                    best_length = max(len(key), len(candidate))
                if best_distance == 0:
                    break
            if best_distance == 0:
                break

        if best_entry is None or best_distance is None:
            return None
        if not _accepts(best_distance, best_length):
            return None
        return ResolvedCategory(best_entry.display_name, best_entry.slug)


def _entry(display_name: str, slug: str, parent: str | None = None) -> CanonicalEntry:
    keys = []
    for key in (to_search_key(display_name), to_search_key(slug)):
        if key and key not in keys:
            keys.append(key)
    return CanonicalEntry(display_name=display_name, slug=slug, search_keys=tuple(keys), parent=parent)


CATEGORY_INDEX = CanonicalIndex(
    (_entry(name, slug) for name, slug in CATEGORIES),
    CATEGORY_ALIASES,
)
SUBCATEGORY_INDEX = CanonicalIndex(
    (
        _entry(name, SUBCATEGORY_TO_SLUG[name], parent=category)
        for category, names in SUBCATEGORY_MAPPINGS.items()
        for name in names
    ),
    SUBCATEGORY_ALIASES,
)


def resolve_category_input(value: str | None) -> ResolvedCategory | None:
    return CATEGORY_INDEX.resolve(value)


def resolve_subcategory_input(value: str | None, category: str | None = None) -> ResolvedSubcategory | None:
    raw = (value or "").strip()
    if not raw or raw.lower() == "all":
        return None
    candidates = None
    if category:
        parent = resolve_category_input(category)
        if parent is not None:
            candidates = [e for e in SUBCATEGORY_INDEX.entries if e.parent == parent.display_name]
    return SUBCATEGORY_INDEX.resolve(raw, candidates=candidates)


def normalize_category(value: str | None) -> str:
    """Canonical display name, or the input unchanged when nothing matches."""
    if not value:
        return ""
    resolved = resolve_category_input(value)
    if resolved is not None:
        return resolved.display_name
    return value


def normalize_category_to_slug(value: str | None) -> str:
    resolved = resolve_category_input(value)
    if resolved is not None:
        return resolved.slug
    return to_search_key(value or "")


def subcategories_for(category: str | None) -> list[ResolvedSubcategory]:
    parent = resolve_category_input(category)
    if parent is None:
        return []
    return [
        ResolvedCategory(entry.display_name, entry.slug)
        for entry in SUBCATEGORY_INDEX.entries
        if entry.parent == parent.display_name
    ]


def is_valid_subcategory(category: str | None, subcategory_slug: str | None) -> bool:
    slug = (subcategory_slug or "").strip().lower()
    return any(item.slug == slug for item in subcategories_for(category))


def category_tree() -> list[dict[str, Any]]:
    return [
        {
            "name": entry.display_name,
            "slug": entry.slug,
            "subcategories": [item.to_dict() for item in subcategories_for(entry.display_name)],
        }
        for entry in CATEGORY_INDEX.entries
    ]
