from __future__ import annotations

from typing import Any, Optional

from classifieds.services.search.tokenizer import normalize_text


FRENCH_TO_ENGLISH_CITIES = {
    "montreal": "montreal",
    "quebec city": "quebec",
    "ville de quebec": "quebec",
    "trois-rivieres": "trois-rivieres",
    "saint-jerome": "saint-jerome",
}

PROVINCE_VARIANTS = {
    "ontario": ("ontario", "on"),
    "quebec": ("quebec", "qc"),
    "british columbia": ("british columbia", "colombie-britannique", "bc", "cb"),
    "alberta": ("alberta", "ab"),
    "manitoba": ("manitoba", "mb"),
    "saskatchewan": ("saskatchewan", "sk"),
    "nova scotia": ("nova scotia", "nouvelle-ecosse", "ns", "ne"),
    "new brunswick": ("new brunswick", "nouveau-brunswick", "nb"),
    "newfoundland and labrador": ("newfoundland and labrador", "terre-neuve-et-labrador", "nl", "tn"),
    "prince edward island": ("prince edward island", "ile-du-prince-edouard", "pe", "ipe"),
    "northwest territories": ("northwest territories", "territoires du nord-ouest", "nt", "tno"),
    "nunavut": ("nunavut", "nu"),
    "yukon": ("yukon", "yt"),
}


def normalize_location_string(value: Optional[str]) -> str:
    return normalize_text(value).strip()


def province_for(value: Optional[str]) -> Optional[str]:
    """Canonical English province name for any known spelling or abbreviation."""
    key = normalize_location_string(value)
    if not key:
        return None
    for province, variants in PROVINCE_VARIANTS.items():
        if key in variants:
            return province
    return None


def province_variants(value: Optional[str]) -> tuple:
    province = province_for(value)
    if province is None:
        key = normalize_location_string(value)
        return (key,) if key else ()
    return PROVINCE_VARIANTS[province]


def english_city(city: str) -> str:
    return FRENCH_TO_ENGLISH_CITIES.get(city, city)


def parse_location(value: Optional[str]) -> dict:
    """Split a free-text location into ``{"city", "province"}``.

    Accepts ``"City, Province"`` (province may be an abbreviation), a bare
    province name, or a bare city. Unknown parts are returned as ``None``.
    """
    raw = (value or "").strip()
    if not raw:
        return {"city": None, "province": None}

    if "," in raw:
        parts = [p.strip() for p in raw.split(",") if p.strip()]
        if len(parts) >= 2:
            province_raw = ", ".join(parts[1:])
            return {
                "city": normalize_location_string(parts[0]),
                "province": province_for(province_raw) or normalize_location_string(province_raw),
            }
        raw = parts[0] if parts else ""

    province = province_for(raw)
    if province is not None:
        return {"city": None, "province": province}
    city = normalize_location_string(raw)
    return {"city": city or None, "province": None}


def _field(record: Any, name: str) -> str:
    if isinstance(record, dict):
        return normalize_location_string(record.get(name))
    return normalize_location_string(getattr(record, name, None))


def matches_location(record: Any, location_filter: Optional[str]) -> bool:
    if not (location_filter or "").strip():
        return True
    parsed = parse_location(location_filter)
    city = parsed["city"]
    province = parsed["province"]

    record_city = _field(record, "city")
    record_province = _field(record, "province")
    record_location = _field(record, "location")

    location_parts = [p.strip() for p in record_location.split(",")]

    def _province_matches() -> bool:
        for variant in province_variants(province):
            if variant == record_province or variant in location_parts:
                return True
            # Abbreviations only count as whole fields.
            if len(variant) > 3 and (variant in record_province or variant in record_location):
                return True
        return False

    if city and province:
        city_ok = city in record_city or english_city(city) in record_city or city in record_location
        return city_ok and _province_matches()
    if city:
        english = english_city(city)
        return any(c in record_city or c in record_location for c in (city, english))
    if province:
        return _province_matches()
    return True
