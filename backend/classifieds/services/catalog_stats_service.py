from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func

from classifieds.extensions import db
from classifieds.models import Listing
from classifieds.services.taxonomy import (
    CATEGORY_INDEX,
    resolve_category_input,
    resolve_subcategory_input,
    subcategories_for,
)


RISING_WINDOW_DAYS = 7
RISING_MIN_CATEGORY_RECENT = 3
RISING_MIN_SUBCATEGORY_RECENT = 2
RISING_MIN_LOCALITY_RECENT = 3
SUMMARY_RECENT_ADS = 8


def _growth(recent: int, previous: int) -> float:
    if previous == 0:
        return 100.0 if recent > 0 else 0.0
    return round(((recent - previous) / float(previous)) * 100.0, 2)


def _windows(now: datetime | None = None) -> tuple[datetime, datetime]:
    now = now or datetime.utcnow()
    last = now - timedelta(days=RISING_WINDOW_DAYS)
    previous = now - timedelta(days=RISING_WINDOW_DAYS * 2)
    return last, previous


def _between(query, since: datetime | None, until: datetime | None):
    if since is not None:
        query = query.filter(Listing.created_at >= since)
    if until is not None:
        query = query.filter(Listing.created_at < until)
    return query


def _category_counts(since: datetime | None = None, until: datetime | None = None) -> tuple[dict, dict]:
    """Listing counts keyed by canonical category display name, plus unresolved raw names."""
    query = db.session.query(Listing.category, Listing.category_slug, func.count(Listing.id)).filter(
        (Listing.category.isnot(None)) | (Listing.category_slug.isnot(None))
    )
    query = _between(query, since, until).group_by(Listing.category, Listing.category_slug)

    counts: dict[str, int] = {}
    uncategorized: dict[str, int] = {}
    for name, slug, count in query.all():
        resolved = resolve_category_input(slug) if slug else None
        if resolved is None:
            resolved = resolve_category_input(name)
        if resolved is None:
            key = (name or slug or "uncategorized").strip() or "uncategorized"
            uncategorized[key] = uncategorized.get(key, 0) + int(count or 0)
            continue
        counts[resolved.display_name] = counts.get(resolved.display_name, 0) + int(count or 0)
    return counts, uncategorized


def _subcategory_counts(since: datetime | None = None, until: datetime | None = None) -> dict:
    query = db.session.query(
        Listing.category, Listing.subcategory, Listing.subcategory_slug, func.count(Listing.id)
    ).filter((Listing.subcategory.isnot(None)) | (Listing.subcategory_slug.isnot(None)))
    query = _between(query, since, until).group_by(Listing.category, Listing.subcategory, Listing.subcategory_slug)

    counts: dict[tuple[str, str], int] = {}
    for category, subcategory, subcategory_slug, count in query.all():
        parent = resolve_category_input(category)
        if parent is None:
            continue
        resolved = resolve_subcategory_input(subcategory_slug or subcategory, parent.display_name)
        if resolved is None and subcategory_slug and subcategory:
            resolved = resolve_subcategory_input(subcategory, parent.display_name)
        if resolved is None:
            continue
        key = (parent.display_name, resolved.display_name)
        counts[key] = counts.get(key, 0) + int(count or 0)
    return counts


def category_overview(now: datetime | None = None) -> dict[str, Any]:
    last, previous = _windows(now)
    totals, uncategorized = _category_counts()
    recent, _ = _category_counts(since=last)
    older, _ = _category_counts(since=previous, until=last)
    sub_totals = _subcategory_counts()
    sub_recent = _subcategory_counts(since=last)
    sub_older = _subcategory_counts(since=previous, until=last)

    categories = []
    for entry in CATEGORY_INDEX.entries:
        name = entry.display_name
        subcategories = []
        for sub in subcategories_for(name):
            key = (name, sub.display_name)
            sub_recent_count = sub_recent.get(key, 0)
            sub_previous_count = sub_older.get(key, 0)
            subcategories.append(
                {
                    "name": sub.display_name,
                    "slug": sub.slug,
                    "item_count": sub_totals.get(key, 0),
                    "recent_count": sub_recent_count,
                    "previous_count": sub_previous_count,
                    "growth_rate": _growth(sub_recent_count, sub_previous_count),
                }
            )
        recent_count = recent.get(name, 0)
        previous_count = older.get(name, 0)
        categories.append(
            {
                "name": name,
                "slug": entry.slug,
                "item_count": totals.get(name, 0),
                "recent_count": recent_count,
                "previous_count": previous_count,
                "growth_rate": _growth(recent_count, previous_count),
                "subcategories": subcategories,
            }
        )

    flat_subcategories = [
        dict(sub, category=cat["name"], category_slug=cat["slug"])
        for cat in categories
        for sub in cat["subcategories"]
    ]
    return {
        "categories": categories,
        "uncategorized": [
            {"name": name, "item_count": count}
            for name, count in sorted(uncategorized.items(), key=lambda item: (-item[1], item[0]))
        ],
        "most_popular": {
            "categories": sorted(categories, key=lambda c: -c["item_count"])[:20],
            "subcategories": sorted(flat_subcategories, key=lambda s: -s["item_count"])[:30],
        },
        "rising": {
            "categories": sorted(
                (c for c in categories if c["recent_count"] >= RISING_MIN_CATEGORY_RECENT),
                key=lambda c: -c["growth_rate"],
            )[:20],
            "subcategories": sorted(
                (s for s in flat_subcategories if s["recent_count"] >= RISING_MIN_SUBCATEGORY_RECENT),
                key=lambda s: -s["growth_rate"],
            )[:30],
        },
    }


def _grouped_counts(column, since: datetime | None = None, until: datetime | None = None) -> dict[str, int]:
    query = db.session.query(column, func.count(Listing.id)).filter(column.isnot(None))
    query = _between(query, since, until).group_by(column)
    out: dict[str, int] = {}
    for value, count in query.all():
        key = (value or "").strip()
        if not key:
            continue
        out[key] = out.get(key, 0) + int(count or 0)
    return out


def _ranked(counts: dict[str, int]) -> list[dict[str, Any]]:
    return [
        {"name": name, "count": count}
        for name, count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    ]


def locality_overview(now: datetime | None = None) -> dict[str, Any]:
    last, previous = _windows(now)
    totals = _grouped_counts(Listing.location)
    recent = _grouped_counts(Listing.location, since=last)
    older = _grouped_counts(Listing.location, since=previous, until=last)

    # Most common city/province per location string.
    places: dict[str, tuple] = {}
    rows = (
        db.session.query(Listing.location, Listing.city, Listing.province, func.count(Listing.id))
        .filter(Listing.location.isnot(None))
        .group_by(Listing.location, Listing.city, Listing.province)
        .all()
    )
    best: dict[str, int] = {}
    for location, city, province, count in rows:
        key = (location or "").strip()
        if not key:
            continue
        if int(count or 0) > best.get(key, -1):
            best[key] = int(count or 0)
            places[key] = (city, province)

    localities = []
    for name, count in totals.items():
        city, province = places.get(name, (None, None))
        recent_count = recent.get(name, 0)
        previous_count = older.get(name, 0)
        localities.append(
            {
                "name": name,
                "city": city,
                "province": province,
                "item_count": count,
                "recent_count": recent_count,
                "previous_count": previous_count,
                "growth_rate": _growth(recent_count, previous_count),
            }
        )
    localities.sort(key=lambda loc: (-loc["item_count"], loc["name"]))

    return {
        "localities": localities,
        "cities": _ranked(_grouped_counts(Listing.city)),
        "provinces": _ranked(_grouped_counts(Listing.province)),
        "most_popular": localities[:20],
        "rising": sorted(
            (loc for loc in localities if loc["recent_count"] >= RISING_MIN_LOCALITY_RECENT),
            key=lambda loc: -loc["growth_rate"],
        )[:20],
    }


def locality_summary(name: str) -> dict[str, Any]:
    locality = (name or "").strip()
    base = Listing.query.filter(Listing.location == locality)

    status_rows = (
        db.session.query(Listing.status, func.count(Listing.id))
        .filter(Listing.location == locality)
        .group_by(Listing.status)
        .all()
    )
    status_breakdown = [{"status": status or "unknown", "count": int(count or 0)} for status, count in status_rows]

    category_rows = (
        db.session.query(Listing.category, Listing.category_slug, func.count(Listing.id))
        .filter(Listing.location == locality)
        .group_by(Listing.category, Listing.category_slug)
        .all()
    )
    category_breakdown = [
        {"category": slug or name or "Uncategorized", "count": int(count or 0)}
        for name, slug, count in category_rows
    ]

    subcategory_rows = (
        db.session.query(Listing.category, Listing.subcategory, Listing.subcategory_slug, func.count(Listing.id))
        .filter(Listing.location == locality)
        .group_by(Listing.category, Listing.subcategory, Listing.subcategory_slug)
        .all()
    )
    subcategory_breakdown = [
        {
            "category": category or "Uncategorized",
            "subcategory": subcategory_slug or subcategory or "unspecified",
            "count": int(count or 0),
        }
        for category, subcategory, subcategory_slug, count in subcategory_rows
    ]

    sellers = (
        db.session.query(func.count(func.distinct(Listing.user_id)))
        .filter(Listing.location == locality, Listing.user_id.isnot(None))
        .scalar()
    )
    average, minimum, maximum = (
        db.session.query(func.avg(Listing.price), func.min(Listing.price), func.max(Listing.price))
        .filter(Listing.location == locality, Listing.price.isnot(None))
        .one()
    )

    recent_ads = base.order_by(Listing.created_at.desc(), Listing.id.desc()).limit(SUMMARY_RECENT_ADS).all()

    return {
        "name": locality,
        "total_ads": sum(item["count"] for item in status_breakdown),
        "status_breakdown": status_breakdown,
        "category_breakdown": category_breakdown,
        "subcategory_breakdown": subcategory_breakdown,
        "unique_sellers": int(sellers or 0),
        "price_stats": {
            "average": round(float(average), 2) if average is not None else None,
            "minimum": float(minimum) if minimum is not None else None,
            "maximum": float(maximum) if maximum is not None else None,
        },
        "recent_ads": [
            {
                "id": row.id,
                "title": row.title or "",
                "price": float(row.price or 0.0),
                "status": row.status,
                "created_at": row.created_at.isoformat() if row.created_at else None,
                "category": row.category,
                "subcategory": row.subcategory,
            }
            for row in recent_ads
        ],
    }
