from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Mapping

from sqlalchemy import func, or_

from classifieds.extensions import db
from classifieds.models import Listing
from classifieds.services.search import (
    search_fallback_enabled,
    search_fallback_scan_limit,
    search_result_cap,
)
from classifieds.services.search.ranking import is_good_match, rank_listings
from classifieds.services.search.tokenizer import tokenize
from classifieds.services.taxonomy import resolve_category_input, resolve_subcategory_input


logger = logging.getLogger(__name__)

STAGE_STRICT = "strict"
STAGE_FUZZY = "fuzzy"
STAGE_RECENT = "recent"
STAGE_ERROR = "error"

SORT_NEWEST = "newest"
SORT_PRICE_LOW = "price-low"
SORT_PRICE_HIGH = "price-high"


def _safe_float(raw, default: float | None = None) -> float | None:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return default
    try:
        return float(raw)
    except Exception:
        return default


def _first(args: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        value = args.get(name)
        if value is not None and value != "":
            return value
    return None


def normalize_sort(raw: str | None) -> str:
    key = (raw or "").strip().lower().replace("_", "-")
    if key in ("price-low", "price-asc", "price-low-to-high", "priceasc"):
        return SORT_PRICE_LOW
    if key in ("price-high", "price-desc", "price-high-to-low", "pricedesc"):
        return SORT_PRICE_HIGH
    return SORT_NEWEST


@dataclass
class SearchFilters:
    category: str = ""
    subcategory: str = ""
    location: str = ""
    min_price: float | None = None
    max_price: float | None = None
    condition: str = ""
    sort_by: str = SORT_NEWEST

    @classmethod
    def from_args(cls, args: Mapping[str, Any] | None) -> "SearchFilters":
        args = args or {}
        return cls(
            category=str(_first(args, "category") or "").strip(),
            subcategory=str(_first(args, "subcategory") or "").strip(),
            location=str(_first(args, "location") or "").strip(),
            min_price=_safe_float(_first(args, "min_price", "minPrice", "price_min")),
            max_price=_safe_float(_first(args, "max_price", "maxPrice", "price_max")),
            condition=str(_first(args, "condition") or "").strip(),
            sort_by=normalize_sort(_first(args, "sort_by", "sortBy", "sort")),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class SearchResult:
    items: list = field(default_factory=list)
    tokens: list = field(default_factory=list)
    stage: str = STAGE_STRICT


def _text_clause(fragment: str):
    like = f"%{fragment}%"
    return or_(
        Listing.title.ilike(like),
        Listing.description.ilike(like),
        Listing.tags.ilike(like),
    )


def _apply_text(query, raw_query: str, tokens: list[str]):
    if tokens:
        for token in tokens:
            query = query.filter(_text_clause(token))
        return query
    trimmed = (raw_query or "").strip().lower()
    if trimmed:
        query = query.filter(_text_clause(trimmed))
    return query


def _apply_taxonomy(query, filters: SearchFilters):
    category = resolve_category_input(filters.category) if filters.category else None
    if category is not None:
        query = query.filter(
            or_(
                func.lower(Listing.category) == category.display_name.lower(),
                Listing.category_slug == category.slug,
            )
        )

    if filters.subcategory:
        scope = category.display_name if category is not None else None
        subcategory = resolve_subcategory_input(filters.subcategory, scope)
        if subcategory is not None:
            query = query.filter(
                or_(
                    func.lower(Listing.subcategory) == subcategory.display_name.lower(),
                    func.lower(Listing.subcategory) == subcategory.slug,
                    Listing.subcategory_slug == subcategory.slug,
                )
            )
    return query


def _apply_attributes(query, filters: SearchFilters):
    location = (filters.location or "").strip()
    if location:
        like = f"%{location}%"
        query = query.filter(
            or_(
                Listing.location.ilike(like),
                Listing.city.ilike(like),
                Listing.province.ilike(like),
            )
        )
    if filters.min_price is not None:
        query = query.filter(Listing.price >= float(filters.min_price))
    if filters.max_price is not None:
        query = query.filter(Listing.price <= float(filters.max_price))

    condition = (filters.condition or "").strip().lower()
    if condition and condition not in ("all", "any"):
        query = query.filter(func.lower(Listing.condition) == condition)
    return query


def _apply_sort(query, sort_by: str):
    sort_key = normalize_sort(sort_by)
    if sort_key == SORT_PRICE_LOW:
        return query.order_by(Listing.price.asc(), Listing.id.desc())
    if sort_key == SORT_PRICE_HIGH:
        return query.order_by(Listing.price.desc(), Listing.id.desc())
    return query.order_by(Listing.created_at.desc(), Listing.id.desc())


def _strict_stage(raw_query: str, tokens: list[str], filters: SearchFilters, limit: int) -> list[Listing]:
    query = Listing.query.filter(Listing.status == "active")
    query = _apply_text(query, raw_query, tokens)
    query = _apply_taxonomy(query, filters)
    query = _apply_attributes(query, filters)
    query = _apply_sort(query, filters.sort_by)
    return query.limit(limit).all()


def _fallback_stage(tokens: list[str], scan_limit: int, cap: int) -> tuple[list[Listing], str]:
    rows = (
        Listing.query.filter(Listing.status == "active")
        .order_by(Listing.created_at.desc(), Listing.id.desc())
        .limit(scan_limit)
        .all()
    )
    matched = [row for row in rows if is_good_match(row, tokens)]
    if matched:
        return matched[:cap], STAGE_FUZZY
    return rows[:cap], STAGE_RECENT


def run_search(query: str | None, filters: SearchFilters | None = None) -> SearchResult:
    """Strict filtered query first, then a broad fuzzy scan when it comes back empty.

    Database errors never escape: they are logged, the session is rolled back
    and an empty result with stage ``error`` is returned.
    """
    filters = filters or SearchFilters()
    raw_query = (query or "").strip()
    tokens = tokenize(raw_query)
    cap = search_result_cap()

    try:
        items = _strict_stage(raw_query, tokens, filters, cap)
        stage = STAGE_STRICT
        if not items and tokens and search_fallback_enabled():
            items, stage = _fallback_stage(tokens, search_fallback_scan_limit(), cap)
            logger.info("search_fallback_used tokens=%s stage=%s count=%s", tokens, stage, len(items))
    except Exception:
        logger.exception("search_query_failed q=%r", raw_query)
        try:
            db.session.rollback()
        except Exception:
            pass
        return SearchResult(items=[], tokens=tokens, stage=STAGE_ERROR)

    if tokens:
        items = rank_listings(items, tokens)
    return SearchResult(items=list(items)[:cap], tokens=tokens, stage=stage)


def search_listings(query: str | None, filters: SearchFilters | Mapping[str, Any] | None = None) -> list[Listing]:
    if filters is not None and not isinstance(filters, SearchFilters):
        filters = SearchFilters.from_args(filters)
    return run_search(query, filters).items
