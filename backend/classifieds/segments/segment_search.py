from __future__ import annotations

from flask import Blueprint, jsonify, request, current_app

from classifieds.services.search_service import SearchFilters, run_search
from classifieds.services.taxonomy import (
    category_tree,
    normalize_category,
    resolve_category_input,
    resolve_subcategory_input,
)


search_bp = Blueprint("search_bp", __name__, url_prefix="/api")


@search_bp.get("/search")
def search():
    """Fuzzy listing search. A strict filtered query runs first, then a broad scan if it is empty."""
    q = (request.args.get("q") or request.args.get("query") or "").strip()
    filters = SearchFilters.from_args(request.args)

    result = run_search(q, filters)
    current_app.logger.info(
        "search_hit q=%r stage=%s count=%s",
        q,
        result.stage,
        len(result.items),
    )
    items = [row.to_dict() for row in result.items]
    return jsonify(
        {
            "ok": True,
            "items": items,
            "count": len(items),
            "stage": result.stage,
            "tokens": result.tokens,
            "q": q,
            "filters": filters.to_dict(),
        }
    ), 200


@search_bp.get("/categories")
def categories():
    return jsonify({"ok": True, "categories": category_tree()}), 200


@search_bp.get("/categories/resolve")
def resolve_categories():
    raw_category = (request.args.get("category") or "").strip()
    raw_subcategory = (request.args.get("subcategory") or "").strip()

    category = resolve_category_input(raw_category) if raw_category else None
    scope = category.display_name if category is not None else None
    subcategory = resolve_subcategory_input(raw_subcategory, scope) if raw_subcategory else None

    return jsonify(
        {
            "ok": True,
            "category": category.to_dict() if category else None,
            "subcategory": subcategory.to_dict() if subcategory else None,
            "normalized": normalize_category(raw_category),
        }
    ), 200
