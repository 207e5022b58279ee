from __future__ import annotations

import os

from flask import Blueprint, jsonify, request, current_app, g

from classifieds.extensions import db
from classifieds.models import ADMIN_ROLES, User
from classifieds.services.catalog_stats_service import category_overview, locality_overview, locality_summary
from classifieds.services.moderation_service import (
    ModerationError,
    list_listings_for_admin,
    update_listing_status,
)
from classifieds.utils.jwt_utils import decode_token, get_bearer_token, user_id_from_payload
from classifieds.utils.observability import get_request_id

admin_bp = Blueprint("admin_bp", __name__, url_prefix="/api/admin")


def _super_admin_emails() -> set[str]:
    raw = os.getenv("SUPER_ADMIN_EMAILS") or ""
    return {part.strip().lower() for part in raw.split(",") if part.strip()}


def _current_user() -> User | None:
    token = get_bearer_token(request.headers.get("Authorization", ""))
    if not token:
        return None
    uid = user_id_from_payload(decode_token(token))
    if uid is None:
        return None
    try:
        return db.session.get(User, uid)
    except Exception:
        try:
            db.session.rollback()
        except Exception:
            pass
        return None


def _is_admin(u: User | None) -> bool:
    if not u:
        return False
    role = (getattr(u, "role", None) or "").strip().lower()
    if role in ADMIN_ROLES:
        return True
    email = (getattr(u, "email", None) or "").strip().lower()
    return bool(email) and email in _super_admin_emails()


def _denied(error: str, status: int):
    return jsonify({"ok": False, "error": error, "status": status, "trace_id": get_request_id()}), status


def _require_admin():
    u = _current_user()
    if not u:
        return None, _denied("unauthenticated", 401)
    g.auth_user_id = u.id
    g.auth_role = u.role
    if not _is_admin(u):
        return None, _denied("forbidden", 403)
    return u, None


def _server_error(event: str):
    try:
        db.session.rollback()
    except Exception:
        pass
    current_app.logger.exception(event)
    return jsonify({"ok": False, "error": "server_error"}), 500


@admin_bp.post("/products/list")
def admin_products_list():
    _, err = _require_admin()
    if err:
        return err
    payload = request.get_json(silent=True) or {}
    try:
        result = list_listings_for_admin(payload)
    except Exception:
        return _server_error("admin_products_list_failed")
    return jsonify({"ok": True, **result}), 200


@admin_bp.post("/products/status")
def admin_products_status():
    u, err = _require_admin()
    if err:
        return err
    payload = request.get_json(silent=True) or {}
    ad_id = payload.get("ad_id", payload.get("adId"))
    try:
        result = update_listing_status(
            ad_id,
            payload.get("status"),
            payload.get("note"),
            actor_id=u.id,
        )
    except ModerationError as e:
        return jsonify(e.to_payload()), e.status
    except Exception:
        return _server_error("admin_products_status_failed")
    return jsonify({"ok": True, **result}), 200


@admin_bp.get("/categories/list")
def admin_categories_list():
    _, err = _require_admin()
    if err:
        return err
    try:
        overview = category_overview()
    except Exception:
        return _server_error("admin_categories_list_failed")
    return jsonify({"ok": True, **overview}), 200


@admin_bp.get("/localities/list")
def admin_localities_list():
    _, err = _require_admin()
    if err:
        return err
    try:
        overview = locality_overview()
    except Exception:
        return _server_error("admin_localities_list_failed")
    return jsonify({"ok": True, **overview}), 200


@admin_bp.get("/localities/summary")
def admin_localities_summary():
    _, err = _require_admin()
    if err:
        return err
    name = (request.args.get("name") or "").strip()
    if not name:
        return jsonify({"ok": False, "error": "missing_parameters"}), 400
    try:
        summary = locality_summary(name)
    except Exception:
        return _server_error("admin_localities_summary_failed")
    return jsonify({"ok": True, "summary": summary}), 200
