from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import and_, func, or_

from classifieds.extensions import db
from classifieds.models import LISTING_STATUSES, Listing, ListingFavorite, Notification, User
from classifieds.services.taxonomy import resolve_category_input
from classifieds.utils.locations import english_city, parse_location, province_variants


logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 25
MAX_PAGE_SIZE = 100

# Favoriters hear about these transitions too.
FAVORITE_NOTIFY_STATUSES = ("sold", "deleted", "inactive")


@dataclass
class ModerationError(Exception):
    code: str
    message: str
    status: int = 400

    def to_payload(self) -> dict:
        return {"ok": False, "error": self.code, "message": self.message}


def _int(raw, default: int, *, minimum: int = 0, maximum: int | None = None) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        value = default
    value = max(minimum, value)
    if maximum is not None:
        value = min(maximum, value)
    return value


def _is_all(value: Any) -> bool:
    text = str(value or "").strip().lower()
    return not text or text == "all"


def _location_clause(value: str):
    parsed = parse_location(value)
    city = parsed["city"]
    province = parsed["province"]
    raw = Listing.location.ilike(f"%{value.strip()}%")

    city_clause = None
    if city:
        names = sorted({city, english_city(city)})
        city_clause = or_(
            *[Listing.city.ilike(f"%{name}%") for name in names],
            *[Listing.location.ilike(f"%{name}%") for name in names],
        )
    province_clause = None
    if province:
        variants = []
        for variant in province_variants(province):
            # Two letter codes would match inside unrelated names.
            if len(variant) <= 3:
                variants.append(func.lower(Listing.province) == variant)
            else:
                variants.append(Listing.province.ilike(f"%{variant}%"))
        province_clause = or_(*variants)

    if city_clause is not None and province_clause is not None:
        return or_(raw, and_(city_clause, province_clause))
    if city_clause is not None:
        return or_(raw, city_clause)
    if province_clause is not None:
        return or_(raw, province_clause)
    return raw


def list_listings_for_admin(params: dict | None) -> dict[str, Any]:
    """Paged listing table for moderators, newest first. ``page`` is zero based."""
    params = params or {}
    page = _int(params.get("page"), 0)
    page_size = _int(
        params.get("page_size", params.get("pageSize")),
        DEFAULT_PAGE_SIZE,
        minimum=1,
        maximum=MAX_PAGE_SIZE,
    )
    search = str(params.get("search") or "").strip()
    status = params.get("status")
    category = params.get("category")
    location = params.get("location")

    query = Listing.query
    if not _is_all(status):
        query = query.filter(Listing.status == str(status).strip().lower())
    if not _is_all(category):
        resolved = resolve_category_input(str(category))
        if resolved is not None:
            query = query.filter(
                or_(
                    func.lower(Listing.category) == resolved.display_name.lower(),
                    Listing.category_slug == resolved.slug,
                )
            )
        else:
            query = query.filter(func.lower(Listing.category) == str(category).strip().lower())
    if not _is_all(location):
        query = query.filter(_location_clause(str(location)))
    if search:
        query = query.filter(Listing.title.ilike(f"%{search}%"))

    count = query.order_by(None).count()
    rows = (
        query.order_by(Listing.created_at.desc(), Listing.id.desc())
        .offset(page * page_size)
        .limit(page_size)
        .all()
    )

    owner_ids = {row.user_id for row in rows if row.user_id is not None}
    emails: dict[int, str] = {}
    if owner_ids:
        for user_id, email in db.session.query(User.id, User.email).filter(User.id.in_(owner_ids)).all():
            emails[int(user_id)] = email

    ads = []
    for row in rows:
        item = row.to_dict(include_moderation=True)
        item["owner_email"] = emails.get(int(row.user_id)) if row.user_id is not None else None
        ads.append(item)

    return {
        "ads": ads,
        "count": int(count),
        "has_more": count > (page + 1) * page_size,
        "page": page,
        "page_size": page_size,
    }


def _owner_notification(listing: Listing, status: str, note: str | None, actor_id: int | None) -> Notification:
    title = listing.title or "listing"
    if status == "active":
        heading = "🎉 Your ad has been approved!"
        message = f'Great news! Your ad "{title}" has been approved and is now live on the platform.'
        priority = "success"
    else:
        heading = "Ad status updated"
        message = f'Your ad "{title}" is now {status.replace("_", " ")}.'
        priority = "warning" if status == "rejected" else "info"
    if note:
        message = f"{message} Moderator note: {note}"

    notification = Notification(
        user_id=listing.user_id,
        actor_id=actor_id,
        type="ad_status_change",
        title=heading,
        message=message,
        link=f"/product/{listing.id}",
        priority=priority,
    )
    notification.set_meta({"listing_id": listing.id, "status": status, "note": note})
    return notification


def _favorite_notifications(listing: Listing, status: str, actor_id: int | None) -> list[Notification]:
    user_ids = [
        int(user_id)
        for (user_id,) in db.session.query(ListingFavorite.user_id)
        .filter(ListingFavorite.listing_id == listing.id)
        .all()
        if user_id is not None and user_id != listing.user_id
    ]
    if not user_ids:
        return []

    title = listing.title or "listing"
    if status == "sold":
        outcome = "has been sold"
    elif status == "deleted":
        outcome = "has been deleted"
    else:
        outcome = "is no longer available"

    out = []
    for user_id in user_ids:
        notification = Notification(
            user_id=user_id,
            actor_id=actor_id,
            type="ad_status_change",
            title="Ad you favorited has been sold" if status == "sold" else "Ad you favorited is no longer available",
            message=f'The ad "{title}" you saved to your favorites {outcome}.',
            link=None if status == "deleted" else f"/product/{listing.id}",
            priority="info" if status == "sold" else "warning",
        )
        notification.set_meta({"listing_id": listing.id, "status": status})
        out.append(notification)
    return out


def notify_status_change(listing: Listing, status: str, note: str | None, actor_id: int | None) -> int:
    """Queue in-app notifications for a moderation decision. Returns how many were created."""
    notifications: list[Notification] = []
    if listing.user_id is not None:
        notifications.append(_owner_notification(listing, status, note, actor_id))
    if status in FAVORITE_NOTIFY_STATUSES:
        notifications.extend(_favorite_notifications(listing, status, actor_id))
    for notification in notifications:
        db.session.add(notification)
    return len(notifications)


def update_listing_status(ad_id: Any, status: Any, note: str | None = None, *, actor_id: int | None = None) -> dict[str, Any]:
    if ad_id in (None, "") or not status:
        raise ModerationError("missing_parameters", "ad_id and status are required")
    status_key = str(status).strip().lower()
    if status_key not in LISTING_STATUSES:
        raise ModerationError("invalid_status", f"status must be one of {', '.join(LISTING_STATUSES)}")
    try:
        listing_id = int(ad_id)
    except (TypeError, ValueError):
        raise ModerationError("listing_not_found", "listing not found", status=404)

    listing = db.session.get(Listing, listing_id)
    if listing is None:
        raise ModerationError("listing_not_found", "listing not found", status=404)

    previous_status = listing.status
    now = datetime.utcnow()
    listing.status = status_key
    listing.updated_at = now
    listing.moderation_note = note
    listing.moderated_by = actor_id
    listing.moderated_at = now
    db.session.add(listing)
    db.session.commit()
    logger.info(
        "listing_status_changed listing_id=%s from=%s to=%s actor_id=%s",
        listing.id,
        previous_status,
        status_key,
        actor_id,
    )

    notified = 0
    try:
        notified = notify_status_change(listing, status_key, note, actor_id)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        notified = 0
        logger.warning("listing_status_notify_failed listing_id=%s err=%s", listing_id, e)

    return {
        "listing": listing.to_dict(include_moderation=True),
        "previous_status": previous_status,
        "notified": notified,
    }
