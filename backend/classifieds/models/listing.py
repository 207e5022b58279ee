from datetime import datetime
import json
import sqlalchemy as sa

from classifieds.extensions import db


LISTING_STATUSES = ("active", "pending", "sold", "expired", "rejected", "deleted", "inactive")


class Listing(db.Model):
    __tablename__ = "listings"

    id = db.Column(db.Integer, primary_key=True)

    # Seller user id
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    title = db.Column(db.String(160), nullable=False)
    description = db.Column(db.Text, nullable=True)
    # JSON array of free-form tags
    tags = db.Column(db.Text, nullable=True)

    # Canonical display names plus slugs; legacy rows may only carry one of them.
    category = db.Column(db.String(80), nullable=True, index=True)
    category_slug = db.Column(db.String(80), nullable=True, index=True)
    subcategory = db.Column(db.String(80), nullable=True, index=True)
    subcategory_slug = db.Column(db.String(80), nullable=True, index=True)

    # Free-text locality plus structured city/province
    location = db.Column(db.String(160), nullable=True, index=True)
    city = db.Column(db.String(80), nullable=True)
    province = db.Column(db.String(80), nullable=True)

    price = db.Column(db.Float, nullable=False, default=0.0)
    condition = db.Column(db.String(32), nullable=True)
    status = db.Column(db.String(24), nullable=False, default="pending", server_default="pending", index=True)
    featured = db.Column(db.Boolean, nullable=False, default=False, server_default=sa.text("false"))
    views_count = db.Column(db.Integer, nullable=False, default=0, server_default="0")

    # Admin review workflow
    moderation_note = db.Column(db.Text, nullable=True)
    moderated_by = db.Column(db.Integer, nullable=True)
    moderated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=datetime.utcnow, server_default=sa.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, default=datetime.utcnow, onupdate=datetime.utcnow)

    def tag_list(self) -> list[str]:
        raw = str(self.tags or "").strip()
        if not raw:
            return []
        try:
            parsed = json.loads(raw)
        except Exception:
            # Legacy rows stored comma separated tags.
            return [part.strip() for part in raw.split(",") if part.strip()]
        if isinstance(parsed, list):
            return [str(item) for item in parsed if str(item or "").strip()]
        if isinstance(parsed, str) and parsed.strip():
            return [parsed.strip()]
        return []

    def set_tags(self, values) -> None:
        items = [str(v).strip() for v in (values or []) if str(v or "").strip()]
        self.tags = json.dumps(items, separators=(",", ":")) if items else None

    def to_dict(self, *, include_moderation: bool = False):
        payload = {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title or "",
            "description": self.description or "",
            "tags": self.tag_list(),
            "category": self.category or "",
            "category_slug": self.category_slug or "",
            "subcategory": self.subcategory or "",
            "subcategory_slug": self.subcategory_slug or "",
            "location": self.location or "",
            "city": self.city or "",
            "province": self.province or "",
            "price": float(self.price or 0.0),
            "condition": self.condition or "",
            "status": self.status or "pending",
            "featured": bool(self.featured),
            "views_count": int(self.views_count or 0),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_moderation:
            payload["moderation_note"] = self.moderation_note
            payload["moderated_by"] = int(self.moderated_by) if self.moderated_by is not None else None
            payload["moderated_at"] = self.moderated_at.isoformat() if self.moderated_at else None
        return payload
