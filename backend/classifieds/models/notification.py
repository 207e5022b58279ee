from datetime import datetime
import json

from classifieds.extensions import db


class Notification(db.Model):
    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    actor_id = db.Column(db.Integer, nullable=True)

    type = db.Column(db.String(48), nullable=False, default="general")  # ad_status_change | general
    title = db.Column(db.String(160), nullable=True)
    message = db.Column(db.Text, nullable=False)
    link = db.Column(db.String(255), nullable=True)
    priority = db.Column(db.String(16), nullable=False, default="info")  # info | success | warning

    is_read = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    meta = db.Column(db.Text, nullable=True)  # JSON string

    def meta_dict(self) -> dict:
        raw = (self.meta or "").strip()
        if not raw:
            return {}
        try:
            data = json.loads(raw)
            return data if isinstance(data, dict) else {}
        except Exception:
            return {}

    def set_meta(self, meta: dict | None) -> None:
        try:
            self.meta = json.dumps(meta or {}, separators=(",", ":"), default=str)
        except Exception:
            self.meta = "{}"

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "actor_id": self.actor_id,
            "type": self.type or "general",
            "title": self.title or "",
            "message": self.message or "",
            "link": self.link,
            "priority": self.priority or "info",
            "is_read": bool(self.is_read),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "meta": self.meta_dict(),
        }
