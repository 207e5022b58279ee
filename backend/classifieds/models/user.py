from datetime import datetime

import sqlalchemy as sa

from classifieds.extensions import db


ADMIN_ROLES = ("admin", "super_admin", "owner")


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(120), nullable=False, default="")
    email = db.Column(db.String(255), unique=True, index=True, nullable=False)

    role = db.Column(db.String(32), nullable=False, default="user")
    email_notifications = db.Column(db.Boolean, nullable=False, default=True, server_default=sa.text("true"))

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role or "user",
            "email_notifications": bool(self.email_notifications),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
