from __future__ import annotations

import os
import time
import unittest
from unittest.mock import patch

import jwt

from classifieds import create_app
from classifieds.extensions import db
from classifieds.models import Listing, User
from classifieds.utils.jwt_utils import (
    create_token,
    decode_token,
    get_bearer_token,
    user_id_from_payload,
)


class JwtUtilsTestCase(unittest.TestCase):
    def test_round_trip_carries_subject(self):
        payload = decode_token(create_token(42, role="admin"))
        self.assertEqual(user_id_from_payload(payload), 42)
        self.assertEqual(payload.get("role"), "admin")

    def test_rejects_foreign_and_expired_tokens(self):
        foreign = jwt.encode({"sub": "1"}, "another-secret-entirely", algorithm="HS256")
        self.assertIsNone(decode_token(foreign))
        with patch("classifieds.utils.jwt_utils.time.time", return_value=time.time() - 3600):
            stale = create_token(1, ttl_seconds=60)
        self.assertIsNone(decode_token(stale))
        self.assertIsNone(decode_token(""))

    def test_bearer_parsing(self):
        self.assertEqual(get_bearer_token("Bearer abc.def"), "abc.def")
        self.assertIsNone(get_bearer_token("Basic abc"))
        self.assertIsNone(get_bearer_token(""))
        self.assertIsNone(user_id_from_payload({"sub": "nope"}))


class CliCommandsTestCase(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._prev_db_uri = os.getenv("SQLALCHEMY_DATABASE_URI")
        os.environ["SQLALCHEMY_DATABASE_URI"] = "sqlite:///:memory:"
        cls.app = create_app()
        cls.app.config.update(TESTING=True)
        with cls.app.app_context():
            db.create_all()
            db.session.add(User(name="Mod", email="mod@example.com"))
            db.session.add(Listing(title="Old sofa", category="Furniture", subcategory="Sofa & Couches", status="active"))
            db.session.add(Listing(title="Odd thing", category="Mystery Box", status="active"))
            db.session.commit()
        cls.runner = cls.app.test_cli_runner()

    @classmethod
    def tearDownClass(cls):
        if cls._prev_db_uri is None:
            os.environ.pop("SQLALCHEMY_DATABASE_URI", None)
        else:
            os.environ["SQLALCHEMY_DATABASE_URI"] = cls._prev_db_uri

    def test_grant_admin(self):
        result = self.runner.invoke(args=["grant-admin", "--email", "mod@example.com", "--role", "super_admin"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("grant_admin_ok", result.output)
        with self.app.app_context():
            self.assertEqual(User.query.filter_by(email="mod@example.com").first().role, "super_admin")

    def test_grant_admin_unknown_user(self):
        result = self.runner.invoke(args=["grant-admin", "--email", "ghost@example.com"])
        self.assertNotEqual(result.exit_code, 0)

    def test_backfill_slugs(self):
        result = self.runner.invoke(args=["backfill-slugs"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("changed=2", result.output)
        with self.app.app_context():
            sofa = Listing.query.filter_by(title="Old sofa").first()
            self.assertEqual(sofa.category_slug, "furniture")
            self.assertEqual(sofa.subcategory_slug, "sofa-couches")
            odd = Listing.query.filter_by(title="Odd thing").first()
            self.assertEqual(odd.category_slug, "mystery-box")


if __name__ == "__main__":
    unittest.main()
