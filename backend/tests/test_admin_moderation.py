from __future__ import annotations

import os
import unittest
from unittest.mock import patch

from classifieds import create_app
from classifieds.extensions import db
from classifieds.models import Listing, ListingFavorite, Notification, User
from classifieds.services import moderation_service
from classifieds.utils.jwt_utils import create_token


class AdminModerationTestCase(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._prev_db_uri = os.getenv("SQLALCHEMY_DATABASE_URI")
        os.environ["SQLALCHEMY_DATABASE_URI"] = "sqlite:///:memory:"
        cls.app = create_app()
        cls.app.config.update(TESTING=True)
        with cls.app.app_context():
            db.create_all()
            admin = User(name="Admin", email="admin@example.com", role="admin")
            owner_role = User(name="Owner", email="owner@example.com", role="owner")
            seller = User(name="Seller", email="seller@example.com", role="user")
            fan = User(name="Fan", email="fan@example.com", role="user")
            boss = User(name="Boss", email="boss@example.com", role="user")
            db.session.add_all([admin, owner_role, seller, fan, boss])
            db.session.commit()
            cls.admin_id = admin.id
            cls.owner_role_id = owner_role.id
            cls.seller_id = seller.id
            cls.fan_id = fan.id
            cls.boss_id = boss.id

            for idx in range(3):
                db.session.add(
                    Listing(
                        user_id=seller.id,
                        title=f"Listed chair {idx}",
                        category="Furniture",
                        location="Laval, QC",
                        city="Laval",
                        province="QC",
                        price=20.0 + idx,
                        status="active",
                    )
                )
            db.session.add(
                Listing(user_id=seller.id, title="Waiting sofa", category="Furniture", price=90.0, status="pending")
            )
            db.session.commit()

        cls.client = cls.app.test_client()

    @classmethod
    def tearDownClass(cls):
        if cls._prev_db_uri is None:
            os.environ.pop("SQLALCHEMY_DATABASE_URI", None)
        else:
            os.environ["SQLALCHEMY_DATABASE_URI"] = cls._prev_db_uri

    def _headers(self, user_id: int) -> dict:
        return {"Authorization": f"Bearer {create_token(user_id)}"}

    def _new_listing(self, title: str, *, favorited_by: list[int] | None = None) -> int:
        with self.app.app_context():
            row = Listing(user_id=self.seller_id, title=title, category="Electronics", price=100.0, status="pending")
            db.session.add(row)
            db.session.commit()
            for user_id in favorited_by or []:
                db.session.add(ListingFavorite(user_id=user_id, listing_id=row.id))
            db.session.commit()
            return int(row.id)

    def _notifications(self, listing_id: int) -> list[Notification]:
        with self.app.app_context():
            rows = Notification.query.order_by(Notification.id.asc()).all()
            return [row for row in rows if row.meta_dict().get("listing_id") == listing_id]

    def test_requires_token(self):
        res = self.client.post("/api/admin/products/list", json={})
        self.assertEqual(res.status_code, 401)

    def test_rejects_regular_user(self):
        res = self.client.post("/api/admin/products/list", json={}, headers=self._headers(self.seller_id))
        self.assertEqual(res.status_code, 403)
        self.assertEqual(res.get_json().get("error"), "forbidden")

    def test_invalid_token(self):
        res = self.client.post("/api/admin/products/list", json={}, headers={"Authorization": "Bearer not-a-jwt"})
        self.assertEqual(res.status_code, 401)

    def test_owner_role_and_allowlisted_email_are_admins(self):
        res = self.client.get("/api/admin/localities/list", headers=self._headers(self.owner_role_id))
        self.assertEqual(res.status_code, 200)
        with patch.dict(os.environ, {"SUPER_ADMIN_EMAILS": "someone@example.com, BOSS@example.com"}):
            res = self.client.get("/api/admin/localities/list", headers=self._headers(self.boss_id))
        self.assertEqual(res.status_code, 200)

    def test_list_pagination_and_owner_email(self):
        res = self.client.post(
            "/api/admin/products/list",
            json={"page": 0, "page_size": 2, "search": "listed chair", "status": "active"},
            headers=self._headers(self.admin_id),
        )
        self.assertEqual(res.status_code, 200)
        body = res.get_json()
        self.assertTrue(body.get("ok"))
        self.assertEqual(body.get("count"), 3)
        self.assertTrue(body.get("has_more"))
        self.assertEqual(len(body["ads"]), 2)
        self.assertEqual(body["ads"][0]["owner_email"], "seller@example.com")
        self.assertIn("moderation_note", body["ads"][0])

        res = self.client.post(
            "/api/admin/products/list",
            json={"page": 1, "page_size": 2, "search": "listed chair", "status": "active"},
            headers=self._headers(self.admin_id),
        )
        body = res.get_json()
        self.assertEqual(len(body["ads"]), 1)
        self.assertFalse(body.get("has_more"))

    def test_list_filters_status_category_and_location(self):
        res = self.client.post(
            "/api/admin/products/list",
            json={"status": "pending", "category": "furnitre"},
            headers=self._headers(self.admin_id),
        )
        titles = [ad["title"] for ad in res.get_json()["ads"]]
        self.assertEqual(titles, ["Waiting sofa"])

        res = self.client.post(
            "/api/admin/products/list",
            json={"status": "all", "location": "Laval, Québec"},
            headers=self._headers(self.admin_id),
        )
        self.assertEqual(res.get_json()["count"], 3)

    def test_status_validation(self):
        headers = self._headers(self.admin_id)
        res = self.client.post("/api/admin/products/status", json={"ad_id": 1}, headers=headers)
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.get_json().get("error"), "missing_parameters")

        res = self.client.post("/api/admin/products/status", json={"ad_id": 1, "status": "bogus"}, headers=headers)
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.get_json().get("error"), "invalid_status")

        res = self.client.post("/api/admin/products/status", json={"ad_id": 999999, "status": "active"}, headers=headers)
        self.assertEqual(res.status_code, 404)

    def test_approval_notifies_owner(self):
        listing_id = self._new_listing("Approve me", favorited_by=[self.fan_id])
        res = self.client.post(
            "/api/admin/products/status",
            json={"ad_id": listing_id, "status": "active"},
            headers=self._headers(self.admin_id),
        )
        self.assertEqual(res.status_code, 200)
        body = res.get_json()
        self.assertEqual(body["listing"]["status"], "active")
        self.assertEqual(body["listing"]["moderated_by"], self.admin_id)
        self.assertEqual(body["previous_status"], "pending")
        self.assertEqual(body["notified"], 1)

        notes = self._notifications(listing_id)
        self.assertEqual(len(notes), 1)
        self.assertEqual(notes[0].user_id, self.seller_id)
        self.assertEqual(notes[0].title, "🎉 Your ad has been approved!")
        self.assertEqual(notes[0].priority, "success")
        self.assertEqual(notes[0].link, f"/product/{listing_id}")

    def test_sold_notifies_favoriters_but_not_owner_twice(self):
        listing_id = self._new_listing("Sell me", favorited_by=[self.fan_id, self.seller_id])
        res = self.client.post(
            "/api/admin/products/status",
            json={"adId": listing_id, "status": "sold", "note": "Buyer confirmed"},
            headers=self._headers(self.admin_id),
        )
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.get_json()["notified"], 2)

        notes = self._notifications(listing_id)
        by_user = {note.user_id: note for note in notes}
        self.assertEqual(set(by_user), {self.seller_id, self.fan_id})
        self.assertEqual(by_user[self.seller_id].title, "Ad status updated")
        self.assertEqual(by_user[self.seller_id].priority, "info")
        self.assertIn("Moderator note: Buyer confirmed", by_user[self.seller_id].message)
        self.assertEqual(by_user[self.fan_id].title, "Ad you favorited has been sold")
        self.assertEqual(by_user[self.fan_id].link, f"/product/{listing_id}")

    def test_deleted_favorite_notice_has_no_link(self):
        listing_id = self._new_listing("Delete me", favorited_by=[self.fan_id])
        self.client.post(
            "/api/admin/products/status",
            json={"ad_id": listing_id, "status": "deleted"},
            headers=self._headers(self.admin_id),
        )
        fan_notes = [n for n in self._notifications(listing_id) if n.user_id == self.fan_id]
        self.assertEqual(len(fan_notes), 1)
        self.assertIsNone(fan_notes[0].link)
        self.assertEqual(fan_notes[0].priority, "warning")
        self.assertIn("has been deleted", fan_notes[0].message)

    def test_rejection_is_a_warning_for_owner(self):
        listing_id = self._new_listing("Reject me", favorited_by=[self.fan_id])
        self.client.post(
            "/api/admin/products/status",
            json={"ad_id": listing_id, "status": "rejected", "note": "Blurry photos"},
            headers=self._headers(self.admin_id),
        )
        notes = self._notifications(listing_id)
        self.assertEqual(len(notes), 1)
        self.assertEqual(notes[0].priority, "warning")
        with self.app.app_context():
            row = db.session.get(Listing, listing_id)
            self.assertEqual(row.moderation_note, "Blurry photos")
            self.assertIsNotNone(row.moderated_at)

    def test_notification_failure_does_not_fail_status_change(self):
        listing_id = self._new_listing("Notify fails")
        with patch.object(moderation_service, "notify_status_change", side_effect=RuntimeError("smtp down")):
            res = self.client.post(
                "/api/admin/products/status",
                json={"ad_id": listing_id, "status": "inactive"},
                headers=self._headers(self.admin_id),
            )
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.get_json()["notified"], 0)
        with self.app.app_context():
            self.assertEqual(db.session.get(Listing, listing_id).status, "inactive")


if __name__ == "__main__":
    unittest.main()
