import json
import unittest

from fastapi.testclient import TestClient

from fluzio.app import create_app
from fluzio.dependencies import get_document_store, get_push_sender, get_queue_client
from fluzio.push import InMemoryPushSender
from fluzio.queue import InMemoryNotificationQueue
from fluzio.store import InMemoryDocumentStore


class FluzioApiTests(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(create_app())
        store = get_document_store()
        if isinstance(store, InMemoryDocumentStore):
            store.reset()
        queue = get_queue_client()
        if isinstance(queue, InMemoryNotificationQueue):
            queue.reset()
        sender = get_push_sender()
        if isinstance(sender, InMemoryPushSender):
            sender.reset()

    def _create_user(self, user_id, name, role="CUSTOMER", **extra):
        response = self.client.post(
            "/api/users",
            json={"user_id": user_id, "name": name, "role": role, **extra},
        )
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()["user"]

    def _balance(self, user_id):
        return self.client.get(f"/api/users/{user_id}/balance").json()["points"]

    def test_health(self):
        response = self.client.get("/api/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_user_lifecycle(self):
        user = self._create_user("u1", "Ana", email="ana@example.com")
        self.assertEqual(user["points"], 0)
        self.assertEqual(user["level"], 1)

        response = self.client.patch("/api/users/u1", json={"name": "Ana B", "level": 2})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["user"]["name"], "Ana B")
        self.assertEqual(response.json()["user"]["level"], 2)

        duplicate = self.client.post("/api/users", json={"user_id": "u1", "name": "Again"})
        self.assertEqual(duplicate.status_code, 409)
        self.assertEqual(duplicate.json()["code"], "conflict")

    def test_unknown_user_returns_not_found(self):
        response = self.client.get("/api/users/nobody")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["code"], "not_found")

    def test_request_validation_errors(self):
        response = self.client.post("/api/users", json={"role": "CUSTOMER"})
        self.assertEqual(response.status_code, 422)

    def test_mission_flow_awards_points_and_notifies(self):
        self._create_user("biz1", "Cafe Blue", role="BUSINESS")
        self._create_user("u1", "Ana")

        created = self.client.post(
            "/api/missions",
            json={
                "business_id": "biz1",
                "title": "Post a story",
                "reward_points": 40,
                "publish": True,
            },
        )
        self.assertEqual(created.status_code, 201, created.text)
        mission_id = created.json()["mission_id"]
        self.assertEqual(created.json()["mission"]["status"], "ACTIVE")

        listed = self.client.get("/api/missions", params={"business_id": "biz1"})
        self.assertEqual([m["mission_id"] for m in listed.json()["missions"]], [mission_id])

        applied = self.client.post(f"/api/missions/{mission_id}/apply", json={"user_id": "u1"})
        self.assertEqual(applied.status_code, 201, applied.text)
        participation_id = applied.json()["participation_id"]

        again = self.client.post(f"/api/missions/{mission_id}/apply", json={"user_id": "u1"})
        self.assertEqual(again.status_code, 409)

        proof = self.client.post(
            f"/api/participations/{participation_id}/proof",
            json={"proof_url": "https://example.com/story.png"},
        )
        self.assertEqual(proof.json()["participation"]["status"], "PENDING_APPROVAL")

        review = self.client.post(
            f"/api/participations/{participation_id}/review", json={"approved": True}
        )
        self.assertEqual(review.status_code, 200, review.text)
        self.assertEqual(review.json()["participation"]["status"], "APPROVED")
        self.assertEqual(self._balance("u1"), 40)

        transactions = self.client.get("/api/users/u1/transactions").json()["transactions"]
        self.assertEqual(len(transactions), 1)
        self.assertEqual(transactions[0]["amount"], 40)
        self.assertEqual(transactions[0]["balance_after"], 40)

        notifications = self.client.get("/api/users/u1/notifications").json()
        self.assertEqual(notifications["unread_count"], 1)
        self.assertEqual(notifications["notifications"][0]["type"], "MISSION_APPROVED")

        marked = self.client.post("/api/users/u1/notifications/read")
        self.assertEqual(marked.json()["count"], 1)
        self.assertEqual(
            self.client.get("/api/users/u1/notifications").json()["unread_count"], 0
        )

        stats = self.client.get("/api/businesses/biz1/missions/stats").json()["stats"]
        self.assertEqual(stats["total_missions"], 1)
        self.assertEqual(stats["completed"], 1)

    def test_reward_redemption_and_validation(self):
        self._create_user("biz1", "Cafe Blue", role="BUSINESS")
        self._create_user("u1", "Ana")
        self._create_user("u2", "Ben")

        reward = self.client.post(
            "/api/rewards",
            json={
                "business_id": "biz1",
                "title": "Free coffee",
                "points_cost": 10,
                "total_available": 5,
            },
        )
        self.assertEqual(reward.status_code, 201, reward.text)
        reward_id = reward.json()["reward_id"]

        # Earn points with a QR check-in first.
        qr = self.client.get("/api/businesses/biz1/check-in-qr").json()["qr_data"]
        self.assertEqual(json.loads(qr)["business_id"], "biz1")
        check_in = self.client.post("/api/check-ins/qr", json={"user_id": "u1", "qr_data": qr})
        self.assertEqual(check_in.status_code, 201, check_in.text)
        self.assertEqual(self._balance("u1"), 10)
        self.assertEqual(self._balance("biz1"), 5)

        poor = self.client.post(f"/api/rewards/{reward_id}/redeem", json={"user_id": "u2"})
        self.assertEqual(poor.status_code, 409)
        self.assertEqual(poor.json()["code"], "insufficient_points")

        redeemed = self.client.post(f"/api/rewards/{reward_id}/redeem", json={"user_id": "u1"})
        self.assertEqual(redeemed.status_code, 201, redeemed.text)
        redemption = redeemed.json()["redemption"]
        self.assertEqual(self._balance("u1"), 0)
        self.assertEqual(self._balance("biz1"), 15)
        self.assertEqual(
            self.client.get(f"/api/rewards/{reward_id}").json()["reward"]["claimed"], 1
        )

        validated = self.client.post(
            "/api/redemptions/validate",
            json={
                "code": redemption["qr_code"],
                "business_id": "biz1",
                "validated_by": "Sam",
            },
        )
        self.assertEqual(validated.status_code, 200, validated.text)
        self.assertEqual(validated.json()["redemption"]["status"], "USED")

        reused = self.client.post(
            "/api/redemptions/validate",
            json={
                "code": redemption["qr_code"],
                "business_id": "biz1",
                "validated_by": "Sam",
            },
        )
        self.assertEqual(reused.status_code, 409)

    def test_cancel_redemption_refunds_points(self):
        self._create_user("biz1", "Cafe Blue", role="BUSINESS")
        self._create_user("u1", "Ana")
        reward_id = self.client.post(
            "/api/rewards",
            json={"business_id": "biz1", "title": "Cookie", "points_cost": 10, "unlimited": True},
        ).json()["reward_id"]
        qr = self.client.get("/api/businesses/biz1/check-in-qr").json()["qr_data"]
        self.client.post("/api/check-ins/qr", json={"user_id": "u1", "qr_data": qr})

        redemption_id = self.client.post(
            f"/api/rewards/{reward_id}/redeem", json={"user_id": "u1"}
        ).json()["redemption_id"]
        cancelled = self.client.post(f"/api/redemptions/{redemption_id}/cancel")

        self.assertEqual(cancelled.status_code, 200, cancelled.text)
        self.assertEqual(cancelled.json()["redemption"]["status"], "CANCELLED")
        self.assertEqual(self._balance("u1"), 10)
        self.assertEqual(self._balance("biz1"), 5)

    def test_reward_patch_with_null_is_rejected(self):
        self._create_user("biz1", "Cafe Blue", role="BUSINESS")
        reward_id = self.client.post(
            "/api/rewards",
            json={"business_id": "biz1", "title": "Cookie", "points_cost": 10, "total_available": 4},
        ).json()["reward_id"]

        for body in ({"total_available": None}, {"points_cost": None}, {"expiry_days": None}):
            response = self.client.patch(f"/api/rewards/{reward_id}", json=body)
            self.assertEqual(response.status_code, 400, response.text)
            self.assertEqual(response.json()["code"], "validation_error")

        listed = self.client.get("/api/rewards")
        self.assertEqual(listed.status_code, 200, listed.text)
        self.assertEqual([r["reward_id"] for r in listed.json()["rewards"]], [reward_id])

    def test_gps_check_in_outside_radius_is_rejected(self):
        self._create_user("biz1", "Cafe Blue", role="BUSINESS", latitude=52.52, longitude=13.405)
        self._create_user("u1", "Ana")

        far = self.client.post(
            "/api/check-ins/gps",
            json={"user_id": "u1", "business_id": "biz1", "latitude": 52.53, "longitude": 13.405},
        )
        self.assertEqual(far.status_code, 400)
        self.assertEqual(far.json()["code"], "validation_error")

        near = self.client.post(
            "/api/check-ins/gps",
            json={"user_id": "u1", "business_id": "biz1", "latitude": 52.5201, "longitude": 13.405},
        )
        self.assertEqual(near.status_code, 201, near.text)
        self.assertEqual(near.json()["check_in"]["method"], "GPS")

    def test_notification_preferences_roundtrip(self):
        self._create_user("u1", "Ana")
        prefs = self.client.get("/api/users/u1/notification-preferences").json()["preferences"]
        self.assertTrue(prefs["categories"]["missions"]["push"])

        updated = self.client.put(
            "/api/users/u1/notification-preferences",
            json={
                "categories": {"missions": {"push": False}},
                "quiet_hours": {"enabled": True, "start_time": "23:00", "end_time": "07:00"},
            },
        )
        self.assertEqual(updated.status_code, 200, updated.text)
        body = updated.json()["preferences"]
        self.assertFalse(body["categories"]["missions"]["push"])
        self.assertTrue(body["categories"]["missions"]["in_app"])
        self.assertEqual(body["quiet_hours"]["start_time"], "23:00")

        unknown = self.client.put(
            "/api/users/u1/notification-preferences",
            json={"categories": {"weather": {"push": False}}},
        )
        self.assertEqual(unknown.status_code, 400)

    def test_booking_blocks_the_date(self):
        self._create_user("biz1", "Cafe Blue", role="BUSINESS")
        self._create_user("c1", "Cleo", role="CREATOR")
        booking_payload = {
            "business_id": "biz1",
            "creator_id": "c1",
            "package_id": "pkg-gold",
            "start_date": "2031-05-05",
            "package": {
                "name": "Gold",
                "tier": "gold",
                "price": 300,
                "delivery_days": 7,
            },
        }

        created = self.client.post("/api/bookings", json=booking_payload)
        self.assertEqual(created.status_code, 201, created.text)
        booking = created.json()["booking"]
        self.assertEqual(booking["deposit_amount"], 150)
        self.assertEqual(booking["delivery_date"], "2031-05-12")

        clash = self.client.post("/api/bookings", json=booking_payload)
        self.assertEqual(clash.status_code, 409)

        check = self.client.get("/api/creators/c1/availability/dates/2031-05-05").json()
        self.assertFalse(check["available"])

        booking_id = created.json()["booking_id"]
        skipped = self.client.post(f"/api/bookings/{booking_id}/start")
        self.assertEqual(skipped.status_code, 409)

        cancelled = self.client.post(
            f"/api/bookings/{booking_id}/cancel", json={"reason": "Plans changed"}
        )
        self.assertEqual(cancelled.json()["booking"]["status"], "CANCELLED")
        check = self.client.get("/api/creators/c1/availability/dates/2031-05-05").json()
        self.assertTrue(check["available"])

    def test_availability_range_and_settings(self):
        self.client.put(
            "/api/creators/c1/availability/dates/2031-01-02",
            json={"status": "UNAVAILABLE", "reason": "Travel"},
        )
        response = self.client.get(
            "/api/creators/c1/availability",
            params={"start": "2031-01-01", "end": "2031-01-04"},
        )
        self.assertEqual(response.status_code, 200, response.text)
        body = response.json()
        self.assertEqual(body["range"]["unavailable_dates"], ["2031-01-02"])
        self.assertEqual(body["availability_percentage"], 75.0)

        too_far = self.client.patch(
            "/api/creators/c1/availability/settings", json={"max_advance_booking_days": 400}
        )
        self.assertEqual(too_far.status_code, 422)

        settings = self.client.patch(
            "/api/creators/c1/availability/settings", json={"default_available": False}
        )
        self.assertFalse(settings.json()["settings"]["default_available"])

    def test_sign_upload_url(self):
        response = self.client.post(
            "/api/uploads/sign-url",
            json={"kind": "receipt", "user_id": "u1", "filename": "order.JPG"},
        )
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertTrue(payload["path"].startswith("receipts/u1/"))
        self.assertTrue(payload["path"].endswith(".jpg"))
        self.assertIn(payload["path"], payload["url"])

    def test_admin_sweep_run(self):
        response = self.client.post("/api/admin/sweeps/run")
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["errors"], [])
        self.assertEqual(payload["report"]["first_purchase_rewards"]["processed"], 0)


if __name__ == "__main__":
    unittest.main()
