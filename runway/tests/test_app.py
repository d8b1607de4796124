import unittest
from unittest.mock import patch

from runway.errors import EmailDeliveryError, StorageError, UpstreamServiceError
from runway.routes import GUIDE_FALLBACK_MESSAGE, GUIDE_SENT_MESSAGE
from runway.tests.helpers import ApiTestCase, FakeEmailClient


class EarlyAccessTests(ApiTestCase):
    def test_signup_then_duplicate(self):
        first = self.client.post(
            "/api/early-access", json={"email": "fan@example.com", "name": "Fan"}
        )
        self.assertEqual(first.status_code, 201)
        self.assertIn("notify you", first.json()["message"])

        second = self.client.post(
            "/api/early-access", json={"email": "fan@example.com"}
        )
        self.assertEqual(second.status_code, 200)
        self.assertIn("already registered", second.json()["message"])

        signups = self.client.get("/api/early-access").json()
        self.assertEqual(len(signups), 1)
        self.assertEqual(signups[0]["email"], "fan@example.com")
        self.assertIn("createdAt", signups[0])

    def test_invalid_email(self):
        response = self.client.post("/api/early-access", json={"email": "nope"})
        self.assertEqual(response.status_code, 400)
        self.assertIn("email", response.json()["detail"])
        self.assertEqual(self.storage.list_early_access_signups(), [])


class ProfileTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.user = self.register("alice")

    def test_requires_login(self):
        response = self.new_client().get("/api/profile")
        self.assertEqual(response.status_code, 401)

    def test_create_then_update(self):
        self.assertEqual(self.client.get("/api/profile").status_code, 404)

        created = self.client.post(
            "/api/profile",
            json={"goal": "Miss Texas", "goalDueDate": "2026-08-01T00:00:00Z"},
        )
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.json()["goal"], "Miss Texas")
        self.assertEqual(created.json()["userId"], self.user["id"])
        self.assertEqual(created.json()["galleryImages"], [])

        updated = self.client.post(
            "/api/profile", json={"profileImageUrl": "https://cdn.test/me.png"}
        )
        self.assertEqual(updated.status_code, 200)
        self.assertEqual(updated.json()["id"], created.json()["id"])
        self.assertEqual(updated.json()["goal"], "Miss Texas")
        self.assertEqual(updated.json()["profileImageUrl"], "https://cdn.test/me.png")

        fetched = self.client.get("/api/profile").json()
        self.assertEqual(fetched["profileImageUrl"], "https://cdn.test/me.png")

    def test_body_user_id_ignored(self):
        bob_client = self.new_client()
        bob = self.register("bob", client=bob_client)
        response = bob_client.post(
            "/api/profile", json={"goal": "Poise", "userId": self.user["id"]}
        )
        self.assertEqual(response.json()["userId"], bob["id"])
        self.assertEqual(self.client.get("/api/profile").status_code, 404)

    def test_gallery(self):
        added = self.client.post("/api/gallery", json={"imageUrl": "a.png"})
        self.assertEqual(added.status_code, 200)
        self.assertEqual(added.json(), {"galleryImages": ["a.png"]})
        self.client.post("/api/gallery", json={"imageUrl": "b.png"})

        removed = self.client.request("DELETE", "/api/gallery", json={"imageUrl": "a.png"})
        self.assertEqual(removed.json(), {"galleryImages": ["b.png"]})
        self.assertEqual(self.client.get("/api/profile").json()["galleryImages"], ["b.png"])

    def test_gallery_requires_image_url(self):
        response = self.client.post("/api/gallery", json={})
        self.assertEqual(response.status_code, 400)


class TrackingSettingsTests(ApiTestCase):
    def test_save_and_fetch(self):
        self.register("alice")
        self.assertEqual(self.client.get("/api/tracking-settings").status_code, 404)

        created = self.client.post(
            "/api/tracking-settings",
            json={"shoulderWidthCalibration": 40.0, "preferredRoutines": ["walk"]},
        )
        self.assertEqual(created.status_code, 201)

        again = self.client.post(
            "/api/tracking-settings", json={"cameraSettings": {"zoom": 1.5}}
        )
        self.assertEqual(again.status_code, 201)
        body = self.client.get("/api/tracking-settings").json()
        self.assertEqual(body["id"], created.json()["id"])
        self.assertEqual(body["shoulderWidthCalibration"], 40.0)
        self.assertEqual(body["preferredRoutines"], ["walk"])
        self.assertEqual(body["cameraSettings"], {"zoom": 1.5})


class RecordingTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.user = self.register("alice")

    def test_save_counts_once(self):
        response = self.client.post(
            "/api/recordings", json={"fileUrl": "https://cdn.test/walk.webm"}
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["title"], "Untitled Recording")
        self.assertEqual(response.json()["userId"], self.user["id"])

        self.client.post(
            "/api/recordings",
            json={"fileUrl": "https://cdn.test/turn.webm", "title": "Turn"},
        )
        self.assertEqual(self.client.get("/api/user").json()["recordingsCount"], 2)
        self.assertEqual(len(self.client.get("/api/recordings").json()), 2)

    def test_only_owner_can_delete(self):
        recording = self.client.post(
            "/api/recordings", json={"fileUrl": "https://cdn.test/walk.webm"}
        ).json()

        other = self.new_client()
        self.register("bob", client=other)
        denied = other.delete(f"/api/recordings/{recording['id']}")
        self.assertEqual(denied.status_code, 404)
        self.assertEqual(
            denied.json()["detail"],
            "Recording not found or you don't have permission to delete it",
        )
        self.assertEqual(len(self.client.get("/api/recordings").json()), 1)

        deleted = self.client.delete(f"/api/recordings/{recording['id']}")
        self.assertEqual(deleted.status_code, 200)
        self.assertEqual(self.client.get("/api/recordings").json(), [])

    def test_non_numeric_id(self):
        response = self.client.delete("/api/recordings/abc")
        self.assertEqual(response.status_code, 400)

    def test_missing_file_url(self):
        response = self.client.post("/api/recordings", json={"title": "x"})
        self.assertEqual(response.status_code, 400)
        self.assertIn("fileUrl", response.json()["detail"])

    def test_storage_failure_is_500(self):
        with patch.object(
            self.storage, "get_recordings", side_effect=StorageError("connection refused")
        ):
            response = self.client.get("/api/recordings")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["detail"], "connection refused")


class ReferenceMoveTests(ApiTestCase):
    def test_upsert_and_lookup(self):
        move = {
            "moveId": 4,
            "name": "Hip pop",
            "category": "poses",
            "imageUrl": "https://cdn.test/hip.png",
            "jointAngles": {"left_hip": 160.0},
        }
        first = self.client.post("/api/reference-moves", json=move)
        self.assertEqual(first.status_code, 200)

        move["name"] = "Hip pop (advanced)"
        second = self.client.post("/api/reference-moves", json=move)
        self.assertEqual(second.json()["id"], first.json()["id"])

        moves = self.client.get("/api/reference-moves").json()
        self.assertEqual(len(moves), 1)
        fetched = self.client.get("/api/reference-moves/4").json()
        self.assertEqual(fetched["name"], "Hip pop (advanced)")
        self.assertEqual(fetched["jointAngles"], {"left_hip": 160.0})

    def test_missing_move(self):
        response = self.client.get("/api/reference-moves/99")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["detail"], "Reference move not found")

    def test_invalid_body(self):
        response = self.client.post("/api/reference-moves", json={"moveId": 1})
        self.assertEqual(response.status_code, 400)


class CoachingTests(ApiTestCase):
    def test_chat(self):
        response = self.client.post("/api/ai-chat", json={"message": "How do I turn?"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["response"], self.coach.reply)
        self.assertEqual(self.coach.messages, ["How do I turn?"])

    def test_chat_failure(self):
        self.coach.error = UpstreamServiceError("quota exceeded")
        response = self.client.post("/api/ai-chat", json={"message": "Hi"})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["detail"], "Failed to get AI response")

    def test_chat_requires_message(self):
        response = self.client.post("/api/ai-chat", json={"message": ""})
        self.assertEqual(response.status_code, 400)

    def test_analyze_requires_login(self):
        response = self.client.post(
            "/api/analyze-response", json={"question": "Q", "response": "A"}
        )
        self.assertEqual(response.status_code, 401)

    def test_analyze_stamps_last_practice(self):
        user = self.register("alice")
        self.assertIsNone(user["lastPracticeDate"])
        response = self.client.post(
            "/api/analyze-response",
            json={"question": "Why pageants?", "response": "Service.", "timeTaken": 42},
        )
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["score"], 8)
        self.assertEqual(len(body["strengths"]), 2)
        self.assertIsNotNone(self.client.get("/api/user").json()["lastPracticeDate"])

    def test_analyze_clamps_fractional_score(self):
        self.register("alice")
        self.coach.feedback.score = 10.4
        response = self.client.post(
            "/api/analyze-response", json={"question": "Q", "response": "A"}
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["score"], 10)

    def test_analyze_failure_leaves_last_practice(self):
        self.register("alice")
        self.coach.error = UpstreamServiceError("bad json")
        response = self.client.post(
            "/api/analyze-response", json={"question": "Q", "response": "A"}
        )
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["detail"], "Failed to analyze response")
        self.assertIsNone(self.client.get("/api/user").json()["lastPracticeDate"])


class SendGuideTests(ApiTestCase):
    def statuses(self):
        return [r.status for r in reversed(self.storage.get_email_records())]

    def test_missing_email(self):
        response = self.client.post("/api/send-guide", json={})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "Email is required")
        self.assertEqual(self.storage.get_email_records(), [])

    def test_unconfigured_provider(self):
        response = self.client.post("/api/send-guide", json={"email": "fan@example.com"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["message"], GUIDE_FALLBACK_MESSAGE)
        self.assertEqual(self.statuses(), ["requested", "skipped"])

    def test_malformed_address_still_logged_as_skipped(self):
        response = self.client.post("/api/send-guide", json={"email": "not-an-email"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["message"], GUIDE_FALLBACK_MESSAGE)
        self.assertEqual(self.statuses(), ["requested", "skipped"])
        self.assertEqual(
            {r.email for r in self.storage.get_email_records()}, {"not-an-email"}
        )

    def test_sent(self):
        self.mailer = FakeEmailClient(response={"id": "email_42"})
        response = self.client.post("/api/send-guide", json={"email": "fan@example.com"})
        self.assertEqual(response.json()["message"], GUIDE_SENT_MESSAGE)
        self.assertEqual(self.statuses(), ["requested", "sent"])
        self.assertEqual(self.storage.get_email_records()[0].response_data, {"id": "email_42"})
        self.assertEqual(self.mailer.sent[0][0], "fan@example.com")

    def test_provider_rejection(self):
        self.mailer = FakeEmailClient(error=EmailDeliveryError("domain not verified"))
        response = self.client.post("/api/send-guide", json={"email": "fan@example.com"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["message"], GUIDE_FALLBACK_MESSAGE)
        self.assertEqual(self.statuses(), ["requested", "failed"])
        self.assertEqual(
            self.storage.get_email_records()[0].response_data,
            {"error": "domain not verified"},
        )

    def test_unexpected_error(self):
        self.mailer = FakeEmailClient(error=RuntimeError("boom"))
        response = self.client.post("/api/send-guide", json={"email": "fan@example.com"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.statuses(), ["requested", "error"])


class PageantTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.register("alice")

    def add(self, name, date, client=None):
        client = client or self.client
        return client.post(
            "/api/pageants", json={"name": name, "location": "Austin", "date": date}
        )

    def test_invalid_date(self):
        response = self.add("Miss State", "next tuesday")
        self.assertEqual(response.status_code, 400)
        self.assertIn("Invalid date", response.json()["detail"])

    def test_sorted_by_date(self):
        self.assertEqual(self.add("Miss State", "2026-09-01T10:00:00Z").status_code, 201)
        self.add("Miss City", "2026-06-01")
        names = [p["name"] for p in self.client.get("/api/pageants").json()]
        self.assertEqual(names, ["Miss City", "Miss State"])

    def test_delete(self):
        pageant = self.add("Miss State", "2026-09-01").json()

        missing = self.client.delete("/api/pageants/9999")
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.json()["detail"], "Pageant not found")

        other = self.new_client()
        self.register("bob", client=other)
        self.assertEqual(other.delete(f"/api/pageants/{pageant['id']}").status_code, 404)
        self.assertEqual(len(self.client.get("/api/pageants").json()), 1)

        deleted = self.client.delete(f"/api/pageants/{pageant['id']}")
        self.assertEqual(deleted.status_code, 200)
        self.assertEqual(self.client.get("/api/pageants").json(), [])


if __name__ == "__main__":
    unittest.main()
