import unittest
from unittest.mock import MagicMock, patch

import requests

from runway.db import InMemoryStorage
from runway.errors import EmailDeliveryError, StorageError, UpstreamServiceError
from runway.mailer import (
    GUIDE_SOURCE,
    RESEND_API_URL,
    ResendEmailClient,
    send_tracked_email,
)
from runway.tests.helpers import FakeEmailClient


def fake_response(ok=True, status_code=200, body=None):
    response = MagicMock()
    response.ok = ok
    response.status_code = status_code
    response.json.return_value = body or {}
    return response


class ResendEmailClientTests(unittest.TestCase):
    def setUp(self):
        self.client = ResendEmailClient(api_key="re_test", sender="Runway <hi@runway.test>")

    @patch("runway.mailer.requests.post")
    def test_send(self, mock_post):
        mock_post.return_value = fake_response(body={"id": "email_1"})
        data = self.client.send("fan@example.com", "Hello", "<p>Hi</p>")

        self.assertEqual(data, {"id": "email_1"})
        args, kwargs = mock_post.call_args
        self.assertEqual(args[0], RESEND_API_URL)
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer re_test")
        self.assertEqual(kwargs["json"]["to"], ["fan@example.com"])
        self.assertEqual(kwargs["json"]["from"], "Runway <hi@runway.test>")

    @patch("runway.mailer.requests.post")
    def test_rejected(self, mock_post):
        mock_post.return_value = fake_response(
            ok=False, status_code=403, body={"message": "domain not verified"}
        )
        with self.assertRaisesRegex(EmailDeliveryError, "domain not verified"):
            self.client.send("fan@example.com", "Hello", "<p>Hi</p>")

    @patch("runway.mailer.requests.post")
    def test_unreachable(self, mock_post):
        mock_post.side_effect = requests.ConnectionError("dns failure")
        with self.assertRaises(UpstreamServiceError) as ctx:
            self.client.send("fan@example.com", "Hello", "<p>Hi</p>")
        self.assertNotIsInstance(ctx.exception, EmailDeliveryError)


class SendTrackedEmailTests(unittest.TestCase):
    def setUp(self):
        self.storage = InMemoryStorage()

    def send(self, client, **kwargs):
        return send_tracked_email(
            self.storage,
            client,
            email="fan@example.com",
            subject="Guide",
            html="<p>Guide</p>",
            source=GUIDE_SOURCE,
            **kwargs,
        )

    def statuses(self):
        return [r.status for r in reversed(self.storage.get_email_records())]

    def test_missing_provider_raises_after_logging(self):
        with self.assertRaises(UpstreamServiceError):
            self.send(None)
        self.assertEqual(self.statuses(), ["requested", "skipped"])

    def test_missing_provider_downgraded(self):
        self.assertEqual(self.send(None, downgrade_errors=True), "skipped")

    def test_rejection_reraised(self):
        with self.assertRaises(EmailDeliveryError):
            self.send(FakeEmailClient(error=EmailDeliveryError("bounced")))
        self.assertEqual(self.statuses(), ["requested", "failed"])

    def test_records_carry_source(self):
        self.assertEqual(self.send(FakeEmailClient()), "sent")
        records = self.storage.get_email_records()
        self.assertEqual({r.source for r in records}, {GUIDE_SOURCE})
        self.assertIn("timestamp", records[-1].response_data)

    def test_audit_failure_does_not_block_delivery(self):
        storage = MagicMock()
        storage.save_email_record.side_effect = StorageError("disk full")
        client = FakeEmailClient()
        status = send_tracked_email(
            storage,
            client,
            email="fan@example.com",
            subject="Guide",
            html="<p>Guide</p>",
            source=GUIDE_SOURCE,
        )
        self.assertEqual(status, "sent")
        self.assertEqual(len(client.sent), 1)
        self.assertEqual(storage.save_email_record.call_count, 2)


if __name__ == "__main__":
    unittest.main()
