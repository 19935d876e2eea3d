import hashlib
import hmac
import json
import os
import sys
import unittest
from unittest.mock import patch

import requests

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from telemetry_ingest.core.exceptions import ErrorCategory, NotificationError
from telemetry_ingest.notifications.error_notifier import ErrorNotification, ErrorNotifier, sign
from telemetry_ingest.schemas.validation import FieldError


class TestErrorNotifier(unittest.TestCase):

    def setUp(self):
        self.notification = ErrorNotification(
            payload_id="12",
            device_id="863257063350583",
            timestamp=1739215646000,
            error_type="validation",
            errors=[FieldError(field="DeviceId", message="DeviceId must be exactly 15 digits")],
            retryable=False,
            received_at=1739215647000,
        )
        self.notifier = ErrorNotifier("https://tive.example/errors", secret="s3cret", timeout=2.0)

    @patch('telemetry_ingest.notifications.error_notifier.requests.post')
    def test_posts_signed_body(self, mock_post):
        mock_post.return_value.ok = True

        self.assertTrue(self.notifier.notify(self.notification))

        kwargs = mock_post.call_args[1]
        body = kwargs["data"]
        expected = hmac.new(b"s3cret", body, hashlib.sha256).hexdigest()
        self.assertEqual(kwargs["headers"]["X-Paxafe-Signature"], expected)
        self.assertTrue(kwargs["headers"]["X-Paxafe-Timestamp"].isdigit())
        self.assertEqual(kwargs["timeout"], 2.0)

        sent = json.loads(body)
        self.assertEqual(sent["payload_id"], "12")
        self.assertEqual(sent["errors"][0]["field"], "DeviceId")

    @patch('telemetry_ingest.notifications.error_notifier.requests.post')
    def test_only_validation_errors_are_sent(self, mock_post):
        notification = self.notification.model_copy(update={"error_type": "processing"})
        self.assertFalse(self.notifier.notify(notification))
        mock_post.assert_not_called()

    @patch('telemetry_ingest.notifications.error_notifier.requests.post')
    def test_skipped_without_url(self, mock_post):
        self.assertFalse(ErrorNotifier(None).notify(self.notification))
        mock_post.assert_not_called()

    @patch('telemetry_ingest.notifications.error_notifier.requests.post')
    def test_failures_are_swallowed(self, mock_post):
        mock_post.side_effect = requests.Timeout("slow")
        self.assertFalse(self.notifier.notify(self.notification))

        mock_post.side_effect = None
        mock_post.return_value.ok = False
        mock_post.return_value.status_code = 500
        self.assertFalse(self.notifier.notify(self.notification))

    @patch('telemetry_ingest.notifications.error_notifier.requests.post')
    def test_deliver_raises_notification_error(self, mock_post):
        mock_post.side_effect = requests.ConnectionError("refused")
        with self.assertRaises(NotificationError) as ctx:
            self.notifier.deliver(self.notification)
        self.assertEqual(ctx.exception.category, ErrorCategory.EXTERNAL)
        self.assertIsInstance(ctx.exception.original_error, requests.ConnectionError)

        mock_post.side_effect = None
        mock_post.return_value.ok = False
        mock_post.return_value.status_code = 502
        mock_post.return_value.reason = "Bad Gateway"
        with self.assertRaises(NotificationError):
            self.notifier.deliver(self.notification)

    def test_sign(self):
        self.assertEqual(sign(b"{}", "key"), hmac.new(b"key", b"{}", hashlib.sha256).hexdigest())


if __name__ == '__main__':
    unittest.main()
