"""
Signed error notifications back to the telemetry provider

Only validation failures are reported; those are for the provider to fix.
Delivery is best-effort: ``notify`` logs failures and never raises.
"""

import hashlib
import hmac
import json
import time
from typing import List, Literal, Optional

import requests
import structlog
from pydantic import BaseModel

from telemetry_ingest.core.config import Settings
from telemetry_ingest.core.exceptions import NotificationError
from telemetry_ingest.schemas.validation import FieldError

logger = structlog.get_logger(__name__)

SIGNATURE_HEADER = "X-Paxafe-Signature"
TIMESTAMP_HEADER = "X-Paxafe-Timestamp"


class ErrorNotification(BaseModel):
    payload_id: Optional[str] = None
    device_id: Optional[str] = None
    timestamp: Optional[int] = None
    error_type: Literal["validation", "processing", "transformation"]
    errors: List[FieldError] = []
    retryable: bool = False
    received_at: int


def sign(body: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of the request body"""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


class ErrorNotifier:
    def __init__(self, url: Optional[str], secret: str = "", timeout: float = 5.0):
        self.url = url
        self.secret = secret
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "ErrorNotifier":
        return cls(
            url=settings.error_webhook_url,
            secret=settings.error_webhook_secret,
            timeout=settings.error_webhook_timeout,
        )

    def notify(self, notification: ErrorNotification) -> bool:
        """Send the notification; returns True when the sink accepted it"""
        if notification.error_type != "validation":
            return False

        if not self.url:
            logger.warning("Error webhook URL not configured, skipping notification",
                           payload_id=notification.payload_id)
            return False

        try:
            self.deliver(notification)
        except NotificationError as e:
            logger.error("Failed to notify provider", payload_id=notification.payload_id,
                         category=e.category.value, error=e.message)
            return False

        logger.info("Provider notified of validation error", payload_id=notification.payload_id,
                    device_id=notification.device_id)
        return True

    def deliver(self, notification: ErrorNotification) -> None:
        """POST the signed notification, raising NotificationError on any failure"""
        body = json.dumps(notification.model_dump(mode="json")).encode("utf-8")
        headers = {
            "Content-Type": "application/json",
            SIGNATURE_HEADER: sign(body, self.secret),
            TIMESTAMP_HEADER: str(int(time.time() * 1000)),
        }

        try:
            response = requests.post(self.url, data=body, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise NotificationError(f"Error webhook unreachable: {e}", e) from e

        if not response.ok:
            raise NotificationError(f"Error webhook returned {response.status_code} {response.reason}")
