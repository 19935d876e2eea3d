"""
Webhook ingestion hot path

Answers the provider quickly while durably recording enough to never lose a
payload. States, in order:

    Received -> Authenticated -> SizeChecked -> Parsed -> Validated
             -> AuditStored -> (LatestStateUpdated) -> Dispatched -> Acknowledged

Only the audit write and the dispatch are fatal once a payload is valid;
transformation and the device_latest snapshot are best-effort.
"""

import hmac
import json
import re
import time
from typing import Any, Dict, Mapping, Optional, Tuple

import structlog

from telemetry_ingest.api.responses import error_response, success_response
from telemetry_ingest.core.config import Settings
from telemetry_ingest.core.exceptions import DispatchError, ErrorCategory, StorageError
from telemetry_ingest.database.storage import TelemetryStorage
from telemetry_ingest.dispatch.base import TaskDispatcher
from telemetry_ingest.notifications.error_notifier import ErrorNotification, ErrorNotifier
from telemetry_ingest.pipeline.normalizer import EVENT_NAME, build_event
from telemetry_ingest.services.classifier import classify
from telemetry_ingest.services.transformer import to_location_reading, to_sensor_reading
from telemetry_ingest.services.validator import ValidationLimits, validate_payload

logger = structlog.get_logger(__name__)

BEARER_PREFIX = re.compile(r"^Bearer\s+", re.IGNORECASE)

IngestResponse = Tuple[int, Dict[str, Any]]


def extract_api_key(headers: Mapping[str, str]) -> Optional[str]:
    """``X-Api-Key`` first, then ``Authorization: Bearer <key>``"""
    api_key = headers.get("x-api-key")
    if api_key:
        return api_key
    authorization = headers.get("authorization")
    if authorization and BEARER_PREFIX.match(authorization):
        return BEARER_PREFIX.sub("", authorization, count=1).strip()
    return None


def is_authorized(headers: Mapping[str, str], expected: Optional[str]) -> bool:
    if not expected:
        logger.warning("API key not configured, rejecting webhook")
        return False
    provided = extract_api_key(headers)
    if provided is None:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def _declared_length(headers: Mapping[str, str]) -> Optional[int]:
    value = headers.get("content-length")
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _now_ms() -> int:
    return int(time.time() * 1000)


class WebhookIngestor:
    """Runs one webhook call through the hot path and builds the HTTP response"""

    def __init__(
        self,
        settings: Settings,
        storage: TelemetryStorage,
        dispatcher: TaskDispatcher,
        notifier: ErrorNotifier,
    ):
        self.settings = settings
        self.storage = storage
        self.dispatcher = dispatcher
        self.notifier = notifier
        self.limits = ValidationLimits.from_settings(settings)

    def handle(self, body: bytes, headers: Mapping[str, str]) -> IngestResponse:
        """Return ``(status_code, envelope)``; never raises"""
        headers = {key.lower(): value for key, value in headers.items()}
        payload_id: Optional[int] = None

        try:
            if not is_authorized(headers, self.settings.api_key):
                return 401, error_response(
                    "Unauthorized",
                    "Invalid or missing API key. Provide API key via X-API-Key header or Authorization: Bearer <key>",
                )

            declared = _declared_length(headers)
            if (declared is not None and declared > self.settings.max_payload_bytes) \
                    or len(body) > self.settings.max_payload_bytes:
                logger.warning("Payload too large", size=declared if declared is not None else len(body),
                               limit=self.settings.max_payload_bytes)
                return 413, error_response(
                    "Payload too large",
                    f"Request body exceeds the maximum of {self.settings.max_payload_bytes} bytes",
                )

            try:
                document = json.loads(body)
            except ValueError:
                return 400, error_response("Invalid JSON", "Request body must be valid JSON")

            validation = validate_payload(document, self.limits)
            if not validation.valid:
                return self._reject(document, validation)

            payload = validation.payload

            try:
                payload_id = self.storage.store_raw_payload(document, status="pending")
            except StorageError as e:
                logger.error("Failed to store raw payload", error=str(e), category=e.category.value,
                             device_imei=payload.DeviceId)
                return 503, error_response("Database error", "Failed to store payload. Please retry.")

            critical = classify(payload)
            if critical.is_critical:
                logger.warning("Critical event detected", payload_id=payload_id,
                               device_imei=payload.DeviceId, reasons=critical.reasons)

            self._update_snapshot(payload, payload_id)

            try:
                sent = self.dispatcher.send(EVENT_NAME, build_event(payload_id, payload))
            except DispatchError as e:
                logger.error("Failed to queue payload", error=str(e), category=e.category.value,
                             retryable=e.retryable, payload_id=payload_id)
                self._mark_failed(payload_id, f"Dispatch failed: {e}")
                return 503, error_response(
                    "Processing error",
                    "Failed to queue payload for processing. Please retry.",
                    details={"payload_id": payload_id},
                )

            task_id = sent.task_ids[0] if sent.task_ids else None
            if task_id:
                try:
                    self.storage.set_raw_payload_task_id(payload_id, task_id)
                except StorageError as e:
                    logger.error("Failed to record task id", error=str(e), payload_id=payload_id, task_id=task_id)

            logger.info("Webhook accepted", payload_id=payload_id, device_imei=payload.DeviceId,
                        timestamp=payload.EntryTimeEpoch, task_id=task_id)

            return 200, success_response(
                {
                    "device_id": payload.DeviceName,
                    "device_imei": payload.DeviceId,
                    "timestamp": payload.EntryTimeEpoch,
                    "payload_id": payload_id,
                    "task_id": task_id,
                    "is_critical": critical.is_critical,
                    "critical_reasons": critical.reasons,
                },
                message="Payload received and queued for processing",
            )

        except Exception as e:
            logger.exception("Unexpected error processing webhook", error=str(e), payload_id=payload_id)
            return 500, error_response(
                "Internal server error",
                "Unexpected error processing webhook",
                details={"payload_id": payload_id} if payload_id is not None else None,
            )

    def _reject(self, document: Any, validation) -> IngestResponse:
        errors = validation.error_dicts()
        payload_id = None
        try:
            payload_id = self.storage.store_raw_payload(document, status="failed", validation_errors=errors)
        except StorageError as e:
            logger.error("Failed to store invalid payload", error=str(e))

        fields = document if isinstance(document, dict) else {}
        device_id = fields.get("DeviceId") or fields.get("DeviceName") or "unknown"
        timestamp = fields.get("EntryTimeEpoch")
        if not isinstance(timestamp, (int, float)) or isinstance(timestamp, bool):
            timestamp = _now_ms()

        try:
            self.notifier.notify(ErrorNotification(
                payload_id=str(payload_id) if payload_id is not None else "unknown",
                device_id=str(device_id),
                timestamp=int(timestamp),
                error_type="validation",
                errors=validation.errors,
                retryable=False,
                received_at=_now_ms(),
            ))
        except Exception as e:
            logger.error("Failed to notify provider", error=str(e), payload_id=payload_id)

        logger.info("Webhook rejected", payload_id=payload_id, category=ErrorCategory.VALIDATION.value,
                    error_count=len(errors))
        return 400, error_response(
            "Validation failed",
            "Payload failed validation",
            details={"errors": errors, "payload_id": payload_id},
        )

    def _update_snapshot(self, payload, payload_id: int) -> None:
        try:
            sensor = to_sensor_reading(payload)
            location = to_location_reading(payload)
        except Exception as e:
            logger.error("Failed to transform for device_latest", error=str(e), payload_id=payload_id)
            return

        try:
            self.storage.upsert_latest_snapshot(sensor, location)
        except StorageError as e:
            logger.error("Failed to update device_latest", error=str(e), payload_id=payload_id,
                         device_imei=sensor.device_imei)

    def _mark_failed(self, payload_id: int, reason: str) -> None:
        try:
            self.storage.update_raw_payload_status(payload_id, "failed", processing_error=reason)
        except StorageError as e:
            logger.error("Failed to update raw payload status", error=str(e), payload_id=payload_id)
