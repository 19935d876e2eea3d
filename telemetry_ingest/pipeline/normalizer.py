"""
Asynchronous normalization of accepted webhook payloads

Runs once per ``webhook/tive.process`` event, possibly more than once for the
same event. Every step can be re-run safely:

1. transform-sensor        pure
2. transform-location      pure
3. save-normalized-data    appends one telemetry and one location row
4. update-device-latest    upsert; failure is logged, not retried
5. update-raw-status       marks the audit row completed; failure is logged

Failures in steps 1-3 propagate so the dispatcher retries the task. The same
step functions back the Airflow DAG.
"""

import time
from typing import Any, Dict, Optional, Tuple

import structlog

from telemetry_ingest.core.exceptions import StorageError, TransformationError
from telemetry_ingest.database.storage import TelemetryStorage
from telemetry_ingest.dispatch.base import MemoizedStepRunner, StepRunner
from telemetry_ingest.schemas.readings import LocationReading, SensorReading
from telemetry_ingest.schemas.tive import TivePayload
from telemetry_ingest.services.transformer import to_location_reading, to_sensor_reading

logger = structlog.get_logger(__name__)

EVENT_NAME = "webhook/tive.process"


def build_event(raw_id: int, payload: TivePayload) -> Dict[str, Any]:
    """Event data queued by the webhook for one accepted payload"""
    return {
        "raw_id": raw_id,
        "payload": payload.to_document(),
        "timestamp": int(time.time() * 1000),
    }


def transform_sensor(document: Dict[str, Any]) -> SensorReading:
    try:
        return to_sensor_reading(TivePayload.model_validate(document))
    except Exception as e:
        raise TransformationError(f"Sensor transformation failed: {e}", e) from e


def transform_location(document: Dict[str, Any]) -> LocationReading:
    try:
        return to_location_reading(TivePayload.model_validate(document))
    except Exception as e:
        raise TransformationError(f"Location transformation failed: {e}", e) from e


def save_normalized(storage: TelemetryStorage, sensor: SensorReading, location: LocationReading) -> Tuple[int, int]:
    return storage.save_readings(sensor, location)


def reconcile_device_latest(
    storage: TelemetryStorage,
    sensor: SensorReading,
    location: LocationReading,
    telemetry_id: int,
    location_id: int,
    raw_id: Optional[int] = None,
) -> bool:
    try:
        storage.update_latest_references(sensor, location, telemetry_id, location_id)
        return True
    except StorageError as e:
        logger.error("Failed to update device_latest (async)", error=str(e),
                     device_imei=sensor.device_imei, raw_id=raw_id)
        return False


def mark_completed(storage: TelemetryStorage, raw_id: int) -> bool:
    try:
        storage.update_raw_payload_status(raw_id, "completed")
        return True
    except StorageError as e:
        logger.error("Failed to update raw payload status", error=str(e), raw_id=raw_id)
        return False


class TelemetryNormalizer:
    """Dispatcher handler for ``webhook/tive.process``"""

    def __init__(self, storage: TelemetryStorage):
        self.storage = storage

    def __call__(self, event_data: Dict[str, Any], step: Optional[StepRunner] = None) -> Dict[str, Any]:
        step = step or MemoizedStepRunner()
        raw_id = event_data["raw_id"]
        document = event_data["payload"]

        sensor = step.run("transform-sensor", lambda: transform_sensor(document))
        location = step.run("transform-location", lambda: transform_location(document))

        telemetry_id, location_id = step.run(
            "save-normalized-data",
            lambda: save_normalized(self.storage, sensor, location),
        )

        step.run(
            "update-device-latest",
            lambda: reconcile_device_latest(self.storage, sensor, location, telemetry_id, location_id, raw_id),
        )
        step.run("update-raw-status", lambda: mark_completed(self.storage, raw_id))

        logger.info("Payload normalized", raw_id=raw_id, device_imei=sensor.device_imei,
                    telemetry_id=telemetry_id, location_id=location_id)

        return {
            "success": True,
            "raw_id": raw_id,
            "device_imei": sensor.device_imei,
            "timestamp": sensor.timestamp,
        }
