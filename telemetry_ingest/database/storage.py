"""
Storage layer: the only writer of raw payloads, readings and device_latest

Every public method runs in its own transaction. Nothing here spans the hot
path and the async task, so callers decide which failures are fatal.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import structlog
from sqlalchemy import desc, insert, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from telemetry_ingest.core.exceptions import StorageError
from telemetry_ingest.database.connection import Database
from telemetry_ingest.models import DeviceLatest, Location, RawPayload, Telemetry
from telemetry_ingest.schemas.readings import LocationReading, SensorReading

logger = structlog.get_logger(__name__)

PROVIDER_SOURCE = "Tive"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def telemetry_row(reading: SensorReading) -> Dict[str, Any]:
    accel = reading.accelerometer
    return {
        "device_id": reading.device_id,
        "device_imei": reading.device_imei,
        "ts": reading.timestamp,
        "provider": reading.provider,
        "type": reading.type,
        "temperature": reading.temperature,
        "humidity": reading.humidity,
        "light_level": reading.light_level,
        "accelerometer_x": accel.x if accel else None,
        "accelerometer_y": accel.y if accel else None,
        "accelerometer_z": accel.z if accel else None,
        "accelerometer_magnitude": accel.magnitude if accel else None,
    }


def location_row(reading: LocationReading) -> Dict[str, Any]:
    address = reading.address
    return {
        "device_id": reading.device_id,
        "device_imei": reading.device_imei,
        "ts": reading.timestamp,
        "provider": reading.provider,
        "type": reading.type,
        "latitude": reading.latitude,
        "longitude": reading.longitude,
        "altitude": reading.altitude,
        "location_accuracy": reading.location_accuracy,
        "location_accuracy_category": reading.location_accuracy_category,
        "location_source": reading.location_source,
        "address_street": address.street if address else None,
        "address_locality": address.locality if address else None,
        "address_state": address.state if address else None,
        "address_country": address.country if address else None,
        "address_postal_code": address.postal_code if address else None,
        "address_full_address": address.full_address if address else None,
        "battery_level": reading.battery_level,
        "cellular_dbm": reading.cellular_dbm,
        "cellular_network_type": reading.cellular_network_type,
        "cellular_operator": reading.cellular_operator,
        "wifi_access_points": reading.wifi_access_points,
    }


def snapshot_row(sensor: SensorReading, location: LocationReading) -> Dict[str, Any]:
    """Columns of device_latest that mirror the readings"""
    sensor_values = telemetry_row(sensor)
    location_values = location_row(location)
    return {
        "device_imei": sensor.device_imei,
        "device_id": sensor.device_id,
        "provider": sensor.provider,
        "last_ts": sensor.timestamp,
        "last_temperature": sensor_values["temperature"],
        "last_humidity": sensor_values["humidity"],
        "last_light_level": sensor_values["light_level"],
        "last_accelerometer_x": sensor_values["accelerometer_x"],
        "last_accelerometer_y": sensor_values["accelerometer_y"],
        "last_accelerometer_z": sensor_values["accelerometer_z"],
        "last_accelerometer_magnitude": sensor_values["accelerometer_magnitude"],
        "last_lat": location_values["latitude"],
        "last_lon": location_values["longitude"],
        "last_altitude": location_values["altitude"],
        "location_accuracy": location_values["location_accuracy"],
        "location_accuracy_category": location_values["location_accuracy_category"],
        "location_source": location_values["location_source"],
        "address_street": location_values["address_street"],
        "address_locality": location_values["address_locality"],
        "address_state": location_values["address_state"],
        "address_country": location_values["address_country"],
        "address_postal_code": location_values["address_postal_code"],
        "address_full_address": location_values["address_full_address"],
        "battery_level": location_values["battery_level"],
        "cellular_dbm": location_values["cellular_dbm"],
        "cellular_network_type": location_values["cellular_network_type"],
        "cellular_operator": location_values["cellular_operator"],
        "wifi_access_points": location_values["wifi_access_points"],
    }


class TelemetryStorage:
    """System of record for the four persisted entities"""

    def __init__(self, database: Database):
        self.database = database
        self._sessions: sessionmaker = database.SessionLocal

    def _upsert(self):
        dialect = self.database.engine.dialect.name
        if dialect == "postgresql":
            return postgresql.insert(DeviceLatest)
        if dialect == "sqlite":
            return sqlite.insert(DeviceLatest)
        raise StorageError(f"Upsert not supported for dialect {dialect}")

    # Raw payloads

    def store_raw_payload(
        self,
        payload: Any,
        status: str = "pending",
        validation_errors: Optional[List[Dict[str, str]]] = None,
        task_id: Optional[str] = None,
    ) -> int:
        """Insert the audit row and return its id"""
        try:
            with self._sessions.begin() as db:
                row = RawPayload(
                    payload=payload,
                    source=PROVIDER_SOURCE,
                    status=status,
                    validation_errors=validation_errors,
                    task_id=task_id,
                )
                db.add(row)
                db.flush()
                return row.id
        except SQLAlchemyError as e:
            logger.error("Error storing raw payload", error=str(e), status=status)
            raise StorageError(f"Failed to store raw payload: {e}", e) from e

    def update_raw_payload_status(self, payload_id: int, status: str, processing_error: Optional[str] = None) -> None:
        """Move an audit row to a new status; task_id is left untouched"""
        try:
            with self._sessions.begin() as db:
                result = db.execute(
                    update(RawPayload)
                    .where(RawPayload.id == payload_id)
                    .values(status=status, processing_error=processing_error, processed_at=_utcnow())
                )
        except SQLAlchemyError as e:
            logger.error("Error updating raw payload status", error=str(e), payload_id=payload_id, status=status)
            raise StorageError(f"Failed to update raw payload {payload_id}: {e}", e) from e

        if result.rowcount == 0:
            raise StorageError(f"Raw payload {payload_id} not found")

    def set_raw_payload_task_id(self, payload_id: int, task_id: str) -> None:
        try:
            with self._sessions.begin() as db:
                db.execute(update(RawPayload).where(RawPayload.id == payload_id).values(task_id=task_id))
        except SQLAlchemyError as e:
            logger.error("Error updating raw payload task_id", error=str(e), payload_id=payload_id, task_id=task_id)
            raise StorageError(f"Failed to set task id on raw payload {payload_id}: {e}", e) from e

    # Normalized readings

    def save_readings(self, sensor: SensorReading, location: LocationReading) -> Tuple[int, int]:
        """
        Append one telemetry row and one location row in a single transaction.

        There is no uniqueness on (device, ts): a redelivered task inserts
        a second pair of rows.
        """
        try:
            with self._sessions.begin() as db:
                telemetry_id = db.execute(
                    insert(Telemetry).values(**telemetry_row(sensor)).returning(Telemetry.id)
                ).scalar_one()
                location_id = db.execute(
                    insert(Location).values(**location_row(location)).returning(Location.id)
                ).scalar_one()
        except SQLAlchemyError as e:
            logger.error("Error saving normalized readings", error=str(e),
                         device_imei=sensor.device_imei, ts=sensor.timestamp)
            raise StorageError(f"Failed to save readings: {e}", e) from e

        return telemetry_id, location_id

    # Device latest state

    def upsert_latest_snapshot(self, sensor: SensorReading, location: LocationReading) -> None:
        """
        Write the critical-field snapshot for a device.

        Last write wins by commit order; the reading references are not touched.
        """
        values = snapshot_row(sensor, location)
        values["updated_at"] = _utcnow()
        stmt = self._upsert().values(**values)
        changed = {key: stmt.excluded[key] for key in values if key != "device_imei"}
        stmt = stmt.on_conflict_do_update(index_elements=[DeviceLatest.device_imei], set_=changed)

        try:
            with self._sessions.begin() as db:
                db.execute(stmt)
        except SQLAlchemyError as e:
            logger.error("Error updating device_latest snapshot", error=str(e),
                         device_imei=sensor.device_imei, ts=sensor.timestamp)
            raise StorageError(f"Failed to upsert device_latest for {sensor.device_imei}: {e}", e) from e

    def update_latest_references(
        self,
        sensor: SensorReading,
        location: LocationReading,
        telemetry_id: int,
        location_id: int,
    ) -> None:
        """
        Point device_latest at the given reading rows.

        An existing row only gets its references replaced. A missing row
        (the webhook's snapshot write failed) is created from the readings.
        """
        values = snapshot_row(sensor, location)
        values.update(
            latest_telemetry_id=telemetry_id,
            latest_location_id=location_id,
            updated_at=_utcnow(),
        )
        stmt = self._upsert().values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[DeviceLatest.device_imei],
            set_={
                "latest_telemetry_id": stmt.excluded.latest_telemetry_id,
                "latest_location_id": stmt.excluded.latest_location_id,
                "updated_at": stmt.excluded.updated_at,
            },
        )

        try:
            with self._sessions.begin() as db:
                db.execute(stmt)
        except SQLAlchemyError as e:
            logger.error("Error updating device_latest references", error=str(e),
                         device_imei=sensor.device_imei, telemetry_id=telemetry_id, location_id=location_id)
            raise StorageError(f"Failed to update references for {sensor.device_imei}: {e}", e) from e

    def list_latest(self, limit: int) -> List[DeviceLatest]:
        """Latest device states, most recently updated first"""
        try:
            with self._sessions() as db:
                return list(
                    db.query(DeviceLatest)
                    .order_by(desc(DeviceLatest.updated_at))
                    .limit(limit)
                    .all()
                )
        except SQLAlchemyError as e:
            logger.error("Error fetching device_latest", error=str(e), limit=limit)
            raise StorageError(f"Failed to list devices: {e}", e) from e

    def get_raw_payload(self, payload_id: int) -> Optional[RawPayload]:
        with self._sessions() as db:
            return db.get(RawPayload, payload_id)

    def get_latest(self, device_imei: str) -> Optional[DeviceLatest]:
        with self._sessions() as db:
            return db.get(DeviceLatest, device_imei)
