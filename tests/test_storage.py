from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from telemetry_ingest.core.exceptions import StorageError
from telemetry_ingest.models import Location, Telemetry
from telemetry_ingest.schemas.tive import TivePayload
from telemetry_ingest.services.transformer import to_location_reading, to_sensor_reading


def readings(document):
    payload = TivePayload.model_validate(document)
    return to_sensor_reading(payload), to_location_reading(payload)


def count(storage, model):
    with storage.database.SessionLocal() as db:
        return db.query(model).count()


def test_store_raw_payload_pending(storage, make_payload):
    document = make_payload()
    payload_id = storage.store_raw_payload(document)

    row = storage.get_raw_payload(payload_id)
    assert row.status == "pending"
    assert row.source == "Tive"
    assert row.payload == document
    assert row.validation_errors is None
    assert row.processed_at is None
    assert row.created_at is not None


def test_store_raw_payload_failed_with_errors(storage):
    errors = [{"field": "DeviceId", "message": "DeviceId is required"}]
    payload_id = storage.store_raw_payload({"foo": "bar"}, status="failed", validation_errors=errors)

    row = storage.get_raw_payload(payload_id)
    assert row.status == "failed"
    assert row.validation_errors == errors


def test_raw_payload_ids_increase(storage, make_payload):
    first = storage.store_raw_payload(make_payload())
    second = storage.store_raw_payload(make_payload())
    assert second > first


def test_update_status_keeps_task_id(storage, make_payload):
    payload_id = storage.store_raw_payload(make_payload())
    storage.set_raw_payload_task_id(payload_id, "task-123")
    storage.update_raw_payload_status(payload_id, "failed", processing_error="boom")

    row = storage.get_raw_payload(payload_id)
    assert row.status == "failed"
    assert row.processing_error == "boom"
    assert row.task_id == "task-123"
    assert row.processed_at is not None


def test_update_status_of_unknown_row(storage):
    with pytest.raises(StorageError):
        storage.update_raw_payload_status(9999, "completed")


def test_save_readings_allows_duplicates(storage, make_payload):
    sensor, location = readings(make_payload())

    first = storage.save_readings(sensor, location)
    second = storage.save_readings(sensor, location)

    assert first != second
    assert count(storage, Telemetry) == 2
    assert count(storage, Location) == 2


def test_snapshot_upsert_creates_then_replaces(storage, make_payload):
    sensor, location = readings(make_payload())
    storage.upsert_latest_snapshot(sensor, location)

    latest = storage.get_latest("863257063350583")
    assert latest.device_id == "A571992"
    assert float(latest.last_temperature) == 10.08
    assert float(latest.last_lat) == pytest.approx(40.810562)
    assert latest.address_postal_code == "10474"
    assert latest.latest_telemetry_id is None

    document = make_payload(Temperature={"Celsius": 2.5})
    document["EntryTimeEpoch"] -= 60_000
    older_sensor, older_location = readings(document)
    storage.upsert_latest_snapshot(older_sensor, older_location)

    # arrival order wins, even for an older device timestamp
    latest = storage.get_latest("863257063350583")
    assert float(latest.last_temperature) == 2.5
    assert latest.last_ts == older_sensor.timestamp
    assert len(storage.list_latest(10)) == 1


def test_reference_update_only_touches_references(storage, make_payload):
    sensor, location = readings(make_payload())
    storage.upsert_latest_snapshot(sensor, location)

    newer_sensor, newer_location = readings(make_payload(Temperature={"Celsius": 25.0}))
    storage.upsert_latest_snapshot(newer_sensor, newer_location)

    telemetry_id, location_id = storage.save_readings(sensor, location)
    storage.update_latest_references(sensor, location, telemetry_id, location_id)

    latest = storage.get_latest(sensor.device_imei)
    assert float(latest.last_temperature) == 25.0
    assert latest.latest_telemetry_id == telemetry_id
    assert latest.latest_location_id == location_id


def test_reference_update_creates_missing_row(storage, make_payload):
    sensor, location = readings(make_payload())
    telemetry_id, location_id = storage.save_readings(sensor, location)

    storage.update_latest_references(sensor, location, telemetry_id, location_id)

    latest = storage.get_latest(sensor.device_imei)
    assert float(latest.last_temperature) == 10.08
    assert latest.latest_telemetry_id == telemetry_id


def test_list_latest_orders_and_limits(storage, make_payload):
    for index in range(3):
        device_id = f"86325706335058{index}"
        sensor, location = readings(make_payload(DeviceId=device_id, DeviceName=f"D{index}"))
        storage.upsert_latest_snapshot(sensor, location)

    rows = storage.list_latest(10)
    assert [row.device_imei for row in rows] == [
        "863257063350582", "863257063350581", "863257063350580"
    ]
    assert len(storage.list_latest(2)) == 2


def test_sqlalchemy_errors_become_storage_errors(storage, make_payload):
    error = OperationalError("INSERT", {}, Exception("database is locked"))
    with patch.object(storage.database.SessionLocal, "begin", side_effect=error):
        with pytest.raises(StorageError) as excinfo:
            storage.store_raw_payload(make_payload())

    assert excinfo.value.retryable
    assert isinstance(excinfo.value.original_error, OperationalError)
