import copy
import os
import sys
import time
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from telemetry_ingest.core.config import Settings
from telemetry_ingest.database.connection import Database
from telemetry_ingest.database.storage import TelemetryStorage
from telemetry_ingest.dispatch.local import LocalDispatcher
from telemetry_ingest.main import create_app, mark_dead_letter_failed
from payloads import SAMPLE_PAYLOAD

API_KEY = "test-api-key"


def now_ms() -> int:
    return int(time.time() * 1000)


@pytest.fixture
def make_payload():
    """Factory for a valid Tive document with a current timestamp"""
    def _make(**overrides):
        payload = copy.deepcopy(SAMPLE_PAYLOAD)
        payload["EntryTimeEpoch"] = now_ms()
        payload.update(overrides)
        return payload
    return _make


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'telemetry.db'}",
        api_key=API_KEY,
        task_backoff_seconds=0,
        error_webhook_url=None,
    )


@pytest.fixture
def database(test_settings):
    db = Database(test_settings.database_url)
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def storage(database):
    return TelemetryStorage(database)


@pytest.fixture
def dispatcher(storage):
    """Inline dispatcher: tasks complete before send() returns"""
    return LocalDispatcher(
        max_attempts=2,
        backoff_seconds=0,
        synchronous=True,
        on_dead_letter=mark_dead_letter_failed(storage),
    )


@pytest.fixture
def notifier():
    return MagicMock()


@pytest.fixture
def app(test_settings, database, dispatcher, notifier):
    return create_app(test_settings, database=database, dispatcher=dispatcher, notifier=notifier)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers():
    return {"X-API-Key": API_KEY}
