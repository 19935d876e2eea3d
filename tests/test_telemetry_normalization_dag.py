import os
import sys
from unittest.mock import MagicMock, patch

import pytest

pytest.importorskip("airflow")

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'dags')))

import telemetry_normalization_dag as dag_module  # noqa: E402
from telemetry_ingest.schemas.tive import TivePayload  # noqa: E402
from telemetry_ingest.pipeline.normalizer import build_event  # noqa: E402


class FakeTaskInstance:
    def __init__(self):
        self.xcom = {}

    def xcom_pull(self, task_ids):
        return self.xcom[task_ids]


def test_dag_structure():
    dag = dag_module.dag
    assert dag.dag_id == "tive_telemetry_normalization"
    chain = ["transform_sensor", "transform_location", "save_normalized", "reconcile_device_latest", "mark_completed"]
    assert set(dag.task_ids) == set(chain)
    for upstream, downstream in zip(chain, chain[1:]):
        assert dag.get_task(upstream).downstream_task_ids == {downstream}
    assert dag.default_args["retries"] == 3


def test_tasks_normalize_a_payload(storage, make_payload):
    payload = TivePayload.model_validate(make_payload())
    raw_id = storage.store_raw_payload(payload.to_document())
    ti = FakeTaskInstance()
    dag_run = MagicMock()
    dag_run.conf = build_event(raw_id, payload)
    context = {"dag_run": dag_run, "ti": ti}

    with patch.object(dag_module, "get_storage", return_value=storage):
        ti.xcom["transform_sensor"] = dag_module.transform_sensor_task(**context)
        ti.xcom["transform_location"] = dag_module.transform_location_task(**context)
        ti.xcom["save_normalized"] = dag_module.save_normalized_task(**context)
        assert dag_module.reconcile_device_latest_task(**context) is True
        assert dag_module.mark_completed_task(**context) is True

    assert ti.xcom["transform_sensor"]["temperature"] == 10.08
    assert storage.get_raw_payload(raw_id).status == "completed"
    latest = storage.get_latest(payload.DeviceId)
    assert latest.latest_telemetry_id == ti.xcom["save_normalized"]["telemetry_id"]


def test_failure_callback_marks_payload_failed(storage, make_payload):
    raw_id = storage.store_raw_payload(make_payload())
    dag_run = MagicMock()
    dag_run.conf = {"raw_id": raw_id}

    with patch.object(dag_module, "get_storage", return_value=storage):
        dag_module.mark_failed_on_failure({"dag_run": dag_run, "exception": RuntimeError("boom")})

    row = storage.get_raw_payload(raw_id)
    assert row.status == "failed"
    assert "boom" in row.processing_error
