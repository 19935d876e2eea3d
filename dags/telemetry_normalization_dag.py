from airflow import DAG
from airflow.operators.python import PythonOperator
from datetime import datetime, timedelta
import os
import sys

import structlog

# Add the project root directory to the Python path
# In Airflow container, DAGs are in /opt/airflow/dags/
current_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(current_dir)
sys.path.insert(0, project_root)

from telemetry_ingest.core.config import settings
from telemetry_ingest.database.connection import Database
from telemetry_ingest.database.storage import TelemetryStorage
from telemetry_ingest.pipeline import normalizer
from telemetry_ingest.schemas.readings import LocationReading, SensorReading

logger = structlog.get_logger(__name__)

DAG_ID = settings.airflow_dag_id

_storage = None


def get_storage() -> TelemetryStorage:
    """One connection pool per worker process"""
    global _storage
    if _storage is None:
        _storage = TelemetryStorage(Database.from_settings(settings))
    return _storage


def _conf(context) -> dict:
    return context["dag_run"].conf or {}


def transform_sensor_task(**context):
    return normalizer.transform_sensor(_conf(context)["payload"]).model_dump(mode="json")


def transform_location_task(**context):
    return normalizer.transform_location(_conf(context)["payload"]).model_dump(mode="json")


def _readings(ti):
    sensor = SensorReading.model_validate(ti.xcom_pull(task_ids="transform_sensor"))
    location = LocationReading.model_validate(ti.xcom_pull(task_ids="transform_location"))
    return sensor, location


def save_normalized_task(**context):
    sensor, location = _readings(context["ti"])
    telemetry_id, location_id = normalizer.save_normalized(get_storage(), sensor, location)
    return {"telemetry_id": telemetry_id, "location_id": location_id}


def reconcile_device_latest_task(**context):
    ti = context["ti"]
    sensor, location = _readings(ti)
    ids = ti.xcom_pull(task_ids="save_normalized")
    return normalizer.reconcile_device_latest(
        get_storage(), sensor, location, ids["telemetry_id"], ids["location_id"], _conf(context).get("raw_id")
    )


def mark_completed_task(**context):
    return normalizer.mark_completed(get_storage(), _conf(context)["raw_id"])


def mark_failed_on_failure(context):
    """Task failure callback: record the error on the audit row once retries are exhausted"""
    raw_id = _conf(context).get("raw_id")
    if raw_id is None:
        return
    error = context.get("exception")
    try:
        get_storage().update_raw_payload_status(raw_id, "failed", processing_error=f"Normalization failed: {error}")
    except Exception as e:
        logger.error("Failed to mark raw payload failed", raw_id=raw_id, error=str(e))


default_args = {
    'owner': 'telemetry',
    'depends_on_past': False,
    'start_date': datetime(2024, 1, 1),
    'retries': 3,
    'retry_delay': timedelta(seconds=10),
    'retry_exponential_backoff': True,
    'on_failure_callback': mark_failed_on_failure,
}

with DAG(DAG_ID,
         default_args=default_args,
         description='Normalize accepted Tive webhook payloads',
         schedule=None,
         catchup=False) as dag:

    t1 = PythonOperator(
        task_id='transform_sensor',
        python_callable=transform_sensor_task
    )

    t2 = PythonOperator(
        task_id='transform_location',
        python_callable=transform_location_task
    )

    t3 = PythonOperator(
        task_id='save_normalized',
        python_callable=save_normalized_task
    )

    t4 = PythonOperator(
        task_id='reconcile_device_latest',
        python_callable=reconcile_device_latest_task
    )

    t5 = PythonOperator(
        task_id='mark_completed',
        python_callable=mark_completed_task
    )

    t1 >> t2 >> t3 >> t4 >> t5
