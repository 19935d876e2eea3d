import os
import sys

from sqlalchemy import inspect

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'scripts')))

import init_db  # noqa: E402
from telemetry_ingest.core.config import Settings  # noqa: E402
from telemetry_ingest.database.connection import Database  # noqa: E402


def test_settings_build_postgres_url():
    settings = Settings(db_host="db", db_port="5433", db_name="tel", db_user="u", db_password="p", database_url="")
    assert settings.database_url == "postgresql://u:p@db:5433/tel"


def test_settings_keep_explicit_url():
    assert Settings(database_url="sqlite:///x.db").database_url == "sqlite:///x.db"


def test_init_and_reset(tmp_path):
    url = f"sqlite:///{tmp_path / 'init.db'}"

    assert init_db.main(["--database-url", url]) == 0

    database = Database(url)
    tables = set(inspect(database.engine).get_table_names())
    assert {"raw_webhook_payloads", "telemetry", "locations", "device_latest"} <= tables

    with database.engine.begin() as conn:
        conn.exec_driver_sql("INSERT INTO raw_webhook_payloads (payload, source, status) VALUES ('{}', 'Tive', 'pending')")
    database.dispose()

    assert init_db.main(["--database-url", url, "--reset"]) == 0

    database = Database(url)
    with database.engine.connect() as conn:
        assert conn.exec_driver_sql("SELECT COUNT(*) FROM raw_webhook_payloads").scalar() == 0
    database.dispose()
