#!/usr/bin/env python3
"""
Initialize the database schema

Usage:
    python scripts/init_db.py            create missing tables
    python scripts/init_db.py --reset    drop every table and recreate (destroys data)
"""

import argparse
import os
import sys

# Add the project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from telemetry_ingest.core.config import settings
from telemetry_ingest.core.logging_config import configure_logging
from telemetry_ingest.database.connection import Database


def init_database(database: Database, reset: bool = False) -> None:
    if reset:
        database.drop_all()
        print("✅ Existing tables dropped")

    database.create_all()
    print("✅ Tables ready: raw_webhook_payloads, telemetry, locations, device_latest")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create the telemetry ingestion schema")
    parser.add_argument("--reset", action="store_true", help="drop all tables before creating them")
    parser.add_argument("--database-url", default=None, help="override DATABASE_URL")
    args = parser.parse_args(argv)

    configure_logging(settings.log_level)
    database = Database(args.database_url or settings.database_url)
    try:
        init_database(database, reset=args.reset)
    except Exception as e:
        print(f"❌ Error initializing database: {e}")
        return 1
    finally:
        database.dispose()

    print("\n🎉 Database initialization complete!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
