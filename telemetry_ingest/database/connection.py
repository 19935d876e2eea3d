"""
Database connection and session management
"""

from typing import Generator

from sqlalchemy import BigInteger, Integer, create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from fastapi import Request
import structlog

from telemetry_ingest.core.config import Settings

logger = structlog.get_logger(__name__)

# Create base class for models
Base = declarative_base()

# SQLite only autoincrements INTEGER PRIMARY KEY columns
BigIntegerId = BigInteger().with_variant(Integer, "sqlite")


class Database:
    """Owns the process-wide engine (connection pool) and session factory"""

    def __init__(self, database_url: str, echo: bool = False, pool_size: int = 20):
        if database_url.startswith("sqlite"):
            engine_kwargs = {"connect_args": {"check_same_thread": False, "timeout": 30}}
        else:
            engine_kwargs = {
                "pool_pre_ping": True,
                "pool_recycle": 300,
                "pool_size": pool_size,
            }

        self.url = database_url
        self.engine = create_engine(database_url, echo=echo, **engine_kwargs)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(settings.database_url, echo=settings.debug, pool_size=settings.db_pool_size)

    def create_all(self) -> None:
        """Initialize database tables"""
        try:
            # Import all models to ensure they are registered
            from telemetry_ingest.models import raw_payload, telemetry, location, device_latest  # noqa

            Base.metadata.create_all(bind=self.engine)
            logger.info("Database tables created successfully")
        except Exception as e:
            logger.error("Failed to initialize database", error=str(e))
            raise

    def drop_all(self) -> None:
        from telemetry_ingest.models import raw_payload, telemetry, location, device_latest  # noqa

        Base.metadata.drop_all(bind=self.engine)
        logger.warning("Database tables dropped")

    def dispose(self) -> None:
        self.engine.dispose()


def get_database(request: Request) -> Generator[Session, None, None]:
    """FastAPI dependency yielding a session from the application's Database"""
    db = request.app.state.database.SessionLocal()
    try:
        yield db
    finally:
        db.close()
