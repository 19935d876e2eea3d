"""
Configuration settings for the Tive telemetry ingestion service
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings"""

    # Database
    db_host: str = "postgres"
    db_port: str = "5432"
    db_name: str = "telemetry_db"
    db_user: str = "telemetry_user"
    db_password: str = "telemetry_password"
    database_url: str = ""
    db_pool_size: int = 20

    # API Settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    debug: bool = False

    # Webhook authentication and limits
    api_key: Optional[str] = None
    max_payload_bytes: int = 100 * 1024

    # Payload validation
    max_timestamp_offset_ms: int = 365 * 24 * 60 * 60 * 1000  # 1 year
    temperature_min: float = -100.0
    temperature_max: float = 100.0
    cellular_dbm_min: float = -150.0
    cellular_dbm_max: float = -50.0

    # Dashboard
    devices_default_limit: int = 100
    devices_max_limit: int = 1000

    # Task dispatch
    dispatcher_backend: str = "local"  # local, airflow
    task_max_attempts: int = 4  # first run + 3 retries
    task_backoff_seconds: float = 1.0
    task_workers: int = 4
    airflow_api_url: str = "http://airflow-webserver:8080"
    airflow_dag_id: str = "tive_telemetry_normalization"
    airflow_username: str = "airflow"
    airflow_password: str = "airflow"

    # Error notifications back to the provider
    error_webhook_url: Optional[str] = None
    error_webhook_secret: str = ""
    error_webhook_timeout: float = 5.0

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Build database_url from components unless given explicitly
        if not self.database_url:
            self.database_url = f"postgresql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"


# Global settings instance
settings = Settings()
