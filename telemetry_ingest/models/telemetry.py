"""
Normalized telemetry (sensor reading) model
"""

from sqlalchemy import Column, String, BigInteger, DateTime, Numeric, Index
from sqlalchemy.sql import func
from telemetry_ingest.database.connection import Base, BigIntegerId


class Telemetry(Base):
    """Append-only sensor history; duplicate (device, ts) rows are allowed"""

    __tablename__ = "telemetry"

    id = Column(BigIntegerId, primary_key=True, autoincrement=True)
    device_imei = Column(String(15), nullable=False, index=True)
    device_id = Column(String(255), nullable=False)
    ts = Column(BigInteger, nullable=False)
    provider = Column(String(50), nullable=False, default="Tive")
    type = Column(String(50), nullable=False, default="Active")
    temperature = Column(Numeric(5, 2))
    humidity = Column(Numeric(4, 1))
    light_level = Column(Numeric(8, 1))
    accelerometer_x = Column(Numeric(6, 3))
    accelerometer_y = Column(Numeric(6, 3))
    accelerometer_z = Column(Numeric(6, 3))
    accelerometer_magnitude = Column(Numeric(6, 3))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_telemetry_device_ts", "device_imei", "ts"),
    )

    def __repr__(self):
        return f"<Telemetry(device_imei={self.device_imei}, ts={self.ts}, temperature={self.temperature})>"
