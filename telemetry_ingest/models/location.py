"""
Normalized location reading model
"""

from sqlalchemy import Column, String, BigInteger, Integer, DateTime, Numeric, Text, Index
from sqlalchemy.sql import func
from telemetry_ingest.database.connection import Base, BigIntegerId


class Location(Base):
    """Append-only location history"""

    __tablename__ = "locations"

    id = Column(BigIntegerId, primary_key=True, autoincrement=True)
    device_imei = Column(String(15), nullable=False, index=True)
    device_id = Column(String(255), nullable=False)
    ts = Column(BigInteger, nullable=False)
    provider = Column(String(50), nullable=False, default="Tive")
    type = Column(String(50), nullable=False, default="Active")
    latitude = Column(Numeric(10, 8), nullable=False)
    longitude = Column(Numeric(11, 8), nullable=False)
    altitude = Column(Numeric(8, 2))
    location_accuracy = Column(Integer)
    location_accuracy_category = Column(String(10))  # High, Medium, Low
    location_source = Column(String(50))
    address_street = Column(Text)
    address_locality = Column(String(255))
    address_state = Column(String(100))
    address_country = Column(String(100))
    address_postal_code = Column(String(20))
    address_full_address = Column(Text)
    battery_level = Column(Integer)
    cellular_dbm = Column(Numeric(6, 2))
    cellular_network_type = Column(String(50))
    cellular_operator = Column(String(100))
    wifi_access_points = Column(Integer)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_location_device_ts", "device_imei", "ts"),
    )

    def __repr__(self):
        return f"<Location(device_imei={self.device_imei}, ts={self.ts}, lat={self.latitude}, lon={self.longitude})>"
