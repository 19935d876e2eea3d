"""
Device latest state model (one row per device, dashboard projection)
"""

from sqlalchemy import Column, String, BigInteger, Integer, DateTime, Numeric, Text, ForeignKey
from sqlalchemy.sql import func
from telemetry_ingest.database.connection import Base


class DeviceLatest(Base):
    """
    Latest accepted state per device.

    Snapshot columns are written synchronously by the webhook; the reading
    references are reconciled later by the normalization task.
    """

    __tablename__ = "device_latest"

    device_imei = Column(String(15), primary_key=True)
    device_id = Column(String(255), nullable=False)
    provider = Column(String(50), nullable=False, default="Tive", index=True)
    last_ts = Column(BigInteger, nullable=False)

    # Sensor snapshot
    last_temperature = Column(Numeric(5, 2))
    last_humidity = Column(Numeric(4, 1))
    last_light_level = Column(Numeric(8, 1))
    last_accelerometer_x = Column(Numeric(6, 3))
    last_accelerometer_y = Column(Numeric(6, 3))
    last_accelerometer_z = Column(Numeric(6, 3))
    last_accelerometer_magnitude = Column(Numeric(6, 3))

    # Location snapshot
    last_lat = Column(Numeric(10, 8))
    last_lon = Column(Numeric(11, 8))
    last_altitude = Column(Numeric(8, 2))
    location_accuracy = Column(Integer)
    location_accuracy_category = Column(String(10))
    location_source = Column(String(50))
    address_street = Column(Text)
    address_locality = Column(String(255))
    address_state = Column(String(100))
    address_country = Column(String(100))
    address_postal_code = Column(String(20))
    address_full_address = Column(Text)

    # Device status snapshot
    battery_level = Column(Integer)
    cellular_dbm = Column(Numeric(6, 2))
    cellular_network_type = Column(String(50))
    cellular_operator = Column(String(100))
    wifi_access_points = Column(Integer)

    # Weak references to the readings behind the snapshot
    latest_telemetry_id = Column(BigInteger, ForeignKey("telemetry.id", ondelete="SET NULL"))
    latest_location_id = Column(BigInteger, ForeignKey("locations.id", ondelete="SET NULL"))

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    def __repr__(self):
        return f"<DeviceLatest(device_imei={self.device_imei}, last_ts={self.last_ts}, updated_at={self.updated_at})>"
