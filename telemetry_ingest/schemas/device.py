"""
Device latest state Pydantic schemas
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


class DeviceLatestResponse(BaseModel):
    """Dashboard view of one device_latest row; decimals are rendered as floats"""
    device_imei: str = Field(..., description="15-digit device IMEI")
    device_id: str = Field(..., description="Provider device name")
    provider: str
    last_ts: int = Field(..., description="Device timestamp of the latest reading, epoch ms")

    last_temperature: Optional[float] = None
    last_humidity: Optional[float] = None
    last_light_level: Optional[float] = None
    last_accelerometer_x: Optional[float] = None
    last_accelerometer_y: Optional[float] = None
    last_accelerometer_z: Optional[float] = None
    last_accelerometer_magnitude: Optional[float] = None

    last_lat: Optional[float] = None
    last_lon: Optional[float] = None
    last_altitude: Optional[float] = None
    location_accuracy: Optional[int] = None
    location_accuracy_category: Optional[str] = None
    location_source: Optional[str] = None
    address_street: Optional[str] = None
    address_locality: Optional[str] = None
    address_state: Optional[str] = None
    address_country: Optional[str] = None
    address_postal_code: Optional[str] = None
    address_full_address: Optional[str] = None

    battery_level: Optional[int] = None
    cellular_dbm: Optional[float] = None
    cellular_network_type: Optional[str] = None
    cellular_operator: Optional[str] = None
    wifi_access_points: Optional[int] = None

    latest_telemetry_id: Optional[int] = None
    latest_location_id: Optional[int] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DeviceListResponse(BaseModel):
    """Payload of the devices endpoint"""
    count: int
    devices: List[DeviceLatestResponse]
