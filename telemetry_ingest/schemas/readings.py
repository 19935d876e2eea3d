"""
Normalized reading Pydantic schemas (PAXAFE sensor and location formats)
"""

from pydantic import BaseModel, Field
from typing import Literal, Optional

AccuracyCategory = Literal["High", "Medium", "Low"]


class Accelerometer(BaseModel):
    x: Optional[float] = None
    y: Optional[float] = None
    z: Optional[float] = None
    magnitude: Optional[float] = None


class Address(BaseModel):
    street: Optional[str] = None
    locality: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None
    full_address: Optional[str] = None


class SensorReading(BaseModel):
    """One normalized sensor observation"""
    device_id: str = Field(..., description="Provider device name")
    device_imei: str = Field(..., description="15-digit device IMEI")
    timestamp: int = Field(..., description="Device event time, epoch milliseconds")
    provider: str = "Tive"
    type: str = "Active"
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    light_level: Optional[float] = None
    accelerometer: Optional[Accelerometer] = None


class LocationReading(BaseModel):
    """One normalized location observation"""
    device_id: str
    device_imei: str
    timestamp: int
    provider: str = "Tive"
    type: str = "Active"
    latitude: float
    longitude: float
    altitude: Optional[float] = None
    location_accuracy: Optional[int] = None
    location_accuracy_category: Optional[AccuracyCategory] = None
    location_source: Optional[str] = None
    address: Optional[Address] = None
    battery_level: Optional[int] = None
    cellular_dbm: Optional[float] = None
    cellular_network_type: Optional[str] = None
    cellular_operator: Optional[str] = None
    wifi_access_points: Optional[int] = None
