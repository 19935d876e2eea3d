"""
Tive webhook payload Pydantic schemas

Field names follow the provider's PascalCase document. Only the fields the
pipeline reads are declared; everything else is kept as extra data so the
original document can be re-serialized for the async task.
"""

from pydantic import BaseModel, ConfigDict
from typing import Optional, Union


class _TiveModel(BaseModel):
    model_config = ConfigDict(extra="allow")


class TiveTemperature(_TiveModel):
    Celsius: float
    Fahrenheit: Optional[float] = None


class TiveHumidity(_TiveModel):
    Percentage: Optional[float] = None


class TiveLight(_TiveModel):
    Lux: Optional[float] = None


class TiveAccelerometer(_TiveModel):
    G: Optional[float] = None
    X: Optional[float] = None
    Y: Optional[float] = None
    Z: Optional[float] = None


class TiveBattery(_TiveModel):
    Percentage: Optional[float] = None
    Estimation: Optional[str] = None
    IsCharging: Optional[bool] = None


class TiveCellular(_TiveModel):
    SignalStrength: Optional[str] = None
    Dbm: Optional[float] = None


class TiveAccuracy(_TiveModel):
    Meters: Optional[float] = None
    Kilometers: Optional[float] = None
    Miles: Optional[float] = None


class TiveLocation(_TiveModel):
    Latitude: float
    Longitude: float
    FormattedAddress: Optional[str] = None
    LocationMethod: Optional[str] = None
    Accuracy: Optional[TiveAccuracy] = None
    GeolocationSourceName: Optional[str] = None
    CellTowerUsedCount: Optional[int] = None
    WifiAccessPointUsedCount: Optional[int] = None


class TivePayload(_TiveModel):
    """A webhook document that has passed validation"""

    DeviceId: str
    DeviceName: str
    EntryTimeEpoch: Union[int, float]
    EntryTimeUtc: Optional[str] = None
    Temperature: TiveTemperature
    Location: TiveLocation
    Humidity: Optional[TiveHumidity] = None
    Light: Optional[TiveLight] = None
    Accelerometer: Optional[TiveAccelerometer] = None
    Battery: Optional[TiveBattery] = None
    Cellular: Optional[TiveCellular] = None

    def to_document(self) -> dict:
        """Serialize back to the provider's JSON shape"""
        return self.model_dump(mode="json", exclude_unset=True)
