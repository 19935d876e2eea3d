"""
Transform validated Tive payloads into PAXAFE sensor and location readings
"""

import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from telemetry_ingest.schemas.readings import Accelerometer, Address, LocationReading, SensorReading
from telemetry_ingest.schemas.tive import TivePayload

PROVIDER_NAME = "Tive"
DEVICE_TYPE = "Active"

# Decimal places per field
PRECISION = {
    "temperature": 2,
    "humidity": 1,
    "light_level": 1,
    "accelerometer": 3,
    "cellular_dbm": 2,
}

HIGH_ACCURACY_METERS = 10
MEDIUM_ACCURACY_METERS = 100

_STATE_ZIP = re.compile(r"^([A-Z]{2})\s+(\d{5}(?:-\d{4})?)$")
_STATE_ONLY = re.compile(r"^([A-Z]{2})$")
_ZIP_ONLY = re.compile(r"^(\d{5}(?:-\d{4})?)$")
_EMBEDDED_ZIP = re.compile(r"\b(\d{5}(?:-\d{4})?)\b")


def round_half_away(value: Optional[float], places: int) -> Optional[float]:
    """Round to a fixed number of decimals, halves away from zero"""
    if value is None:
        return None
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def categorize_accuracy(meters: Optional[float]) -> Optional[str]:
    if meters is None:
        return None
    if meters <= HIGH_ACCURACY_METERS:
        return "High"
    if meters <= MEDIUM_ACCURACY_METERS:
        return "Medium"
    return "Low"


def normalize_location_source(method: Optional[str]) -> Optional[str]:
    if not method:
        return None
    source = method.lower()
    if source == "wifi":
        return "WiFi"
    if source == "gps":
        return "GPS"
    return source[0].upper() + source[1:]


def parse_address(formatted_address: Optional[str]) -> Address:
    """
    Split a provider formatted address into components.

    Example: "114 Hunts Point Market, Bronx, NY 10474, USA". This is a US-style
    heuristic; anything it cannot place is left as None and full_address is
    always kept verbatim.
    """
    if not formatted_address:
        return Address()

    parts = [part.strip() for part in formatted_address.split(",")]
    address = Address(full_address=formatted_address)

    address.street = parts[0] or None
    if len(parts) >= 2:
        address.locality = parts[1] or None

    if len(parts) >= 3:
        region = parts[2]
        match = _STATE_ZIP.match(region)
        if match:
            address.state, address.postal_code = match.group(1), match.group(2)
        elif _STATE_ONLY.match(region):
            address.state = region
        elif _ZIP_ONLY.match(region):
            address.postal_code = region

    if len(parts) >= 4:
        country = parts[-1] or None
        if country and address.postal_code is None:
            embedded = _EMBEDDED_ZIP.search(country)
            if embedded:
                address.postal_code = embedded.group(1)
                country = (country[:embedded.start()] + country[embedded.end():]).strip() or None
        address.country = country

    return address


def to_sensor_reading(payload: TivePayload) -> SensorReading:
    """Build the sensor reading. The payload must already be validated."""
    accelerometer = None
    if payload.Accelerometer is not None:
        places = PRECISION["accelerometer"]
        accelerometer = Accelerometer(
            x=round_half_away(payload.Accelerometer.X, places),
            y=round_half_away(payload.Accelerometer.Y, places),
            z=round_half_away(payload.Accelerometer.Z, places),
            magnitude=round_half_away(payload.Accelerometer.G, places),
        )

    return SensorReading(
        device_id=payload.DeviceName,
        device_imei=payload.DeviceId,
        timestamp=int(payload.EntryTimeEpoch),
        provider=PROVIDER_NAME,
        type=DEVICE_TYPE,
        temperature=round_half_away(payload.Temperature.Celsius, PRECISION["temperature"]),
        humidity=round_half_away(payload.Humidity.Percentage if payload.Humidity else None, PRECISION["humidity"]),
        light_level=round_half_away(payload.Light.Lux if payload.Light else None, PRECISION["light_level"]),
        accelerometer=accelerometer,
    )


def to_location_reading(payload: TivePayload) -> LocationReading:
    """Build the location reading. The payload must already be validated."""
    location = payload.Location
    meters = location.Accuracy.Meters if location.Accuracy else None
    battery = payload.Battery.Percentage if payload.Battery else None
    dbm = payload.Cellular.Dbm if payload.Cellular else None

    return LocationReading(
        device_id=payload.DeviceName,
        device_imei=payload.DeviceId,
        timestamp=int(payload.EntryTimeEpoch),
        provider=PROVIDER_NAME,
        type=DEVICE_TYPE,
        latitude=location.Latitude,
        longitude=location.Longitude,
        altitude=None,  # not reported by Tive
        location_accuracy=int(round_half_away(meters, 0)) if meters is not None else None,
        location_accuracy_category=categorize_accuracy(meters),
        location_source=normalize_location_source(location.LocationMethod),
        address=parse_address(location.FormattedAddress),
        battery_level=int(round_half_away(battery, 0)) if battery is not None else None,
        cellular_dbm=round_half_away(dbm, PRECISION["cellular_dbm"]),
        cellular_network_type=None,
        cellular_operator=None,
        wifi_access_points=location.WifiAccessPointUsedCount,
    )
