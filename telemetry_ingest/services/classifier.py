"""
Critical event detection based on operating thresholds
"""

import math
from typing import List

from pydantic import BaseModel

from telemetry_ingest.schemas.tive import TivePayload

TEMPERATURE_MIN = -20.0   # cold chain minimum, C
TEMPERATURE_MAX = 30.0    # cold chain maximum, C
HUMIDITY_MIN = 20.0
HUMIDITY_MAX = 80.0
BATTERY_MIN = 20.0
CELLULAR_DBM_MIN = -120.0
ACCELEROMETER_MAX_G = 2.0


class CriticalEventResult(BaseModel):
    is_critical: bool
    reasons: List[str] = []


def _magnitude(payload: TivePayload):
    accel = payload.Accelerometer
    if accel is None:
        return None
    if accel.X is not None and accel.Y is not None and accel.Z is not None:
        return math.sqrt(accel.X ** 2 + accel.Y ** 2 + accel.Z ** 2)
    return accel.G


def classify(payload: TivePayload) -> CriticalEventResult:
    """Flag values outside normal operating ranges. Absent fields are skipped."""
    reasons: List[str] = []

    celsius = payload.Temperature.Celsius
    if celsius is not None:
        if celsius < TEMPERATURE_MIN:
            reasons.append(f"Temperature too low: {celsius}°C (min: {TEMPERATURE_MIN:g}°C)")
        elif celsius > TEMPERATURE_MAX:
            reasons.append(f"Temperature too high: {celsius}°C (max: {TEMPERATURE_MAX:g}°C)")

    humidity = payload.Humidity.Percentage if payload.Humidity else None
    if humidity is not None:
        if humidity < HUMIDITY_MIN:
            reasons.append(f"Humidity too low: {humidity}% (min: {HUMIDITY_MIN:g}%)")
        elif humidity > HUMIDITY_MAX:
            reasons.append(f"Humidity too high: {humidity}% (max: {HUMIDITY_MAX:g}%)")

    battery = payload.Battery.Percentage if payload.Battery else None
    if battery is not None and battery < BATTERY_MIN:
        reasons.append(f"Low battery: {battery}% (min: {BATTERY_MIN:g}%)")

    dbm = payload.Cellular.Dbm if payload.Cellular else None
    if dbm is not None and dbm < CELLULAR_DBM_MIN:
        reasons.append(f"Poor cellular signal: {dbm} dBm (min: {CELLULAR_DBM_MIN:g} dBm)")

    magnitude = _magnitude(payload)
    if magnitude is not None and magnitude > ACCELEROMETER_MAX_G:
        reasons.append(f"High movement detected: {magnitude:.2f}g (max: {ACCELEROMETER_MAX_G:g}g)")

    return CriticalEventResult(is_critical=bool(reasons), reasons=reasons)
