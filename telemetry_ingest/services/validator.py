"""
Tive payload validation

Checks the raw webhook document field by field, collecting every problem
instead of stopping at the first one. A document that passes is parsed into
a ``TivePayload`` so nothing downstream touches the untyped dict.
"""

import math
import re
import time
from typing import Any, Dict, List, Optional

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from telemetry_ingest.core.config import Settings
from telemetry_ingest.schemas.tive import TivePayload
from telemetry_ingest.schemas.validation import FieldError, ValidationResult

DEVICE_ID_PATTERN = re.compile(r"[0-9]{15}")


class ValidationLimits(BaseModel):
    """Configurable bounds used by the validator"""
    max_timestamp_offset_ms: int = 365 * 24 * 60 * 60 * 1000
    temperature_min: float = -100.0
    temperature_max: float = 100.0
    humidity_min: float = 0.0
    humidity_max: float = 100.0
    battery_min: float = 0.0
    battery_max: float = 100.0
    cellular_dbm_min: float = -150.0
    cellular_dbm_max: float = -50.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "ValidationLimits":
        return cls(
            max_timestamp_offset_ms=settings.max_timestamp_offset_ms,
            temperature_min=settings.temperature_min,
            temperature_max=settings.temperature_max,
            cellular_dbm_min=settings.cellular_dbm_min,
            cellular_dbm_max=settings.cellular_dbm_max,
        )


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    # JSON integers are unbounded; math.isfinite would overflow on them
    return isinstance(value, int) or (isinstance(value, float) and math.isfinite(value))


def _fmt(value: float) -> str:
    return f"{value:g}"


def _child(payload: Dict[str, Any], key: str) -> Optional[Any]:
    """Return an optional nested field, or None when the parent is not an object"""
    parent = payload.get(key)
    if isinstance(parent, dict):
        return parent
    return None


def _check_device(payload: Dict[str, Any], errors: List[FieldError]) -> None:
    device_id = payload.get("DeviceId")
    if device_id is None or device_id == "":
        errors.append(FieldError(field="DeviceId", message="DeviceId is required"))
    elif not isinstance(device_id, str):
        errors.append(FieldError(field="DeviceId", message="DeviceId must be a string"))
    elif not DEVICE_ID_PATTERN.fullmatch(device_id):
        errors.append(FieldError(field="DeviceId", message="DeviceId must be exactly 15 digits"))

    device_name = payload.get("DeviceName")
    if device_name is None or device_name == "":
        errors.append(FieldError(field="DeviceName", message="DeviceName is required"))
    elif not isinstance(device_name, str):
        errors.append(FieldError(field="DeviceName", message="DeviceName must be a string"))


def _check_timestamp(payload: Dict[str, Any], limits: ValidationLimits, now_ms: int, errors: List[FieldError]) -> None:
    timestamp = payload.get("EntryTimeEpoch")
    if timestamp is None:
        errors.append(FieldError(field="EntryTimeEpoch", message="EntryTimeEpoch is required"))
        return
    if not _is_number(timestamp):
        errors.append(FieldError(field="EntryTimeEpoch", message="EntryTimeEpoch must be a number"))
        return

    if timestamp < 0:
        errors.append(FieldError(field="EntryTimeEpoch", message="Timestamp cannot be negative"))
    elif timestamp < now_ms - limits.max_timestamp_offset_ms:
        errors.append(FieldError(field="EntryTimeEpoch", message="Timestamp is too far in the past (more than 1 year)"))
    elif timestamp > now_ms + limits.max_timestamp_offset_ms:
        errors.append(FieldError(field="EntryTimeEpoch", message="Timestamp is in the future (more than 1 year ahead)"))


def _check_temperature(payload: Dict[str, Any], limits: ValidationLimits, errors: List[FieldError]) -> None:
    temperature = payload.get("Temperature")
    if temperature is None:
        errors.append(FieldError(field="Temperature", message="Temperature is required"))
        return
    if not isinstance(temperature, dict):
        errors.append(FieldError(field="Temperature", message="Temperature must be an object"))
        return

    celsius = temperature.get("Celsius")
    if celsius is None:
        errors.append(FieldError(field="Temperature.Celsius", message="Temperature.Celsius is required"))
    elif not _is_number(celsius):
        errors.append(FieldError(field="Temperature.Celsius", message="Temperature.Celsius must be a number"))
    elif celsius < limits.temperature_min or celsius > limits.temperature_max:
        errors.append(FieldError(
            field="Temperature.Celsius",
            message=f"Temperature.Celsius is outside reasonable range ({_fmt(limits.temperature_min)} to {_fmt(limits.temperature_max)})",
        ))


def _check_location(payload: Dict[str, Any], errors: List[FieldError]) -> None:
    location = payload.get("Location")
    if location is None:
        errors.append(FieldError(field="Location", message="Location is required"))
        return
    if not isinstance(location, dict):
        errors.append(FieldError(field="Location", message="Location must be an object"))
        return

    for name, bound in (("Latitude", 90), ("Longitude", 180)):
        field = f"Location.{name}"
        value = location.get(name)
        if value is None:
            errors.append(FieldError(field=field, message=f"{field} is required"))
        elif not _is_number(value):
            errors.append(FieldError(field=field, message=f"{field} must be a number"))
        elif value < -bound or value > bound:
            errors.append(FieldError(field=field, message=f"{name} must be between -{bound} and {bound}"))


def _check_optional_range(value: Any, field: str, low: float, high: float, errors: List[FieldError]) -> None:
    if value is None:
        return
    if not _is_number(value):
        errors.append(FieldError(field=field, message=f"{field} must be a number"))
    elif value < low or value > high:
        errors.append(FieldError(field=field, message=f"{field} must be between {_fmt(low)} and {_fmt(high)}"))


def _typed_errors(exc: PydanticValidationError) -> List[FieldError]:
    errors = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"]) or "payload"
        errors.append(FieldError(field=field, message=f"{field}: {error['msg']}"))
    return errors


def validate_payload(
    payload: Any,
    limits: Optional[ValidationLimits] = None,
    now_ms: Optional[int] = None,
) -> ValidationResult:
    """
    Validate a raw Tive webhook document.

    Never raises. A non-object document is checked as an empty one, so every
    required field is reported missing.
    """
    limits = limits or ValidationLimits()
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    document = payload if isinstance(payload, dict) else {}
    errors: List[FieldError] = []

    _check_device(document, errors)
    _check_timestamp(document, limits, now_ms, errors)
    _check_temperature(document, limits, errors)
    _check_location(document, errors)

    humidity = _child(document, "Humidity")
    if humidity is not None:
        _check_optional_range(humidity.get("Percentage"), "Humidity.Percentage",
                              limits.humidity_min, limits.humidity_max, errors)

    battery = _child(document, "Battery")
    if battery is not None:
        _check_optional_range(battery.get("Percentage"), "Battery.Percentage",
                              limits.battery_min, limits.battery_max, errors)

    cellular = _child(document, "Cellular")
    if cellular is not None:
        _check_optional_range(cellular.get("Dbm"), "Cellular.Dbm",
                              limits.cellular_dbm_min, limits.cellular_dbm_max, errors)

    if errors:
        return ValidationResult(valid=False, errors=errors)

    try:
        typed = TivePayload.model_validate(document)
    except PydanticValidationError as exc:
        return ValidationResult(valid=False, errors=_typed_errors(exc))

    return ValidationResult(valid=True, errors=[], payload=typed)
