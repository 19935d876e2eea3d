# Models package
from .raw_payload import RawPayload
from .telemetry import Telemetry
from .location import Location
from .device_latest import DeviceLatest

__all__ = ['RawPayload', 'Telemetry', 'Location', 'DeviceLatest']
