"""
Device latest state endpoints (dashboard read API)
"""

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse
from typing import Optional
import structlog

from telemetry_ingest.api.responses import error_response, success_response
from telemetry_ingest.core.exceptions import StorageError
from telemetry_ingest.schemas.device import DeviceLatestResponse, DeviceListResponse

logger = structlog.get_logger(__name__)
router = APIRouter()


def clamp_limit(limit: Optional[int], default: int, maximum: int) -> int:
    """Missing or non-positive limits fall back to the default; large ones are capped"""
    if limit is None or limit < 1:
        return default
    return min(limit, maximum)


@router.get("/devices")
def get_devices(request: Request, limit: Optional[int] = Query(None)):
    """Latest state per device, most recently updated first"""
    settings = request.app.state.settings
    storage = request.app.state.storage
    limit = clamp_limit(limit, settings.devices_default_limit, settings.devices_max_limit)

    try:
        rows = storage.list_latest(limit)
    except StorageError as e:
        logger.error("Error fetching devices", error=str(e))
        return JSONResponse(status_code=500, content=error_response("Internal server error", e.message))

    devices = [DeviceLatestResponse.model_validate(row) for row in rows]
    data = DeviceListResponse(count=len(devices), devices=devices)
    return success_response(data.model_dump(mode="json"))
