"""
Tive webhook endpoint
"""

from fastapi import APIRouter, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from telemetry_ingest.api.responses import error_response

router = APIRouter()


@router.post("/webhook/tive")
async def receive_tive_webhook(request: Request):
    """Validate, audit and queue one Tive telemetry payload"""
    body = await request.body()
    status_code, content = await run_in_threadpool(
        request.app.state.ingestor.handle, body, request.headers
    )
    return JSONResponse(status_code=status_code, content=content)


@router.get("/webhook/tive")
async def webhook_method_not_allowed():
    return JSONResponse(
        status_code=405,
        content=error_response("Method not allowed", "Only POST method is supported"),
        headers={"Allow": "POST"},
    )
