from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import JSONResponse

from homework_scanner.bootstrap import ScannerServices
from homework_scanner.core.schema import ScanResponse
from homework_scanner.domain import CaptureSession, ErrorKind
from homework_scanner.infrastructure.identity import Identity

from .deps import get_identity, get_services

router = APIRouter(prefix="/scans", tags=["scans"])

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

FAILURE_STATUS: dict[ErrorKind, int] = {
    ErrorKind.PERMISSION_DENIED: 403,
    ErrorKind.DEVICE_UNAVAILABLE: 503,
    ErrorKind.CAPTURE_ERROR: 422,
    ErrorKind.NOT_AUTHENTICATED: 401,
    ErrorKind.PUBLISH_ERROR: 502,
    ErrorKind.INVALID_INPUT: 422,
    ErrorKind.MISCONFIGURED: 500,
    ErrorKind.INVALID_PROVIDER_RESPONSE: 502,
    ErrorKind.EXTRACTION_FAILED: 502,
    ErrorKind.NO_TEXT_DETECTED: 422,
    ErrorKind.CANCELLED: 504,
}


def _session_response(session: CaptureSession) -> JSONResponse:
    outcome = session.outcome
    failure = outcome.failure if outcome else None
    body = ScanResponse(
        text=outcome.text if outcome and outcome.ok else None,
        error=failure.message if failure else None,
        kind=failure.kind.value if failure else None,
        state=session.state.value,
        trace=session.trace.lines(),
    )
    status = FAILURE_STATUS.get(failure.kind, 500) if failure else 200
    return JSONResponse(status_code=status, content=body.model_dump(exclude_none=True))


@router.post("")
async def create_scan(
    file: UploadFile = File(...),
    identity: Identity = Depends(get_identity),
    services: ScannerServices = Depends(get_services),
) -> JSONResponse:
    """Run the recognition pipeline on a captured PNG frame."""
    try:
        frame = await file.read()
    finally:
        await file.close()

    if not frame:
        raise HTTPException(status_code=400, detail="Captured frame is empty")
    if not frame.startswith(PNG_SIGNATURE):
        raise HTTPException(status_code=415, detail="Captured frame must be a PNG image")

    session = await services.scan_service.submit_frame(identity, frame)
    if session is None:
        raise HTTPException(status_code=409, detail="A newer capture replaced this one")
    return _session_response(session)


@router.get("/current")
async def get_current_scan(
    identity: Identity = Depends(get_identity),
    services: ScannerServices = Depends(get_services),
) -> dict:
    session = services.scan_service.current(identity.user_id)
    if session is None:
        raise HTTPException(status_code=404, detail="no capture in progress")
    return session.snapshot()


@router.delete("/current")
async def retake_scan(
    identity: Identity = Depends(get_identity),
    services: ScannerServices = Depends(get_services),
) -> dict:
    discarded = services.scan_service.retake(identity.user_id)
    return {"discarded": discarded}
