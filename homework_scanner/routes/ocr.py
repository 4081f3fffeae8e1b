from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from homework_scanner.bootstrap import ScannerServices
from homework_scanner.core.schema import OCRRequest
from homework_scanner.domain import ErrorKind, ScanError, user_message_for

from .deps import get_services

router = APIRouter(prefix="/ocr", tags=["ocr"])

ERROR_STATUS: dict[ErrorKind, int] = {
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.MISCONFIGURED: 500,
    ErrorKind.INVALID_PROVIDER_RESPONSE: 500,
    ErrorKind.EXTRACTION_FAILED: 500,
    ErrorKind.NO_TEXT_DETECTED: 422,
}


@router.post("")
async def recognise_url(payload: OCRRequest, services: ScannerServices = Depends(get_services)) -> JSONResponse:
    """Extract text from an already published image URL."""
    try:
        result = await services.extractor.extract_text(payload.image_url or "")
    except ScanError as exc:
        content: dict[str, object] = {"error": exc.detail}
        if exc.kind is ErrorKind.MISCONFIGURED:
            content["error"] = user_message_for(exc.kind)
        if exc.payload is not None:
            content["details"] = exc.payload
        return JSONResponse(status_code=ERROR_STATUS.get(exc.kind, 500), content=content)
    return JSONResponse({"text": result.text, "details": result.raw_payload})
