"""Integration with the OCR.space parse API."""
from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlparse

import httpx
from pydantic import ValidationError

from homework_scanner.core.config import DEFAULT_OCR_ENDPOINT
from homework_scanner.core.schema import OCRSpaceResponse
from homework_scanner.domain import ExtractionResult
from homework_scanner.domain.errors import (
    ExtractionFailed,
    InvalidInput,
    InvalidProviderResponse,
    Misconfigured,
    NoTextDetected,
)
from homework_scanner.domain.sessions import OCR_SUCCESS_EXIT_CODE

logger = logging.getLogger(__name__)

RECOGNITION_OPTIONS: dict[str, str] = {
    "language": "eng",
    "isOverlayRequired": "false",
    "scale": "true",
    "isTable": "true",
}


def validate_address(address: str | None) -> str:
    """Return ``address`` if it is an absolute http(s) URL, else raise ``InvalidInput``."""

    if not address or not isinstance(address, str):
        raise InvalidInput("Image URL is required")
    candidate = address.strip()
    try:
        parsed = urlparse(candidate)
    except ValueError as exc:
        raise InvalidInput(f"Invalid image URL format: {address!r}") from exc
    if parsed.scheme not in {"http", "https"} or not parsed.netloc or any(ch.isspace() for ch in candidate):
        raise InvalidInput(f"Invalid image URL format: {address!r}")
    try:
        parsed.port
    except ValueError as exc:
        raise InvalidInput(f"Invalid image URL format: {address!r}") from exc
    return candidate


class OCRSpaceClient:
    """Client for the OCR.space ``parse/image`` endpoint.

    The API key is read at construction time. A client built without one stays
    usable as an object but refuses every extraction with ``Misconfigured``
    before touching the network.
    """

    def __init__(
        self,
        api_key: str | None,
        *,
        endpoint: str = DEFAULT_OCR_ENDPOINT,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        parsed = urlparse(endpoint)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError("endpoint must include scheme and host")

        self._api_key = api_key or None
        self._endpoint = endpoint
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None
        if self._api_key is None:
            logger.warning("OCR.space API key is not configured; text extraction is disabled")

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    @property
    def configured(self) -> bool:
        return self._api_key is not None

    def ensure_configured(self) -> None:
        if self._api_key is None:
            raise Misconfigured("OCR API key not configured")

    def _build_form(self, address: str) -> dict[str, str]:
        return {"apikey": self._api_key or "", "url": address, **RECOGNITION_OPTIONS}

    @staticmethod
    def _preview(text: str, limit: int = 500) -> str:
        return text[:limit] + ("..." if len(text) > limit else "")

    @staticmethod
    def _decode(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError as exc:
            raise InvalidProviderResponse(
                f"OCR service returned a non-JSON body (HTTP {response.status_code})"
            ) from exc
        if not isinstance(body, dict):
            raise InvalidProviderResponse(
                f"OCR service returned {type(body).__name__} instead of an object (HTTP {response.status_code})",
                payload=body,
            )
        return body

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    async def extract_text(self, address: str) -> ExtractionResult:
        address = validate_address(address)
        self.ensure_configured()

        logger.debug("Submitting %s to OCR.space", address)
        try:
            response = await self._client.post(self._endpoint, data=self._build_form(address))
        except httpx.HTTPError as exc:
            raise InvalidProviderResponse(f"No response from OCR service: {exc}") from exc

        logger.debug("OCR.space responded %s: %s", response.status_code, self._preview(response.text))
        body = self._decode(response)
        try:
            parsed = OCRSpaceResponse.model_validate(body)
        except ValidationError as exc:
            raise InvalidProviderResponse(
                f"OCR service response did not match the expected shape: {exc.error_count()} error(s)",
                payload=body,
            ) from exc

        if not response.is_success or parsed.ocr_exit_code != OCR_SUCCESS_EXIT_CODE:
            message = parsed.error_message or "Failed to process image with OCR service"
            raise ExtractionFailed(message, payload=body)

        result = ExtractionResult(
            text=parsed.first_text(),
            provider_status=parsed.ocr_exit_code,
            raw_payload=body,
            http_status=response.status_code,
        )
        if not result.text.strip():
            raise NoTextDetected("OCR service returned no text", payload=body)

        logger.info("Extracted %d characters from %s", len(result.text), address)
        return result

    async def aclose(self) -> None:  # pragma: no cover - best effort cleanup
        if self._owns_client:
            await self._client.aclose()


__all__ = ["OCRSpaceClient", "RECOGNITION_OPTIONS", "validate_address"]
