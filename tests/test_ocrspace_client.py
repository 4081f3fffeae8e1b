from __future__ import annotations

import asyncio
from pathlib import Path
import sys
from urllib.parse import parse_qs

sys.path.append(str(Path(__file__).resolve().parents[1]))

import httpx
import pytest

from homework_scanner.domain.errors import (
    ExtractionFailed,
    InvalidInput,
    InvalidProviderResponse,
    Misconfigured,
    NoTextDetected,
)
from homework_scanner.infrastructure.ocrspace import OCRSpaceClient

IMAGE_URL = "https://blobs.example.test/storage/v1/object/public/scans/u-1/scan_1.png"


def _client(handler, api_key: str | None = "KEY") -> tuple[OCRSpaceClient, list[httpx.Request]]:
    requests: list[httpx.Request] = []

    def recording(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(recording))
    return OCRSpaceClient(api_key, http_client=http_client), requests


def _success(text: str) -> dict:
    return {
        "OCRExitCode": 1,
        "IsErroredOnProcessing": False,
        "ParsedResults": [{"ParsedText": text, "FileParseExitCode": 1}],
    }


def test_extract_text_submits_form_and_returns_text():
    client, requests = _client(lambda _: httpx.Response(200, json=_success("2+2=4")))

    result = asyncio.run(client.extract_text(IMAGE_URL))

    assert result.text == "2+2=4"
    assert result.success is True
    assert result.provider_status == 1
    assert result.raw_payload["ParsedResults"][0]["ParsedText"] == "2+2=4"

    assert len(requests) == 1
    request = requests[0]
    assert request.method == "POST"
    assert str(request.url) == "https://api.ocr.space/parse/image"
    form = {key: values[0] for key, values in parse_qs(request.content.decode("utf-8")).items()}
    assert form == {
        "apikey": "KEY",
        "url": IMAGE_URL,
        "language": "eng",
        "isOverlayRequired": "false",
        "scale": "true",
        "isTable": "true",
    }


@pytest.mark.parametrize(
    "address",
    [
        "",
        "not a url",
        "scans/u-1/scan_1.png",
        "ftp://example.test/scan.png",
        "https://",
        "http:///missing-host.png",
        "https://example.test/has space.png",
        "https://example.test:notaport/scan.png",
    ],
)
def test_malformed_address_fails_without_network(address):
    client, requests = _client(lambda _: httpx.Response(200, json=_success("never")))

    with pytest.raises(InvalidInput):
        asyncio.run(client.extract_text(address))

    assert requests == []


def test_missing_credential_is_misconfigured_without_network():
    client, requests = _client(lambda _: httpx.Response(200, json=_success("never")), api_key=None)

    assert client.configured is False
    with pytest.raises(Misconfigured):
        client.ensure_configured()
    with pytest.raises(Misconfigured):
        asyncio.run(client.extract_text(IMAGE_URL))

    assert requests == []


@pytest.mark.parametrize("status_code", [200, 400, 500])
def test_non_success_exit_code_is_extraction_failed(status_code):
    body = {
        "OCRExitCode": 3,
        "IsErroredOnProcessing": True,
        "ErrorMessage": ["E301: Unable to recognize the file type"],
        "ParsedResults": None,
    }
    client, _ = _client(lambda _: httpx.Response(status_code, json=body))

    with pytest.raises(ExtractionFailed) as excinfo:
        asyncio.run(client.extract_text(IMAGE_URL))

    assert excinfo.value.detail == "E301: Unable to recognize the file type"
    assert excinfo.value.payload == body


def test_http_error_with_success_exit_code_is_extraction_failed():
    client, _ = _client(lambda _: httpx.Response(503, json=_success("text")))

    with pytest.raises(ExtractionFailed) as excinfo:
        asyncio.run(client.extract_text(IMAGE_URL))

    assert excinfo.value.detail == "Failed to process image with OCR service"


def test_unparsable_body_is_invalid_provider_response():
    client, _ = _client(lambda _: httpx.Response(200, text="<html>gateway</html>"))

    with pytest.raises(InvalidProviderResponse):
        asyncio.run(client.extract_text(IMAGE_URL))


def test_non_object_body_is_invalid_provider_response():
    client, _ = _client(lambda _: httpx.Response(200, json=["unexpected"]))

    with pytest.raises(InvalidProviderResponse):
        asyncio.run(client.extract_text(IMAGE_URL))


def test_transport_failure_is_invalid_provider_response():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client, _ = _client(handler)

    with pytest.raises(InvalidProviderResponse):
        asyncio.run(client.extract_text(IMAGE_URL))


@pytest.mark.parametrize("text", ["", "   ", "\r\n\t"])
def test_blank_text_is_no_text_detected(text):
    client, _ = _client(lambda _: httpx.Response(200, json=_success(text)))

    with pytest.raises(NoTextDetected) as excinfo:
        asyncio.run(client.extract_text(IMAGE_URL))

    assert excinfo.value.payload["OCRExitCode"] == 1


def test_missing_parsed_text_field_counts_as_empty():
    body = {"OCRExitCode": 1, "ParsedResults": [{"FileParseExitCode": 1}]}
    client, _ = _client(lambda _: httpx.Response(200, json=body))

    with pytest.raises(NoTextDetected):
        asyncio.run(client.extract_text(IMAGE_URL))


def test_endpoint_must_be_absolute():
    with pytest.raises(ValueError):
        OCRSpaceClient("KEY", endpoint="/parse/image")
