from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _join_error_messages(value: Any) -> Any:
    # OCR.space reports ErrorMessage as either a string or a list of strings.
    if isinstance(value, list):
        return "; ".join(str(item) for item in value if item)
    return value


class OCRSpaceParsedResult(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    parsed_text: str | None = Field(default=None, alias="ParsedText")
    file_parse_exit_code: int | None = Field(default=None, alias="FileParseExitCode")
    error_message: str | None = Field(default=None, alias="ErrorMessage")

    @field_validator("error_message", mode="before")
    @classmethod
    def _join_messages(cls, value: Any) -> Any:
        return _join_error_messages(value)


class OCRSpaceResponse(BaseModel):
    """Structured body returned by the OCR.space parse endpoint."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    ocr_exit_code: int | None = Field(default=None, alias="OCRExitCode")
    parsed_results: list[OCRSpaceParsedResult] = Field(default_factory=list, alias="ParsedResults")
    error_message: str | None = Field(default=None, alias="ErrorMessage")
    is_errored_on_processing: bool | None = Field(default=None, alias="IsErroredOnProcessing")

    @field_validator("error_message", mode="before")
    @classmethod
    def _join_messages(cls, value: Any) -> Any:
        return _join_error_messages(value)

    @field_validator("parsed_results", mode="before")
    @classmethod
    def _null_results(cls, value: Any) -> Any:
        return [] if value is None else value

    def first_text(self) -> str:
        if not self.parsed_results:
            return ""
        return self.parsed_results[0].parsed_text or ""


class OCRRequest(BaseModel):
    image_url: str | None = Field(default=None, alias="imageUrl")


class ScanResponse(BaseModel):
    text: str | None = None
    error: str | None = None
    kind: str | None = None
    state: str
    trace: list[str] = Field(default_factory=list)
