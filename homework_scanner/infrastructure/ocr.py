"""OCR integration contract.

The pipeline only depends on :class:`TextExtractor`; the concrete provider is
constructed during application start-up and passed in explicitly.
"""
from __future__ import annotations

from typing import Protocol

from homework_scanner.domain import ExtractionResult


class TextExtractor(Protocol):
    """Contract for remote text-extraction integrations."""

    @property
    def configured(self) -> bool: ...

    def ensure_configured(self) -> None:
        """Raise ``Misconfigured`` when the provider credential is missing."""

    async def extract_text(self, address: str) -> ExtractionResult:
        """Submit a public image address and return the recognised text."""
