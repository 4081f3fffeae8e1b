from __future__ import annotations

import os
from dataclasses import dataclass, field

DEFAULT_OCR_ENDPOINT = "https://api.ocr.space/parse/image"
DEFAULT_BUCKET = "scans"
DEFAULT_CACHE_TTL_SECONDS = 3600
DEFAULT_PUBLIC_BASE = "http://localhost:8000/api/blobs"
DEFAULT_CORS_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _env_float(name: str) -> float | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc
    return value if value > 0 else None


@dataclass(slots=True)
class Settings:
    """Process configuration, read once at boot."""

    ocr_api_key: str | None = None
    ocr_endpoint: str = DEFAULT_OCR_ENDPOINT
    supabase_url: str | None = None
    supabase_anon_key: str | None = None
    bucket: str = DEFAULT_BUCKET
    cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS
    public_base: str = DEFAULT_PUBLIC_BASE
    deadline_seconds: float | None = None
    camera_index_user: int = 0
    camera_index_environment: int = 0
    cors_origins: list[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    log_level: str = "INFO"
    identity: str | None = None

    @property
    def storage_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)

    @classmethod
    def from_env(cls) -> "Settings":
        origins_env = os.getenv("API_CORS_ORIGINS", "")
        origins = [origin.strip() for origin in origins_env.split(",") if origin.strip()]
        if not origins:
            origins = list(DEFAULT_CORS_ORIGINS)

        return cls(
            ocr_api_key=os.getenv("OCRSPACE_API_KEY") or None,
            ocr_endpoint=os.getenv("OCRSPACE_ENDPOINT") or DEFAULT_OCR_ENDPOINT,
            supabase_url=(os.getenv("SUPABASE_URL") or "").rstrip("/") or None,
            supabase_anon_key=os.getenv("SUPABASE_ANON_KEY") or None,
            bucket=os.getenv("SCANS_BUCKET") or DEFAULT_BUCKET,
            cache_ttl_seconds=_env_int("SCAN_CACHE_TTL_SECONDS", DEFAULT_CACHE_TTL_SECONDS),
            public_base=(os.getenv("SCANS_PUBLIC_BASE") or DEFAULT_PUBLIC_BASE).rstrip("/"),
            deadline_seconds=_env_float("SCAN_DEADLINE_SECONDS"),
            camera_index_user=_env_int("CAMERA_INDEX_USER", 0),
            camera_index_environment=_env_int("CAMERA_INDEX_ENVIRONMENT", 0),
            cors_origins=origins,
            log_level=(os.getenv("SCANNER_LOG_LEVEL") or "INFO").upper(),
            identity=os.getenv("SCANNER_IDENTITY") or None,
        )
