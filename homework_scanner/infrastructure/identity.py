"""Caller identity collaborators."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from homework_scanner.domain.errors import NotAuthenticated

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Identity:
    user_id: str
    access_token: str | None = None


class IdentityProvider(Protocol):
    """Turns an access token (possibly absent) into a caller identity."""

    async def resolve(self, access_token: str | None) -> Identity: ...


class StaticIdentityProvider:
    """Always yields the same identity; used by the CLI and offline runs."""

    def __init__(self, user_id: str) -> None:
        if not user_id or "/" in user_id:
            raise ValueError("user_id must be a non-empty path segment")
        self._identity = Identity(user_id=user_id)

    async def resolve(self, access_token: str | None) -> Identity:
        return self._identity


class SupabaseIdentityProvider:
    """Looks the caller up through the Supabase ``/auth/v1/user`` endpoint."""

    def __init__(
        self,
        base_url: str,
        anon_key: str,
        *,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._user_url = f"{base_url.rstrip('/')}/auth/v1/user"
        self._anon_key = anon_key
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None

    async def resolve(self, access_token: str | None) -> Identity:
        if not access_token:
            raise NotAuthenticated("No session found, user not authenticated")

        headers = {"apikey": self._anon_key, "authorization": f"Bearer {access_token}"}
        try:
            response = await self._client.get(self._user_url, headers=headers)
        except httpx.HTTPError as exc:
            raise NotAuthenticated(f"Authentication error: {exc}") from exc

        if not response.is_success:
            raise NotAuthenticated(f"Authentication error: HTTP {response.status_code}")
        try:
            body = response.json()
        except ValueError as exc:
            raise NotAuthenticated("Authentication error: unreadable user payload") from exc

        user_id = body.get("id") if isinstance(body, dict) else None
        if not user_id:
            raise NotAuthenticated("No authenticated user found")
        logger.debug("Resolved caller %s", user_id)
        return Identity(user_id=str(user_id), access_token=access_token)

    async def aclose(self) -> None:  # pragma: no cover - best effort cleanup
        if self._owns_client:
            await self._client.aclose()
