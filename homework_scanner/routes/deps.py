from __future__ import annotations

from fastapi import Depends, HTTPException, Request

from homework_scanner.bootstrap import ScannerServices
from homework_scanner.domain import ErrorKind, user_message_for
from homework_scanner.domain.errors import NotAuthenticated
from homework_scanner.infrastructure.identity import Identity


def get_services(request: Request) -> ScannerServices:
    return request.app.state.services


def bearer_token(request: Request) -> str | None:
    header = request.headers.get("authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_identity(request: Request, services: ScannerServices = Depends(get_services)) -> Identity:
    try:
        return await services.identity_provider.resolve(bearer_token(request))
    except NotAuthenticated as exc:
        raise HTTPException(
            status_code=401,
            detail={"error": user_message_for(ErrorKind.NOT_AUTHENTICATED), "reason": exc.detail},
        ) from exc
