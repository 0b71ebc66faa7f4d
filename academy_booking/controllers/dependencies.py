"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

import secrets

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from academy_booking.services.booking_service import OneOnOneBookingService
from academy_booking.utils.config import get_settings


bearer_scheme = HTTPBearer(auto_error=False)


def get_booking_service(request: Request) -> OneOnOneBookingService:
    service = getattr(request.app.state, "booking_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Booking service is not initialized",
        )
    return service


def _expected_token(request: Request) -> str | None:
    override = getattr(request.app.state, "api_token", None)
    if override is not None:
        return override
    return get_settings().api_token


async def require_api_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> None:
    """Enforce the bearer token only when API_TOKEN is configured."""
    expected = _expected_token(request)
    if not expected:
        return
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header with Bearer token is required",
        )
    if not secrets.compare_digest(credentials.credentials, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid bearer token",
        )
