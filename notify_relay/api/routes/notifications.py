from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from fastapi.responses import JSONResponse

from notify_relay.core.rate_limit import build_rate_limit_headers, get_rate_limiter
from notify_relay.core.store import get_kv_store
from notify_relay.schemas.notification import Notification, NotifyRequest
from notify_relay.services.notification_store import NotificationStore
from notify_relay.services.relay_service import Rejected, RelayService

router = APIRouter(tags=["Notifications"])

BEARER_PREFIX = "Bearer "


def get_relay_service() -> RelayService:
    """Build the relay service on the process-wide store and limiter."""
    return RelayService(
        limiter=get_rate_limiter(),
        notifications=NotificationStore(get_kv_store()),
    )


def extract_bearer_token(authorization: str | None) -> str:
    """Return the token carried by an ``Authorization`` header value.

    The ``Bearer `` prefix is optional; the rest of the value is used as-is.

    Raises:
        HTTPException: 401 if the header is missing or carries no token.
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header",
        )

    token = authorization.removeprefix(BEARER_PREFIX)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
        )
    return token


@router.post(
    "/notify",
    status_code=status.HTTP_201_CREATED,
    response_model=Notification,
    responses={429: {"description": "Rate limit exceeded for this token"}},
)
def push_notification(
    service: Annotated[RelayService, Depends(get_relay_service)],
    authorization: Annotated[str | None, Header()] = None,
    payload: NotifyRequest | None = None,
) -> JSONResponse:
    """Store a message against the caller's bearer token.

    Returns:
        201 with the stored notification and the token's remaining quota in
        ``X-RateLimit-*`` headers, or 429 with ``{"message", "retry_after"}``
        and ``Retry-After`` once the token exceeded its limit.

    Raises:
        HTTPException: 401 without a token, 400 without a message.
    """
    token = extract_bearer_token(authorization)

    message = payload.message if payload is not None else None
    if not message:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing message in request body",
        )

    outcome = service.push(token, message)
    headers = build_rate_limit_headers(outcome)

    if isinstance(outcome, Rejected):
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={
                "message": f"Rate limit exceeded. Try again in {outcome.retry_after_seconds} seconds.",
                "retry_after": outcome.retry_after_seconds,
            },
            headers=headers or None,
        )

    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content=outcome.notification.model_dump(),
        headers=headers or None,
    )


@router.get("/notifications", response_model=list[Notification])
def list_notifications(
    service: Annotated[RelayService, Depends(get_relay_service)],
    token: Annotated[str | None, Query()] = None,
) -> list[Notification]:
    """Return every notification stored for ``token``, newest first.

    Raises:
        HTTPException: 400 if the token query parameter is missing.
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing token parameter",
        )

    return service.notifications(token)
