"""Shared-secret token gate for the REST surface.

The token comes from the ``token`` query parameter or, for JSON requests,
a ``token`` field in the body.  Missing → 400, mismatched → 403.
"""

from __future__ import annotations

import hmac
import logging

from fastapi import HTTPException, Request, status

logger = logging.getLogger(__name__)


async def _token_from(request: Request) -> str | None:
    token = request.query_params.get("token")
    if token:
        return token
    if request.method in ("POST", "PUT", "PATCH"):
        try:
            body = await request.json()
        except ValueError:
            return None
        if isinstance(body, dict) and isinstance(body.get("token"), str):
            return body["token"] or None
    return None


async def require_token(request: Request) -> None:
    """Dependency that rejects requests without the configured access token."""
    expected = request.app.state.relay.settings.access_token
    token = await _token_from(request)
    if not token:
        logger.error("Token missing: %s %s", request.method, request.url.path)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Token required")
    if not expected or not hmac.compare_digest(token.encode(), expected.encode()):
        logger.error("Invalid token for %s %s", request.method, request.url.path)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied: invalid token")
