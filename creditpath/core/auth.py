"""
Auth utilities for the creditpath API.

The billing backend owns identity: this service only extracts the caller's
bearer token and forwards it. Requests without a token are rejected here so
they never reach the backend anonymously.
"""
from fastapi import HTTPException, Request
import logging

logger = logging.getLogger(__name__)


def extract_bearer_token(authorization: str) -> str | None:
    if not authorization.startswith("Bearer "):
        return None
    token = authorization[7:].strip()
    return token or None


async def get_session_token(request: Request) -> str:
    """
    Extract the session token from the Authorization header.

    Returns:
        Bearer token to forward to the billing backend

    Raises:
        HTTPException 401: Missing or malformed Authorization header
    """
    token = extract_bearer_token(request.headers.get("Authorization", ""))
    if not token:
        logger.debug("Missing bearer token", extra={"path": request.url.path})
        raise HTTPException(status_code=401, detail="Unauthorized")
    return token
