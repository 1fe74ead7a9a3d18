"""Shared FastAPI dependencies and error mapping for the API routers."""
from typing import Optional

from fastapi import Depends, HTTPException

from creditpath.core.auth import get_session_token
from creditpath.core.errors import UpstreamError
from creditpath.features.billing.provider import BillingRequestError
from creditpath.features.checkout.registry import UserSession, registry


async def get_user_session(token: str = Depends(get_session_token)) -> UserSession:
    return registry.get(token)


async def get_existing_session(token: str = Depends(get_session_token)) -> Optional[UserSession]:
    """Like get_user_session, but never creates a session for an unseen token."""
    return registry.peek(token)


def upstream_failure(error: BillingRequestError, session: UserSession) -> Exception:
    """Translate a billing backend failure into the exception raised to the client."""
    if error.status_code == 401:
        registry.drop(session.token)
        return HTTPException(status_code=401, detail="Unauthorized")
    return UpstreamError(error.message)
