"""
HTTP billing backend client.

Implements BillingBackend against the billing service's REST API using httpx.
Attaches the session's bearer token to every request; a 401 clears the token
and sends the user to the login page.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from creditpath.core.config import settings
from creditpath.features.billing.provider import BillingRequestError
from creditpath.features.checkout.session import Navigator, SessionStore
from creditpath.features.plans.service import parse_plans
from creditpath.features.subscriptions.service import (
    normalize,
    normalize_access_status,
    pick,
    unwrap_data,
)
from creditpath.models.access import AccessSnapshot, AccessStatus
from creditpath.models.plan import BillingCycle, Plan
from creditpath.models.subscription import Subscription


logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "Billing request failed"


def _failure_from_response(response: httpx.Response) -> BillingRequestError:
    """Map a non-2xx response to BillingRequestError, keeping the backend message."""
    try:
        body = response.json()
    except ValueError:
        body = None

    message = DEFAULT_ERROR_MESSAGE
    code = None
    redirect_to = None
    if isinstance(body, dict):
        # Error bodies may be flat or wrapped like success bodies.
        candidates = [body, unwrap_data(body), body.get("error")]
        for candidate in candidates:
            if not isinstance(candidate, dict):
                continue
            message = pick(candidate, "message", "detail", default=message)
            code = pick(candidate, "code", default=code)
            redirect_to = pick(candidate, "redirectTo", "redirect_to", default=redirect_to)
    if not isinstance(message, str):
        message = DEFAULT_ERROR_MESSAGE

    return BillingRequestError(
        message,
        status_code=response.status_code,
        code=str(code) if code is not None else None,
        redirect_to=str(redirect_to) if redirect_to is not None else None,
    )


class HttpBillingBackend:
    """httpx implementation of BillingBackend protocol."""

    def __init__(
        self,
        session_store: SessionStore,
        navigator: Optional[Navigator] = None,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            session_store: Source of the bearer token
            navigator: Receives the login redirect on 401 (optional)
            base_url: Billing API base URL (defaults to BILLING_API_URL)
            timeout: Request timeout in seconds (defaults to BILLING_TIMEOUT_SECONDS)
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = base_url or settings.BILLING_API_URL
        if not self.base_url:
            raise BillingRequestError("BILLING_API_URL not configured")
        self.timeout = timeout if timeout is not None else settings.BILLING_TIMEOUT_SECONDS
        self.session_store = session_store
        self.navigator = navigator
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self.session_store.get_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(method, path, json=json, headers=self._headers())
        except httpx.HTTPError as e:
            logger.warning(
                "[billing] transport error",
                extra={"method": method, "path": path, "error": str(e)},
            )
            raise BillingRequestError(f"Billing backend unreachable: {e}")

        if response.status_code == 401:
            self.session_store.clear_token()
            if self.navigator is not None:
                self.navigator.redirect(settings.LOGIN_URL)

        if response.is_error:
            failure = _failure_from_response(response)
            logger.warning(
                "[billing] request failed",
                extra={
                    "method": method,
                    "path": path,
                    "status": response.status_code,
                    "error_code": failure.code,
                },
            )
            raise failure

        try:
            return response.json()
        except ValueError:
            return None

    async def fetch_plans(self) -> List[Plan]:
        return parse_plans(await self._request("GET", "/subscriptions/plans"))

    async def fetch_current_subscription(self) -> Optional[Subscription]:
        return normalize(await self._request("GET", "/subscriptions/current"))

    async def fetch_access_status(self) -> AccessStatus:
        return normalize_access_status(await self._request("GET", "/subscriptions/access-status"))

    async def fetch_snapshot(self) -> AccessSnapshot:
        access_status, subscription = await asyncio.gather(
            self.fetch_access_status(),
            self.fetch_current_subscription(),
        )
        return AccessSnapshot(
            access_status=access_status,
            subscription=subscription,
            fetched_at=datetime.now(timezone.utc),
        )

    async def create_checkout_session(self, plan_id: str, cycle: BillingCycle) -> Optional[str]:
        body = unwrap_data(
            await self._request(
                "POST",
                "/subscriptions/checkout",
                json={"planId": plan_id, "billingCycle": BillingCycle(cycle).value},
            )
        )
        if not isinstance(body, dict):
            return None
        url = pick(body, "checkoutUrl", "checkout_url", "url")
        return str(url) if url else None

    async def create_portal_session(self) -> Optional[str]:
        body = unwrap_data(await self._request("POST", "/subscriptions/portal", json={}))
        if not isinstance(body, dict):
            return None
        url = pick(body, "url", "portalUrl", "portal_url")
        return str(url) if url else None
