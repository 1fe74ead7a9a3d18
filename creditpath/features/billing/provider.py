"""
Billing backend protocol.

Defines the interface to the billing backend that owns plans, subscriptions
and checkout/portal sessions. This allows swapping the transport (HTTP,
in-memory fakes in tests) without changing gating or checkout logic.
"""
from typing import List, Optional, Protocol

from creditpath.models.access import AccessSnapshot, AccessStatus
from creditpath.models.plan import BillingCycle, Plan
from creditpath.models.subscription import Subscription


class BillingBackend(Protocol):
    """
    Protocol for billing backends.

    Implementations must handle:
    - Plan listing
    - Current subscription and access-status lookups
    - Checkout session creation
    - Portal session creation
    """

    async def fetch_plans(self) -> List[Plan]:
        """
        List purchasable plans.

        Returns:
            Parsed plans; malformed entries are skipped or degraded.

        Raises:
            BillingRequestError: If the request fails
        """
        ...

    async def fetch_current_subscription(self) -> Optional[Subscription]:
        """
        Fetch the caller's current subscription.

        Returns:
            Normalized subscription, or None when the user has none.

        Raises:
            BillingRequestError: If the request fails
        """
        ...

    async def fetch_access_status(self) -> AccessStatus:
        """
        Fetch role and onboarding facts for the caller.

        Raises:
            BillingRequestError: If the request fails
        """
        ...

    async def fetch_snapshot(self) -> AccessSnapshot:
        """
        Fetch access status and subscription together for one gate decision.

        Raises:
            BillingRequestError: If either request fails
        """
        ...

    async def create_checkout_session(self, plan_id: str, cycle: BillingCycle) -> Optional[str]:
        """
        Create a checkout session for a plan.

        Args:
            plan_id: Backend plan ID
            cycle: Billing cycle chosen by the user

        Returns:
            Checkout URL, or None if the response carried no URL

        Raises:
            BillingRequestError: If session creation fails; `redirect_to`
                carries the backend's redirect hint (e.g. "/onboarding")
        """
        ...

    async def create_portal_session(self) -> Optional[str]:
        """
        Create a billing portal session for an existing subscription.

        Returns:
            Portal URL, or None if the response carried no URL

        Raises:
            BillingRequestError: If portal creation fails
        """
        ...


class BillingProviderError(Exception):
    """Base exception for billing backend errors."""
    pass


class BillingRequestError(BillingProviderError):
    """A request to the billing backend failed (network error or non-2xx)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        redirect_to: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.redirect_to = redirect_to
