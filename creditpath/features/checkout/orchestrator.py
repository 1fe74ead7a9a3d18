"""
Checkout orchestrator.

Drives one checkout (or billing portal) attempt at a time per user session:

    idle -> requesting -> redirecting   (response carried a URL)
                       -> failed        (error, or no URL; a new attempt may start)

Only one attempt may be `requesting` at once; a second start is rejected with
CheckoutInProgressError until the first resolves. Each attempt gets an id, and
a response arriving after `cancel()` is discarded instead of being applied.
Cancelling releases the attempt but not the backend: a new start is still
rejected until the cancelled backend call has settled, so at most one session
request per user is ever outstanding at the billing backend.

An optional `before_request` coroutine (the HTTP layer's access gate) runs
after the attempt has claimed the gate and before the backend is called, so
concurrent starts are decided in the order they arrive.

Failures are classified exactly once:
- onboarding-incomplete (the backend's failure payload points at the
  onboarding flow): the user is redirected back to onboarding after a short
  delay so the message can be read.
- anything else: the backend message is passed through verbatim, with the
  backend status kept on the outcome.

No retries happen here; retrying is a new explicit user action.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional
from uuid import uuid4

from creditpath.core.config import settings
from creditpath.core.errors import CheckoutInProgressError
from creditpath.core.logging import log_event
from creditpath.features.billing.provider import BillingBackend, BillingRequestError
from creditpath.features.checkout.session import Navigator
from creditpath.models.plan import BillingCycle


logger = logging.getLogger(__name__)

MISSING_CHECKOUT_URL_MESSAGE = "Could not create the checkout session"
MISSING_PORTAL_URL_MESSAGE = "Could not open the billing portal"
CANCELLED_MESSAGE = "Checkout cancelled"

ONBOARDING_INCOMPLETE_CODE = "ONBOARDING_INCOMPLETE"

BeforeRequest = Callable[[], Awaitable[None]]


class CheckoutState(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    REDIRECTING = "redirecting"
    FAILED = "failed"


@dataclass(frozen=True)
class CheckoutOutcome:
    """Either `redirect` is set, or `error` is (with `onboarding_redirect`)."""
    redirect: Optional[str] = None
    error: Optional[str] = None
    onboarding_redirect: bool = False
    cancelled: bool = False
    attempt_id: Optional[str] = None
    # Backend HTTP status of a failed attempt; not part of the client payload.
    status_code: Optional[int] = None

    @classmethod
    def redirecting(cls, url: str, attempt_id: str) -> "CheckoutOutcome":
        return cls(redirect=url, attempt_id=attempt_id)

    @classmethod
    def failure(
        cls,
        message: str,
        attempt_id: str,
        *,
        onboarding_redirect: bool = False,
        cancelled: bool = False,
        status_code: Optional[int] = None,
    ) -> "CheckoutOutcome":
        return cls(
            error=message,
            onboarding_redirect=onboarding_redirect,
            cancelled=cancelled,
            attempt_id=attempt_id,
            status_code=status_code,
        )

    @property
    def ok(self) -> bool:
        return self.redirect is not None

    @property
    def unauthorized(self) -> bool:
        return self.status_code == 401

    def to_dict(self) -> dict:
        if self.ok:
            return {"redirect": self.redirect, "attempt_id": self.attempt_id}
        return {
            "error": self.error,
            "onboarding_redirect": self.onboarding_redirect,
            "cancelled": self.cancelled,
            "attempt_id": self.attempt_id,
        }


class CheckoutOrchestrator:
    """Single-flight checkout state machine for one user session."""

    def __init__(
        self,
        backend: BillingBackend,
        navigator: Navigator,
        *,
        onboarding_url: Optional[str] = None,
        redirect_delay_seconds: Optional[float] = None,
    ):
        self.backend = backend
        self.navigator = navigator
        self.onboarding_url = onboarding_url or settings.ONBOARDING_URL
        self.redirect_delay_seconds = (
            redirect_delay_seconds
            if redirect_delay_seconds is not None
            else settings.ONBOARDING_REDIRECT_DELAY_SECONDS
        )
        self.state = CheckoutState.IDLE
        self.plan_id: Optional[str] = None
        self.last_outcome: Optional[CheckoutOutcome] = None
        self._attempt_id: Optional[str] = None
        self._pending_redirect: Optional[asyncio.TimerHandle] = None
        self._backend_outstanding = False

    @property
    def in_flight(self) -> bool:
        return self.state is CheckoutState.REQUESTING

    @property
    def busy(self) -> bool:
        """An attempt is requesting, or a cancelled backend call has not settled."""
        return self.in_flight or self._backend_outstanding

    @property
    def current_attempt_id(self) -> Optional[str]:
        return self._attempt_id

    async def start_checkout(
        self,
        plan_id: str,
        cycle: BillingCycle,
        *,
        before_request: Optional[BeforeRequest] = None,
    ) -> CheckoutOutcome:
        """Request a checkout session and redirect to it.

        Raises CheckoutInProgressError when another attempt is requesting or a
        cancelled one is still outstanding at the backend. Exceptions raised
        by `before_request` release the gate and propagate.
        """
        cycle = BillingCycle(cycle)
        return await self._run_attempt(
            kind="checkout",
            plan_id=plan_id,
            request=lambda: self.backend.create_checkout_session(plan_id, cycle),
            missing_url_message=MISSING_CHECKOUT_URL_MESSAGE,
            classify_onboarding=True,
            before_request=before_request,
        )

    async def open_portal(self, *, before_request: Optional[BeforeRequest] = None) -> CheckoutOutcome:
        """Request a billing portal session for the existing subscription."""
        return await self._run_attempt(
            kind="portal",
            plan_id=None,
            request=self.backend.create_portal_session,
            missing_url_message=MISSING_PORTAL_URL_MESSAGE,
            classify_onboarding=False,
            before_request=before_request,
        )

    def cancel(self) -> None:
        """Discard the in-flight attempt and any scheduled onboarding redirect."""
        if self._pending_redirect is not None:
            self._pending_redirect.cancel()
            self._pending_redirect = None
        if self.state is CheckoutState.REQUESTING:
            log_event("info", "[checkout] attempt cancelled", logger=logger, attempt_id=self._attempt_id, plan_id=self.plan_id)
            self.state = CheckoutState.IDLE
        self._attempt_id = None
        self.plan_id = None

    def _ensure_available(self, kind: str, plan_id: Optional[str]) -> None:
        if not self.busy:
            return
        log_event(
            "info",
            "[checkout] rejected, attempt already in flight",
            logger=logger,
            attempt_id=self._attempt_id,
            plan_id=plan_id,
            error_code=CheckoutInProgressError.code,
            extra={"backend_outstanding": self._backend_outstanding},
        )
        if self.in_flight and self.plan_id:
            raise CheckoutInProgressError(f"A {kind} request is already in progress for plan {self.plan_id}")
        raise CheckoutInProgressError(f"A {kind} request is already in progress")

    async def _run_attempt(
        self,
        *,
        kind: str,
        plan_id: Optional[str],
        request: Callable[[], Awaitable[Optional[str]]],
        missing_url_message: str,
        classify_onboarding: bool,
        before_request: Optional[BeforeRequest],
    ) -> CheckoutOutcome:
        self._ensure_available(kind, plan_id)

        # State flips before the first await so a concurrent start sees it.
        attempt_id = uuid4().hex
        self._attempt_id = attempt_id
        self.plan_id = plan_id
        self.state = CheckoutState.REQUESTING
        if self._pending_redirect is not None:
            self._pending_redirect.cancel()
            self._pending_redirect = None
        log_event(
            "info",
            f"[checkout] {kind} requesting",
            logger=logger,
            attempt_id=attempt_id,
            plan_id=plan_id,
            extra={"state": self.state.value},
        )

        if before_request is not None:
            try:
                await before_request()
            except BaseException:
                self._release(attempt_id)
                raise
            if self._is_stale(attempt_id):
                return self._discarded(attempt_id)

        self._backend_outstanding = True
        try:
            url = await request()
        except BillingRequestError as e:
            if self._is_stale(attempt_id):
                return self._discarded(attempt_id)
            onboarding = classify_onboarding and self._is_onboarding_failure(e)
            return self._fail(attempt_id, e.message, onboarding_redirect=onboarding, status_code=e.status_code)
        except BaseException:
            self._release(attempt_id)
            raise
        finally:
            self._backend_outstanding = False

        if self._is_stale(attempt_id):
            return self._discarded(attempt_id)
        if not url:
            return self._fail(attempt_id, missing_url_message)

        self.state = CheckoutState.REDIRECTING
        outcome = CheckoutOutcome.redirecting(url, attempt_id)
        self.last_outcome = outcome
        log_event(
            "info",
            f"[checkout] {kind} redirecting",
            logger=logger,
            attempt_id=attempt_id,
            plan_id=plan_id,
            extra={"state": self.state.value},
        )
        self.navigator.redirect(url)
        return outcome

    def _release(self, attempt_id: str) -> None:
        """Reopen the gate for an attempt that ended without an outcome."""
        if not self._is_stale(attempt_id):
            self.state = CheckoutState.IDLE
            self._attempt_id = None
            self.plan_id = None

    def _is_stale(self, attempt_id: str) -> bool:
        return self._attempt_id != attempt_id

    def _discarded(self, attempt_id: str) -> CheckoutOutcome:
        log_event("info", "[checkout] stale response discarded", logger=logger, attempt_id=attempt_id)
        return CheckoutOutcome.failure(CANCELLED_MESSAGE, attempt_id, cancelled=True)

    def _is_onboarding_failure(self, error: BillingRequestError) -> bool:
        if error.redirect_to and error.redirect_to.rstrip("/") == self.onboarding_url.rstrip("/"):
            return True
        return error.code == ONBOARDING_INCOMPLETE_CODE

    def _fail(
        self,
        attempt_id: str,
        message: str,
        *,
        onboarding_redirect: bool = False,
        status_code: Optional[int] = None,
    ) -> CheckoutOutcome:
        self.state = CheckoutState.FAILED
        outcome = CheckoutOutcome.failure(
            message,
            attempt_id,
            onboarding_redirect=onboarding_redirect,
            status_code=status_code,
        )
        self.last_outcome = outcome
        log_event(
            "warning",
            "[checkout] attempt failed",
            logger=logger,
            attempt_id=attempt_id,
            plan_id=self.plan_id,
            extra={
                "state": self.state.value,
                "onboarding_redirect": onboarding_redirect,
                "status": status_code,
            },
        )
        if onboarding_redirect:
            self._schedule_onboarding_redirect()
        return outcome

    def _schedule_onboarding_redirect(self) -> None:
        loop = asyncio.get_running_loop()
        self._pending_redirect = loop.call_later(
            self.redirect_delay_seconds,
            self._redirect_to_onboarding,
        )

    def _redirect_to_onboarding(self) -> None:
        self._pending_redirect = None
        self.navigator.redirect(self.onboarding_url)
