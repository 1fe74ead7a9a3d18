"""
Per-session collaborators.

Each session token gets one SessionStore, Navigator, billing client and
CheckoutOrchestrator, so the single-flight checkout gate is shared by every
request made with that token. In-process only.

The registry is bounded: sessions idle for longer than the TTL are evicted,
and past `max_sessions` the least recently used one goes. A session whose
orchestrator is busy is never evicted, so its gate cannot be bypassed by a
fresh session for the same token.
"""
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional

from creditpath.core.config import settings
from creditpath.core.logging import log_event
from creditpath.features.billing.http_client import HttpBillingBackend
from creditpath.features.billing.provider import BillingBackend
from creditpath.features.checkout.orchestrator import CheckoutOrchestrator
from creditpath.features.checkout.session import InMemorySessionStore, RecordingNavigator


logger = logging.getLogger(__name__)


@dataclass
class UserSession:
    token: str
    session_store: InMemorySessionStore
    navigator: RecordingNavigator
    backend: BillingBackend
    orchestrator: CheckoutOrchestrator
    last_seen: float = 0.0


BackendFactory = Callable[[InMemorySessionStore, RecordingNavigator], BillingBackend]


def _http_backend(store: InMemorySessionStore, navigator: RecordingNavigator) -> BillingBackend:
    return HttpBillingBackend(store, navigator)


class SessionRegistry:
    """Bounded in-memory map of session token -> UserSession, oldest first."""

    def __init__(
        self,
        backend_factory: Optional[BackendFactory] = None,
        *,
        max_sessions: Optional[int] = None,
        idle_ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._backend_factory = backend_factory or _http_backend
        self._max_sessions = max_sessions
        self._idle_ttl_seconds = idle_ttl_seconds
        self._clock = clock
        self._sessions: "OrderedDict[str, UserSession]" = OrderedDict()

    @property
    def max_sessions(self) -> int:
        if self._max_sessions is not None:
            return self._max_sessions
        return settings.SESSION_CACHE_SIZE

    @property
    def idle_ttl_seconds(self) -> float:
        if self._idle_ttl_seconds is not None:
            return self._idle_ttl_seconds
        return settings.SESSION_IDLE_TTL_SECONDS

    def get(self, token: str) -> UserSession:
        """Return the session for `token`, creating it on first use."""
        now = self._clock()
        self._evict_expired(now)

        session = self._sessions.get(token)
        if session is not None:
            session.last_seen = now
            self._sessions.move_to_end(token)
            return session

        store = InMemorySessionStore(token)
        navigator = RecordingNavigator(max_history=settings.NAVIGATOR_HISTORY_SIZE)
        backend = self._backend_factory(store, navigator)
        session = UserSession(
            token=token,
            session_store=store,
            navigator=navigator,
            backend=backend,
            orchestrator=CheckoutOrchestrator(backend, navigator),
            last_seen=now,
        )
        self._sessions[token] = session
        self._evict_overflow(keep=token)
        logger.debug("[sessions] session created", extra={"sessions": len(self._sessions)})
        return session

    def peek(self, token: str) -> Optional[UserSession]:
        """Return the existing session for `token` without creating one."""
        self._evict_expired(self._clock())
        return self._sessions.get(token)

    def drop(self, token: str) -> None:
        session = self._sessions.pop(token, None)
        if session is not None:
            session.orchestrator.cancel()

    def _evict_expired(self, now: float) -> None:
        ttl = self.idle_ttl_seconds
        expired = []
        for token, session in self._sessions.items():
            if now - session.last_seen < ttl:
                break
            if not session.orchestrator.busy:
                expired.append(token)
        for token in expired:
            self._evict(token, "idle")

    def _evict_overflow(self, keep: str) -> None:
        excess = len(self._sessions) - self.max_sessions
        if excess <= 0:
            return
        victims = [
            token
            for token, session in self._sessions.items()
            if token != keep and not session.orchestrator.busy
        ][:excess]
        for token in victims:
            self._evict(token, "capacity")
        if len(self._sessions) > self.max_sessions:
            log_event(
                "warning",
                "[sessions] over capacity, remaining sessions are busy",
                logger=logger,
                extra={"sessions": len(self._sessions)},
            )

    def _evict(self, token: str, reason: str) -> None:
        self.drop(token)
        log_event("debug", "[sessions] session evicted", logger=logger, extra={"reason": reason})

    def __contains__(self, token: str) -> bool:
        return token in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)


registry = SessionRegistry()
