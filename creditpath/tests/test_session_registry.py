"""Tests for per-token session collaborators."""

from creditpath.features.billing.http_client import HttpBillingBackend
from creditpath.features.checkout.orchestrator import CheckoutState
from creditpath.features.checkout.registry import SessionRegistry
from creditpath.features.checkout.session import InMemorySessionStore, RecordingNavigator
from creditpath.tests.mocks import FakeBillingBackend


def test_same_token_reuses_session():
    registry = SessionRegistry(backend_factory=lambda store, navigator: FakeBillingBackend())

    first = registry.get("tok_a")
    again = registry.get("tok_a")
    other = registry.get("tok_b")

    assert first is again
    assert first.orchestrator is again.orchestrator
    assert other is not first
    assert len(registry) == 2


def test_session_store_holds_token():
    registry = SessionRegistry(backend_factory=lambda store, navigator: FakeBillingBackend())
    session = registry.get("tok_a")
    assert session.session_store.get_token() == "tok_a"


def test_drop_cancels_in_flight_attempt():
    registry = SessionRegistry(backend_factory=lambda store, navigator: FakeBillingBackend())
    session = registry.get("tok_a")
    session.orchestrator.state = CheckoutState.REQUESTING

    registry.drop("tok_a")
    registry.drop("missing")

    assert session.orchestrator.state is CheckoutState.IDLE
    assert len(registry) == 0


def test_default_factory_builds_http_backend():
    registry = SessionRegistry()
    session = registry.get("tok_a")

    assert isinstance(session.backend, HttpBillingBackend)
    assert session.backend.base_url == "https://billing.test/api"
    assert session.backend.navigator is session.navigator


def test_in_memory_store_and_navigator():
    store = InMemorySessionStore()
    assert store.get_token() is None
    store.set_token("tok")
    assert store.get_token() == "tok"
    store.clear_token()
    assert store.get_token() is None

    navigator = RecordingNavigator()
    assert navigator.last is None
    navigator.redirect("/pricing")
    navigator.redirect("/onboarding")
    assert navigator.history == ["/pricing", "/onboarding"]
    assert navigator.last == "/onboarding"


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def make_registry(**kwargs):
    return SessionRegistry(backend_factory=lambda store, navigator: FakeBillingBackend(), **kwargs)


def test_least_recently_used_session_is_evicted_at_capacity():
    registry = make_registry(max_sessions=2)

    a = registry.get("tok_a")
    registry.get("tok_b")
    registry.get("tok_a")
    registry.get("tok_c")

    assert len(registry) == 2
    assert "tok_b" not in registry
    assert registry.get("tok_a") is a


def test_idle_sessions_expire():
    clock = FakeClock()
    registry = make_registry(idle_ttl_seconds=60, clock=clock)
    registry.get("tok_a")
    clock.now = 30
    registry.get("tok_b")

    clock.now = 61
    assert registry.peek("tok_a") is None
    assert registry.peek("tok_b") is not None
    assert len(registry) == 1


def test_busy_session_is_never_evicted():
    clock = FakeClock()
    registry = make_registry(max_sessions=1, idle_ttl_seconds=60, clock=clock)
    busy = registry.get("tok_a")
    busy.orchestrator.state = CheckoutState.REQUESTING

    clock.now = 120
    registry.get("tok_b")

    assert registry.peek("tok_a") is busy
    assert busy.orchestrator.state is CheckoutState.REQUESTING
    assert len(registry) == 2


def test_evicted_session_attempt_is_cancelled():
    registry = make_registry(max_sessions=1)
    first = registry.get("tok_a")
    first.orchestrator.plan_id = "profesional"

    registry.get("tok_b")

    assert "tok_a" not in registry
    assert first.orchestrator.plan_id is None


def test_peek_never_creates():
    registry = make_registry()

    assert registry.peek("tok_a") is None
    assert len(registry) == 0


def test_registry_size_defaults_from_settings(billing_settings, monkeypatch):
    monkeypatch.setattr(billing_settings, "SESSION_CACHE_SIZE", 3)
    registry = make_registry()

    for n in range(10):
        registry.get(f"tok_{n}")

    assert registry.max_sessions == 3
    assert len(registry) == 3


def test_navigator_history_is_capped():
    navigator = RecordingNavigator(max_history=2)
    for url in ("/a", "/b", "/c"):
        navigator.redirect(url)

    assert navigator.history == ["/b", "/c"]
    assert navigator.last == "/c"


def test_registry_navigators_are_capped(billing_settings, monkeypatch):
    monkeypatch.setattr(billing_settings, "NAVIGATOR_HISTORY_SIZE", 1)
    session = make_registry().get("tok_a")

    session.navigator.redirect("/pricing")
    session.navigator.redirect("/onboarding")

    assert session.navigator.history == ["/onboarding"]
