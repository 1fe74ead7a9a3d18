# creditpath/conftest.py
import sys
import pytest
from pathlib import Path

# Add project root to PYTHONPATH
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from creditpath.tests.mocks import FakeBillingBackend


@pytest.fixture(autouse=True)
def billing_settings(monkeypatch):
    """
    Point settings at a test billing URL with no onboarding delay.

    Settings are read at call time, so patching the shared object is enough.
    """
    from creditpath.core.config import settings

    monkeypatch.setattr(settings, "BILLING_API_URL", "https://billing.test/api")
    monkeypatch.setattr(settings, "ONBOARDING_REDIRECT_DELAY_SECONDS", 0.0)
    yield settings


@pytest.fixture
def fake_backend():
    return FakeBillingBackend()


@pytest.fixture
def session_registry(monkeypatch, fake_backend):
    """
    Replace the process-wide session registry with one that hands every
    session the same fake backend.
    """
    import creditpath.api.deps as deps
    from creditpath.features.checkout.registry import SessionRegistry

    test_registry = SessionRegistry(backend_factory=lambda store, navigator: fake_backend)
    monkeypatch.setattr(deps, "registry", test_registry)
    yield test_registry


@pytest.fixture
def client(session_registry):
    from fastapi.testclient import TestClient
    from creditpath.main import app

    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"Authorization": "Bearer tok_test_123"}
