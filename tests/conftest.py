"""
Pytest configuration and shared fixtures for DigiBridge tests.

This module provides common test fixtures for:
- Controllable clocks
- User stores (in-memory and SQLite)
- TOTP engine, session issuer and enrollment flow
- API test client with dependency overrides
"""
import pytest
from fastapi.testclient import TestClient

from digibridge.api import deps
from digibridge.api.main import app
from digibridge.api.routes import health
from digibridge.auth.enrollment import EnrollmentFlow
from digibridge.auth.mfa import TOTPEngine
from digibridge.auth.provisioning import ProvisioningEncoder
from digibridge.auth.session import SessionIssuer
from digibridge.database import user_store
from digibridge.database.user_store import InMemoryUserStore, SQLUserStore
from digibridge.utils.secrets import get_secret

SIGNING_KEY = "test-signing-key-0123456789abcdef0123456789abcdef"

# RFC 6238 appendix B seed ("12345678901234567890") in base32
RFC_SECRET = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"

T0 = 1_700_000_000


# ============================================
# Isolation
# ============================================

@pytest.fixture(autouse=True)
def isolated_singletons(monkeypatch):
    """
    Reset module-level singletons and keep tests away from a real Redis.
    """
    monkeypatch.setattr(deps, "_session_issuer", None)
    monkeypatch.setattr(deps, "_rate_limiter", None)
    monkeypatch.setattr(deps, "_replay_registry", None)
    monkeypatch.setattr(deps, "_redis_client", None)
    monkeypatch.setattr(deps, "get_redis_client", lambda: None)
    monkeypatch.setattr(health, "get_redis_client", lambda: None)
    monkeypatch.setattr(user_store, "_user_store_instance", None)
    get_secret.cache_clear()

    yield

    app.dependency_overrides.clear()
    get_secret.cache_clear()


# ============================================
# Clock
# ============================================

class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: float = T0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


# ============================================
# Core Fixtures
# ============================================

@pytest.fixture
def engine():
    return TOTPEngine()


@pytest.fixture
def encoder():
    return ProvisioningEncoder()


@pytest.fixture
def session_issuer(clock):
    return SessionIssuer(signing_key=SIGNING_KEY, clock=clock)


@pytest.fixture
def memory_store():
    return InMemoryUserStore()


@pytest.fixture
def sqlite_store(tmp_path):
    """
    SQLite-backed store in a temporary directory.
    Automatically cleaned up after test completes.
    """
    store = SQLUserStore(f"sqlite:///{tmp_path / 'users.db'}")
    store.init_schema()
    yield store
    store.engine.dispose()


@pytest.fixture(params=["memory", "sqlite"])
def store(request):
    """Run a test against every store implementation."""
    if request.param == "memory":
        return request.getfixturevalue("memory_store")
    return request.getfixturevalue("sqlite_store")


@pytest.fixture
def flow(memory_store, engine, encoder, session_issuer, clock):
    return EnrollmentFlow(
        store=memory_store,
        engine=engine,
        encoder=encoder,
        session_issuer=session_issuer,
        clock=clock,
    )


@pytest.fixture
def sample_profile():
    """
    Provide a sample onboarding profile (API field names).
    """
    return {
        "email": "alice@example.com",
        "firstName": "Alice",
        "lastName": "Mwangi",
        "phone": "+254 712 345 678",
        "village": "Kisumu",
        "ageRange": "25-34",
        "educationLevel": "Secondary",
        "occupation": "Farmer",
        "experienceLevel": "Beginner",
    }


# ============================================
# API Fixtures
# ============================================

async def no_rate_limit():
    """No-op rate limit check for tests."""
    pass


@pytest.fixture
def api_issuer():
    """Session issuer on the real clock, as the API uses it."""
    return SessionIssuer(signing_key=SIGNING_KEY)


@pytest.fixture
def client(memory_store, api_issuer):
    """Create test client with an in-memory store and no rate limits."""
    app.dependency_overrides[deps.get_store] = lambda: memory_store
    app.dependency_overrides[deps.get_session_issuer] = lambda: api_issuer
    app.dependency_overrides[deps.check_profile_rate_limit] = no_rate_limit
    app.dependency_overrides[deps.check_verify_rate_limit] = no_rate_limit

    yield TestClient(app)

    app.dependency_overrides.clear()
