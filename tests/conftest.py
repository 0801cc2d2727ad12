"""
Shared test fixtures.

In-memory SQLite replaces the database; the identity resolver, generation
gateway and payment providers are swapped through app.dependency_overrides.
"""
import hashlib
import hmac
import time
from typing import Dict, List, Optional

import httpx
import pymupdf
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from covercraft.core.auth_dependency import AuthenticatedUser, get_db, get_identity_resolver
from covercraft.core.dependencies import (
    get_direct_provider,
    get_generation_gateway,
    get_payment_providers,
)
from covercraft.db.base import Base
from covercraft.db.models import GenerationLog, Profile  # noqa: F401 - registers tables
from covercraft.llm.provider import LLMProvider, LLMProviderError, LLMResponse
from covercraft.main import app
from covercraft.services.generation_service import GenerationGateway
from covercraft.services.lemon_service import LemonSqueezyProvider
from covercraft.services.profile_store import ProfileStore
from covercraft.services.stripe_service import StripeProvider

# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

BACKEND_URL = "http://backend.test"
STRIPE_WEBHOOK_SECRET = "whsec_test_secret"
LEMON_WEBHOOK_SECRET = "lemon_test_secret"

USER_ID = "11111111-1111-1111-1111-111111111111"
USER_EMAIL = "jane@example.com"
USER_TOKEN = "token-jane"
OTHER_USER_ID = "22222222-2222-2222-2222-222222222222"
OTHER_USER_TOKEN = "token-bob"

USERS = {
    USER_TOKEN: AuthenticatedUser(id=USER_ID, email=USER_EMAIL),
    OTHER_USER_TOKEN: AuthenticatedUser(id=OTHER_USER_ID, email="bob@example.com"),
}


class FakeIdentityResolver:
    """Token -> user lookup standing in for the Supabase auth API."""

    def __init__(self, users: Dict[str, AuthenticatedUser]):
        self.users = users

    def resolve(self, token: Optional[str]) -> Optional[AuthenticatedUser]:
        return self.users.get(token or "")


class FakeLLMProvider(LLMProvider):
    """Direct provider returning a canned reply or raising a canned error."""

    def __init__(self, content: str = "Direct letter.", error: Optional[LLMProviderError] = None):
        self.model = "test-model"
        self.base_url = "http://provider.test/v1"
        self.content = content
        self.error = error
        self.calls: List[dict] = []

    def chat(self, messages, model=None, temperature=0.7, max_tokens=None, **kwargs):
        self.calls.append({"messages": messages, "temperature": temperature})
        if self.error:
            raise self.error
        return LLMResponse(content=self.content, model=self.model)

    def list_models(self):
        if self.error:
            raise self.error
        return ["test-model", "other-model"]


class BackendStub:
    """httpx MockTransport handler recording calls to the generation backend."""

    def __init__(self, status_code: int = 200, json_body: Optional[dict] = None, exc: Optional[Exception] = None):
        self.status_code = status_code
        self.json_body = json_body if json_body is not None else {"text": "Backend letter."}
        self.exc = exc
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.exc:
            raise self.exc
        return httpx.Response(self.status_code, json=self.json_body)


def make_gateway(
    backend: Optional[BackendStub] = None,
    direct_provider: Optional[LLMProvider] = None,
    allow_local_fallback: bool = False,
) -> GenerationGateway:
    backend = backend or BackendStub()
    return GenerationGateway(
        backend_url=BACKEND_URL,
        direct_provider=direct_provider,
        allow_local_fallback=allow_local_fallback,
        http_client=httpx.Client(transport=httpx.MockTransport(backend)),
    )


def stripe_signature(payload: str, secret: str = STRIPE_WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """Stripe-Signature header value for a payload."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def lemon_signature(payload: bytes, secret: str = LEMON_WEBHOOK_SECRET) -> str:
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def make_pdf(text: str) -> bytes:
    """Single-page text PDF."""
    doc = pymupdf.open()
    page = doc.new_page()
    page.insert_textbox(pymupdf.Rect(40, 40, 560, 800), text, fontsize=9)
    data = doc.tobytes()
    doc.close()
    return data


def auth_headers(token: str = USER_TOKEN) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=test_engine)
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def store(db):
    return ProfileStore(db)


@pytest.fixture
def backend():
    return BackendStub()


@pytest.fixture
def gateway(backend):
    return make_gateway(backend)


@pytest.fixture
def stripe_provider():
    return StripeProvider(
        secret_key="sk_test_1234567890",
        webhook_secret=STRIPE_WEBHOOK_SECRET,
        price_id="price_test_monthly",
    )


@pytest.fixture
def lemon_provider():
    return LemonSqueezyProvider(webhook_secret=LEMON_WEBHOOK_SECRET, product_id="777")


@pytest.fixture
def payment_providers(stripe_provider, lemon_provider):
    return {"stripe": stripe_provider, "lemon": lemon_provider}


@pytest.fixture
def client(db, gateway, payment_providers):
    """TestClient with every external collaborator replaced."""

    def override_get_db():
        session = TestSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_identity_resolver] = lambda: FakeIdentityResolver(USERS)
    app.dependency_overrides[get_generation_gateway] = lambda: gateway
    app.dependency_overrides[get_direct_provider] = lambda: gateway.direct_provider
    app.dependency_overrides[get_payment_providers] = lambda: payment_providers
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def profile(store):
    """Existing free profile for the default test user."""
    return store.ensure(USER_ID, USER_EMAIL)
