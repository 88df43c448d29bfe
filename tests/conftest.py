"""
Shared fixtures.

Environment variables are set before anything from lorasim is imported,
since Settings is read at import time.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("STACK_PROJECT_ID", "test-project")
os.environ.setdefault("FROSTGUARD_WEBHOOK_SECRET", "whsec_test_secret")

from datetime import datetime, timedelta, timezone  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from cryptography.hazmat.primitives import serialization  # noqa: E402
from cryptography.hazmat.primitives.asymmetric import rsa  # noqa: E402
from jose import jwk, jwt  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402

from lorasim.core.config import get_settings  # noqa: E402
from lorasim.db.session import get_db  # noqa: E402
from lorasim.dependencies import get_auth_context  # noqa: E402
from lorasim.models import Base  # noqa: E402
from lorasim.models.profile import Role  # noqa: E402
from lorasim.schemas.auth import AuthContext  # noqa: E402
from main import app  # noqa: E402

TEST_KID = "test-key-1"


# ── Database ──────────────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


# ── HTTP client ───────────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def login_as():
    """Bypass token verification and act as the given role / organisation."""

    def _login(role: Role = Role.admin, organization_id: str = "org-1", user_id: str = "user-1"):
        context = AuthContext(user_id=user_id, organization_id=organization_id, role=role)
        app.dependency_overrides[get_auth_context] = lambda: context
        return context

    return _login


# ── Identity tokens ───────────────────────────────────────────────────────────

@pytest.fixture(scope="session")
def rsa_private_pem() -> bytes:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


@pytest.fixture(scope="session")
def jwks_document(rsa_private_pem) -> dict:
    public_key = jwk.construct(rsa_private_pem, algorithm="RS256").public_key()
    key = public_key.to_dict()
    key["kid"] = TEST_KID
    key["use"] = "sig"
    return {"keys": [key]}


@pytest.fixture
def make_token(rsa_private_pem):
    settings = get_settings()

    def _make(
        sub: str = "user-1",
        organization_id: str | None = "org-1",
        issuer: str | None = None,
        audience: str | None = None,
        kid: str = TEST_KID,
        expires_in: int = 600,
    ) -> str:
        claims = {
            "sub": sub,
            "iss": issuer or settings.token_issuer,
            "aud": audience or settings.token_audience,
            "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
            "iat": datetime.now(timezone.utc),
        }
        if organization_id is not None:
            claims["client_metadata"] = {"organizationId": organization_id}
        return jwt.encode(claims, rsa_private_pem, algorithm="RS256", headers={"kid": kid})

    return _make


class CountingJWKSServer:
    """Serves the test JWKS over httpx.MockTransport and counts fetches."""

    def __init__(self, document: dict) -> None:
        self.document = document
        self.calls = 0
        self.transport = httpx.MockTransport(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        return httpx.Response(200, json=self.document)


@pytest.fixture
def jwks_server(jwks_document):
    return CountingJWKSServer(jwks_document)
