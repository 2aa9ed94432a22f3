"""Shared test fixtures for the mobile verification service."""

import json
import os
from collections.abc import AsyncIterator, Callable, Iterator

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from lmsmobile.core.settings import VerificationSettings
from lmsmobile.db.base import BaseEntity
from lmsmobile.verify.audit import VerificationAuditor
from lmsmobile.verify.types import VerificationRecord

SERVICE_ACCOUNT_EMAIL = "svc@lms-mobile.iam.gserviceaccount.com"

Handler = Callable[[httpx.Request], httpx.Response]


def _generate_keypair() -> tuple[str, str]:
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = (
        private_key.public_key()
        .public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode()
    )
    return private_pem, public_pem


@pytest.fixture(scope="session")
def rsa_keypair() -> tuple[str, str]:
    """A (private PEM, public PEM) pair shared across the test session."""
    return _generate_keypair()


@pytest.fixture(scope="session")
def other_keypair() -> tuple[str, str]:
    """A second keypair for wrong-key scenarios."""
    return _generate_keypair()


@pytest.fixture
def service_account_json(rsa_keypair: tuple[str, str]) -> str:
    """Service-account JSON in the shape Google issues."""
    private_pem, _ = rsa_keypair
    return json.dumps(
        {
            "type": "service_account",
            "project_id": "lms-mobile",
            "private_key_id": "abc123",
            "private_key": private_pem,
            "client_email": SERVICE_ACCOUNT_EMAIL,
            "token_uri": "https://oauth2.googleapis.com/token",
        }
    )


@pytest.fixture
def settings(service_account_json: str) -> VerificationSettings:
    """Settings with every provider configured."""
    return VerificationSettings(
        apple_shared_secret="shared-secret",
        google_service_account=service_account_json,
        firebase_project_id="lms-mobile",
        firebase_service_account=service_account_json,
        social_enabled=True,
        apple_client_id="com.example.lms",
        google_client_id="google-client.apps.googleusercontent.com",
        facebook_app_id="1234567890",
        facebook_app_secret="fb-secret",
        admin_token="admin-token",
    )


class RecordingSink:
    """Audit sink that keeps records in memory."""

    def __init__(self) -> None:
        self.records: list[VerificationRecord] = []

    async def store(self, record: VerificationRecord) -> None:
        self.records.append(record)


@pytest.fixture
def audit_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def auditor(audit_sink: RecordingSink) -> VerificationAuditor:
    return VerificationAuditor(audit_sink)


@pytest.fixture
async def make_http() -> AsyncIterator[Callable[[Handler], httpx.AsyncClient]]:
    """Factory for clients whose upstream calls go to a MockTransport handler."""
    clients: list[httpx.AsyncClient] = []

    def _make(handler: Handler) -> httpx.AsyncClient:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield _make

    for client in clients:
        await client.aclose()


@pytest.fixture
async def db_session() -> AsyncIterator[AsyncSession]:
    """Create an in-memory SQLite async session for tests."""
    engine = create_async_engine("sqlite+aiosqlite://", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(BaseEntity.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Remove LMS_MOBILE_* variables so settings tests see only defaults."""
    for name in list(os.environ):
        if name.startswith("LMS_MOBILE_"):
            monkeypatch.delenv(name)
    yield
