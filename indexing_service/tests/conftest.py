"""
Pytest configuration for indexing_service. In-memory SQLite and fake upstream URLs so tests
never touch the filesystem or the real Google endpoints.
"""
import json
import os
from urllib.parse import parse_qs

# Must be set before indexing_service.config is imported
os.environ["INDEXING_DATABASE_URL"] = "sqlite:///:memory:"
os.environ["GOOGLE_TOKEN_URI"] = "https://oauth2.test/token"
os.environ["GOOGLE_INDEXING_PUBLISH_URL"] = "https://indexing.test/v3/urlNotifications:publish"
os.environ["IDENTITY_USER_URL"] = "https://identity.test/auth/v1/user"
for _var in ("INDEXING_SEED_USER_ID", "INDEXING_SEED_SERVICE_ACCOUNT_FILE"):
    os.environ.pop(_var, None)

import httpx
import pytest
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.rsa import generate_private_key

from indexing_service.assertion import AssertionSigner
from indexing_service.credentials import SqlCredentialStore
from indexing_service.database import SessionLocal, engine, init_db
from indexing_service.errors import AuthError
from indexing_service.models import Base, GoogleCredential
from indexing_service.orchestrator import RequestOrchestrator
from indexing_service.publish import PublishClient
from indexing_service.token_exchange import TokenExchanger

TOKEN_URI = os.environ["GOOGLE_TOKEN_URI"]
PUBLISH_URL = os.environ["GOOGLE_INDEXING_PUBLISH_URL"]
CLIENT_EMAIL = "indexer@demo-project.iam.gserviceaccount.com"


@pytest.fixture(scope="session")
def rsa_key():
    return generate_private_key(65537, 2048, default_backend())


@pytest.fixture(scope="session")
def private_pem(rsa_key) -> str:
    return rsa_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    init_db()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_credential(db, private_pem):
    """Insert a google_credentials row for user_id; returns the row."""

    def _make(user_id: str = "user-1", *, status: str = "pending", private_key: str | None = None, error_message=None):
        row = GoogleCredential(
            user_id=user_id,
            project_id="demo-project",
            client_email=CLIENT_EMAIL,
            private_key=private_pem if private_key is None else private_key,
            status=status,
            error_message=error_message,
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        return row

    return _make


class FakeIdentity:
    """Maps bearer tokens to user ids; records every call."""

    def __init__(self, users: dict[str, str] | None = None):
        self.users = users if users is not None else {"caller-token": "user-1"}
        self.calls: list[str] = []

    def verify(self, bearer_token: str):
        self.calls.append(bearer_token)
        user_id = self.users.get(bearer_token)
        if user_id is None:
            return AuthError("Invalid token")
        return user_id


class FakeGoogle:
    """
    httpx.MockTransport handler standing in for the token endpoint and the Indexing API.
    Set token_response / publish_response to (status, body); body may be any JSON value or raw bytes.
    """

    def __init__(self):
        self.token_response = (200, {"access_token": "ya29.fake-token", "expires_in": 3599, "token_type": "Bearer"})
        self.publish_response = (200, {"urlNotificationMetadata": {"url": "https://example.com/page"}})
        self.token_requests: list[dict] = []
        self.publish_requests: list[httpx.Request] = []

    @property
    def calls(self) -> int:
        return len(self.token_requests) + len(self.publish_requests)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if url == TOKEN_URI:
            self.token_requests.append({k: v[0] for k, v in parse_qs(request.content.decode()).items()})
            status, body = self.token_response
        elif url == PUBLISH_URL:
            self.publish_requests.append(request)
            status, body = self.publish_response
        else:
            return httpx.Response(404, json={"error": "unexpected url"})
        if isinstance(body, bytes):
            return httpx.Response(status, content=body)
        return httpx.Response(status, json=body)

    def published_json(self, index: int = -1) -> dict:
        return json.loads(self.publish_requests[index].content)


@pytest.fixture
def fake_google():
    return FakeGoogle()


@pytest.fixture
def http_client(fake_google):
    client = httpx.Client(transport=httpx.MockTransport(fake_google))
    try:
        yield client
    finally:
        client.close()


@pytest.fixture
def fake_identity():
    return FakeIdentity()


@pytest.fixture
def orchestrator(db, fake_identity, http_client):
    return RequestOrchestrator(
        identity=fake_identity,
        store=SqlCredentialStore(SessionLocal),
        signer=AssertionSigner(audience=TOKEN_URI),
        exchanger=TokenExchanger(http_client, token_uri=TOKEN_URI),
        publisher=PublishClient(http_client, publish_url=PUBLISH_URL),
    )
