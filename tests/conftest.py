import pytest
from fastapi.testclient import TestClient
from passlib.context import CryptContext

import auth
import errors
from catalog import Catalog
from database import FileDatabase
from deps import get_catalog, get_db, get_google_verifier, get_mailer, get_settings
from main import app
from mailer import Mailer
from schemas import Category, Product
from settings import Settings


class FakeSMTP:
    """Stands in for smtplib.SMTP and keeps every message it is asked to send."""

    def __init__(self, outbox, host, port, timeout=None):
        self.outbox = outbox
        self.host = host
        self.port = port
        self.logged_in = False

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def starttls(self):
        pass

    def login(self, user, password):
        self.logged_in = True

    def send_message(self, message):
        assert self.logged_in
        self.outbox.append(message)


class FakeGoogleVerifier:

    def __init__(self, tokens):
        self.tokens = tokens

    def verify(self, token):
        if token not in self.tokens:
            raise errors.AuthenticationError("Google verification failed")
        return self.tokens[token]


@pytest.fixture(autouse=True)
def fast_password_hashing(monkeypatch):
    monkeypatch.setattr(auth, "pwd_context", CryptContext(schemes=["bcrypt"], bcrypt__rounds=4))


@pytest.fixture
def settings(tmp_path):
    return Settings(
        data_dir=str(tmp_path / "data"),
        jwt_secret="test-secret",
        email_user="ventas@example.com",
        email_pass="app-password",
    )


@pytest.fixture
def db(settings):
    return FileDatabase(settings.data_dir)


@pytest.fixture
def catalog():
    return Catalog(
        [
            Product(id="P1", name="Trail Helmet", brand="Bell", category="accessories", price=40.00, tag="deal"),
            Product(id="P2", name="Road Bike", brand="Trek", category="bikes", price=1499.99),
            Product(id="P3", name="Bottle Cage", brand="Elite", category="accessories", price=24.49, tag="deal"),
            Product(id="P4", name="Chain", brand="Shimano", category="components", price=0.10, tag="new"),
        ],
        [
            Category(id="accessories", name="Accessories"),
            Category(id="bikes", name="Bikes"),
            Category(id="components", name="Components"),
        ],
    )


@pytest.fixture
def outbox():
    return []


@pytest.fixture
def mailer(settings, outbox):
    return Mailer(settings, smtp_factory=lambda host, port, timeout=None: FakeSMTP(outbox, host, port, timeout))


@pytest.fixture
def google_tokens():
    return {
        "good-token": {"email": "maria@gmail.com", "name": "Maria Lopez"},
        "no-email-token": {"name": "Nobody"},
    }


@pytest.fixture
def client(settings, db, catalog, mailer, google_tokens):
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_catalog] = lambda: catalog
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_google_verifier] = lambda: FakeGoogleVerifier(google_tokens)
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def register(client):
    """Sign up an account and return (token, user)."""
    def _register(email, password="s3cret-pass", name="Test User"):
        response = client.post("/api/auth/signup", json={"email": email, "password": password, "name": name})
        assert response.status_code == 200, response.text
        body = response.json()
        return body["token"], body["user"]
    return _register