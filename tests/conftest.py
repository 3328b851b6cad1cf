"""
Test configuration and fixtures for the storefront
"""
import io
from urllib.parse import urlsplit

import pytest
from PIL import Image
from sqlalchemy import text

from storefront import create_app, db
from storefront.core.config import Config
from storefront.core.dependencies import get_service
from storefront.core.security import CSRF_SESSION_KEY, PasswordHasher, generate_hex_token
from storefront.repositories import UserRepository
from storefront.services.mail_service import MailService

TEST_PASSWORD = "Secret123"
CSRF_TOKEN = "c" * 64


# =============================================================================
# Application
# =============================================================================

@pytest.fixture
def environ(tmp_path):
    """Environment for an in-memory SQLite app with outside services switched off"""
    return {
        "ENVIRONMENT": "local",
        "DATABASE_URL": "sqlite:///:memory:",
        "SECRET_KEY": "test-secret",
        "PASSWORD_HASH_ROUNDS": "4",
        "RECAPTCHA_ENABLED": "false",
        "MAIL_SUPPRESS_SEND": "true",
        "MAIL_FROM_ADDRESS": "shop@example.com",
        "PHONE_NUMBER": "6281234567890",
        "UPLOAD_FOLDER": str(tmp_path / "uploads"),
        "BASE_URL": "http://shop.test",
        "SITE_NAME": "Test Shop",
    }


@pytest.fixture
def config(environ) -> Config:
    return Config(environ)


@pytest.fixture
def app(config):
    """Fresh app and schema per test; no app context stays pushed."""
    app = create_app(config)
    app.config.update(TESTING=True)
    with app.app_context():
        db.create_schema()
    yield app


@pytest.fixture
def app_ctx(app):
    """Pushed app context for tests that call services directly"""
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def outbox(app):
    """Emails captured by the suppressed mailer"""
    with app.app_context():
        return get_service(MailService).outbox


# =============================================================================
# Users
# =============================================================================

def create_user(app, username="alice", email=None, password=TEST_PASSWORD, role="customer", is_active=True):
    with app.app_context():
        hasher = get_service(PasswordHasher)
        return get_service(UserRepository).create(
            username=username,
            email=email or f"{username}@example.com",
            password_hash=hasher.hash(password),
            activation_code=None if is_active else generate_hex_token(),
            role=role,
            is_active=is_active,
        )


def set_csrf(client, token=CSRF_TOKEN):
    with client.session_transaction() as sess:
        sess[CSRF_SESSION_KEY] = token
    return token


def login(client, username="alice", password=TEST_PASSWORD, **extra):
    set_csrf(client)
    data = {"username": username, "password": password, "csrf_token": CSRF_TOKEN}
    data.update(extra)
    response = client.post("/auth/login", data=data)
    # Login rotates the session's CSRF token
    with client.session_transaction() as sess:
        sess[CSRF_SESSION_KEY] = CSRF_TOKEN
    return response


@pytest.fixture
def user(app):
    return create_user(app)


@pytest.fixture
def admin(app):
    return create_user(app, username="boss", role="admin")


@pytest.fixture
def user_client(client, user):
    login(client)
    return client


@pytest.fixture
def admin_client(client, admin):
    login(client, username="boss")
    return client


def email_link_path(message):
    """Path and query of the first link in the plain-text part of an email"""
    body = message.get_body(preferencelist=("plain",)).get_content()
    link = next(word for word in body.split() if word.startswith("http"))
    parts = urlsplit(link)
    return f"{parts.path}?{parts.query}"


def query_scalar(sql, **params):
    with db.get_connection() as conn:
        return conn.execute(text(sql), params).scalar()


def execute_sql(sql, **params):
    with db.transaction() as conn:
        conn.execute(text(sql), params)


def image_bytes(image_format="PNG", size=(4, 4)):
    """A small real image encoded in ``image_format``"""
    buffer = io.BytesIO()
    Image.new("RGB", size, (200, 120, 40)).save(buffer, image_format)
    return buffer.getvalue()
