"""
Unit tests for CSRF, honeypot, sanitising, password hashing and reCAPTCHA
"""
import pytest
import requests
from flask import session

from storefront.core.config import RecaptchaConfig
from storefront.core.exceptions import CsrfError, ExternalServiceError, RecaptchaError, ValidationError
from storefront.core.recaptcha import validate_csrf_and_recaptcha, verify_recaptcha
from storefront.core.security import (
    CSRF_SESSION_KEY,
    PasswordHasher,
    check_honeypot,
    ensure_csrf_token,
    generate_hex_token,
    require_csrf,
    sanitize_input,
)
from storefront.utils.validators import ValidationUtils


class TestPasswordHashing:

    hasher = PasswordHasher(rounds=4)

    def test_hash_and_verify(self):
        hashed = self.hasher.hash("Secret123")
        assert hashed.startswith("$2b$")
        assert self.hasher.verify("Secret123", hashed)
        assert not self.hasher.verify("Secret124", hashed)

    def test_same_secret_different_hashes(self):
        assert self.hasher.hash("Secret123") != self.hasher.hash("Secret123")

    def test_malformed_hash_does_not_verify(self):
        assert not self.hasher.verify("Secret123", "not-a-bcrypt-hash")
        assert not self.hasher.verify("Secret123", None)


class TestSanitize:

    def test_strips_markup_and_whitespace(self):
        assert sanitize_input("  <b>Lamp</b><script>x</script> ") == "Lamp"

    def test_none_is_empty(self):
        assert sanitize_input(None) == ""


class TestTokens:

    def test_hex_token_shape(self):
        token = generate_hex_token()
        assert ValidationUtils.is_hex_token(token)
        assert token != generate_hex_token()


class TestCsrf:

    def test_token_is_stable_within_session(self, app):
        with app.test_request_context("/"):
            first = ensure_csrf_token()
            assert ensure_csrf_token() == first
            assert session[CSRF_SESSION_KEY] == first

    def test_form_field_accepted(self, app):
        with app.test_request_context("/", method="POST", data={"csrf_token": "t" * 64}):
            session[CSRF_SESSION_KEY] = "t" * 64
            require_csrf()

    def test_header_accepted(self, app):
        with app.test_request_context("/", method="POST", headers={"X-CSRF-Token": "t" * 64}):
            session[CSRF_SESSION_KEY] = "t" * 64
            require_csrf({})

    def test_mismatch_rejected(self, app):
        with app.test_request_context("/", method="POST", data={"csrf_token": "u" * 64}):
            session[CSRF_SESSION_KEY] = "t" * 64
            with pytest.raises(CsrfError):
                require_csrf()

    def test_missing_session_token_rejected(self, app):
        with app.test_request_context("/", method="POST", data={"csrf_token": "t" * 64}):
            with pytest.raises(CsrfError):
                require_csrf()


class TestHoneypot:

    def test_empty_field_passes(self, app):
        with app.test_request_context("/"):
            check_honeypot({"honeypot": ""})

    def test_filled_field_rejected(self, app):
        with app.test_request_context("/"):
            with pytest.raises(ValidationError):
                check_honeypot({"form-wa-honeypot": "spam"}, "form-wa-honeypot")


class FakeResponse:

    def __init__(self, payload, status=200):
        self.payload = payload
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status}")

    def json(self):
        return self.payload


class TestRecaptcha:

    config = RecaptchaConfig(site_key="site", secret_key="secret", enabled=True, timeout=1)

    def test_disabled_skips_check(self, monkeypatch):
        def fail(*args, **kwargs):
            raise AssertionError("should not be called")

        monkeypatch.setattr(requests, "post", fail)
        verify_recaptcha(RecaptchaConfig(enabled=False), None)

    def test_missing_response(self):
        with pytest.raises(RecaptchaError, match="Please complete the reCAPTCHA."):
            verify_recaptcha(self.config, "")

    def test_accepted(self, monkeypatch):
        calls = []

        def fake_post(url, data, timeout):
            calls.append((url, data))
            return FakeResponse({"success": True})

        monkeypatch.setattr(requests, "post", fake_post)
        verify_recaptcha(self.config, "widget-response", "10.0.0.1")
        assert calls[0][1] == {"secret": "secret", "response": "widget-response", "remoteip": "10.0.0.1"}

    def test_rejected(self, monkeypatch):
        monkeypatch.setattr(requests, "post", lambda *a, **k: FakeResponse({"success": False}))
        with pytest.raises(RecaptchaError, match="reCAPTCHA verification failed."):
            verify_recaptcha(self.config, "widget-response")

    def test_network_failure(self, monkeypatch):
        def boom(*args, **kwargs):
            raise requests.ConnectionError("down")

        monkeypatch.setattr(requests, "post", boom)
        with pytest.raises(ExternalServiceError):
            verify_recaptcha(self.config, "widget-response")

    def test_csrf_checked_before_recaptcha(self, app, monkeypatch):
        monkeypatch.setattr(requests, "post", lambda *a, **k: FakeResponse({"success": True}))
        form = {"csrf_token": "bad", "g-recaptcha-response": "widget-response"}
        with app.test_request_context("/", method="POST", data=form):
            session[CSRF_SESSION_KEY] = "t" * 64
            with pytest.raises(CsrfError):
                validate_csrf_and_recaptcha(self.config)
