"""
Request-level security helpers: CSRF tokens, input sanitising, password
hashing and the honeypot check used by the public forms.
"""

import hmac
import logging
import re
import secrets
from typing import Mapping, Optional

import bcrypt
from flask import request, session
from markupsafe import Markup

from storefront.core.exceptions import CsrfError, ValidationError

logger = logging.getLogger(__name__)

CSRF_SESSION_KEY = "csrf_token"
CSRF_FORM_FIELD = "csrf_token"
CSRF_HEADER = "X-CSRF-Token"

# striptags keeps element text; script and style bodies go entirely
SCRIPT_OR_STYLE = re.compile(r"<(script|style)\b[^>]*>.*?(</\1\s*>|$)", re.IGNORECASE | re.DOTALL)


def generate_hex_token() -> str:
    """64 hexadecimal characters from the OS CSPRNG."""
    return secrets.token_hex(32)


# ---------------------------------------------------------------------- #
# CSRF                                                                     #
# ---------------------------------------------------------------------- #

def ensure_csrf_token() -> str:
    token = session.get(CSRF_SESSION_KEY)
    if not token:
        token = generate_hex_token()
        session[CSRF_SESSION_KEY] = token
    return token


def validate_csrf_token(token: Optional[str]) -> bool:
    expected = session.get(CSRF_SESSION_KEY)
    if not expected or not token:
        return False
    return hmac.compare_digest(expected, token)


def require_csrf(form: Optional[Mapping[str, str]] = None) -> None:
    """Reject the current request unless it carries the session's CSRF token."""
    form = request.form if form is None else form
    token = form.get(CSRF_FORM_FIELD) or request.headers.get(CSRF_HEADER)
    if not validate_csrf_token(token):
        logger.warning("CSRF token mismatch on %s %s from %s", request.method, request.path, request.remote_addr)
        raise CsrfError()


def check_honeypot(form: Mapping[str, str], field: str = "honeypot") -> None:
    """Bots fill every field; a hidden one left non-empty rejects the post."""
    if form.get(field):
        logger.warning("Honeypot field %r filled on %s from %s", field, request.path, request.remote_addr)
        raise ValidationError("Your submission could not be processed.")


# ---------------------------------------------------------------------- #
# Input sanitising                                                         #
# ---------------------------------------------------------------------- #

def sanitize_input(value: Optional[str]) -> str:
    """Trim and drop markup from single-line text input."""
    if value is None:
        return ""
    return Markup(SCRIPT_OR_STYLE.sub("", str(value))).striptags().strip()


# ---------------------------------------------------------------------- #
# Passwords                                                                #
# ---------------------------------------------------------------------- #

class PasswordHasher:
    """bcrypt hashing for passwords and remember-me tokens."""

    def __init__(self, rounds: int = 12):
        self.rounds = rounds

    def hash(self, secret: str) -> str:
        # Bcrypt only accepts up to 72 bytes
        secret_bytes = secret.encode("utf-8")[:72]
        return bcrypt.hashpw(secret_bytes, bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, secret: str, hashed: Optional[str]) -> bool:
        if not secret or not hashed:
            return False
        try:
            return bcrypt.checkpw(secret.encode("utf-8")[:72], hashed.encode("utf-8"))
        except ValueError as e:
            # Malformed stored hash
            logger.error(f"Password verification failed: {e}")
            return False
