import json
import logging
from typing import Any, Dict, Optional, Tuple

from storefront.core.config import Config
from storefront.core.exceptions import (
    ConflictError,
    ExternalServiceError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
    handle_error,
)
from storefront.core.security import PasswordHasher, generate_hex_token, sanitize_input
from storefront.db import MAX_BIGINT, transaction
from storefront.repositories import PasswordResetRepository, RememberMeRepository, UserRepository
from storefront.services.mail_service import MailService
from storefront.utils.date_utils import DateUtils
from storefront.utils.validators import ValidationUtils

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid username or password."
INVALID_RESET_LINK = "This password reset link is invalid or has expired."
# {"user_id": <bigint>, "token": <64 hex>} fits well inside this
MAX_COOKIE_LENGTH = 256


class AuthService:
    """
    Account lifecycle: registration, email activation, login, remember-me
    auto-login and password reset.
    """

    def __init__(
        self,
        users: UserRepository,
        resets: PasswordResetRepository,
        remember_tokens: RememberMeRepository,
        mailer: MailService,
        hasher: PasswordHasher,
        config: Config,
    ):
        self.users = users
        self.resets = resets
        self.remember_tokens = remember_tokens
        self.mailer = mailer
        self.hasher = hasher
        self.config = config

    # ------------------------------------------------------------------ #
    # Registration and activation                                          #
    # ------------------------------------------------------------------ #

    def register(self, username: str, email: str, password: str, confirm_password: str) -> int:
        username = sanitize_input(username)
        email = sanitize_input(email)

        if password != confirm_password:
            raise ValidationError("Passwords do not match.")
        error = (
            ValidationUtils.validate_username(username)
            or ValidationUtils.validate_email(email)
            or ValidationUtils.validate_password(password)
        )
        if error:
            raise ValidationError(error)

        email = ValidationUtils.normalize_email(email)
        if self.users.username_or_email_exists(username, email):
            raise ConflictError("Username or email already exists.")

        activation_code = generate_hex_token()
        user_id = self.users.create(
            username=username,
            email=email,
            password_hash=self.hasher.hash(password),
            activation_code=activation_code,
        )
        logger.info("Registered user %s (id=%s)", username, user_id)

        try:
            self.mailer.send_activation_email(email, username, self.activation_link(activation_code))
        except ExternalServiceError as e:
            # The account exists; the link can be re-sent from the resend page
            handle_error(f"Activation email for {username} failed: {e.internal_message}", self.config)
        return user_id

    def activation_link(self, code: str) -> str:
        return f"{self.config.base_url}/auth/activate?code={code}"

    def activate_account(self, code: Optional[str]) -> str:
        code = sanitize_input(code)
        if not ValidationUtils.is_hex_token(code):
            raise ValidationError("Invalid activation code.")

        with transaction() as conn:
            user = self.users.get_by_activation_code_for_update(code, conn)
            if user is None:
                raise ValidationError("Invalid activation code.")
            if user["is_active"]:
                return "Account already activated."
            self.users.activate(user["user_id"], conn)

        logger.info("Activated user %s", user["username"])
        return "Account activated successfully."

    def resend_activation_email(self, username: str) -> None:
        username = sanitize_input(username)
        user = self.users.get_by_username(username)
        if user is None:
            raise NotFoundError("User does not exist.")
        if user["is_active"]:
            raise ConflictError("User is already active.")

        code = user["activation_code"]
        if not code:
            code = generate_hex_token()
            self.users.set_activation_code(user["user_id"], code)

        self.mailer.send_activation_email(user["email"], user["username"], self.activation_link(code))

    # ------------------------------------------------------------------ #
    # Login                                                                #
    # ------------------------------------------------------------------ #

    def authenticate(self, username: str, password: str) -> Dict[str, Any]:
        username = sanitize_input(username)
        if ValidationUtils.validate_username(username) or not password:
            raise UnauthorizedError(INVALID_CREDENTIALS)

        user = self.users.get_by_username(username)
        if user is None or not self.hasher.verify(password, user["password"]):
            logger.warning("Failed login for username %r", username)
            raise UnauthorizedError(INVALID_CREDENTIALS)

        if not user["is_active"]:
            raise ForbiddenError("Account not activated. Please check your email for the activation link.")

        logger.info("User %s logged in", username)
        return user

    # ------------------------------------------------------------------ #
    # Remember me                                                          #
    # ------------------------------------------------------------------ #

    def issue_remember_me(self, user_id: int, conn=None) -> str:
        """Store a hashed token and return the cookie value carrying the raw one."""
        raw_token = generate_hex_token()
        expires_at = DateUtils.create_expiry_time(days=self.config.security.remember_me_days)
        self.remember_tokens.create(user_id, self.hasher.hash(raw_token), expires_at, conn=conn)
        return json.dumps({"user_id": user_id, "token": raw_token})

    @staticmethod
    def _parse_cookie(cookie_value: Optional[str]) -> Optional[Tuple[int, str]]:
        if not cookie_value or len(cookie_value) > MAX_COOKIE_LENGTH:
            return None
        try:
            data = json.loads(cookie_value)
        except (ValueError, RecursionError):
            return None
        if not isinstance(data, dict):
            return None
        user_id, token = data.get("user_id"), data.get("token")
        if isinstance(user_id, bool) or not isinstance(user_id, int) or not 0 < user_id <= MAX_BIGINT:
            return None
        if not isinstance(token, str) or not ValidationUtils.is_hex_token(token):
            return None
        return user_id, token

    def _match_token(self, user_id: int, token: str) -> Optional[Dict[str, Any]]:
        now = DateUtils.now_utc()
        self.remember_tokens.delete_expired(user_id, now)
        for row in self.remember_tokens.active_for_user(user_id, now):
            if self.hasher.verify(token, row["token_hash"]):
                return row
        return None

    def verify_remember_me(self, cookie_value: Optional[str]) -> Optional[Tuple[Dict[str, Any], str]]:
        """
        Log a returning visitor in from the remember_me cookie.

        The matched token is consumed and a fresh one issued, so a copied
        cookie stops working once the owner's browser uses it. Returns the
        user and the replacement cookie value, or None.
        """
        parsed = self._parse_cookie(cookie_value)
        if parsed is None:
            return None
        user_id, token = parsed

        row = self._match_token(user_id, token)
        if row is None:
            logger.info("Remember-me token rejected for user id %s", user_id)
            return None

        user = self.users.get_by_id(user_id)
        if user is None or not user["is_active"]:
            self.remember_tokens.delete_for_user(user_id)
            return None

        with transaction() as conn:
            self.remember_tokens.delete(row["token_id"], conn=conn)
            new_cookie = self.issue_remember_me(user_id, conn=conn)

        logger.info("User %s logged in from remember-me cookie", user["username"])
        return user, new_cookie

    def forget_remember_me(self, cookie_value: Optional[str]) -> None:
        parsed = self._parse_cookie(cookie_value)
        if parsed is None:
            return
        row = self._match_token(*parsed)
        if row is not None:
            self.remember_tokens.delete(row["token_id"])

    # ------------------------------------------------------------------ #
    # Password reset                                                       #
    # ------------------------------------------------------------------ #

    def request_password_reset(self, identifier: str) -> None:
        identifier = sanitize_input(identifier)
        if not identifier:
            raise ValidationError("Please enter your email or username.")

        if "@" in identifier:
            error = ValidationUtils.validate_email(identifier)
            user = None if error else self.users.get_by_email(identifier)
        else:
            error = ValidationUtils.validate_username(identifier)
            user = None if error else self.users.get_by_username(identifier)
        if error:
            raise ValidationError(error)
        if user is None:
            raise NotFoundError("Email or username not found.")

        now = DateUtils.now_utc()
        ttl = self.config.security.reset_token_ttl_minutes
        self.resets.purge_for_user(user["user_id"], now)

        token_hash = generate_hex_token()
        self.resets.create(user["user_id"], token_hash, DateUtils.create_expiry_time(minutes=ttl))

        link = f"{self.config.base_url}/auth/reset-password?hash={token_hash}"
        self.mailer.send_password_reset_email(user["email"], user["username"], link, ttl)
        logger.info("Password reset requested for user %s", user["username"])

    def validate_reset_token(self, token_hash: Optional[str]) -> Optional[Dict[str, Any]]:
        if not ValidationUtils.is_hex_token(token_hash):
            return None
        return self.resets.find_valid(token_hash, DateUtils.now_utc())

    def reset_password(self, token_hash: Optional[str], password: str, confirm_password: str) -> None:
        if not ValidationUtils.is_hex_token(token_hash):
            raise ValidationError(INVALID_RESET_LINK)

        if password != confirm_password:
            raise ValidationError("Passwords do not match.")
        error = ValidationUtils.validate_password(password)
        if error:
            raise ValidationError(error)

        password_hash = self.hasher.hash(password)
        now = DateUtils.now_utc()
        with transaction() as conn:
            token = self.resets.find_valid(token_hash, now, conn=conn)
            if token is None:
                raise ValidationError(INVALID_RESET_LINK)
            self.users.update_password(token["user_id"], password_hash, conn=conn)
            self.resets.mark_used(token["reset_id"], now, conn=conn)
            self.remember_tokens.delete_for_user(token["user_id"], conn=conn)

        logger.info("Password reset completed for user %s", token["username"])
