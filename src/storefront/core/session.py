"""
Session lifecycle: login/logout, the current user, access guards and the
remember-me auto-login hook.
"""

import logging
from functools import wraps
from typing import Any, Dict, Optional

from flask import flash, g, redirect, request, session, url_for

from storefront.core.dependencies import get_config, get_service
from storefront.core.exceptions import ForbiddenError, UnauthorizedError
from storefront.core.security import CSRF_SESSION_KEY, generate_hex_token
from storefront.repositories import UserRepository
from storefront.services.auth_service import AuthService

logger = logging.getLogger(__name__)

REMEMBER_COOKIE = "remember_me"


def login_session(user: Dict[str, Any]) -> None:
    """Start a fresh session for ``user``; the old session id is discarded."""
    session.clear()
    session["user_id"] = user["user_id"]
    session["username"] = user["username"]
    session["role"] = user["role"]
    session[CSRF_SESSION_KEY] = generate_hex_token()
    g.pop("_current_user", None)


def logout_session() -> None:
    session.clear()
    g.pop("_current_user", None)


def current_user() -> Optional[Dict[str, Any]]:
    if "_current_user" not in g:
        user_id = session.get("user_id")
        user = get_service(UserRepository).get_by_id(user_id) if user_id else None
        if user_id and (user is None or not user["is_active"]):
            # Account deleted or deactivated since login
            session.clear()
            user = None
        g._current_user = user
    return g._current_user


def login_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        if current_user() is None:
            flash("Please log in to continue.", "warning")
            return redirect(url_for("auth.login", next=request.full_path))
        return view(*args, **kwargs)

    return wrapped


def admin_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        user = current_user()
        if user is None:
            flash("Please log in to continue.", "warning")
            return redirect(url_for("auth.login", next=request.full_path))
        if user["role"] != "admin":
            logger.warning("Non-admin user %s tried to open %s", user["username"], request.path)
            flash("You do not have permission to access that page.", "danger")
            return redirect(url_for("pages.home"))
        return view(*args, **kwargs)

    return wrapped


def api_admin_required(view):
    """JSON flavour of ``admin_required``: raises instead of redirecting."""

    @wraps(view)
    def wrapped(*args, **kwargs):
        user = current_user()
        if user is None:
            raise UnauthorizedError("Please log in to continue.")
        if user["role"] != "admin":
            logger.warning("Non-admin user %s called %s", user["username"], request.path)
            raise ForbiddenError("Admin access required.")
        return view(*args, **kwargs)

    return wrapped


def redirect_if_logged_in(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        if current_user() is not None:
            return redirect(url_for("pages.home"))
        return view(*args, **kwargs)

    return wrapped


# ---------------------------------------------------------------------- #
# Remember me                                                              #
# ---------------------------------------------------------------------- #

def set_remember_cookie(response, value: str) -> None:
    config = get_config()
    response.set_cookie(
        REMEMBER_COOKIE,
        value,
        max_age=config.security.remember_me_days * 24 * 3600,
        httponly=True,
        secure=config.security.session_cookie_secure,
        samesite="Strict",
    )


def clear_remember_cookie(response) -> None:
    response.delete_cookie(REMEMBER_COOKIE, httponly=True, samesite="Strict")


def auto_login_from_cookie() -> None:
    """before_request hook: restore a session from a valid remember_me cookie."""
    if request.endpoint in ("static", "auth.logout") or session.get("user_id"):
        return
    cookie = request.cookies.get(REMEMBER_COOKIE)
    if not cookie:
        return

    result = get_service(AuthService).verify_remember_me(cookie)
    if result is None:
        g.clear_remember_cookie = True
        return

    user, new_cookie = result
    login_session(user)
    g.remember_cookie = new_cookie


def apply_remember_cookie(response):
    """after_request hook: write the rotated cookie or drop a rejected one."""
    if g.get("remember_cookie"):
        set_remember_cookie(response, g.remember_cookie)
    elif g.get("clear_remember_cookie"):
        clear_remember_cookie(response)
    return response
