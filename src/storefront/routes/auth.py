import logging

from flask import Blueprint, flash, redirect, render_template, request, url_for

from storefront.core.dependencies import get_config, get_service
from storefront.core.recaptcha import validate_csrf_and_recaptcha
from storefront.core.security import check_honeypot, require_csrf
from storefront.core.session import (
    REMEMBER_COOKIE,
    clear_remember_cookie,
    login_session,
    logout_session,
    redirect_if_logged_in,
    set_remember_cookie,
)
from storefront.routes.utils import FORM_ERRORS, safe_next_url
from storefront.services.auth_service import AuthService

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__)


def _gate_public_form() -> None:
    validate_csrf_and_recaptcha(get_config().recaptcha)
    check_honeypot(request.form)


@auth_bp.route("/login", methods=["GET", "POST"])
@redirect_if_logged_in
def login():
    next_url = request.values.get("next", "")
    if request.method == "GET":
        return render_template("auth/login.html", next_url=next_url)

    auth = get_service(AuthService)
    username = request.form.get("username", "")
    try:
        _gate_public_form()
        user = auth.authenticate(username, request.form.get("password", ""))
    except FORM_ERRORS as e:
        flash(e.message, "danger")
        return render_template("auth/login.html", username=username, next_url=next_url), e.status_code

    login_session(user)
    response = redirect(safe_next_url(next_url) or url_for("pages.home"))
    if request.form.get("remember_me"):
        set_remember_cookie(response, auth.issue_remember_me(user["user_id"]))
    flash(f"Welcome back, {user['username']}!", "success")
    return response


@auth_bp.route("/logout", methods=["POST"])
def logout():
    require_csrf()
    get_service(AuthService).forget_remember_me(request.cookies.get(REMEMBER_COOKIE))
    logout_session()
    response = redirect(url_for("pages.home"))
    clear_remember_cookie(response)
    flash("You have been logged out.", "info")
    return response


@auth_bp.route("/register", methods=["GET", "POST"])
@redirect_if_logged_in
def register():
    if request.method == "GET":
        return render_template("auth/register.html")

    username = request.form.get("username", "")
    email = request.form.get("email", "")
    try:
        _gate_public_form()
        get_service(AuthService).register(
            username,
            email,
            request.form.get("password", ""),
            request.form.get("confirm_password", ""),
        )
    except FORM_ERRORS as e:
        flash(e.message, "danger")
        return render_template("auth/register.html", username=username, email=email), e.status_code

    flash("Registration successful! Please check your email to activate your account.", "success")
    return redirect(url_for("auth.login"))


@auth_bp.route("/activate", methods=["GET"])
def activate():
    try:
        message = get_service(AuthService).activate_account(request.args.get("code"))
    except FORM_ERRORS as e:
        flash(e.message, "danger")
        return redirect(url_for("auth.resend_activation"))
    flash(message, "success")
    return redirect(url_for("auth.login"))


@auth_bp.route("/resend-activation", methods=["GET", "POST"])
@redirect_if_logged_in
def resend_activation():
    if request.method == "GET":
        return render_template("auth/resend_activation.html")

    username = request.form.get("username", "")
    try:
        _gate_public_form()
        get_service(AuthService).resend_activation_email(username)
    except FORM_ERRORS as e:
        flash(e.message, "danger")
        return render_template("auth/resend_activation.html", username=username), e.status_code

    flash("A new activation link has been sent to your email.", "success")
    return redirect(url_for("auth.login"))


@auth_bp.route("/forgot-password", methods=["GET", "POST"])
@redirect_if_logged_in
def forgot_password():
    if request.method == "GET":
        return render_template("auth/forgot_password.html")

    identifier = request.form.get("email_or_username", "")
    try:
        _gate_public_form()
        get_service(AuthService).request_password_reset(identifier)
    except FORM_ERRORS as e:
        flash(e.message, "danger")
        return render_template("auth/forgot_password.html", identifier=identifier), e.status_code

    flash("Password reset instructions have been sent to your email.", "success")
    return redirect(url_for("auth.login"))


@auth_bp.route("/reset-password", methods=["GET", "POST"])
def reset_password():
    auth = get_service(AuthService)
    token_hash = request.values.get("hash", "")

    if request.method == "GET":
        if auth.validate_reset_token(token_hash) is None:
            flash("This password reset link is invalid or has expired.", "danger")
            return redirect(url_for("auth.forgot_password"))
        return render_template("auth/reset_password.html", token_hash=token_hash)

    try:
        _gate_public_form()
        auth.reset_password(
            token_hash,
            request.form.get("password", ""),
            request.form.get("confirm_password", ""),
        )
    except FORM_ERRORS as e:
        flash(e.message, "danger")
        return render_template("auth/reset_password.html", token_hash=token_hash), e.status_code

    flash("Your password has been reset. You can now log in.", "success")
    return redirect(url_for("auth.login"))
