import logging

from flask import Blueprint, flash, redirect, render_template, request, url_for

from storefront.core.dependencies import get_service
from storefront.core.security import require_csrf
from storefront.core.session import clear_remember_cookie, current_user, login_required, logout_session
from storefront.routes.utils import FORM_ERRORS, form_data
from storefront.services.profile_service import ProfileService

logger = logging.getLogger(__name__)

profile_bp = Blueprint("profile", __name__)


@profile_bp.route("/", methods=["GET", "POST"])
@login_required
def view_profile():
    service = get_service(ProfileService)
    user_id = current_user()["user_id"]

    if request.method == "POST":
        require_csrf()
        try:
            service.update_profile(user_id, form_data())
        except FORM_ERRORS as e:
            flash(e.message, "danger")
        else:
            flash("Profile updated.", "success")
        return redirect(url_for("profile.view_profile"))

    info = service.get_user_info(user_id)
    return render_template(
        "profile/profile.html",
        info=info,
        image_url=service.profile_image_url(info.get("profile_image_filename")),
    )


@profile_bp.route("/image", methods=["POST"])
@login_required
def upload_image():
    require_csrf()
    try:
        get_service(ProfileService).update_profile_image(current_user()["user_id"], request.files.get("profile_image"))
    except FORM_ERRORS as e:
        flash(e.message, "danger")
    else:
        flash("Profile picture updated.", "success")
    return redirect(url_for("profile.view_profile"))


@profile_bp.route("/email", methods=["POST"])
@login_required
def change_email():
    require_csrf()
    try:
        get_service(ProfileService).change_email(current_user()["user_id"], request.form.get("email", ""))
    except FORM_ERRORS as e:
        flash(e.message, "danger")
    else:
        flash("Email address updated.", "success")
    return redirect(url_for("profile.view_profile"))


@profile_bp.route("/delete", methods=["POST"])
@login_required
def delete_account():
    require_csrf()
    try:
        get_service(ProfileService).delete_account(current_user()["user_id"], request.form.get("password", ""))
    except FORM_ERRORS as e:
        flash(e.message, "danger")
        return redirect(url_for("profile.view_profile"))

    logout_session()
    response = redirect(url_for("pages.home"))
    clear_remember_cookie(response)
    flash("Your account has been deleted.", "info")
    return response
