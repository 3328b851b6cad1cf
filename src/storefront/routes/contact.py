from flask import Blueprint, flash, redirect, render_template, request

from storefront.core.dependencies import get_config, get_service
from storefront.core.recaptcha import validate_csrf_and_recaptcha
from storefront.core.security import check_honeypot
from storefront.routes.utils import FORM_ERRORS
from storefront.services.contact_service import ContactService

contact_bp = Blueprint("contact", __name__)

HONEYPOT_FIELD = "form-wa-honeypot"


@contact_bp.route("/", methods=["GET", "POST"])
def contact():
    if request.method == "GET":
        return render_template("contact/contact.html", form={})

    try:
        validate_csrf_and_recaptcha(get_config().recaptcha)
        check_honeypot(request.form, HONEYPOT_FIELD)
        link = get_service(ContactService).build_whatsapp_link(request.form)
    except FORM_ERRORS as e:
        flash(e.message, "danger")
        return render_template("contact/contact.html", form=request.form), e.status_code

    return redirect(link)
