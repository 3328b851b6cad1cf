import logging
from typing import Dict, List, Optional

from flask import Blueprint, abort, flash, redirect, render_template, request, url_for

from storefront.core.dependencies import get_service
from storefront.core.exceptions import NotFoundError
from storefront.core.security import require_csrf
from storefront.core.session import admin_required, current_user
from storefront.routes.utils import FORM_ERRORS, form_data, parse_int
from storefront.services.admin_service import AdminService
from storefront.services.product_service import ProductService
from storefront.services.tag_service import TagService

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__)

ADMIN_NAV = (
    ("home", "Home", "admin.dashboard"),
    ("users", "Users", "admin.users"),
    ("products", "Products", "admin.products"),
    ("tags", "Tags", "admin.tags"),
)


def build_admin_nav(active_page: Optional[str]) -> List[Dict[str, str]]:
    """Sidebar items; only a known page name gets the active class."""
    known = {key for key, _, _ in ADMIN_NAV}
    active = active_page if active_page in known else None
    return [
        {"key": key, "label": label, "url": url_for(endpoint), "class": "active" if key == active else ""}
        for key, label, endpoint in ADMIN_NAV
    ]


def _render(template: str, active_page: str, **context):
    return render_template(template, admin_nav=build_admin_nav(active_page), **context)


def _admin_id() -> int:
    return current_user()["user_id"]


@admin_bp.route("/", methods=["GET"])
@admin_required
def dashboard():
    service = get_service(AdminService)
    return _render(
        "admin/dashboard.html",
        "home",
        stats=service.dashboard_stats(),
        activity=service.recent_activity(10),
    )


# ---------------------------------------------------------------------- #
# Users                                                                    #
# ---------------------------------------------------------------------- #

@admin_bp.route("/users", methods=["GET"])
@admin_required
def users():
    return _render("admin/users.html", "users", users=get_service(AdminService).list_users())


@admin_bp.route("/users/<int:user_id>/role", methods=["POST"])
@admin_required
def change_role(user_id):
    require_csrf()
    try:
        get_service(AdminService).change_user_role(_admin_id(), user_id, request.form.get("role", ""))
    except FORM_ERRORS as e:
        flash(e.message, "danger")
    else:
        flash("User role updated.", "success")
    return redirect(url_for("admin.users"))


@admin_bp.route("/users/<int:user_id>/delete", methods=["POST"])
@admin_required
def delete_user(user_id):
    require_csrf()
    try:
        get_service(AdminService).delete_user(_admin_id(), user_id)
    except FORM_ERRORS as e:
        flash(e.message, "danger")
    else:
        flash("User deleted.", "success")
    return redirect(url_for("admin.users"))


# ---------------------------------------------------------------------- #
# Products                                                                 #
# ---------------------------------------------------------------------- #

@admin_bp.route("/products", methods=["GET"])
@admin_required
def products():
    service = get_service(ProductService)
    page = max(parse_int(request.args.get("page"), 1), 1)
    return _render(
        "admin/products.html",
        "products",
        listing=service.list_products(page=page),
        categories=service.list_categories(),
    )


def _product_form(product=None, form=None, status: int = 200):
    service = get_service(ProductService)
    return _render(
        "admin/product_form.html",
        "products",
        product=product,
        form=form or {},
        categories=service.list_categories(),
        currencies=service.config.app.supported_currencies,
    ), status


@admin_bp.route("/products/new", methods=["GET", "POST"])
@admin_required
def new_product():
    if request.method == "GET":
        return _product_form()

    require_csrf()
    data = form_data()
    try:
        product_id = get_service(ProductService).create_product(data, request.files.get("image"))
    except FORM_ERRORS as e:
        flash(e.message, "danger")
        return _product_form(form=data, status=e.status_code)

    get_service(AdminService).log_admin_action(
        _admin_id(), "create_product", "products", product_id, data.get("product_name")
    )
    flash("Product created.", "success")
    return redirect(url_for("admin.products"))


@admin_bp.route("/products/<int:product_id>/edit", methods=["GET", "POST"])
@admin_required
def edit_product(product_id):
    service = get_service(ProductService)
    try:
        product = service.get_product(product_id)
    except NotFoundError:
        abort(404, "Product not found.")

    if request.method == "GET":
        return _product_form(product=product)

    require_csrf()
    data = form_data()
    try:
        service.update_product(product_id, data, request.files.get("image"))
    except FORM_ERRORS as e:
        flash(e.message, "danger")
        return _product_form(product=product, form=data, status=e.status_code)

    get_service(AdminService).log_admin_action(
        _admin_id(), "update_product", "products", product_id, data.get("product_name")
    )
    flash("Product updated.", "success")
    return redirect(url_for("admin.products"))


@admin_bp.route("/products/<int:product_id>/delete", methods=["POST"])
@admin_required
def delete_product(product_id):
    require_csrf()
    try:
        get_service(ProductService).delete_product(product_id)
    except FORM_ERRORS as e:
        flash(e.message, "danger")
    else:
        get_service(AdminService).log_admin_action(_admin_id(), "delete_product", "products", product_id)
        flash("Product deleted.", "success")
    return redirect(url_for("admin.products"))


@admin_bp.route("/categories", methods=["POST"])
@admin_required
def create_category():
    require_csrf()
    try:
        category_id = get_service(ProductService).create_category(request.form)
    except FORM_ERRORS as e:
        flash(e.message, "danger")
    else:
        get_service(AdminService).log_admin_action(
            _admin_id(), "create_category", "product_categories", category_id, request.form.get("category_name")
        )
        flash("Category created.", "success")
    return redirect(url_for("admin.products"))


# ---------------------------------------------------------------------- #
# Tags                                                                     #
# ---------------------------------------------------------------------- #

@admin_bp.route("/tags", methods=["GET", "POST"])
@admin_required
def tags():
    service = get_service(TagService)
    if request.method == "POST":
        require_csrf()
        name = request.form.get("tag_name", "")
        try:
            tag_id = service.create_tag(name)
        except FORM_ERRORS as e:
            flash(e.message, "danger")
        else:
            get_service(AdminService).log_admin_action(_admin_id(), "create_tag", "tags", tag_id, name)
            flash("Tag created.", "success")
        return redirect(url_for("admin.tags"))

    return _render("admin/tags.html", "tags", tags=service.list_tags())


@admin_bp.route("/tags/<int:tag_id>", methods=["POST"])
@admin_required
def update_tag(tag_id):
    require_csrf()
    name = request.form.get("tag_name", "")
    try:
        get_service(TagService).update_tag(tag_id, name)
    except FORM_ERRORS as e:
        flash(e.message, "danger")
    else:
        get_service(AdminService).log_admin_action(_admin_id(), "update_tag", "tags", tag_id, name)
        flash("Tag updated.", "success")
    return redirect(url_for("admin.tags"))


@admin_bp.route("/tags/<int:tag_id>/delete", methods=["POST"])
@admin_required
def delete_tag(tag_id):
    require_csrf()
    try:
        get_service(TagService).delete_tag(tag_id)
    except FORM_ERRORS as e:
        flash(e.message, "danger")
    else:
        get_service(AdminService).log_admin_action(_admin_id(), "delete_tag", "tags", tag_id)
        flash("Tag deleted.", "success")
    return redirect(url_for("admin.tags"))
