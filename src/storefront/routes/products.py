import logging

from flask import Blueprint, flash, render_template, request

from storefront.core.dependencies import get_service
from storefront.core.exceptions import ValidationError
from storefront.services.product_service import ProductService

logger = logging.getLogger(__name__)

products_bp = Blueprint("products", __name__)

FILTER_ARGS = ("q", "category_id", "min_price", "max_price")


@products_bp.route("/", methods=["GET"])
def catalog():
    """Catalog page; keyword, category and price range filters combine."""
    service = get_service(ProductService)
    filters = {key: request.args[key] for key in FILTER_ARGS if request.args.get(key, "").strip()}

    pagination = None
    try:
        pagination = service.filter_products({**filters, "page": request.args.get("page", "")})
        products = pagination.products
    except ValidationError as e:
        flash(e.message, "danger")
        products = []

    return render_template(
        "products/catalog.html",
        products=products,
        pagination=pagination,
        categories=service.list_categories(),
        filters=filters,
    )


@products_bp.route("/<slug>", methods=["GET"])
def detail(slug):
    product = get_service(ProductService).get_product_by_slug(slug)
    return render_template("products/detail.html", product=product)
