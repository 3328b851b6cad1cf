import logging

from flask import Blueprint, request

from storefront.core.dependencies import get_service
from storefront.core.exceptions import ValidationError
from storefront.core.security import require_csrf
from storefront.core.session import api_admin_required, current_user
from storefront.schemas.forms import (
    CategoryFilterSchema,
    DeleteSelectedSchema,
    PaginationSchema,
    SearchSchema,
    load_form,
)
from storefront.routes.utils import success_response
from storefront.services.admin_service import AdminService
from storefront.services.product_service import ProductService
from storefront.services.tag_service import TagService

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__)


def _dump(models):
    return [m.model_dump(mode="json") for m in models]


@api_bp.route("/products", methods=["GET"])
def list_products():
    """Paginated products with their categories and tags."""
    args = load_form(PaginationSchema(), request.args)
    result = get_service(ProductService).list_products(page=args["page"], limit=args["limit"])
    return success_response(result.model_dump(mode="json"))


@api_bp.route("/products/by-category", methods=["GET"])
def products_by_category():
    args = load_form(CategoryFilterSchema(), request.args)
    products = get_service(ProductService).products_by_category(args["category_id"])
    return success_response({"products": _dump(products), "category_id": args["category_id"]})


@api_bp.route("/products/search", methods=["GET"])
def search_products():
    args = load_form(SearchSchema(), request.args)
    products = get_service(ProductService).search_products(args["keyword"])
    return success_response({"products": _dump(products), "keyword": args["keyword"]})


@api_bp.route("/products/filter", methods=["GET"])
def filter_products():
    """Keyword, category and price range filters applied together, paginated."""
    result = get_service(ProductService).filter_products(request.args.to_dict())
    return success_response(result.model_dump(mode="json"))


@api_bp.route("/products/suggestions", methods=["GET"])
def search_suggestions():
    suggestions = get_service(ProductService).search_suggestions(request.args.get("q", ""))
    return success_response({"suggestions": suggestions})


@api_bp.route("/products/<int:product_id>", methods=["GET"])
def get_product(product_id):
    product = get_service(ProductService).get_product(product_id)
    return success_response(product.model_dump(mode="json"))


@api_bp.route("/products/delete-selected", methods=["POST"])
@api_admin_required
def delete_selected_products():
    require_csrf({})
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object.")
    data = load_form(DeleteSelectedSchema(), body)

    result = get_service(ProductService).delete_products(data["product_ids"])
    admin = get_service(AdminService)
    admin_id = current_user()["user_id"]
    for product_id in result.deleted_products:
        admin.log_admin_action(admin_id, "delete_product", "products", product_id, "Bulk delete")

    message = f"{len(result.deleted_products)} product(s) deleted."
    return success_response(result.model_dump(mode="json"), message=message)


@api_bp.route("/tags", methods=["GET"])
def list_tags():
    return success_response({"tags": _dump(get_service(TagService).list_tags())})


@api_bp.route("/categories", methods=["GET"])
def list_categories():
    return success_response({"categories": get_service(ProductService).list_categories()})
