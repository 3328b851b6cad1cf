import os

from flask import Blueprint, render_template, send_from_directory

from storefront.core.dependencies import get_config, get_service
from storefront.services.product_service import ProductService

pages_bp = Blueprint("pages", __name__)


@pages_bp.route("/", methods=["GET"])
def home():
    products = get_service(ProductService).latest_products(limit=6)
    return render_template("pages/home.html", products=products)


@pages_bp.route("/about", methods=["GET"])
def about():
    return render_template("pages/about.html")


@pages_bp.route("/uploads/<path:filename>", methods=["GET"])
def uploaded_file(filename):
    return send_from_directory(os.path.abspath(get_config().app.upload_folder), filename)
