"""
Integration tests for the catalog: product service, catalog pages and the JSON API
"""
import io
from pathlib import Path

import pytest
from werkzeug.datastructures import FileStorage

from conftest import image_bytes, query_scalar
from storefront.core.dependencies import get_service
from storefront.core.exceptions import NotFoundError, ValidationError
from storefront.repositories import CategoryRepository
from storefront.services.product_service import ProductService


def product_form(**overrides):
    data = {
        "product_name": "Teak Dining Table",
        "description": "Solid teak table for six.",
        "price_amount": "7500000",
        "currency": "IDR",
        "tags": "teak, dining",
    }
    data.update(overrides)
    return data


def make_category(app, name="Furniture"):
    with app.app_context():
        return get_service(CategoryRepository).create(name, None)


def make_product(app, **overrides):
    with app.app_context():
        return get_service(ProductService).create_product(product_form(**overrides))


def image_upload(filename, mimetype="image/png", content=None):
    return FileStorage(stream=io.BytesIO(content or image_bytes()), filename=filename, content_type=mimetype)


@pytest.fixture
def service(app_ctx):
    return get_service(ProductService)


class TestCreateProduct:

    def test_create_with_categories_and_tags(self, app, service):
        category_id = make_category(app)
        product_id = service.create_product(product_form(category_ids=[str(category_id)]))

        product = service.get_product(product_id)
        assert product.slug == "teak-dining-table"
        assert product.price.amount == 7500000
        assert product.price.formatted == "Rp 7.500.000"
        assert product.category_ids == [category_id]
        assert product.tag_names == ["dining", "teak"]

    def test_duplicate_names_get_unique_slugs(self, service):
        first = service.create_product(product_form())
        second = service.create_product(product_form())
        assert service.get_product(first).slug == "teak-dining-table"
        assert service.get_product(second).slug == "teak-dining-table-2"

    def test_markup_stripped_from_name(self, service):
        product_id = service.create_product(product_form(product_name="<b>Lamp</b>"))
        assert service.get_product(product_id).product_name == "Lamp"

    def test_existing_tags_are_reused_case_insensitively(self, service):
        service.create_product(product_form(tags="Teak"))
        service.create_product(product_form(tags="teak, TEAK"))
        assert query_scalar("SELECT COUNT(*) FROM tags") == 1

    def test_unknown_category_rolls_back(self, service):
        with pytest.raises(ValidationError, match="Unknown category id"):
            service.create_product(product_form(category_ids=["99"]))
        assert query_scalar("SELECT COUNT(*) FROM products") == 0

    def test_invalid_tag_rolls_back(self, service):
        with pytest.raises(ValidationError, match="can only contain letters and hyphens"):
            service.create_product(product_form(tags="good, bad1"))
        assert query_scalar("SELECT COUNT(*) FROM products") == 0
        assert query_scalar("SELECT COUNT(*) FROM tags") == 0

    def test_unsupported_currency(self, service):
        with pytest.raises(ValidationError, match="Currency EUR is not supported."):
            service.create_product(product_form(currency="eur"))

    def test_negative_price(self, service):
        with pytest.raises(ValidationError, match="Price cannot be negative."):
            service.create_product(product_form(price_amount="-5"))

    def test_price_beyond_bigint(self, service):
        with pytest.raises(ValidationError, match="Price is too large."):
            service.create_product(product_form(price_amount=str(10 ** 20)))
        assert query_scalar("SELECT COUNT(*) FROM products") == 0

    def test_missing_fields(self, service):
        with pytest.raises(ValidationError) as exc:
            service.create_product({"product_name": "Lamp"})
        assert exc.value.details["field_errors"]

    def test_image_saved_under_upload_folder(self, config, service):
        image = image_upload("lamp.png")
        product_id = service.create_product(product_form(), image)
        path = service.get_product(product_id).image_path
        assert path.startswith("product_images/")
        assert path.endswith(".png")
        assert (Path(config.app.upload_folder) / path).exists()

    def test_bad_image_rejected(self, service):
        image = image_upload("lamp.exe", mimetype="application/octet-stream")
        with pytest.raises(ValidationError, match="Only JPG, PNG and WEBP images are allowed."):
            service.create_product(product_form(), image)
        assert query_scalar("SELECT COUNT(*) FROM products") == 0

    def test_image_content_is_checked(self, service):
        image = image_upload("lamp.png", content=b"plain text pretending to be a png")
        with pytest.raises(ValidationError, match="The uploaded file is not a valid image."):
            service.create_product(product_form(), image)
        assert query_scalar("SELECT COUNT(*) FROM products") == 0


class TestUpdateAndDelete:

    def test_update_replaces_mappings(self, app, service):
        furniture = make_category(app)
        decor = make_category(app, "Decor")
        product_id = service.create_product(product_form(category_ids=[str(furniture)]))

        service.update_product(
            product_id,
            product_form(product_name="Teak Side Table", category_ids=[str(decor)], tags="side"),
        )

        product = service.get_product(product_id)
        assert product.product_name == "Teak Side Table"
        assert product.slug == "teak-side-table"
        assert product.category_ids == [decor]
        assert product.tag_names == ["side"]

    def test_update_keeps_own_slug(self, service):
        product_id = service.create_product(product_form(slug="table"))
        service.update_product(product_id, product_form(slug="table"))
        assert service.get_product(product_id).slug == "table"

    def test_update_missing_product(self, service):
        with pytest.raises(NotFoundError):
            service.update_product(999, product_form())

    def test_out_of_range_ids_are_not_found(self, service):
        huge = 10 ** 20
        with pytest.raises(NotFoundError):
            service.get_product(huge)
        with pytest.raises(NotFoundError):
            service.update_product(huge, product_form())
        with pytest.raises(NotFoundError):
            service.delete_product(huge)

    def test_delete_cascades_mappings(self, app, service):
        category_id = make_category(app)
        product_id = service.create_product(product_form(category_ids=[str(category_id)]))
        service.delete_product(product_id)
        assert query_scalar("SELECT COUNT(*) FROM products") == 0
        assert query_scalar("SELECT COUNT(*) FROM product_category_mapping") == 0
        assert query_scalar("SELECT COUNT(*) FROM product_tag_mapping") == 0

    def test_delete_many_reports_failures(self, service):
        product_id = service.create_product(product_form())
        result = service.delete_products([product_id, 404, product_id])
        assert result.deleted_products == [product_id]
        assert [f.id for f in result.failed_products] == [404]
        assert result.failed_products[0].message == "Product not found."


class TestQueries:

    @pytest.fixture
    def catalog(self, app, service):
        lighting = make_category(app, "Lighting")
        service.create_product(product_form(product_name="Bamboo Lamp", description="Woven shade."))
        service.create_product(
            product_form(product_name="Floor Lamp", description="Tall BAMBOO stand.", category_ids=[str(lighting)])
        )
        service.create_product(product_form(product_name="Chair", description="Rattan seat."))
        return lighting

    def test_pagination(self, catalog, service):
        page = service.list_products(page=1, limit=2)
        assert page.total_products == 3
        assert page.total_pages == 2
        assert len(page.products) == 2
        assert len(service.list_products(page=2, limit=2).products) == 1

    def test_limit_is_capped(self, catalog, service):
        assert service.list_products(limit=1000).limit == 100

    def test_search_matches_name_or_description(self, catalog, service):
        names = {p.product_name for p in service.search_products("bamboo")}
        assert names == {"Bamboo Lamp", "Floor Lamp"}

    def test_search_requires_keyword(self, service):
        with pytest.raises(ValidationError, match="Keyword is required."):
            service.search_products("   ")

    def test_search_treats_wildcards_literally(self, service):
        service.create_product(product_form(product_name="100% Cotton Throw", description="Soft."))
        service.create_product(product_form(product_name="Plain_Mat", description="Flat."))
        service.create_product(product_form(product_name="Plain Rug", description="Wool."))

        assert [p.product_name for p in service.search_products("%")] == ["100% Cotton Throw"]
        assert [p.product_name for p in service.search_products("plain_")] == ["Plain_Mat"]
        assert service.search_suggestions("plain_") == ["Plain_Mat"]
        assert service.search_suggestions("%") == []

    def test_suggestions_are_prefix_matches(self, catalog, service):
        assert service.search_suggestions("flo") == ["Floor Lamp"]
        assert service.search_suggestions("") == []

    def test_by_category(self, catalog, service):
        assert [p.product_name for p in service.products_by_category(catalog)] == ["Floor Lamp"]
        assert len(service.products_by_category(None)) == 3

    def test_by_category_rejects_non_positive(self, service):
        with pytest.raises(ValidationError, match="Category ID must be a positive integer."):
            service.products_by_category(0)

    def test_filter_combines_every_criterion(self, catalog, service):
        service.create_product(
            product_form(product_name="Desk Lamp", price_amount="150000", category_ids=[str(catalog)])
        )

        page = service.filter_products({"q": "lamp", "category_id": str(catalog)})
        assert [p.product_name for p in page.products] == ["Desk Lamp", "Floor Lamp"]
        assert page.total_products == 2

        page = service.filter_products({"q": "lamp", "category_id": str(catalog), "max_price": "200000"})
        assert [p.product_name for p in page.products] == ["Desk Lamp"]

        page = service.filter_products({"min_price": "200000"})
        assert {p.product_name for p in page.products} == {"Bamboo Lamp", "Floor Lamp", "Chair"}

    def test_filter_without_criteria_pages_everything(self, catalog, service):
        page = service.filter_products({"q": "", "category_id": "", "page": "2", "limit": "2"})
        assert page.total_products == 3
        assert page.total_pages == 2
        assert [p.product_name for p in page.products] == ["Floor Lamp"]

    def test_filter_rejects_inverted_price_range(self, service):
        with pytest.raises(ValidationError, match="Minimum price cannot exceed maximum price."):
            service.filter_products({"min_price": "500", "max_price": "100"})

    def test_filter_rejects_bad_numbers(self, service):
        with pytest.raises(ValidationError, match="Minimum price must be a non-negative integer."):
            service.filter_products({"min_price": "-1"})
        with pytest.raises(ValidationError, match="Category ID must be a positive integer."):
            service.filter_products({"category_id": "lamp"})

    def test_category_counts(self, catalog, service):
        categories = {c["category_name"]: c["product_count"] for c in service.list_categories()}
        assert categories == {"Lighting": 1}


class TestCatalogPages:

    def test_home_lists_latest(self, app, client):
        make_product(app)
        response = client.get("/")
        assert response.status_code == 200
        assert b"Teak Dining Table" in response.data
        assert b"Rp 7.500.000" in response.data

    def test_catalog_search(self, app, client):
        make_product(app)
        make_product(app, product_name="Rattan Chair", description="Woven.")
        response = client.get("/products/?q=rattan")
        assert b"Rattan Chair" in response.data
        assert b"Teak Dining Table" not in response.data

    def test_catalog_combined_filters(self, app, client):
        category_id = make_category(app, "Lighting")
        make_product(app, product_name="Desk Lamp", price_amount="150000", category_ids=[str(category_id)])
        make_product(app, product_name="Floor Lamp", price_amount="900000", category_ids=[str(category_id)])
        make_product(app, product_name="Lamp Oil", price_amount="50000")

        response = client.get(f"/products/?q=lamp&category_id={category_id}&min_price=100000&max_price=500000")
        assert response.status_code == 200
        assert b"Desk Lamp" in response.data
        assert b"Floor Lamp" not in response.data
        assert b"Lamp Oil" not in response.data

    def test_catalog_inverted_price_range(self, client):
        response = client.get("/products/?min_price=10&max_price=5")
        assert response.status_code == 200
        assert b"Minimum price cannot exceed maximum price." in response.data

    def test_catalog_bad_category(self, client):
        response = client.get("/products/?category_id=abc")
        assert response.status_code == 200
        assert b"Category ID must be a positive integer." in response.data

    def test_detail_page(self, app, client):
        make_product(app)
        response = client.get("/products/teak-dining-table")
        assert response.status_code == 200
        assert b"Solid teak table for six." in response.data

    def test_unknown_slug_is_404(self, client):
        response = client.get("/products/nothing-here")
        assert response.status_code == 404
        assert b"Product not found." in response.data


class TestProductApi:

    def test_list(self, app, client):
        make_product(app)
        body = client.get("/api/products?limit=5").get_json()
        assert body["success"] is True
        assert body["data"]["total_products"] == 1
        product = body["data"]["products"][0]
        assert product["price"] == {"amount": 7500000, "currency": "IDR", "formatted": "Rp 7.500.000"}
        assert {t["tag_name"] for t in product["tags"]} == {"teak", "dining"}

    def test_invalid_pagination(self, client):
        response = client.get("/api/products?page=0")
        assert response.status_code == 400
        body = response.get_json()
        assert body["success"] is False
        assert body["error"]["code"] == "VALIDATION_ERROR"

    def test_get_missing_product(self, client):
        response = client.get("/api/products/42")
        assert response.status_code == 404
        assert response.get_json()["error"]["code"] == "NOT_FOUND"

    def test_out_of_range_id_is_not_found(self, client):
        response = client.get("/api/products/100000000000000000000")
        assert response.status_code == 404
        assert response.get_json()["error"]["code"] == "NOT_FOUND"

    def test_filter(self, app, client):
        make_product(app)
        make_product(app, product_name="Rattan Chair", description="Woven.", price_amount="250000")
        body = client.get("/api/products/filter?q=chair&max_price=300000").get_json()
        assert body["success"] is True
        assert body["data"]["total_products"] == 1
        assert [p["slug"] for p in body["data"]["products"]] == ["rattan-chair"]

    def test_filter_rejects_inverted_price_range(self, client):
        response = client.get("/api/products/filter?min_price=9&max_price=1")
        assert response.status_code == 400
        body = response.get_json()
        assert body["error"]["code"] == "VALIDATION_ERROR"
        assert body["error"]["details"]["field_errors"][0]["field"] == "max_price"

    def test_search_and_suggestions(self, app, client):
        make_product(app)
        body = client.get("/api/products/search?keyword=TEAK").get_json()
        assert [p["slug"] for p in body["data"]["products"]] == ["teak-dining-table"]
        body = client.get("/api/products/suggestions?q=te").get_json()
        assert body["data"]["suggestions"] == ["Teak Dining Table"]

    def test_search_requires_keyword(self, client):
        assert client.get("/api/products/search").status_code == 400

    def test_by_category(self, app, client):
        category_id = make_category(app)
        make_product(app, category_ids=[str(category_id)])
        make_product(app, product_name="Loose Item")
        body = client.get(f"/api/products/by-category?category_id={category_id}").get_json()
        assert [p["product_name"] for p in body["data"]["products"]] == ["Teak Dining Table"]

    def test_by_category_rejects_zero(self, client):
        response = client.get("/api/products/by-category?category_id=0")
        assert response.status_code == 400

    def test_tags_and_categories(self, app, client):
        make_category(app)
        make_product(app)
        tags = client.get("/api/tags").get_json()["data"]["tags"]
        assert {t["tag_name"]: t["product_count"] for t in tags} == {"dining": 1, "teak": 1}
        categories = client.get("/api/categories").get_json()["data"]["categories"]
        assert categories[0]["category_name"] == "Furniture"