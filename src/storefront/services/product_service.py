import logging
import math
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.engine import Connection
from werkzeug.datastructures import FileStorage

from storefront.core.config import Config
from storefront.core.exceptions import ConflictError, NotFoundError, ValidationError
from storefront.core.security import sanitize_input
from storefront.db import transaction
from storefront.repositories import CategoryRepository, ProductRepository
from storefront.schemas.forms import CategorySchema, ProductFilterSchema, ProductSchema, load_form
from storefront.schemas.product_schemas import (
    DeleteSelectedResponse,
    FailedDeletion,
    ProductListResponse,
    ProductResponse,
)
from storefront.services.tag_service import TagService
from storefront.services.upload_service import ImageStorage
from storefront.utils.formatting_utils import FormattingUtils
from storefront.utils.validators import ValidationUtils

logger = logging.getLogger(__name__)

PRODUCT_IMAGE_DIR = "product_images"
SEARCH_LIMIT = 50


class ProductService:
    """
    Catalog rules on top of the product repository.

    Every product handed out is a ``ProductResponse`` carrying a ``Money``
    price plus its category and tag names.
    """

    def __init__(
        self,
        product_repository: ProductRepository,
        category_repository: CategoryRepository,
        tag_service: TagService,
        images: ImageStorage,
        config: Config,
    ):
        self.product_repo = product_repository
        self.category_repo = category_repository
        self.tag_service = tag_service
        self.images = images
        self.config = config

    # ------------------------------------------------------------------ #
    # Reads                                                                #
    # ------------------------------------------------------------------ #

    def _hydrate(self, rows: List[Dict[str, Any]]) -> List[ProductResponse]:
        ids = [row["product_id"] for row in rows]
        categories = self.product_repo.categories_for(ids)
        tags = self.product_repo.tags_for(ids)
        return [
            ProductResponse.from_row(row, categories.get(row["product_id"]), tags.get(row["product_id"]))
            for row in rows
        ]

    def list_products(self, page: int = 1, limit: Optional[int] = None) -> ProductListResponse:
        limit = limit or self.config.app.default_page_size
        if limit > self.config.app.max_page_size:
            logger.warning(f"Requested limit {limit} exceeds maximum {self.config.app.max_page_size}")
            limit = self.config.app.max_page_size
        if page < 1 or limit < 1:
            raise ValidationError("Page and limit must be positive integers.")

        total = self.product_repo.count()
        rows = self.product_repo.list_page(limit, (page - 1) * limit)
        return ProductListResponse(
            products=self._hydrate(rows),
            total_products=total,
            total_pages=math.ceil(total / limit) if total else 0,
            current_page=page,
            limit=limit,
        )

    def filter_products(self, raw: Mapping[str, Any]) -> ProductListResponse:
        """
        Paginated catalog filtered by keyword, category and price range together.

        ``raw`` holds ``q``, ``category_id``, ``min_price``, ``max_price``,
        ``page`` and ``limit``; blank values are ignored.
        """
        args = load_form(ProductFilterSchema(), raw)
        keyword = sanitize_input(args["keyword"])
        page, limit = args["page"], min(args["limit"], self.config.app.max_page_size)

        rows, total = self.product_repo.filter_page(
            limit,
            (page - 1) * limit,
            keyword=keyword or None,
            category_id=args["category_id"],
            min_price=args["min_price"],
            max_price=args["max_price"],
        )
        return ProductListResponse(
            products=self._hydrate(rows),
            total_products=total,
            total_pages=math.ceil(total / limit) if total else 0,
            current_page=page,
            limit=limit,
        )

    def latest_products(self, limit: int = 6) -> List[ProductResponse]:
        return self._hydrate(self.product_repo.latest(limit))

    def get_product(self, product_id: int) -> ProductResponse:
        row = self.product_repo.get_by_id(product_id)
        if row is None:
            raise NotFoundError("Product not found.", product_id)
        return self._hydrate([row])[0]

    def get_product_by_slug(self, slug: str) -> ProductResponse:
        row = self.product_repo.get_by_slug(slug)
        if row is None:
            raise NotFoundError("Product not found.")
        return self._hydrate([row])[0]

    def search_products(self, keyword: Optional[str]) -> List[ProductResponse]:
        """Name or description match, first SEARCH_LIMIT products by name."""
        keyword = sanitize_input(keyword)
        if not keyword:
            raise ValidationError("Keyword is required.")
        if len(keyword) > 100:
            raise ValidationError("Keyword cannot exceed 100 characters.")
        products = self._hydrate(self.product_repo.search(keyword, SEARCH_LIMIT))
        logger.info(f"Search returned {len(products)} results for '{keyword}'")
        return products

    def search_suggestions(self, prefix: Optional[str], limit: int = 5) -> List[str]:
        prefix = sanitize_input(prefix)
        if not prefix:
            return []
        return self.product_repo.suggestions(prefix[:100], limit)

    def products_by_category(self, category_id: Optional[int]) -> List[ProductResponse]:
        if category_id is not None:
            if isinstance(category_id, bool) or not isinstance(category_id, int) or category_id < 1:
                raise ValidationError("Category ID must be a positive integer.")
        return self._hydrate(self.product_repo.by_category(category_id))

    # ------------------------------------------------------------------ #
    # Writes                                                               #
    # ------------------------------------------------------------------ #

    def _prepare(self, raw: Mapping[str, Any], exclude_id: Optional[int], conn: Connection) -> Dict[str, Any]:
        data = load_form(ProductSchema(), raw)

        name = sanitize_input(data["product_name"])
        if not name:
            raise ValidationError("Product name cannot be blank.")
        description = data["description"].strip()
        if not description:
            raise ValidationError("Description cannot be blank.")

        error = ValidationUtils.validate_price(
            data["price_amount"], data["currency"], self.config.app.supported_currencies
        )
        if error:
            raise ValidationError(error)

        slug = (data.get("slug") or "").strip().lower() or FormattingUtils.slugify(name)
        error = ValidationUtils.validate_slug(slug)
        if error:
            raise ValidationError(error)

        category_ids = list(dict.fromkeys(data["category_ids"]))
        missing = set(category_ids) - set(self.category_repo.existing_ids(category_ids, conn=conn))
        if missing:
            raise ValidationError(f"Unknown category id(s): {', '.join(map(str, sorted(missing)))}")

        tag_names = [sanitize_input(t) for t in data["tags"]]
        for tag in tag_names:
            error = ValidationUtils.validate_tag_name(tag)
            if error:
                raise ValidationError(error)

        return {
            "product_name": name,
            "description": description,
            "price_amount": data["price_amount"],
            "currency": data["currency"],
            "slug": self._unique_slug(slug, exclude_id, conn),
            "category_ids": category_ids,
            "tags": tag_names,
        }

    def _unique_slug(self, slug: str, exclude_id: Optional[int], conn: Connection) -> str:
        candidate, n = slug, 2
        while self.product_repo.slug_exists(candidate, exclude_id, conn=conn):
            candidate = f"{slug}-{n}"
            n += 1
        return candidate

    def _save_mappings(self, product_id: int, data: Dict[str, Any], conn: Connection) -> None:
        self.product_repo.set_categories(product_id, data["category_ids"], conn=conn)
        tag_ids = [self.tag_service.get_or_create_tag(name, conn=conn) for name in data["tags"]]
        tag_ids = list(dict.fromkeys(tag_ids))
        self.product_repo.set_tags(product_id, tag_ids, conn=conn)

    def create_product(self, raw: Mapping[str, Any], image: Optional[FileStorage] = None) -> int:
        image_path = self.images.save(image, PRODUCT_IMAGE_DIR) if image and image.filename else None
        try:
            with transaction() as conn:
                data = self._prepare(raw, None, conn)
                data["image_path"] = image_path
                product_id = self.product_repo.create(data, conn=conn)
                self._save_mappings(product_id, data, conn)
        except Exception:
            self.images.delete(image_path)
            raise

        logger.info("Created product %s (id=%s)", data["slug"], product_id)
        return product_id

    def update_product(self, product_id: int, raw: Mapping[str, Any], image: Optional[FileStorage] = None) -> None:
        existing = self.product_repo.get_by_id(product_id)
        if existing is None:
            raise NotFoundError("Product not found.", product_id)

        new_image = self.images.save(image, PRODUCT_IMAGE_DIR) if image and image.filename else None
        try:
            with transaction() as conn:
                data = self._prepare(raw, product_id, conn)
                data["image_path"] = new_image or existing["image_path"]
                self.product_repo.update(product_id, data, conn=conn)
                self._save_mappings(product_id, data, conn)
        except Exception:
            self.images.delete(new_image)
            raise

        if new_image:
            self.images.delete(existing["image_path"])
        logger.info("Updated product %s", product_id)

    def delete_product(self, product_id: int) -> None:
        existing = self.product_repo.get_by_id(product_id)
        if existing is None:
            raise NotFoundError("Product not found.", product_id)
        self.product_repo.delete(product_id)
        self.images.delete(existing["image_path"])
        logger.info("Deleted product %s", product_id)

    def delete_products(self, product_ids: List[int]) -> DeleteSelectedResponse:
        deleted, failed = [], []
        for product_id in dict.fromkeys(product_ids):
            try:
                self.delete_product(product_id)
                deleted.append(product_id)
            except NotFoundError as e:
                failed.append(FailedDeletion(id=product_id, message=e.message))
        return DeleteSelectedResponse(deleted_products=deleted, failed_products=failed)

    # ------------------------------------------------------------------ #
    # Categories                                                           #
    # ------------------------------------------------------------------ #

    def list_categories(self) -> List[Dict[str, Any]]:
        return self.category_repo.list_all()

    def create_category(self, raw: Mapping[str, Any]) -> int:
        data = load_form(CategorySchema(), raw)

        name = sanitize_input(data["category_name"])
        if not name:
            raise ValidationError("Category name cannot be blank.")
        if self.category_repo.get_by_name(name):
            raise ConflictError("Category already exists.", "category_name")
        description = sanitize_input(data.get("description")) or None
        category_id = self.category_repo.create(name, description)
        logger.info("Created category %r (id=%s)", name, category_id)
        return category_id
