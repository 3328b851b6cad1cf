from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from storefront.schemas.common_schemas import Money, PaginationResponse


class CategoryRef(BaseModel):
    category_id: int
    category_name: str


class TagRef(BaseModel):
    tag_id: int
    tag_name: str


class ProductResponse(BaseModel):
    """Product as returned to templates and the JSON API"""
    product_id: int
    product_name: str
    slug: str
    description: str
    price: Money
    image_path: Optional[str] = None
    categories: List[CategoryRef] = Field(default_factory=list)
    tags: List[TagRef] = Field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(
        cls,
        row: Dict[str, Any],
        categories: Optional[List[Dict[str, Any]]] = None,
        tags: Optional[List[Dict[str, Any]]] = None,
    ) -> "ProductResponse":
        return cls(
            product_id=row["product_id"],
            product_name=row["product_name"],
            slug=row["slug"],
            description=row["description"],
            price=Money(amount=int(row["price_amount"]), currency=row["currency"]),
            image_path=row.get("image_path"),
            categories=[CategoryRef(**c) for c in categories or []],
            tags=[TagRef(**t) for t in tags or []],
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    @property
    def tag_names(self) -> List[str]:
        return [t.tag_name for t in self.tags]

    @property
    def category_ids(self) -> List[int]:
        return [c.category_id for c in self.categories]


class ProductListResponse(PaginationResponse):
    products: List[ProductResponse]


class FailedDeletion(BaseModel):
    id: int
    message: str


class DeleteSelectedResponse(BaseModel):
    deleted_products: List[int]
    failed_products: List[FailedDeletion]


class TagResponse(BaseModel):
    tag_id: int
    tag_name: str
    product_count: int = 0
