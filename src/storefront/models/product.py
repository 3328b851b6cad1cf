from sqlalchemy import BigInteger, CheckConstraint, Column, DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import relationship

from storefront.db import Base
from storefront.models.user import PK


class ProductCategory(Base):
    __tablename__ = "product_categories"

    category_id = Column(PK, primary_key=True, autoincrement=True)
    category_name = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<ProductCategory category_id={self.category_id} name={self.category_name!r}>"


class Product(Base):
    """
    A catalog entry.

    price_amount is an integer in the currency's smallest unit as entered,
    so Rp 150.000 is stored as 150000 and $12.99 as 1299.
    """

    __tablename__ = "products"

    product_id = Column(PK, primary_key=True, autoincrement=True)
    product_name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True)
    description = Column(Text, nullable=False)
    price_amount = Column(BigInteger, nullable=False)
    currency = Column(String(3), nullable=False, default="IDR")
    image_path = Column(String(255), nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.current_timestamp())
    updated_at = Column(DateTime, nullable=False, server_default=func.current_timestamp())

    __table_args__ = (CheckConstraint("price_amount >= 0", name="ck_products_price"),)

    categories = relationship("ProductCategory", secondary="product_category_mapping")
    tags = relationship("Tag", secondary="product_tag_mapping")

    def __repr__(self) -> str:
        return f"<Product product_id={self.product_id} slug={self.slug!r}>"


class ProductCategoryMapping(Base):
    __tablename__ = "product_category_mapping"

    product_id = Column(PK, ForeignKey("products.product_id", ondelete="CASCADE"), primary_key=True)
    category_id = Column(
        PK, ForeignKey("product_categories.category_id", ondelete="CASCADE"), primary_key=True
    )


class Tag(Base):
    __tablename__ = "tags"

    tag_id = Column(PK, primary_key=True, autoincrement=True)
    tag_name = Column(String(255), nullable=False, unique=True)

    def __repr__(self) -> str:
        return f"<Tag tag_id={self.tag_id} tag_name={self.tag_name!r}>"


class ProductTagMapping(Base):
    __tablename__ = "product_tag_mapping"

    product_id = Column(PK, ForeignKey("products.product_id", ondelete="CASCADE"), primary_key=True)
    tag_id = Column(PK, ForeignKey("tags.tag_id", ondelete="CASCADE"), primary_key=True)
