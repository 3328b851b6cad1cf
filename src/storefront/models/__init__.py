# Importing every model here registers it with Base.metadata before
# Base.metadata.create_all() runs.

from storefront.models.product import (
    Product,
    ProductCategory,
    ProductCategoryMapping,
    ProductTagMapping,
    Tag,
)
from storefront.models.user import (
    AdminActivityLog,
    PasswordReset,
    RememberMeToken,
    User,
    UserProfile,
)

__all__ = [
    "User",
    "UserProfile",
    "PasswordReset",
    "RememberMeToken",
    "AdminActivityLog",
    "Product",
    "ProductCategory",
    "ProductCategoryMapping",
    "Tag",
    "ProductTagMapping",
]
