from storefront.repositories.activity_repository import ActivityLogRepository
from storefront.repositories.product_repository import CategoryRepository, ProductRepository
from storefront.repositories.tag_repository import TagRepository
from storefront.repositories.token_repository import PasswordResetRepository, RememberMeRepository
from storefront.repositories.user_repository import UserRepository

__all__ = [
    "ActivityLogRepository",
    "CategoryRepository",
    "PasswordResetRepository",
    "ProductRepository",
    "RememberMeRepository",
    "TagRepository",
    "UserRepository",
]
