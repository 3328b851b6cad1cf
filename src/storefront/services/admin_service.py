import logging
from typing import Any, Dict, List, Optional

from storefront.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from storefront.db import transaction
from storefront.repositories import (
    ActivityLogRepository,
    CategoryRepository,
    ProductRepository,
    TagRepository,
    UserRepository,
)
from storefront.utils.validators import ValidationUtils

logger = logging.getLogger(__name__)


class AdminService:
    """User management and the audit trail behind the admin pages."""

    def __init__(
        self,
        user_repository: UserRepository,
        activity_repository: ActivityLogRepository,
        product_repository: ProductRepository,
        category_repository: CategoryRepository,
        tag_repository: TagRepository,
    ):
        self.user_repo = user_repository
        self.activity_repo = activity_repository
        self.product_repo = product_repository
        self.category_repo = category_repository
        self.tag_repo = tag_repository

    def list_users(self) -> List[Dict[str, Any]]:
        return self.user_repo.list_users()

    def dashboard_stats(self) -> Dict[str, int]:
        return {
            "users": self.user_repo.count(),
            "active_users": self.user_repo.count_where("is_active = :active", {"active": True}),
            "admins": self.user_repo.count_where("role = :role", {"role": "admin"}),
            "products": self.product_repo.count(),
            "categories": self.category_repo.count(),
            "tags": self.tag_repo.count(),
        }

    def recent_activity(self, limit: int = 10) -> List[Dict[str, Any]]:
        return self.activity_repo.recent(limit)

    def log_admin_action(
        self,
        admin_id: int,
        action: str,
        table_name: str,
        record_id: Optional[int] = None,
        details: Optional[str] = None,
        conn=None,
    ) -> None:
        self.activity_repo.log(admin_id, action, table_name, record_id, details, conn=conn)
        logger.info("Admin %s: %s on %s #%s (%s)", admin_id, action, table_name, record_id, details or "")

    def change_user_role(self, admin_id: int, user_id: int, new_role: str) -> None:
        error = ValidationUtils.validate_role(new_role)
        if error:
            raise ValidationError(error)
        if admin_id == user_id and new_role != "admin":
            raise ForbiddenError("You cannot remove your own admin role.")

        with transaction() as conn:
            user = self.user_repo.get_by_id(user_id, conn=conn)
            if user is None:
                raise NotFoundError("User does not exist.", user_id)
            if user["role"] == new_role:
                return
            self.user_repo.update_role(user_id, new_role, conn=conn)
            self.log_admin_action(
                admin_id,
                "change_role",
                "users",
                user_id,
                f"{user['username']}: {user['role']} -> {new_role}",
                conn=conn,
            )

    def delete_user(self, admin_id: int, user_id: int) -> None:
        if admin_id == user_id:
            raise ForbiddenError("You cannot delete your own account from the admin panel.")

        with transaction() as conn:
            user = self.user_repo.get_by_id(user_id, conn=conn)
            if user is None:
                raise NotFoundError("User does not exist.", user_id)
            self.user_repo.delete(user_id, conn=conn)
            self.log_admin_action(admin_id, "delete_user", "users", user_id, f"Deleted {user['username']}", conn=conn)
