import logging
from typing import List, Optional

from sqlalchemy.engine import Connection

from storefront.core.exceptions import ConflictError, NotFoundError, ValidationError
from storefront.core.security import sanitize_input
from storefront.repositories import TagRepository
from storefront.schemas.product_schemas import TagResponse
from storefront.utils.validators import ValidationUtils

logger = logging.getLogger(__name__)


class TagService:
    def __init__(self, tag_repository: TagRepository):
        self.tag_repo = tag_repository

    @staticmethod
    def _clean(name: Optional[str]) -> str:
        name = sanitize_input(name)
        error = ValidationUtils.validate_tag_name(name)
        if error:
            raise ValidationError(error)
        return name

    def list_tags(self) -> List[TagResponse]:
        return [TagResponse(**row) for row in self.tag_repo.list_all()]

    def get_or_create_tag(self, name: str, conn: Optional[Connection] = None) -> int:
        """Id of the tag with this name (case-insensitive), creating it if needed."""
        name = self._clean(name)
        existing = self.tag_repo.get_by_name(name, conn=conn)
        if existing:
            return existing["tag_id"]
        tag_id = self.tag_repo.create(name, conn=conn)
        logger.info("Created tag %r (id=%s)", name, tag_id)
        return tag_id

    def create_tag(self, name: str) -> int:
        name = self._clean(name)
        if self.tag_repo.get_by_name(name):
            raise ConflictError("Tag already exists.", "tag_name")
        tag_id = self.tag_repo.create(name)
        logger.info("Created tag %r (id=%s)", name, tag_id)
        return tag_id

    def update_tag(self, tag_id: int, name: str) -> None:
        name = self._clean(name)
        if self.tag_repo.get_by_id(tag_id) is None:
            raise NotFoundError("Tag not found.", tag_id)
        existing = self.tag_repo.get_by_name(name)
        if existing and existing["tag_id"] != tag_id:
            raise ConflictError("Tag already exists.", "tag_name")
        self.tag_repo.rename(tag_id, name)

    def delete_tag(self, tag_id: int) -> None:
        if self.tag_repo.delete(tag_id) == 0:
            raise NotFoundError("Tag not found.", tag_id)
        logger.info("Deleted tag %s", tag_id)
