import logging
from typing import Any, Dict, Mapping, Optional

from flask import url_for
from werkzeug.datastructures import FileStorage

from storefront.core.exceptions import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from storefront.core.security import PasswordHasher, sanitize_input
from storefront.repositories import UserRepository
from storefront.schemas.forms import ProfileSchema, load_form
from storefront.services.upload_service import ImageStorage
from storefront.utils.validators import ValidationUtils

logger = logging.getLogger(__name__)

PROFILE_IMAGE_DIR = "user_images"
DEFAULT_PROFILE_IMAGE = "images/default-profile.svg"


class ProfileService:
    def __init__(self, user_repository: UserRepository, hasher: PasswordHasher, images: ImageStorage):
        self.user_repo = user_repository
        self.hasher = hasher
        self.images = images

    def get_user_info(self, user_id: int) -> Dict[str, Any]:
        info = self.user_repo.get_user_info(user_id)
        if info is None:
            raise NotFoundError("User does not exist.", user_id)
        return info

    @staticmethod
    def profile_image_url(filename: Optional[str]) -> str:
        """URL of the avatar, falling back to the default silhouette."""
        if filename:
            return url_for("pages.uploaded_file", filename=filename)
        return url_for("static", filename=DEFAULT_PROFILE_IMAGE)

    def update_profile(self, user_id: int, raw: Mapping[str, Any]) -> None:
        data = load_form(ProfileSchema(), raw)

        cleaned = {key: (sanitize_input(value) or None) for key, value in data.items()}
        error = ValidationUtils.validate_phone(cleaned.get("phone"))
        if error:
            raise ValidationError(error)

        self.user_repo.upsert_profile(user_id, cleaned)
        logger.info("Profile updated for user %s", user_id)

    def update_profile_image(self, user_id: int, file: Optional[FileStorage]) -> str:
        if file is None or not file.filename:
            raise ValidationError("No file was uploaded.")
        current = self.get_user_info(user_id).get("profile_image_filename")
        stored = self.images.save(file, PROFILE_IMAGE_DIR)
        self.user_repo.set_profile_image(user_id, stored)
        self.images.delete(current)
        return stored

    def change_email(self, user_id: int, new_email: str) -> str:
        new_email = sanitize_input(new_email)
        error = ValidationUtils.validate_email(new_email)
        if error:
            raise ValidationError(error)
        new_email = ValidationUtils.normalize_email(new_email)
        if self.user_repo.email_taken_by_other(new_email, user_id):
            raise ConflictError("Email is already in use.", "email")
        self.user_repo.update_email(user_id, new_email)
        logger.info("Email changed for user %s", user_id)
        return new_email

    def delete_account(self, user_id: int, password: str) -> None:
        user = self.user_repo.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User does not exist.", user_id)
        if not self.hasher.verify(password, user["password"]):
            raise UnauthorizedError("Incorrect password.")

        image = self.get_user_info(user_id).get("profile_image_filename")
        self.user_repo.delete(user_id)
        self.images.delete(image)
        logger.info("User %s deleted their account", user["username"])
