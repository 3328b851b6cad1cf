import logging
import os
import secrets
from typing import Optional

from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from storefront.core.exceptions import ValidationError
from storefront.utils.validators import ValidationUtils

logger = logging.getLogger(__name__)


class ImageStorage:
    """Saves validated image uploads under the upload folder with random names."""

    def __init__(self, upload_folder: str, max_bytes: int):
        self.upload_folder = upload_folder
        self.max_bytes = max_bytes

    @staticmethod
    def _size(file: FileStorage) -> int:
        stream = file.stream
        stream.seek(0, os.SEEK_END)
        size = stream.tell()
        stream.seek(0)
        return size

    def save(self, file: FileStorage, subdir: str) -> str:
        """Validate and store ``file``; returns the path relative to the upload folder."""
        original = secure_filename(file.filename or "")
        error = ValidationUtils.validate_image(original, file.mimetype, self._size(file), self.max_bytes)
        if not error:
            error = ValidationUtils.validate_image_content(file.stream)
        if error:
            raise ValidationError(error)

        extension = os.path.splitext(original)[1].lower()
        filename = f"{secrets.token_hex(16)}{extension}"
        directory = os.path.join(self.upload_folder, subdir)
        os.makedirs(directory, exist_ok=True)
        file.save(os.path.join(directory, filename))

        relative = f"{subdir}/{filename}"
        logger.info("Stored upload %s (%s)", relative, original)
        return relative

    def delete(self, relative_path: Optional[str]) -> None:
        if not relative_path:
            return
        path = os.path.join(self.upload_folder, relative_path)
        try:
            os.remove(path)
        except FileNotFoundError:
            logger.warning("Upload already missing: %s", relative_path)
