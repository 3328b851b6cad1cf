import os
import re
from typing import List, Optional

from email_validator import EmailNotValidError, validate_email
from PIL import Image, UnidentifiedImageError

from storefront.utils.formatting_utils import FormattingUtils


MAX_IMAGE_DIMENSION = 2000


class ValidationUtils:
    """
    Field validators shared by forms, services and the JSON API.

    Each ``validate_*`` method returns the first violated rule as a
    user-facing message, or ``None`` when the value is acceptable.
    """

    PATTERNS = {
        'username': re.compile(r'^[a-zA-Z0-9-]+$'),
        'slug': re.compile(r'^[a-z0-9-]+$'),
        'tag': re.compile(r'^[a-zA-Z-]+$'),
        'hex_token': re.compile(r'^[0-9a-fA-F]{64}$'),
        'currency': re.compile(r'^[A-Z]{3}$'),
        'phone': re.compile(r'^\+?[0-9 ()-]{6,20}$'),
    }

    MIN_USERNAME_LENGTH = 3
    MAX_USERNAME_LENGTH = 20
    MIN_PASSWORD_LENGTH = 6
    MAX_PASSWORD_LENGTH = 20
    MAX_TAG_LENGTH = 255

    ALLOWED_ROLES = ('admin', 'customer')

    ALLOWED_IMAGE_EXTENSIONS = {'jpg', 'jpeg', 'png', 'webp'}
    ALLOWED_IMAGE_MIMETYPES = {'image/jpeg', 'image/png', 'image/webp'}
    IMAGE_FORMATS = {'JPEG', 'PNG', 'WEBP'}

    @classmethod
    def validate_username(cls, username: Optional[str]) -> Optional[str]:
        if username is None or not username.strip():
            return "Username cannot be blank."
        if len(username) < cls.MIN_USERNAME_LENGTH:
            return f"Username must be at least {cls.MIN_USERNAME_LENGTH} characters long."
        if len(username) > cls.MAX_USERNAME_LENGTH:
            return f"Username can be a maximum of {cls.MAX_USERNAME_LENGTH} characters long."
        if username[0] in "- " or username[-1] in "- ":
            return "Username cannot start or end with a hyphen or space."
        if not cls.PATTERNS['username'].match(username):
            return "Username can only contain letters, numbers, and hyphens."
        return None

    @classmethod
    def validate_password(cls, password: Optional[str]) -> Optional[str]:
        if not password:
            return "Password cannot be blank."
        if len(password) < cls.MIN_PASSWORD_LENGTH:
            return f"Password must be at least {cls.MIN_PASSWORD_LENGTH} characters long."
        if len(password) > cls.MAX_PASSWORD_LENGTH:
            return f"Password can be a maximum of {cls.MAX_PASSWORD_LENGTH} characters long."
        if not re.search(r'[A-Z]', password):
            return "Password must contain at least one uppercase letter."
        if not re.search(r'[a-z]', password):
            return "Password must contain at least one lowercase letter."
        if not re.search(r'\d', password):
            return "Password must contain at least one number."
        return None

    @classmethod
    def validate_email(cls, email: Optional[str]) -> Optional[str]:
        if email is None or not email.strip():
            return "Email cannot be blank."
        try:
            validate_email(email, check_deliverability=False)
        except EmailNotValidError:
            return "Invalid email format."
        return None

    @classmethod
    def normalize_email(cls, email: str) -> str:
        """Normalize email address for consistent storage"""
        try:
            validated = validate_email(email, check_deliverability=False)
            return validated.normalized.lower()
        except EmailNotValidError:
            raise ValueError(f"Invalid email address: {email}")

    @classmethod
    def is_hex_token(cls, value: Optional[str]) -> bool:
        """Activation codes, reset hashes and remember-me tokens are 64 hex chars."""
        return bool(value) and cls.PATTERNS['hex_token'].match(value) is not None

    @classmethod
    def validate_slug(cls, slug: Optional[str]) -> Optional[str]:
        if not slug:
            return "Slug cannot be blank."
        if not cls.PATTERNS['slug'].match(slug):
            return "Slug can only contain lowercase letters, numbers, and hyphens."
        return None

    @classmethod
    def validate_tag_name(cls, name: Optional[str]) -> Optional[str]:
        if name is None or not name.strip():
            return "Tag name cannot be blank."
        if len(name) > cls.MAX_TAG_LENGTH:
            return f"Tag name '{name}' cannot exceed {cls.MAX_TAG_LENGTH} characters."
        if not cls.PATTERNS['tag'].match(name):
            return f"Tag name '{name}' can only contain letters and hyphens."
        return None

    @classmethod
    def validate_role(cls, role: Optional[str]) -> Optional[str]:
        if role not in cls.ALLOWED_ROLES:
            return "Invalid role."
        return None

    @classmethod
    def validate_price(cls, amount, currency: Optional[str], supported: List[str]) -> Optional[str]:
        if isinstance(amount, bool) or not isinstance(amount, int):
            return "Price must be a whole number."
        if amount < 0:
            return "Price cannot be negative."
        if not currency or not cls.PATTERNS['currency'].match(currency):
            return "Currency must be a 3-letter code."
        if currency not in supported:
            return f"Currency {currency} is not supported."
        return None

    @classmethod
    def validate_image(cls, filename: Optional[str], mimetype: Optional[str], size: int, max_bytes: int) -> Optional[str]:
        """Check an uploaded image by extension, declared type and size."""
        if not filename:
            return "No file was uploaded."
        extension = os.path.splitext(filename)[1].lower().lstrip('.')
        if extension not in cls.ALLOWED_IMAGE_EXTENSIONS:
            return "Only JPG, PNG and WEBP images are allowed."
        if mimetype not in cls.ALLOWED_IMAGE_MIMETYPES:
            return "The uploaded file is not a supported image."
        if size <= 0:
            return "The uploaded file is empty."
        if size > max_bytes:
            return f"Image size cannot exceed {FormattingUtils.format_file_size(max_bytes)}."
        return None

    @classmethod
    def validate_image_content(cls, stream, max_dimension: int = MAX_IMAGE_DIMENSION) -> Optional[str]:
        """Decode the upload to confirm it is a supported image; rewinds ``stream``."""
        try:
            with Image.open(stream) as image:
                image.verify()
                image_format, (width, height) = image.format, image.size
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError):
            return "The uploaded file is not a valid image."
        finally:
            stream.seek(0)
        if image_format not in cls.IMAGE_FORMATS:
            return "Only JPG, PNG and WEBP images are allowed."
        if width > max_dimension or height > max_dimension:
            return f"Image dimensions cannot exceed {max_dimension}x{max_dimension} pixels."
        return None

    @classmethod
    def validate_phone(cls, phone: Optional[str]) -> Optional[str]:
        if phone and not cls.PATTERNS['phone'].match(phone):
            return "Invalid phone number."
        return None
