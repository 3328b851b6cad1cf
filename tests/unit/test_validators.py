"""
Unit tests for field validators and form schemas
"""
import io

import pytest

from conftest import image_bytes
from storefront.core.exceptions import ValidationError
from storefront.schemas.forms import DeleteSelectedSchema, PaginationSchema, ProductSchema, load_form
from storefront.utils.validators import ValidationUtils


class TestUsername:

    @pytest.mark.parametrize("username", ["abc", "john-doe", "User123", "a" * 20])
    def test_valid(self, username):
        assert ValidationUtils.validate_username(username) is None

    @pytest.mark.parametrize(
        "username,message",
        [
            ("", "Username cannot be blank."),
            ("ab", "Username must be at least 3 characters long."),
            ("a" * 21, "Username can be a maximum of 20 characters long."),
            ("-john", "Username cannot start or end with a hyphen or space."),
            ("john-", "Username cannot start or end with a hyphen or space."),
            ("jo hn", "Username can only contain letters, numbers, and hyphens."),
            ("john_doe", "Username can only contain letters, numbers, and hyphens."),
        ],
    )
    def test_invalid(self, username, message):
        assert ValidationUtils.validate_username(username) == message


class TestPassword:

    def test_valid(self):
        assert ValidationUtils.validate_password("Secret123") is None

    @pytest.mark.parametrize(
        "password,message",
        [
            ("", "Password cannot be blank."),
            ("Ab1", "Password must be at least 6 characters long."),
            ("Abcdef1" * 3, "Password can be a maximum of 20 characters long."),
            ("secret123", "Password must contain at least one uppercase letter."),
            ("SECRET123", "Password must contain at least one lowercase letter."),
            ("SecretPass", "Password must contain at least one number."),
        ],
    )
    def test_invalid(self, password, message):
        assert ValidationUtils.validate_password(password) == message


class TestEmail:

    def test_valid_and_normalized(self):
        assert ValidationUtils.validate_email("Alice@Example.com") is None
        assert ValidationUtils.normalize_email("Alice@Example.com") == "alice@example.com"

    def test_blank(self):
        assert ValidationUtils.validate_email("  ") == "Email cannot be blank."

    def test_malformed(self):
        assert ValidationUtils.validate_email("not-an-email") == "Invalid email format."


class TestTokensAndSlugs:

    def test_hex_token(self):
        assert ValidationUtils.is_hex_token("ab" * 32)
        assert not ValidationUtils.is_hex_token("ab" * 31)
        assert not ValidationUtils.is_hex_token("zz" * 32)
        assert not ValidationUtils.is_hex_token(None)

    def test_slug(self):
        assert ValidationUtils.validate_slug("teak-table-2") is None
        assert ValidationUtils.validate_slug("Teak Table") is not None
        assert ValidationUtils.validate_slug("") == "Slug cannot be blank."


class TestTagName:

    def test_valid(self):
        assert ValidationUtils.validate_tag_name("hand-made") is None

    def test_blank(self):
        assert ValidationUtils.validate_tag_name(" ") == "Tag name cannot be blank."

    def test_too_long(self):
        name = "a" * 256
        assert ValidationUtils.validate_tag_name(name) == f"Tag name '{name}' cannot exceed 255 characters."

    def test_invalid_characters(self):
        assert ValidationUtils.validate_tag_name("tag1") == "Tag name 'tag1' can only contain letters and hyphens."


class TestPrice:

    supported = ["IDR", "USD"]

    def test_valid(self):
        assert ValidationUtils.validate_price(150000, "IDR", self.supported) is None
        assert ValidationUtils.validate_price(0, "USD", self.supported) is None

    @pytest.mark.parametrize(
        "amount,currency,message",
        [
            (12.5, "IDR", "Price must be a whole number."),
            (True, "IDR", "Price must be a whole number."),
            (-1, "IDR", "Price cannot be negative."),
            (100, "rupiah", "Currency must be a 3-letter code."),
            (100, "EUR", "Currency EUR is not supported."),
        ],
    )
    def test_invalid(self, amount, currency, message):
        assert ValidationUtils.validate_price(amount, currency, self.supported) == message


class TestImage:

    def test_valid(self):
        assert ValidationUtils.validate_image("photo.JPG", "image/jpeg", 1000, 2048) is None

    def test_wrong_extension(self):
        assert ValidationUtils.validate_image("shell.php", "image/jpeg", 1000, 2048) == (
            "Only JPG, PNG and WEBP images are allowed."
        )

    def test_wrong_mimetype(self):
        assert ValidationUtils.validate_image("photo.png", "text/html", 1000, 2048) == (
            "The uploaded file is not a supported image."
        )

    def test_too_large(self):
        assert ValidationUtils.validate_image("photo.png", "image/png", 3 * 1024 * 1024, 2 * 1024 * 1024) == (
            "Image size cannot exceed 2.0 MB."
        )

    def test_content_is_decoded(self):
        stream = io.BytesIO(image_bytes("WEBP", (20, 10)))
        assert ValidationUtils.validate_image_content(stream) is None
        assert stream.tell() == 0

    @pytest.mark.parametrize("content,message", [
        (b"plain text pretending to be a png", "The uploaded file is not a valid image."),
        (b"", "The uploaded file is not a valid image."),
    ])
    def test_content_not_an_image(self, content, message):
        assert ValidationUtils.validate_image_content(io.BytesIO(content)) == message

    def test_content_unsupported_format(self):
        stream = io.BytesIO(image_bytes("GIF"))
        assert ValidationUtils.validate_image_content(stream) == "Only JPG, PNG and WEBP images are allowed."

    def test_content_dimensions(self):
        stream = io.BytesIO(image_bytes("PNG", (30, 5)))
        assert ValidationUtils.validate_image_content(stream, max_dimension=20) == (
            "Image dimensions cannot exceed 20x20 pixels."
        )


class TestFormSchemas:

    def test_product_schema_splits_tags_and_uppercases_currency(self):
        data = load_form(
            ProductSchema(),
            {
                "product_name": "Lamp",
                "description": "A lamp",
                "price_amount": "1000",
                "currency": "idr",
                "tags": "bamboo, handmade,,",
                "csrf_token": "ignored",
            },
        )
        assert data["tags"] == ["bamboo", "handmade"]
        assert data["currency"] == "IDR"
        assert data["price_amount"] == 1000
        assert "csrf_token" not in data

    def test_load_form_reports_field_errors(self):
        with pytest.raises(ValidationError) as exc:
            load_form(ProductSchema(), {"product_name": "Lamp"})
        fields = {e["field"] for e in exc.value.details["field_errors"]}
        assert {"description", "price_amount", "currency"} <= fields

    def test_delete_selected_requires_ids(self):
        with pytest.raises(ValidationError) as exc:
            load_form(DeleteSelectedSchema(), {"product_ids": []})
        assert exc.value.message.endswith("No products selected.")

    def test_delete_selected_rejects_strings(self):
        with pytest.raises(ValidationError):
            load_form(DeleteSelectedSchema(), {"product_ids": ["1"]})

    def test_pagination_defaults(self):
        assert load_form(PaginationSchema(), {}) == {"page": 1, "limit": 20}
