from marshmallow import EXCLUDE, Schema, fields, pre_load, validate, validates_schema
from marshmallow import ValidationError as MarshmallowValidationError

from storefront.core.exceptions import ValidationError
from storefront.db import MAX_BIGINT
from storefront.utils.validators import ValidationUtils


class FormSchema(Schema):
    """Forms also carry csrf_token, honeypot and reCAPTCHA fields; ignore them."""

    class Meta:
        unknown = EXCLUDE


class ProductSchema(FormSchema):
    product_name = fields.Str(required=True, validate=validate.Length(min=1, max=255))
    description = fields.Str(required=True, validate=validate.Length(min=1))
    price_amount = fields.Int(
        required=True,
        validate=[
            validate.Range(min=0, error="Price cannot be negative."),
            validate.Range(max=MAX_BIGINT, error="Price is too large."),
        ],
    )
    currency = fields.Str(required=True, validate=validate.Length(equal=3))
    slug = fields.Str(load_default="")
    category_ids = fields.List(fields.Int(validate=validate.Range(min=1, max=MAX_BIGINT)), load_default=list)
    tags = fields.List(fields.Str(), load_default=list)

    @pre_load
    def split_tags(self, data, **kwargs):
        data = dict(data)
        raw = data.get("tags")
        if isinstance(raw, str):
            data["tags"] = [t.strip() for t in raw.split(",") if t.strip()]
        if isinstance(data.get("currency"), str):
            data["currency"] = data["currency"].strip().upper()
        return data


class CategorySchema(FormSchema):
    category_name = fields.Str(required=True, validate=validate.Length(min=1, max=100))
    description = fields.Str(load_default=None, allow_none=True)


class ProfileSchema(FormSchema):
    first_name = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=100))
    last_name = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=100))
    phone = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=30))
    address = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=500))
    city = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=100))
    country = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=100))


class ContactSchema(FormSchema):
    name = fields.Str(required=True, validate=validate.Length(min=1, max=100))
    email = fields.Email(required=True)
    message = fields.Str(required=True, validate=validate.Length(min=1, max=1000))


class DeleteSelectedSchema(FormSchema):
    product_ids = fields.List(
        fields.Int(strict=True),
        required=True,
        validate=validate.Length(min=1, error="No products selected."),
    )


class PaginationSchema(FormSchema):
    page = fields.Int(load_default=1, validate=validate.Range(min=1))
    limit = fields.Int(load_default=20, validate=validate.Range(min=1, max=100))


class CategoryFilterSchema(FormSchema):
    category_id = fields.Int(
        load_default=None,
        allow_none=True,
        validate=validate.Range(min=1, max=MAX_BIGINT, error="Category ID must be a positive integer."),
    )


class ProductFilterSchema(PaginationSchema):
    """Catalog filters; every given filter must match."""

    keyword = fields.Str(data_key="q", load_default="", validate=validate.Length(max=100))
    category_id = fields.Int(
        load_default=None,
        allow_none=True,
        validate=validate.Range(min=1, max=MAX_BIGINT, error="Category ID must be a positive integer."),
        error_messages={"invalid": "Category ID must be a positive integer."},
    )
    min_price = fields.Int(
        load_default=None,
        allow_none=True,
        validate=validate.Range(min=0, max=MAX_BIGINT, error="Minimum price must be a non-negative integer."),
        error_messages={"invalid": "Minimum price must be a non-negative integer."},
    )
    max_price = fields.Int(
        load_default=None,
        allow_none=True,
        validate=validate.Range(min=0, max=MAX_BIGINT, error="Maximum price must be a non-negative integer."),
        error_messages={"invalid": "Maximum price must be a non-negative integer."},
    )

    @pre_load
    def drop_blank(self, data, **kwargs):
        # Empty inputs on the catalog form mean "no filter"
        return {k: v for k, v in data.items() if v not in ("", None)}

    @validates_schema
    def check_price_range(self, data, **kwargs):
        low, high = data.get("min_price"), data.get("max_price")
        if low is not None and high is not None and low > high:
            raise MarshmallowValidationError("Minimum price cannot exceed maximum price.", "max_price")


class SearchSchema(FormSchema):
    keyword = fields.Str(required=True, validate=validate.Length(min=1, max=100))


def load_form(schema: Schema, raw) -> dict:
    """Load ``raw`` through ``schema``, raising the app's ValidationError."""
    try:
        return schema.load(raw)
    except MarshmallowValidationError as err:
        field_errors = []
        for field, messages in err.normalized_messages().items():
            if isinstance(messages, dict):
                messages = [m for msgs in messages.values() for m in msgs]
            for message in messages:
                field_errors.append({"field": field, "message": message})
        first = field_errors[0] if field_errors else {"field": "_schema", "message": "Validation failed"}
        summary = first["message"]
        if first["field"] != "_schema":
            summary = f"{first['field'].replace('_', ' ').capitalize()}: {summary}"
        raise ValidationError(summary, field_errors)
