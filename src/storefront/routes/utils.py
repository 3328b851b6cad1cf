from typing import Any, Dict, Optional
from urllib.parse import urlparse

from flask import g, jsonify, request

from storefront.core.exceptions import (
    ConflictError,
    ExternalServiceError,
    ForbiddenError,
    NotFoundError,
    RecaptchaError,
    UnauthorizedError,
    ValidationError,
)
from storefront.schemas.common_schemas import SuccessResponse

# Errors an HTML form reports back to the user with a flash message.
# CsrfError is deliberately absent: it falls through to the 400 handler.
FORM_ERRORS = (
    ValidationError,
    RecaptchaError,
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    ForbiddenError,
    ExternalServiceError,
)


def success_response(data, message: Optional[str] = None, status: int = 200):
    """Consistent success response envelope."""
    body = SuccessResponse(data=data, message=message, request_id=g.get("request_id"))
    return jsonify(body.model_dump(mode="json", exclude_none=True)), status


def wants_json() -> bool:
    return request.path.startswith("/api/") or request.is_json


def form_data() -> Dict[str, Any]:
    """request.form as a dict; keys posted more than once become lists."""
    data: Dict[str, Any] = {}
    for key in request.form.keys():
        values = request.form.getlist(key)
        data[key] = values if len(values) > 1 or key.endswith("_ids") else values[0]
    return data


def parse_int(value, default: Optional[int] = None) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def safe_next_url(target: Optional[str]) -> Optional[str]:
    """Only same-site relative paths are followed after login."""
    if not target:
        return None
    parsed = urlparse(target)
    if parsed.scheme or parsed.netloc or not target.startswith("/") or target.startswith("//"):
        return None
    return target
