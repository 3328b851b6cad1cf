import logging
from typing import Mapping, Optional

import requests
from flask import request

from storefront.core.config import RecaptchaConfig
from storefront.core.exceptions import ExternalServiceError, RecaptchaError
from storefront.core.security import require_csrf

logger = logging.getLogger(__name__)

RESPONSE_FIELD = "g-recaptcha-response"


def verify_recaptcha(config: RecaptchaConfig, response_token: Optional[str], remote_ip: Optional[str] = None) -> None:
    """Raise RecaptchaError unless Google accepts the widget response."""
    if not config.enabled:
        return

    if not response_token:
        raise RecaptchaError("Please complete the reCAPTCHA.")

    payload = {"secret": config.secret_key, "response": response_token}
    if remote_ip:
        payload["remoteip"] = remote_ip

    try:
        resp = requests.post(config.verify_url, data=payload, timeout=config.timeout)
        resp.raise_for_status()
        result = resp.json()
    except (requests.RequestException, ValueError) as e:
        logger.error(f"reCAPTCHA verification request failed: {e}")
        raise ExternalServiceError("recaptcha", "Could not verify the reCAPTCHA. Please try again.", str(e))

    if not result.get("success"):
        logger.info("reCAPTCHA rejected: %s", result.get("error-codes"))
        raise RecaptchaError("reCAPTCHA verification failed.")


def validate_csrf_and_recaptcha(config: RecaptchaConfig, form: Optional[Mapping[str, str]] = None) -> None:
    """Gate for the public forms: CSRF first, then the reCAPTCHA widget."""
    form = request.form if form is None else form
    require_csrf(form)
    verify_recaptcha(config, form.get(RESPONSE_FIELD), request.remote_addr)
