import logging
from typing import Any, Mapping
from urllib.parse import quote, urlencode

from storefront.core.exceptions import ValidationError
from storefront.core.security import sanitize_input
from storefront.schemas.forms import ContactSchema, load_form

logger = logging.getLogger(__name__)

WHATSAPP_SEND_URL = "https://api.whatsapp.com/send"


class ContactService:
    """Turns the contact form into a prefilled WhatsApp chat link."""

    def __init__(self, phone_number: str):
        self.phone_number = phone_number

    def build_whatsapp_link(self, raw: Mapping[str, Any]) -> str:
        data = load_form(ContactSchema(), raw)

        name = sanitize_input(data["name"])
        message = data["message"].strip()
        if not name or not message:
            raise ValidationError("Please fill in your name and message.")
        if not self.phone_number:
            raise ValidationError("The contact number is not configured.")

        text = f"Nama: {name}\nEmail: {data['email']}\nPesan: {message}"
        logger.info("Contact message from %s <%s>", name, data["email"])
        return f"{WHATSAPP_SEND_URL}?{urlencode({'phone': self.phone_number, 'text': text}, quote_via=quote)}"
