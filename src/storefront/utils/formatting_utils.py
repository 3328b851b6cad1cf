import re
import unicodedata
from decimal import Decimal
from typing import Optional


class FormattingUtils:
    """
    Display formatting for templates and JSON responses.

    Prices are stored as integers in the currency's smallest unit as
    entered; ``decimal_places`` says where the decimal point sits.
    """

    CURRENCY_FORMATS = {
        'IDR': {'symbol': 'Rp ', 'decimal_places': 0, 'thousands': '.', 'decimal': ','},
        'USD': {'symbol': '$', 'decimal_places': 2, 'thousands': ',', 'decimal': '.'},
        'EUR': {'symbol': '€', 'decimal_places': 2, 'thousands': '.', 'decimal': ','},
        'SGD': {'symbol': 'S$', 'decimal_places': 2, 'thousands': ',', 'decimal': '.'},
    }

    DEFAULT_TRUNCATE_LENGTH = 100
    ELLIPSIS = '...'

    @classmethod
    def format_money(cls, amount: int, currency: str = 'IDR', include_symbol: bool = True) -> str:
        """
        Format an amount for display

        Examples:
            format_money(150000, 'IDR') -> "Rp 150.000"
            format_money(1299, 'USD') -> "$12.99"
        """
        config = cls.CURRENCY_FORMATS.get(currency)
        if config is None:
            return f"{currency} {amount:,}"

        decimal_places = config['decimal_places']
        value = Decimal(amount) / (10 ** decimal_places)
        formatted = f"{value:,.{decimal_places}f}"
        # Swap separators through a placeholder
        formatted = formatted.replace(',', '\0').replace('.', config['decimal']).replace('\0', config['thousands'])

        return f"{config['symbol']}{formatted}" if include_symbol else formatted

    @classmethod
    def slugify(cls, text: str, max_length: int = 200) -> str:
        """Lowercase ASCII slug matching ``^[a-z0-9-]+$``."""
        normalized = unicodedata.normalize('NFKD', text).encode('ascii', 'ignore').decode('ascii')
        slug = re.sub(r'[^a-z0-9]+', '-', normalized.lower()).strip('-')
        slug = re.sub(r'-{2,}', '-', slug)
        return slug[:max_length].rstrip('-')

    @classmethod
    def truncate_text(cls, text: Optional[str], max_length: int = DEFAULT_TRUNCATE_LENGTH) -> str:
        """Truncate at a word boundary and append an ellipsis"""
        if not text or len(text) <= max_length:
            return text or ''
        cut = text[: max_length - len(cls.ELLIPSIS)]
        if ' ' in cut:
            cut = cut.rsplit(' ', 1)[0]
        return cut + cls.ELLIPSIS

    @classmethod
    def format_name(cls, first_name: Optional[str], last_name: Optional[str], fallback: str = '') -> str:
        full = ' '.join(part for part in (first_name, last_name) if part)
        return full or fallback

    @classmethod
    def format_file_size(cls, size_bytes: int) -> str:
        for unit in ('B', 'KB', 'MB'):
            if size_bytes < 1024:
                return f"{size_bytes:.0f} {unit}" if unit == 'B' else f"{size_bytes:.1f} {unit}"
            size_bytes /= 1024
        return f"{size_bytes:.1f} GB"
