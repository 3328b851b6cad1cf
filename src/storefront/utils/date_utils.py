from datetime import datetime, timedelta, timezone
from typing import Optional, Union

import pytz
from dateutil import parser as date_parser


class DateUtils:
    """
    Date/time helpers.

    Timestamps are stored as naive UTC; they are only converted to the site
    timezone for display.
    """

    UTC = timezone.utc
    DEFAULT_TIMEZONE = 'Asia/Jakarta'

    @classmethod
    def now_utc(cls) -> datetime:
        """Current time as naive UTC, the form stored in the database"""
        return datetime.now(cls.UTC).replace(tzinfo=None)

    @classmethod
    def create_expiry_time(cls, minutes: int = 0, days: int = 0) -> datetime:
        return cls.now_utc() + timedelta(minutes=minutes, days=days)

    @classmethod
    def parse(cls, value: Union[str, datetime, None]) -> Optional[datetime]:
        """Accept a datetime or the string form some drivers return."""
        if value is None or value == '':
            return None
        if isinstance(value, datetime):
            return value
        return date_parser.parse(value)

    @classmethod
    def to_local(cls, value: Union[str, datetime, None], timezone_name: str = DEFAULT_TIMEZONE) -> Optional[datetime]:
        dt = cls.parse(value)
        if dt is None:
            return None
        if dt.tzinfo is None:
            dt = pytz.utc.localize(dt)
        return dt.astimezone(pytz.timezone(timezone_name))

    @classmethod
    def format_for_display(
        cls,
        value: Union[str, datetime, None],
        timezone_name: str = DEFAULT_TIMEZONE,
        fmt: str = '%d %b %Y %H:%M',
    ) -> str:
        local = cls.to_local(value, timezone_name)
        return local.strftime(fmt) if local else ''
