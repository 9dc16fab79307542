# storefront/utils/formatters.py
from datetime import datetime
import pytz
from decimal import Decimal
from ..config import Config


def format_price(amount: Decimal) -> str:
    """Format a USD price"""
    return f"${Decimal(amount):,.2f}"


def format_datetime(dt: datetime) -> str:
    """Format a timestamp in the shop timezone"""
    shop_tz = pytz.timezone(Config.TIMEZONE)
    if dt.tzinfo is None:
        dt = pytz.utc.localize(dt)
    return dt.astimezone(shop_tz).strftime("%Y-%m-%d %H:%M:%S")


def short_id(value: str, length: int = 8) -> str:
    return value[:length]
