"""HTTP handlers"""
from .base_handler import BaseHandler, error_middleware
from .product_handlers import ProductHandler
from .order_handlers import OrderHandler
from .customer_handlers import CustomerHandler
from .admin_handlers import AdminHandler
from .support_handler import SupportHandler
from .webhook_handler import WebhookHandler
from .download_handler import DownloadHandler

__all__ = [
    'BaseHandler',
    'error_middleware',
    'ProductHandler',
    'OrderHandler',
    'CustomerHandler',
    'AdminHandler',
    'SupportHandler',
    'WebhookHandler',
    'DownloadHandler',
]
