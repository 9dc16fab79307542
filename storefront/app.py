# storefront/app.py
import logging
from typing import Optional
from aiohttp import web
from .config import Config
from .database import Database
from .handlers import (
    AdminHandler,
    CustomerHandler,
    DownloadHandler,
    OrderHandler,
    ProductHandler,
    SupportHandler,
    WebhookHandler,
    error_middleware
)
from .models.payment import PaymentPolicy
from .services.admin_service import AdminService
from .services.auth_service import AuthService
from .services.confirmation_checker import BlockchainConfirmationChecker
from .services.fulfillment_service import FulfillmentService
from .services.notifier import OrderNotifier
from .services.order_service import OrderService
from .services.order_store import MemoryOrderStore, PostgresOrderStore
from .services.payment_detection import PaymentDetectionService
from .services.product_service import MemoryProductCatalog, PostgresProductCatalog
from .services.support_service import MemorySupportDesk, PostgresSupportDesk

logger = logging.getLogger(__name__)


class Services:
    """Everything the handlers talk to, wired once per process"""

    def __init__(self, order_store, catalog, support, checker=None, notifier=None,
                 policy: Optional[PaymentPolicy] = None, db: Optional[Database] = None):
        self.db = db
        self.order_store = order_store
        self.catalog = catalog
        self.support = support
        self.notifier = notifier
        self.policy = policy or PaymentPolicy.from_config()
        self.checker = checker or BlockchainConfirmationChecker(
            confirmation_cap=self.policy.confirmation_cap
        )

        self.auth = AuthService()
        self.fulfillment = FulfillmentService(order_store, catalog, notifier)
        self.orders = OrderService(order_store, catalog, notifier)
        self.admin = AdminService(order_store, self.fulfillment, support)
        self.detection = PaymentDetectionService(
            self.checker, order_store, self.fulfillment, self.policy
        )

    @classmethod
    def in_memory(cls, **kwargs) -> "Services":
        kwargs.setdefault("catalog", MemoryProductCatalog())
        return cls(order_store=MemoryOrderStore(), support=MemorySupportDesk(), **kwargs)

    @classmethod
    def from_config(cls) -> "Services":
        notifier = OrderNotifier()
        if not Config.DATABASE_URL:
            logger.warning("DATABASE_URL is not set, orders are kept in memory and lost on restart")
            return cls.in_memory(notifier=notifier)

        db = Database(Config.DATABASE_URL)
        return cls(
            order_store=PostgresOrderStore(db),
            catalog=PostgresProductCatalog(db),
            support=PostgresSupportDesk(db),
            notifier=notifier,
            db=db,
        )

    async def start(self):
        if self.db is not None:
            await self.db.connect()
        if self.notifier is not None:
            await self.notifier.start()

    async def stop(self):
        await self.detection.shutdown()
        if self.notifier is not None:
            await self.notifier.stop()
        if self.db is not None:
            await self.db.close()


class StorefrontApp:
    def __init__(self, services: Optional[Services] = None):
        self.services = services or Services.from_config()
        self.application = web.Application(middlewares=[error_middleware])
        self.setup_routes()
        self.application.on_startup.append(self._on_startup)
        self.application.on_cleanup.append(self._on_cleanup)

    def setup_routes(self):
        products = ProductHandler(self.services)
        orders = OrderHandler(self.services)
        customer = CustomerHandler(self.services)
        admin = AdminHandler(self.services)
        support = SupportHandler(self.services)
        webhooks = WebhookHandler(self.services)
        downloads = DownloadHandler(self.services)

        self.application.add_routes([
            # Catalog
            web.get("/api/products", products.list_products),
            web.get("/api/products/search/{query}", products.search_products),
            web.post("/api/products/filter", products.filter_products),
            web.get("/api/products/{product_id}", products.get_product),
            web.get("/api/product-groups", products.list_product_groups),

            # Checkout
            web.post("/api/orders", orders.create_order),
            web.post("/api/orders/{order_id}/detection", orders.start_detection),
            web.get("/api/orders/{order_id}/detection", orders.get_detection),
            web.delete("/api/orders/{order_id}/detection", orders.cancel_detection),

            # Customer dashboard
            web.post("/api/customer/login", customer.login),
            web.get("/api/customer/check", customer.check),
            web.get("/api/customer/orders", customer.list_orders),
            web.post("/api/customer/logout", customer.logout),
            web.post("/api/customer/orders/{order_id}/download", downloads.create_link),

            # Admin
            web.post("/api/admin/login", admin.login),
            web.get("/api/admin/check", admin.check),
            web.post("/api/admin/logout", admin.logout),
            web.get("/api/admin/orders", admin.list_orders),
            web.patch("/api/admin/orders/{order_id}/status", admin.update_order_status),
            web.get("/api/admin/support", admin.list_tickets),

            # Support, webhooks, downloads
            web.post("/api/support", support.create_ticket),
            web.post("/api/webhooks/fulfillment", webhooks.fulfillment),
            web.get("/api/download/{order_id}/{token}", downloads.download),
        ])

    async def _on_startup(self, app: web.Application):
        if Config.SECRET_KEY_IS_EPHEMERAL:
            logger.warning("SECRET_KEY is not set, sessions will not survive a restart")
        if not Config.WEBHOOK_SECRET:
            logger.warning("WEBHOOK_SECRET is not set, the fulfillment webhook is disabled")
        await self.services.start()

    async def _on_cleanup(self, app: web.Application):
        await self.services.stop()


def create_app(services: Optional[Services] = None) -> web.Application:
    return StorefrontApp(services).application
