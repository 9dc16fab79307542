# storefront/services/order_service.py
import logging
from typing import List, Optional
from ..config import Config
from ..exceptions import InvalidPaymentDetails, OrderNotFound, ProductNotFound
from ..models.order import CreateOrderData, Order, PaymentMethod
from ..models.product import Product
from ..utils.validators import is_valid_destination
from .auth_service import CustomerSession
from .order_status import OrderView, project_orders

logger = logging.getLogger(__name__)


def default_destination(method: PaymentMethod) -> str:
    return {
        PaymentMethod.BITCOIN: Config.BITCOIN_WALLET,
        PaymentMethod.LITECOIN: Config.LITECOIN_WALLET,
        PaymentMethod.PAYPAL: Config.PAYPAL_ADDRESS,
    }[method]


class OrderService:
    """Checkout and customer-dashboard operations on top of the order store"""

    def __init__(self, order_store, catalog, notifier=None):
        self.order_store = order_store
        self.catalog = catalog
        self.notifier = notifier

    async def create_order(self, data: CreateOrderData) -> Order:
        """Record a pending order for a confirmed checkout"""
        destination = (data.wallet_address or default_destination(data.payment_method)).strip()
        if not is_valid_destination(data.payment_method, destination):
            raise InvalidPaymentDetails(
                f"Invalid {data.payment_method.value} destination: {destination!r}"
            )

        product = await self._resolve_product(data)
        if not product.in_stock:
            raise InvalidPaymentDetails(f"{product.name} is out of stock")
        if data.product_price != product.price:
            logger.warning(f"Checkout for {product.product_id} quoted {data.product_price}, "
                           f"charging catalog price {product.price}")

        # Price and name always come from the catalog, never from the client
        order = await self.order_store.create_order(data.model_copy(update={
            "product_id": product.product_id,
            "product_name": product.name,
            "product_price": product.price,
            "wallet_address": destination,
        }))
        if self.notifier is not None:
            await self.notifier.notify_order_created(order)
        return order

    async def _resolve_product(self, data: CreateOrderData) -> Product:
        if data.product_id:
            product = await self.catalog.get_product(data.product_id)
        else:
            product = await self.catalog.find_by_name(data.product_name)
        if product is None:
            raise ProductNotFound(data.product_id or data.product_name)
        return product

    async def customer_login(self, order_id: str, payer_identity: str) -> Order:
        order = await self.order_store.get_payer_order(order_id, payer_identity)
        if order is None:
            raise OrderNotFound(order_id)
        return order

    async def customer_orders(self, session: CustomerSession) -> List[OrderView]:
        """All orders of the logged-in payer; the bound order must still be theirs"""
        session.require_customer()
        if await self.order_store.get_payer_order(session.order_id, session.payer_identity) is None:
            raise OrderNotFound(session.order_id)
        orders = await self.order_store.get_orders_for_payer(session.payer_identity)
        return project_orders(orders)

    async def get_customer_order(self, session: CustomerSession,
                                 order_id: Optional[str] = None) -> Order:
        session.require_customer()
        order = await self.order_store.get_payer_order(order_id or session.order_id,
                                                       session.payer_identity)
        if order is None:
            raise OrderNotFound(order_id or session.order_id)
        return order
