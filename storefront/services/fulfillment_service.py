# storefront/services/fulfillment_service.py
import logging
from typing import Optional
from pydantic import Field
from ..exceptions import InvalidStatusTransition, OrderNotFound, ProductNotFound
from ..models.base import ApiModel
from ..models.order import Order, OrderStatus
from ..models.product import DeliveryType, Product
from ..utils.locks import KeyedLocks

logger = logging.getLogger(__name__)


class FulfillmentNotification(ApiModel):
    """Inbound notification from the external payment processor"""
    order_id: str = Field(min_length=1)
    product_id: Optional[str] = None
    payer_email: Optional[str] = None


class DeliveryContent(ApiModel):
    download_url: Optional[str] = None
    license_key: Optional[str] = None


class DeliveryResult(ApiModel):
    order_id: str
    product_name: str
    delivery_method: DeliveryType
    delivery_content: DeliveryContent


class FulfillmentService:
    """Attaches delivery artifacts to a paid order and completes it.

    Safe to call any number of times for the same order: artifacts are only
    written once and the completion notice is only sent by the call that
    actually moved the order to completed.
    """

    def __init__(self, order_store, catalog, notifier=None):
        self.order_store = order_store
        self.catalog = catalog
        self.notifier = notifier
        self._locks = KeyedLocks()

    async def fulfill(self, order_id: str) -> DeliveryResult:
        order = await self.order_store.get_order(order_id)
        if order is None:
            raise OrderNotFound(order_id)

        async with self._locks.hold(order_id):
            order = await self.order_store.get_order(order_id)
            if order.is_completed and order.has_delivery:
                return await self._stored_result(order)

            product = await self._find_product(order)
            content = self._delivery_content(product)

            if order.is_completed and not (content.license_key or content.download_url):
                return self._result(order, product, content)

            order = await self.order_store.attach_delivery(
                order_id,
                license_key=content.license_key,
                download_url=content.download_url,
            )

            was_completed = order.is_completed
            order = await self._advance(order)

            if not was_completed and order.is_completed:
                logger.info(f"Order {order_id} fulfilled ({product.delivery_type.value})")
                if self.notifier is not None:
                    await self.notifier.notify_order_completed(order)

            return self._result(order, product, content)

    async def handle_notification(self, notification: FulfillmentNotification) -> DeliveryResult:
        """Fulfill an order reported paid by the payment processor"""
        order = await self.order_store.get_order(notification.order_id)
        if order is None:
            raise OrderNotFound(notification.order_id)
        if notification.payer_email and not order.belongs_to(notification.payer_email):
            raise OrderNotFound(notification.order_id)
        if notification.product_id and notification.product_id != order.product_id:
            logger.warning(f"Fulfillment notification for order {order.order_id} names product "
                           f"{notification.product_id!r}, order is for {order.product_id!r}")
            raise OrderNotFound(notification.order_id)
        return await self.fulfill(notification.order_id)

    async def _advance(self, order: Order) -> Order:
        """Walk the order forward to completed, one status at a time"""
        for status in (OrderStatus.CONFIRMED, OrderStatus.COMPLETED):
            if order.status.precedes(status):
                try:
                    order = await self.order_store.update_status(order.order_id, status)
                except InvalidStatusTransition:
                    order = await self.order_store.get_order(order.order_id)
        return order

    async def _lookup_product(self, order: Order) -> Optional[Product]:
        if order.product_id:
            return await self.catalog.get_product(order.product_id)
        return await self.catalog.find_by_name(order.product_name)

    async def _find_product(self, order: Order) -> Product:
        product = await self._lookup_product(order)
        if product is None:
            raise ProductNotFound(order.product_id or order.product_name)
        return product

    async def _stored_result(self, order: Order) -> DeliveryResult:
        """Result of an already delivered order, even if its product has since been removed"""
        product = await self._lookup_product(order)
        if product is not None:
            method = product.delivery_type
        else:
            method = DeliveryType.DOWNLOAD if order.download_url else DeliveryType.KEY
        return DeliveryResult(
            order_id=order.order_id,
            product_name=order.product_name,
            delivery_method=method,
            delivery_content=DeliveryContent(
                download_url=order.download_url,
                license_key=order.license_key,
            ),
        )

    @staticmethod
    def _delivery_content(product: Product) -> DeliveryContent:
        return DeliveryContent(
            download_url=product.delivery_url,
            license_key=product.license_key,
        )

    @staticmethod
    def _result(order: Order, product: Product, content: DeliveryContent) -> DeliveryResult:
        return DeliveryResult(
            order_id=order.order_id,
            product_name=product.name,
            delivery_method=product.delivery_type,
            delivery_content=DeliveryContent(
                download_url=order.download_url or content.download_url,
                license_key=order.license_key or content.license_key,
            ),
        )
