# storefront/services/admin_service.py
import logging
from typing import List
from ..exceptions import ProductNotFound
from ..models.order import Order, OrderStatus
from ..models.support import SupportTicket
from .auth_service import AdminSession

logger = logging.getLogger(__name__)


class AdminService:
    """Privileged operations; each one takes the caller's AdminSession"""

    def __init__(self, order_store, fulfillment, support_desk):
        self.order_store = order_store
        self.fulfillment = fulfillment
        self.support_desk = support_desk

    async def list_orders(self, session: AdminSession) -> List[Order]:
        session.require_admin()
        return await self.order_store.get_orders()

    async def update_order_status(self, session: AdminSession, order_id: str,
                                  status: OrderStatus) -> Order:
        """Move an order forward. Completing it runs fulfillment."""
        session.require_admin()
        status = OrderStatus(status)
        logger.info(f"Admin {session.username} sets order {order_id} to {status.value}")

        if status == OrderStatus.COMPLETED:
            current = await self.order_store.get_order(order_id)
            if current is not None and not current.is_completed:
                try:
                    await self.fulfillment.fulfill(order_id)
                    return await self.order_store.get_order(order_id)
                except ProductNotFound as e:
                    logger.warning(f"Completing order {order_id} without delivery: {e}")

        return await self.order_store.update_status(order_id, status)

    async def list_tickets(self, session: AdminSession) -> List[SupportTicket]:
        session.require_admin()
        return await self.support_desk.get_tickets()
