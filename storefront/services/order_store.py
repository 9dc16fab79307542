# storefront/services/order_store.py
import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional
from ..models.order import Order, OrderStatus, CreateOrderData
from ..exceptions import OrderNotFound, InvalidStatusTransition
from ..utils.locks import KeyedLocks

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class OrderStore:
    """Authoritative record of orders.

    Orders are never deleted. Status only moves forward through
    pending -> confirmed -> completed; a request to move it backwards raises
    InvalidStatusTransition and a request for the current status is a no-op.
    Writes to one order are serialized, writes to different orders are not.
    """

    async def create_order(self, data: CreateOrderData) -> Order:
        raise NotImplementedError

    async def get_order(self, order_id: str) -> Optional[Order]:
        raise NotImplementedError

    async def get_orders(self) -> List[Order]:
        """All orders, newest first"""
        raise NotImplementedError

    async def get_orders_for_payer(self, payer_identity: str) -> List[Order]:
        raise NotImplementedError

    async def update_status(self, order_id: str, status: OrderStatus,
                            transaction_id: Optional[str] = None) -> Order:
        raise NotImplementedError

    async def attach_delivery(self, order_id: str, license_key: Optional[str] = None,
                              download_url: Optional[str] = None) -> Order:
        raise NotImplementedError

    async def get_payer_order(self, order_id: str, payer_identity: str) -> Optional[Order]:
        """Return the order only when it belongs to the payer.

        A foreign order looks exactly like a missing one.
        """
        order = await self.get_order(order_id)
        if order is None or not order.belongs_to(payer_identity):
            return None
        return order

    @staticmethod
    def _new_order(data: CreateOrderData, wallet_address: str) -> Order:
        return Order(
            order_id=str(uuid.uuid4()),
            product_id=data.product_id,
            product_name=data.product_name,
            product_price=data.product_price,
            payer_id=data.payer_id,
            customer_email=data.customer_email,
            payment_method=data.payment_method,
            wallet_address=wallet_address,
            status=OrderStatus.PENDING,
            created_at=_now(),
        )

    @staticmethod
    def _check_transition(order: Order, status: OrderStatus) -> bool:
        """True when the update changes anything; raises when it would go backwards"""
        if status == order.status:
            return False
        if not order.status.precedes(status):
            raise InvalidStatusTransition(order.status.value, status.value)
        return True


class MemoryOrderStore(OrderStore):
    """Non-durable store for development and tests"""

    def __init__(self):
        self._orders: Dict[str, Order] = {}
        self._locks = KeyedLocks()

    async def create_order(self, data: CreateOrderData) -> Order:
        order = self._new_order(data, data.wallet_address or "")
        self._orders[order.order_id] = order
        logger.info(f"Created order {order.order_id} ({order.payment_method.value})")
        return order.model_copy()

    async def get_order(self, order_id: str) -> Optional[Order]:
        order = self._orders.get(order_id)
        return order.model_copy() if order else None

    async def get_orders(self) -> List[Order]:
        orders = sorted(self._orders.values(), key=lambda o: o.created_at, reverse=True)
        return [o.model_copy() for o in orders]

    async def get_orders_for_payer(self, payer_identity: str) -> List[Order]:
        return [o for o in await self.get_orders() if o.belongs_to(payer_identity)]

    async def update_status(self, order_id: str, status: OrderStatus,
                            transaction_id: Optional[str] = None) -> Order:
        status = OrderStatus(status)
        if order_id not in self._orders:
            raise OrderNotFound(order_id)
        async with self._locks.hold(order_id):
            order = self._orders.get(order_id)
            if order is None:
                raise OrderNotFound(order_id)

            changes = {}
            if self._check_transition(order, status):
                changes["status"] = status
            if transaction_id and not order.transaction_id:
                changes["transaction_id"] = transaction_id
            if not changes:
                return order.model_copy()

            changes["updated_at"] = _now()
            updated = order.model_copy(update=changes)
            self._orders[order_id] = updated
            if "status" in changes:
                logger.info(f"Order {order_id}: {order.status.value} -> {status.value}")
            return updated.model_copy()

    async def attach_delivery(self, order_id: str, license_key: Optional[str] = None,
                              download_url: Optional[str] = None) -> Order:
        if order_id not in self._orders:
            raise OrderNotFound(order_id)
        async with self._locks.hold(order_id):
            order = self._orders.get(order_id)
            if order is None:
                raise OrderNotFound(order_id)

            changes = {}
            if license_key is not None and license_key != order.license_key:
                changes["license_key"] = license_key
            if download_url is not None and download_url != order.download_url:
                changes["download_url"] = download_url
            if not changes:
                return order.model_copy()

            changes["updated_at"] = _now()
            updated = order.model_copy(update=changes)
            self._orders[order_id] = updated
            return updated.model_copy()


class PostgresOrderStore(OrderStore):
    """Durable store backed by the orders table.

    Status updates are a single conditional UPDATE that only matches rows
    whose current status precedes the target, so concurrent writers across
    processes can never regress an order.
    """

    def __init__(self, db):
        self.db = db

    async def create_order(self, data: CreateOrderData) -> Order:
        order = self._new_order(data, data.wallet_address or "")
        async with self.db.acquire() as conn:
            row = await conn.fetchrow("""
                INSERT INTO orders (
                    order_id, product_id, product_name, product_price, payer_id,
                    customer_email, payment_method, wallet_address, status, created_at
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
                RETURNING *
            """,
                order.order_id,
                order.product_id,
                order.product_name,
                order.product_price,
                order.payer_id,
                order.customer_email,
                order.payment_method.value,
                order.wallet_address,
                order.status.value,
                order.created_at
            )
        logger.info(f"Created order {order.order_id} ({order.payment_method.value})")
        return Order(**dict(row))

    async def get_order(self, order_id: str) -> Optional[Order]:
        async with self.db.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT * FROM orders WHERE order_id = $1", order_id
            )
        return Order(**dict(row)) if row else None

    async def get_orders(self) -> List[Order]:
        async with self.db.acquire() as conn:
            rows = await conn.fetch("SELECT * FROM orders ORDER BY created_at DESC")
        return [Order(**dict(row)) for row in rows]

    async def get_orders_for_payer(self, payer_identity: str) -> List[Order]:
        async with self.db.acquire() as conn:
            rows = await conn.fetch("""
                SELECT * FROM orders
                WHERE payer_id = $1
                   OR (POSITION('@' IN $1) > 0
                       AND (LOWER(payer_id) = LOWER($1) OR LOWER(customer_email) = LOWER($1)))
                ORDER BY created_at DESC
            """, payer_identity)
        return [Order(**dict(row)) for row in rows]

    async def update_status(self, order_id: str, status: OrderStatus,
                            transaction_id: Optional[str] = None) -> Order:
        status = OrderStatus(status)
        async with self.db.acquire() as conn:
            row = await conn.fetchrow("""
                UPDATE orders
                SET status = $2,
                    transaction_id = COALESCE(transaction_id, $3),
                    updated_at = CURRENT_TIMESTAMP
                WHERE order_id = $1 AND status = ANY($4::text[])
                RETURNING *
            """,
                order_id,
                status.value,
                transaction_id,
                [s.value for s in status.predecessors()]
            )
            if row:
                logger.info(f"Order {order_id} -> {status.value}")
                return Order(**dict(row))

            # Nothing matched: unknown id, already there, or further along
            current = await conn.fetchrow(
                "SELECT * FROM orders WHERE order_id = $1", order_id
            )
            if current is None:
                raise OrderNotFound(order_id)
            order = Order(**dict(current))
            self._check_transition(order, status)

            if transaction_id and not order.transaction_id:
                row = await conn.fetchrow("""
                    UPDATE orders
                    SET transaction_id = $2, updated_at = CURRENT_TIMESTAMP
                    WHERE order_id = $1 AND transaction_id IS NULL
                    RETURNING *
                """, order_id, transaction_id)
                if row:
                    return Order(**dict(row))
            return order

    async def attach_delivery(self, order_id: str, license_key: Optional[str] = None,
                              download_url: Optional[str] = None) -> Order:
        async with self.db.acquire() as conn:
            row = await conn.fetchrow("""
                UPDATE orders
                SET license_key = COALESCE($2, license_key),
                    download_url = COALESCE($3, download_url),
                    updated_at = CASE
                        WHEN license_key IS DISTINCT FROM COALESCE($2, license_key)
                          OR download_url IS DISTINCT FROM COALESCE($3, download_url)
                        THEN CURRENT_TIMESTAMP
                        ELSE updated_at
                    END
                WHERE order_id = $1
                RETURNING *
            """, order_id, license_key, download_url)
        if row is None:
            raise OrderNotFound(order_id)
        return Order(**dict(row))
