# storefront/services/order_status.py
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional
from ..models.base import ApiModel
from ..models.order import Order, OrderStatus, PaymentMethod

STATUS_MESSAGES: Dict[OrderStatus, str] = {
    OrderStatus.PENDING: "We are verifying your payment. This usually takes 10-60 minutes.",
    OrderStatus.CONFIRMED: "Your payment has been confirmed. We are preparing your order.",
    OrderStatus.COMPLETED: "Your order is complete! Your license key and download are ready below.",
}


class OrderView(ApiModel):
    """Customer-facing view of an order"""
    order_id: str
    product_name: str
    product_price: Decimal
    payment_method: PaymentMethod
    status: OrderStatus
    status_message: str
    created_at: datetime
    transaction_id: Optional[str] = None
    license_key: Optional[str] = None
    download_url: Optional[str] = None


class DashboardSummary(ApiModel):
    total_orders: int
    completed: int
    available_keys: int


def status_message(status: OrderStatus) -> str:
    return STATUS_MESSAGES[OrderStatus(status)]


def project_order(order: Order) -> OrderView:
    """Delivery artifacts are only released once the order is completed"""
    released = order.status == OrderStatus.COMPLETED
    return OrderView(
        order_id=order.order_id,
        product_name=order.product_name,
        product_price=order.product_price,
        payment_method=order.payment_method,
        status=order.status,
        status_message=status_message(order.status),
        created_at=order.created_at,
        transaction_id=order.transaction_id,
        license_key=order.license_key if released else None,
        download_url=order.download_url if released else None,
    )


def project_orders(orders: Iterable[Order]) -> List[OrderView]:
    return [project_order(o) for o in orders]


def summarize(views: List[OrderView]) -> DashboardSummary:
    completed = [v for v in views if v.status == OrderStatus.COMPLETED]
    return DashboardSummary(
        total_orders=len(views),
        completed=len(completed),
        available_keys=sum(1 for v in completed if v.license_key),
    )
