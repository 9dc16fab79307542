# storefront/utils/messages.py
from ..models.order import Order, OrderStatus
from .formatters import format_price, format_datetime, short_id


class Messages:
    STATUS_EMOJI = {
        OrderStatus.PENDING: "⏳",
        OrderStatus.CONFIRMED: "✅",
        OrderStatus.COMPLETED: "📦",
    }

    @staticmethod
    def format_order(order: Order) -> str:
        """Order summary block"""
        return (
            f"🛍 Order #{short_id(order.order_id)}\n"
            f"------------------\n"
            f"{order.product_name}: {format_price(order.product_price)}\n"
            f"------------------\n"
            f"💳 Payment: {order.payment_method.value}\n"
            f"👤 Payer: {order.customer_email or order.payer_id}\n"
            f"📊 Status: {Messages.STATUS_EMOJI[order.status]} {order.status.value}\n"
            f"🕒 Date: {format_datetime(order.created_at)}\n"
        )

    @staticmethod
    def order_created(order: Order) -> str:
        return "🆕 New order\n\n" + Messages.format_order(order)

    @staticmethod
    def order_completed(order: Order) -> str:
        delivered = []
        if order.license_key:
            delivered.append("license key")
        if order.download_url:
            delivered.append("download link")
        delivery = ", ".join(delivered) if delivered else "nothing attached"
        tx = f"\n🔗 TX: {order.transaction_id}" if order.transaction_id else ""
        return (
            "✅ Order completed\n\n"
            + Messages.format_order(order)
            + f"📥 Delivered: {delivery}"
            + tx
        )
