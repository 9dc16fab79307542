# storefront/handlers/order_handlers.py
from aiohttp import web
from .base_handler import BaseHandler, error_response
from ..models.order import CreateOrderData


class OrderHandler(BaseHandler):
    """Checkout: order creation and payment detection"""

    async def create_order(self, request: web.Request) -> web.Response:
        data = CreateOrderData.model_validate(await self.read_json(request))
        order = await self.services.orders.create_order(data)
        return self.ok(order.to_json(), status=201)

    async def start_detection(self, request: web.Request) -> web.Response:
        order_id = request.match_info["order_id"]
        session = await self.services.detection.start(order_id)
        return self.ok(session.progress().to_json(), status=202)

    async def get_detection(self, request: web.Request) -> web.Response:
        order_id = request.match_info["order_id"]
        session = self.services.detection.get_session(order_id)
        if session is None:
            return error_response(404, f"No payment detection running for order {order_id}")
        return self.ok(session.progress().to_json())

    async def cancel_detection(self, request: web.Request) -> web.Response:
        order_id = request.match_info["order_id"]
        cancelled = await self.services.detection.cancel(order_id)
        return self.ok({"success": True, "cancelled": cancelled})
