# storefront/handlers/customer_handlers.py
from aiohttp import web
from .base_handler import BaseHandler, error_response
from ..config import Config
from ..services.auth_service import CUSTOMER_COOKIE
from ..services.order_status import project_order, summarize


class CustomerHandler(BaseHandler):
    """Customer dashboard: order lookup bound to a signed session"""

    async def login(self, request: web.Request) -> web.Response:
        body = await self.read_json(request)
        order_id = str(body.get("orderId") or "").strip()
        payer = str(body.get("email") or body.get("payerId") or "").strip()
        if not order_id or not payer:
            return error_response(400, "orderId and email are required")

        order = await self.services.orders.customer_login(order_id, payer)
        response = self.ok({"success": True, "order": project_order(order).to_json()})
        self.set_session_cookie(response, CUSTOMER_COOKIE,
                                self.auth.customer_token(order.order_id, payer),
                                Config.SESSION_TTL)
        return response

    async def check(self, request: web.Request) -> web.Response:
        session = self.customer_session(request)
        session.require_customer()
        return self.ok({"authenticated": True, "orderId": session.order_id})

    async def list_orders(self, request: web.Request) -> web.Response:
        session = self.customer_session(request)
        requested = request.query.get("orderId")
        if requested:
            order = await self.services.orders.get_customer_order(session, requested)
            return self.ok(project_order(order).to_json())

        views = await self.services.orders.customer_orders(session)
        return self.ok({
            "orders": [v.to_json() for v in views],
            "summary": summarize(views).to_json(),
        })

    async def logout(self, request: web.Request) -> web.Response:
        response = self.ok({"success": True})
        response.del_cookie(CUSTOMER_COOKIE)
        return response
