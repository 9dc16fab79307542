# storefront/handlers/admin_handlers.py
from aiohttp import web
from .base_handler import BaseHandler, error_response
from ..config import Config
from ..models.order import OrderStatus
from ..services.auth_service import ADMIN_COOKIE


class AdminHandler(BaseHandler):
    """Admin panel endpoints"""

    async def login(self, request: web.Request) -> web.Response:
        body = await self.read_json(request)
        token = self.auth.admin_login(str(body.get("username") or ""),
                                      str(body.get("password") or ""))
        if token is None:
            return error_response(401, "Invalid credentials")

        response = self.ok({"success": True, "message": "Login successful"})
        self.set_session_cookie(response, ADMIN_COOKIE, token, Config.SESSION_TTL)
        return response

    async def check(self, request: web.Request) -> web.Response:
        self.admin_session(request).require_admin()
        return self.ok({"authenticated": True})

    async def logout(self, request: web.Request) -> web.Response:
        response = self.ok({"success": True})
        response.del_cookie(ADMIN_COOKIE)
        return response

    async def list_orders(self, request: web.Request) -> web.Response:
        orders = await self.services.admin.list_orders(self.admin_session(request))
        return self.ok([o.to_json() for o in orders])

    async def update_order_status(self, request: web.Request) -> web.Response:
        session = self.admin_session(request)
        session.require_admin()
        body = await self.read_json(request)
        try:
            status = OrderStatus(body.get("status"))
        except ValueError:
            return error_response(400, "status must be pending, confirmed or completed")

        order = await self.services.admin.update_order_status(
            session, request.match_info["order_id"], status
        )
        return self.ok(order.to_json())

    async def list_tickets(self, request: web.Request) -> web.Response:
        tickets = await self.services.admin.list_tickets(self.admin_session(request))
        return self.ok([t.to_json() for t in tickets])
