# storefront/handlers/download_handler.py
from datetime import datetime, timedelta, timezone
from aiohttp import web
from .base_handler import BaseHandler, error_response
from ..config import Config
from ..utils.security import generate_download_token, verify_download_token


class DownloadHandler(BaseHandler):
    """Signed, expiring download links for completed orders"""

    async def create_link(self, request: web.Request) -> web.Response:
        session = self.customer_session(request)
        order = await self.services.orders.get_customer_order(
            session, request.match_info["order_id"]
        )
        if not order.is_completed or not order.download_url:
            return error_response(404, "Download not available")

        token = generate_download_token(order.order_id)
        expires = datetime.now(timezone.utc) + timedelta(seconds=Config.DOWNLOAD_LINK_TTL)
        return self.ok({
            "url": f"/api/download/{order.order_id}/{token}",
            "expiresAt": expires.isoformat(),
        })

    async def download(self, request: web.Request) -> web.Response:
        order_id = request.match_info["order_id"]
        token = request.match_info["token"]
        if not verify_download_token(token, order_id):
            return error_response(404, "Download link expired or invalid")

        order = await self.services.order_store.get_order(order_id)
        if order is None or not order.is_completed or not order.download_url:
            return error_response(404, "Download not found")

        expires = datetime.now(timezone.utc) + timedelta(seconds=Config.DOWNLOAD_LINK_TTL)
        return self.ok({
            "productName": order.product_name,
            "downloadUrl": order.download_url,
            "expiresAt": expires.isoformat(),
        })
