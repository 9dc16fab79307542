# storefront/handlers/webhook_handler.py
import json
import logging
from aiohttp import web
from .base_handler import BaseHandler, error_response
from ..config import Config
from ..services.fulfillment_service import FulfillmentNotification
from ..utils.security import verify_webhook_signature

logger = logging.getLogger(__name__)


class WebhookHandler(BaseHandler):
    """Inbound fulfillment notifications from the payment processor"""

    async def fulfillment(self, request: web.Request) -> web.Response:
        if not Config.WEBHOOK_SECRET:
            logger.warning("Rejected fulfillment webhook, WEBHOOK_SECRET is not configured")
            return error_response(503, "Fulfillment webhook is not configured")

        raw = await request.read()
        if not verify_webhook_signature(raw, request.headers.get("X-Signature")):
            logger.warning("Rejected fulfillment webhook with a bad signature")
            return error_response(401, "Invalid signature")

        try:
            body = json.loads(raw or b"{}")
        except ValueError:
            return error_response(400, "Body must be JSON")

        notification = FulfillmentNotification.model_validate(body)
        result = await self.services.fulfillment.handle_notification(notification)
        return self.ok({
            "success": True,
            "message": "Product delivered successfully",
            "delivery": result.to_json(),
        })
