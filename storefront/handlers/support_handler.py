# storefront/handlers/support_handler.py
from aiohttp import web
from .base_handler import BaseHandler
from ..models.support import CreateTicketData


class SupportHandler(BaseHandler):

    async def create_ticket(self, request: web.Request) -> web.Response:
        data = CreateTicketData.model_validate(await self.read_json(request))
        ticket = await self.services.support.create_ticket(data)
        return self.ok({
            "success": True,
            "message": "Support ticket created successfully",
            "ticket": {
                "id": ticket.ticket_id,
                "status": ticket.status.value,
                "createdAt": ticket.created_at.isoformat(),
            },
        }, status=201)
