# storefront/services/support_service.py
import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, List
from ..models.support import CreateTicketData, SupportTicket, TicketStatus

logger = logging.getLogger(__name__)


class SupportDesk:
    """Support ticket intake"""

    async def create_ticket(self, data: CreateTicketData) -> SupportTicket:
        raise NotImplementedError

    async def get_tickets(self) -> List[SupportTicket]:
        raise NotImplementedError

    @staticmethod
    def _new_ticket(data: CreateTicketData) -> SupportTicket:
        return SupportTicket(
            ticket_id=str(uuid.uuid4()),
            name=data.name,
            email=data.email,
            subject=data.subject,
            message=data.message,
            priority=data.priority,
            status=TicketStatus.OPEN,
            created_at=datetime.now(timezone.utc),
        )


class MemorySupportDesk(SupportDesk):

    def __init__(self):
        self._tickets: Dict[str, SupportTicket] = {}

    async def create_ticket(self, data: CreateTicketData) -> SupportTicket:
        ticket = self._new_ticket(data)
        self._tickets[ticket.ticket_id] = ticket
        logger.info(f"Support ticket {ticket.ticket_id} opened ({ticket.priority.value})")
        return ticket

    async def get_tickets(self) -> List[SupportTicket]:
        return sorted(self._tickets.values(), key=lambda t: t.created_at, reverse=True)


class PostgresSupportDesk(SupportDesk):

    def __init__(self, db):
        self.db = db

    async def create_ticket(self, data: CreateTicketData) -> SupportTicket:
        ticket = self._new_ticket(data)
        async with self.db.acquire() as conn:
            await conn.execute("""
                INSERT INTO support_tickets (
                    ticket_id, name, email, subject, message, priority, status, created_at
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            """,
                ticket.ticket_id,
                ticket.name,
                ticket.email,
                ticket.subject,
                ticket.message,
                ticket.priority.value,
                ticket.status.value,
                ticket.created_at
            )
        logger.info(f"Support ticket {ticket.ticket_id} opened ({ticket.priority.value})")
        return ticket

    async def get_tickets(self) -> List[SupportTicket]:
        async with self.db.acquire() as conn:
            rows = await conn.fetch("SELECT * FROM support_tickets ORDER BY created_at DESC")
        return [SupportTicket(**dict(row)) for row in rows]
