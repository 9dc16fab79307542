# storefront/models/support.py
from enum import Enum
from pydantic import Field
from .base import ApiModel, TimeStampedModel


class TicketPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TicketStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class CreateTicketData(ApiModel):
    name: str = Field(min_length=1)
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    subject: str = Field(min_length=1)
    message: str = Field(min_length=1)
    priority: TicketPriority = TicketPriority.MEDIUM


class SupportTicket(TimeStampedModel):
    ticket_id: str = Field(alias="id")
    name: str
    email: str
    subject: str
    message: str
    priority: TicketPriority = TicketPriority.MEDIUM
    status: TicketStatus = TicketStatus.OPEN
