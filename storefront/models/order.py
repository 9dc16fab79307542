# storefront/models/order.py
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import Field, field_validator
from .base import ApiModel, TimeStampedModel


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)

    def precedes(self, other: "OrderStatus") -> bool:
        return self.rank < other.rank

    def predecessors(self) -> list:
        """Statuses that may move forward to this one"""
        return [s for s in _STATUS_ORDER if s.rank < self.rank]


_STATUS_ORDER = [OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.COMPLETED]


class PaymentMethod(str, Enum):
    BITCOIN = "bitcoin"
    LITECOIN = "litecoin"
    PAYPAL = "paypal"

    @property
    def is_crypto(self) -> bool:
        return self in (PaymentMethod.BITCOIN, PaymentMethod.LITECOIN)


class CreateOrderData(ApiModel):
    """Checkout payload accepted by the order creation endpoint"""
    product_name: str = Field(min_length=1)
    product_price: Decimal = Field(gt=0)
    payer_id: str = Field(min_length=1)
    payment_method: PaymentMethod
    wallet_address: Optional[str] = None
    product_id: Optional[str] = None
    customer_email: Optional[str] = None

    @field_validator("payer_id", "product_name")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class Order(TimeStampedModel):
    """Order for a single digital product"""
    order_id: str = Field(alias="id")
    product_id: Optional[str] = None
    product_name: str
    product_price: Decimal
    payer_id: str
    customer_email: Optional[str] = None
    payment_method: PaymentMethod
    wallet_address: str
    status: OrderStatus = OrderStatus.PENDING
    transaction_id: Optional[str] = None
    license_key: Optional[str] = None
    download_url: Optional[str] = None

    @property
    def is_completed(self) -> bool:
        return self.status == OrderStatus.COMPLETED

    @property
    def has_delivery(self) -> bool:
        return bool(self.license_key or self.download_url)

    def belongs_to(self, payer_identity: str) -> bool:
        """Check ownership; emails compare case-insensitively"""
        identity = (payer_identity or "").strip()
        if not identity:
            return False
        if identity == self.payer_id:
            return True
        if "@" in identity:
            candidates = [self.payer_id, self.customer_email or ""]
            return any(c.lower() == identity.lower() for c in candidates if "@" in c)
        return False
