# storefront/models/payment.py
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from .base import ApiModel
from .order import PaymentMethod
from ..config import Config


class Network(str, Enum):
    BITCOIN_MAIN = "bitcoin-main"
    LITECOIN_MAIN = "litecoin-main"

    @classmethod
    def for_method(cls, method: PaymentMethod) -> "Network":
        if method == PaymentMethod.BITCOIN:
            return cls.BITCOIN_MAIN
        if method == PaymentMethod.LITECOIN:
            return cls.LITECOIN_MAIN
        raise ValueError(f"{method.value} payments are not detected on-chain")


class ConfirmationResult(ApiModel):
    """What the block explorer reports for a payment address"""
    confirmations: int = 0
    received_amount: Decimal = Decimal(0)
    balance: Decimal = Decimal(0)
    unconfirmed_balance: Decimal = Decimal(0)
    transaction_id: Optional[str] = None


class DetectionState(str, Enum):
    IDLE = "idle"
    DETECTING = "detecting"
    CONFIRMED = "confirmed"
    ABANDONED = "abandoned"


class PaymentPolicy(BaseModel):
    """Business-tunable payment detection thresholds"""
    model_config = ConfigDict(frozen=True)

    tolerance: Decimal = Field(default=Decimal("0.95"), gt=0, le=1)
    required_confirmations: int = Field(default=2, ge=0)
    poll_interval: float = Field(default=120.0, ge=0)
    confirmation_cap: int = Field(default=6, ge=1)
    max_duration: float = Field(default=6 * 60 * 60, gt=0)

    @classmethod
    def from_config(cls) -> "PaymentPolicy":
        return cls(
            tolerance=Decimal(Config.PAYMENT_TOLERANCE),
            required_confirmations=Config.REQUIRED_CONFIRMATIONS,
            poll_interval=Config.POLL_INTERVAL_SECONDS,
            confirmation_cap=Config.CONFIRMATION_DISPLAY_CAP,
            max_duration=Config.MAX_DETECTION_SECONDS,
        )

    def is_payment_received(self, received: Decimal, expected: Decimal) -> bool:
        return Decimal(received) >= Decimal(expected) * self.tolerance

    def is_final(self, confirmations: int) -> bool:
        return confirmations >= self.required_confirmations

    def clamp(self, confirmations: int) -> int:
        return max(0, min(int(confirmations), self.confirmation_cap))
