# tests/conftest.py
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock
import pytest
from storefront.exceptions import ConfirmationCheckFailed
from storefront.models.order import CreateOrderData, PaymentMethod
from storefront.models.payment import ConfirmationResult, PaymentPolicy
from storefront.models.product import DeliveryType, Product
from storefront.services.fulfillment_service import FulfillmentService
from storefront.services.order_store import MemoryOrderStore
from storefront.services.product_service import MemoryProductCatalog

BTC_ADDRESS = "bc1qxy2kgdygjrsqtzq2n0yrf2493p83kkfjhx0wlh"


class ScriptedChecker:
    """Confirmation checker that replays a fixed list of readings"""

    def __init__(self, *steps):
        self.steps = list(steps)
        self.calls = []

    async def check(self, address, network):
        self.calls.append((address, network))
        step = self.steps.pop(0) if len(self.steps) > 1 else self.steps[0]
        if isinstance(step, Exception):
            raise step
        return step


def reading(confirmations, amount):
    return ConfirmationResult(confirmations=confirmations, received_amount=Decimal(str(amount)))


def failure(message="explorer down"):
    return ConfirmationCheckFailed(message)


@pytest.fixture
def policy():
    return PaymentPolicy(poll_interval=0, max_duration=3600)


@pytest.fixture
def product():
    return Product(
        product_id="tool-7d",
        name="Tool - 7 Day",
        description="Seven day license",
        price=Decimal("29.99"),
        category="Game Tools",
        game="Rust",
        stock_quantity=3,
        in_stock=True,
        delivery_type=DeliveryType.DOWNLOAD,
        delivery_url="https://downloads.example.com/tool-7d.zip",
        license_key="TOOL-7D-AAAA",
        created_at=datetime.now(timezone.utc),
    )


@pytest.fixture
def catalog(product):
    return MemoryProductCatalog([product])


@pytest.fixture
def store():
    return MemoryOrderStore()


@pytest.fixture
def notifier():
    mock = AsyncMock()
    mock.notify_order_completed.return_value = True
    mock.notify_order_created.return_value = True
    return mock


@pytest.fixture
def fulfillment(store, catalog, notifier):
    return FulfillmentService(store, catalog, notifier)


@pytest.fixture
def order_data(product):
    return CreateOrderData(
        product_id=product.product_id,
        product_name=product.name,
        product_price=product.price,
        payer_id="user@example.com",
        customer_email="user@example.com",
        payment_method=PaymentMethod.BITCOIN,
        wallet_address=BTC_ADDRESS,
    )


@pytest.fixture
async def order(store, order_data):
    return await store.create_order(order_data)
