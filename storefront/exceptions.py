# storefront/exceptions.py


class StorefrontError(Exception):
    """Base class for storefront errors"""


class StorageUnavailable(StorefrontError):
    """The backing store could not be reached. Retryable."""


class OrderNotFound(StorefrontError):
    """Unknown order id, or an order that belongs to another payer."""

    def __init__(self, order_id: str):
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class ProductNotFound(StorefrontError):
    def __init__(self, product_id: str):
        super().__init__(f"Product {product_id} not found")
        self.product_id = product_id


class ConfirmationCheckFailed(StorefrontError):
    """The block explorer call failed. Expected and transient."""


class InvalidStatusTransition(StorefrontError):
    """A transition that would move a status backwards or out of a terminal state."""

    def __init__(self, current: str, requested: str):
        super().__init__(f"Cannot move from {current} to {requested}")
        self.current = current
        self.requested = requested


class AuthenticationRequired(StorefrontError):
    """A privileged operation was called without a valid session."""


class InvalidPaymentDetails(StorefrontError):
    """Checkout data that cannot be paid, e.g. a malformed wallet address."""
