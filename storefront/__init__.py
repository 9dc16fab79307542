"""Digital goods storefront with crypto payment detection."""

__version__ = "1.0.0"
