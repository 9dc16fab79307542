# storefront/models/product.py
from decimal import Decimal
from enum import Enum
from typing import Optional, List
from pydantic import Field
from .base import ApiModel, TimeStampedModel


class DeliveryType(str, Enum):
    DOWNLOAD = "download"
    KEY = "key"
    ACCOUNT = "account"


class Product(TimeStampedModel):
    """Product model for digital goods"""
    product_id: str = Field(alias="id")
    name: str
    description: str = ""
    price: Decimal
    original_price: Optional[Decimal] = None
    category: str = ""
    game: str = ""
    stock_quantity: int = 0
    in_stock: bool = True
    image_url: Optional[str] = None

    # Delivery settings
    delivery_type: DeliveryType = DeliveryType.DOWNLOAD
    delivery_url: Optional[str] = None
    license_key: Optional[str] = None

    # Variant grouping
    group_id: Optional[str] = None
    variant_name: Optional[str] = None


class ProductVariant(ApiModel):
    variant_id: str = Field(alias="id")
    name: str
    price: Decimal
    original_price: Optional[Decimal] = None
    stock_quantity: int
    in_stock: bool
    delivery_url: Optional[str] = None
    license_key: Optional[str] = None


class ProductGroup(ApiModel):
    """Variants of one product shown as a single card"""
    group_id: str = Field(alias="id")
    name: str
    description: str
    category: str
    game: str
    image_url: Optional[str] = None
    delivery_type: DeliveryType
    variants: List[ProductVariant]


class PriceRange(ApiModel):
    min: Optional[Decimal] = None
    max: Optional[Decimal] = None


class ProductFilter(ApiModel):
    categories: List[str] = []
    games: List[str] = []
    price_range: Optional[PriceRange] = None
    in_stock: Optional[bool] = None

    def matches(self, product: Product) -> bool:
        if self.categories and product.category not in self.categories:
            return False
        if self.games and product.game not in self.games:
            return False
        if self.price_range:
            if self.price_range.min is not None and product.price < self.price_range.min:
                return False
            if self.price_range.max is not None and product.price > self.price_range.max:
                return False
        if self.in_stock is not None and product.in_stock != self.in_stock:
            return False
        return True
