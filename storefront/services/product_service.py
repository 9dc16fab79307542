# storefront/services/product_service.py
from collections import OrderedDict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, List, Optional
from ..models.product import (
    DeliveryType, Product, ProductFilter, ProductGroup, ProductVariant
)


def group_products(products: Iterable[Product]) -> List[ProductGroup]:
    """Fold products sharing a group_id into one group of variants"""
    groups: "OrderedDict[str, ProductGroup]" = OrderedDict()
    for product in products:
        if not product.group_id:
            continue
        variant = ProductVariant(
            variant_id=product.product_id,
            name=product.variant_name or product.name,
            price=product.price,
            original_price=product.original_price,
            stock_quantity=product.stock_quantity,
            in_stock=product.in_stock,
            delivery_url=product.delivery_url,
            license_key=product.license_key,
        )
        group = groups.get(product.group_id)
        if group is None:
            base_name = product.name
            if product.variant_name and base_name.endswith(f" - {product.variant_name}"):
                base_name = base_name[:-len(f" - {product.variant_name}")]
            groups[product.group_id] = ProductGroup(
                group_id=product.group_id,
                name=base_name,
                description=product.description,
                category=product.category,
                game=product.game,
                image_url=product.image_url,
                delivery_type=product.delivery_type,
                variants=[variant],
            )
        else:
            group.variants.append(variant)
    return list(groups.values())


class ProductCatalog:
    """Read-only product lookups used by checkout and fulfillment"""

    async def get_products(self) -> List[Product]:
        raise NotImplementedError

    async def get_product(self, product_id: str) -> Optional[Product]:
        raise NotImplementedError

    async def search_products(self, query: str) -> List[Product]:
        raise NotImplementedError

    async def filter_products(self, filters: ProductFilter) -> List[Product]:
        return [p for p in await self.get_products() if filters.matches(p)]

    async def get_product_groups(self) -> List[ProductGroup]:
        return group_products(await self.get_products())

    async def find_by_name(self, name: str) -> Optional[Product]:
        for product in await self.get_products():
            if product.name == name:
                return product
        return None


class MemoryProductCatalog(ProductCatalog):

    def __init__(self, products: Optional[Iterable[Product]] = None):
        self._products: Dict[str, Product] = OrderedDict()
        for product in products if products is not None else default_products():
            self._products[product.product_id] = product

    async def get_products(self) -> List[Product]:
        return list(self._products.values())

    async def get_product(self, product_id: str) -> Optional[Product]:
        return self._products.get(product_id)

    async def search_products(self, query: str) -> List[Product]:
        needle = query.lower()
        return [
            p for p in self._products.values()
            if needle in p.name.lower()
            or needle in p.description.lower()
            or needle in p.game.lower()
            or needle in p.category.lower()
        ]


class PostgresProductCatalog(ProductCatalog):

    def __init__(self, db):
        self.db = db

    async def get_products(self) -> List[Product]:
        async with self.db.acquire() as conn:
            rows = await conn.fetch("SELECT * FROM products ORDER BY group_id NULLS LAST, price")
        return [Product(**dict(row)) for row in rows]

    async def get_product(self, product_id: str) -> Optional[Product]:
        async with self.db.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT * FROM products WHERE product_id = $1", product_id
            )
        return Product(**dict(row)) if row else None

    async def search_products(self, query: str) -> List[Product]:
        pattern = f"%{query}%"
        async with self.db.acquire() as conn:
            rows = await conn.fetch("""
                SELECT * FROM products
                WHERE name ILIKE $1 OR description ILIKE $1
                   OR game ILIKE $1 OR category ILIKE $1
                ORDER BY name
            """, pattern)
        return [Product(**dict(row)) for row in rows]

    async def filter_products(self, filters: ProductFilter) -> List[Product]:
        query = "SELECT * FROM products WHERE 1=1"
        params = []
        param_index = 1

        if filters.categories:
            query += f" AND category = ANY(${param_index}::text[])"
            params.append(filters.categories)
            param_index += 1

        if filters.games:
            query += f" AND game = ANY(${param_index}::text[])"
            params.append(filters.games)
            param_index += 1

        if filters.price_range and filters.price_range.min is not None:
            query += f" AND price >= ${param_index}"
            params.append(filters.price_range.min)
            param_index += 1

        if filters.price_range and filters.price_range.max is not None:
            query += f" AND price <= ${param_index}"
            params.append(filters.price_range.max)
            param_index += 1

        if filters.in_stock is not None:
            query += f" AND in_stock = ${param_index}"
            params.append(filters.in_stock)
            param_index += 1

        query += " ORDER BY name"

        async with self.db.acquire() as conn:
            rows = await conn.fetch(query, *params)
        return [Product(**dict(row)) for row in rows]

    async def find_by_name(self, name: str) -> Optional[Product]:
        async with self.db.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT * FROM products WHERE name = $1 LIMIT 1", name
            )
        return Product(**dict(row)) if row else None


def default_products() -> List[Product]:
    """Seed catalog for development"""
    now = datetime.now(timezone.utc)
    downloads = "https://downloads.example.com"

    def variant(group_id, group_name, game, suffix, label, price, stock, key_prefix):
        return Product(
            product_id=f"{group_id}-{suffix}",
            name=f"{group_name} - {label}",
            description=f"{group_name} - {label} access",
            price=Decimal(price),
            category="Game Tools",
            game=game,
            stock_quantity=stock,
            in_stock=stock > 0,
            delivery_type=DeliveryType.DOWNLOAD,
            delivery_url=f"{downloads}/{group_id}-{suffix}.zip",
            license_key=f"{key_prefix}-{suffix.upper()}-XXXX",
            group_id=group_id,
            variant_name=label,
            created_at=now,
        )

    return [
        variant("rust-tool", "Rust Tool", "Rust", "1d", "1 Day", "7.99", 15, "RUST"),
        variant("rust-tool", "Rust Tool", "Rust", "7d", "7 Day", "29.99", 8, "RUST"),
        variant("rust-tool", "Rust Tool", "Rust", "30d", "30 Day", "59.99", 0, "RUST"),
        Product(
            product_id="spoofer-lifetime",
            name="HWID Spoofer - Lifetime",
            description="Hardware ID spoofer with lifetime license",
            price=Decimal("49.99"),
            original_price=Decimal("69.99"),
            category="Utilities",
            game="Universal",
            stock_quantity=25,
            in_stock=True,
            delivery_type=DeliveryType.KEY,
            license_key="SPOOF-LIFE-XXXX",
            created_at=now,
        ),
        Product(
            product_id="fa-account",
            name="Full Access Account",
            description="Full access game account with email change",
            price=Decimal("19.99"),
            category="Accounts",
            game="Universal",
            stock_quantity=5,
            in_stock=True,
            delivery_type=DeliveryType.ACCOUNT,
            delivery_url=f"{downloads}/accounts/claim",
            created_at=now,
        ),
    ]
