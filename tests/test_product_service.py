# tests/test_product_service.py
from decimal import Decimal
from storefront.models.product import PriceRange, ProductFilter
from storefront.services.product_service import MemoryProductCatalog, group_products


async def test_default_catalog_groups_variants():
    catalog = MemoryProductCatalog()
    groups = await catalog.get_product_groups()

    assert len(groups) == 1
    group = groups[0]
    assert group.group_id == "rust-tool"
    assert group.name == "Rust Tool"
    assert [v.name for v in group.variants] == ["1 Day", "7 Day", "30 Day"]
    assert group.variants[2].in_stock is False


def test_ungrouped_products_are_skipped(product):
    assert group_products([product]) == []


async def test_filter_by_category_price_and_stock():
    catalog = MemoryProductCatalog()

    utilities = await catalog.filter_products(ProductFilter(categories=["Utilities"]))
    assert [p.product_id for p in utilities] == ["spoofer-lifetime"]

    cheap = await catalog.filter_products(ProductFilter(price_range=PriceRange(max=Decimal("20"))))
    assert {p.product_id for p in cheap} == {"rust-tool-1d", "fa-account"}

    out_of_stock = await catalog.filter_products(ProductFilter(in_stock=False))
    assert [p.product_id for p in out_of_stock] == ["rust-tool-30d"]


async def test_search_is_case_insensitive():
    catalog = MemoryProductCatalog()
    assert {p.product_id for p in await catalog.search_products("SPOOFER")} == {"spoofer-lifetime"}


async def test_find_by_name():
    catalog = MemoryProductCatalog()
    found = await catalog.find_by_name("Full Access Account")
    assert found.product_id == "fa-account"
    assert await catalog.find_by_name("Nothing") is None
