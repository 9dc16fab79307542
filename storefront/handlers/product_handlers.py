# storefront/handlers/product_handlers.py
from aiohttp import web
from .base_handler import BaseHandler
from ..exceptions import ProductNotFound
from ..models.product import ProductFilter

NO_STORE = {"Cache-Control": "no-store"}


class ProductHandler(BaseHandler):
    """Catalog browsing"""

    async def list_products(self, request: web.Request) -> web.Response:
        products = await self.services.catalog.get_products()
        return web.json_response([p.to_json() for p in products], headers=NO_STORE)

    async def get_product(self, request: web.Request) -> web.Response:
        product_id = request.match_info["product_id"]
        product = await self.services.catalog.get_product(product_id)
        if product is None:
            raise ProductNotFound(product_id)
        return self.ok(product.to_json())

    async def search_products(self, request: web.Request) -> web.Response:
        products = await self.services.catalog.search_products(request.match_info["query"])
        return self.ok([p.to_json() for p in products])

    async def filter_products(self, request: web.Request) -> web.Response:
        filters = ProductFilter.model_validate(await self.read_json(request))
        products = await self.services.catalog.filter_products(filters)
        return self.ok([p.to_json() for p in products])

    async def list_product_groups(self, request: web.Request) -> web.Response:
        groups = await self.services.catalog.get_product_groups()
        return web.json_response([g.to_json() for g in groups], headers=NO_STORE)
