# storefront/handlers/base_handler.py
import json
import logging
from typing import Any, Dict
from aiohttp import web
from pydantic import ValidationError
from ..exceptions import (
    AuthenticationRequired, InvalidPaymentDetails, InvalidStatusTransition,
    OrderNotFound, ProductNotFound, StorageUnavailable
)
from ..services.auth_service import ADMIN_COOKIE, CUSTOMER_COOKIE, AdminSession, CustomerSession

logger = logging.getLogger(__name__)


def error_response(status: int, message: str, **extra) -> web.Response:
    return web.json_response({"success": False, "message": message, **extra}, status=status)


@web.middleware
async def error_middleware(request: web.Request, handler):
    """Translate domain errors into HTTP responses"""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except (OrderNotFound, ProductNotFound) as e:
        return error_response(404, str(e))
    except AuthenticationRequired as e:
        return error_response(401, str(e) or "Unauthorized")
    except InvalidStatusTransition as e:
        return error_response(409, str(e))
    except InvalidPaymentDetails as e:
        return error_response(400, str(e))
    except ValidationError as e:
        return error_response(400, "Invalid request", errors=json.loads(e.json()))
    except StorageUnavailable as e:
        logger.error(f"Storage unavailable during {request.method} {request.path}: {e}")
        return error_response(503, "Service temporarily unavailable, please try again")
    except Exception as e:
        logger.error(f"Unhandled error during {request.method} {request.path}: {e}", exc_info=True)
        return error_response(500, "Internal server error")


class BaseHandler:
    """Base class for HTTP handlers"""

    def __init__(self, services):
        self.services = services
        self.auth = services.auth

    @staticmethod
    async def read_json(request: web.Request) -> Dict[str, Any]:
        try:
            body = await request.json()
        except ValueError:
            raise web.HTTPBadRequest(
                text=json.dumps({"success": False, "message": "Body must be JSON"}),
                content_type="application/json"
            )
        if not isinstance(body, dict):
            raise web.HTTPBadRequest(
                text=json.dumps({"success": False, "message": "Body must be a JSON object"}),
                content_type="application/json"
            )
        return body

    @staticmethod
    def ok(data: Any, status: int = 200) -> web.Response:
        return web.json_response(data, status=status)

    def admin_session(self, request: web.Request) -> AdminSession:
        return self.auth.admin_session(request.cookies.get(ADMIN_COOKIE))

    def customer_session(self, request: web.Request) -> CustomerSession:
        return self.auth.customer_session(request.cookies.get(CUSTOMER_COOKIE))

    @staticmethod
    def set_session_cookie(response: web.Response, name: str, token: str, max_age: int):
        response.set_cookie(name, token, max_age=max_age, httponly=True, samesite="Lax")
