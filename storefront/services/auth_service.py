# storefront/services/auth_service.py
import logging
from typing import Optional
from ..exceptions import AuthenticationRequired
from ..models.base import ApiModel
from ..utils.security import check_credentials, sign_session, verify_session

logger = logging.getLogger(__name__)

ADMIN_COOKIE = "admin_session"
CUSTOMER_COOKIE = "customer_session"


class AdminSession(ApiModel):
    """Passed explicitly to every privileged operation"""
    username: Optional[str] = None
    is_admin: bool = False

    def require_admin(self):
        if not self.is_admin:
            raise AuthenticationRequired("Admin login required")


class CustomerSession(ApiModel):
    """Binds a browser to one order id and the payer identity that owns it"""
    order_id: Optional[str] = None
    payer_identity: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.order_id and self.payer_identity)

    def require_customer(self):
        if not self.is_authenticated:
            raise AuthenticationRequired("Customer login required")


class AuthService:
    """Issues and reads signed session tokens"""

    def admin_login(self, username: str, password: str) -> Optional[str]:
        if not check_credentials(username, password):
            logger.warning(f"Failed admin login for {username!r}")
            return None
        logger.info(f"Admin {username} logged in")
        return sign_session({"kind": "admin", "username": username})

    def customer_token(self, order_id: str, payer_identity: str) -> str:
        return sign_session({"kind": "customer", "order_id": order_id,
                             "payer_identity": payer_identity})

    def admin_session(self, token: Optional[str]) -> AdminSession:
        payload = verify_session(token)
        if not payload or payload.get("kind") != "admin":
            return AdminSession()
        return AdminSession(username=payload.get("username"), is_admin=True)

    def customer_session(self, token: Optional[str]) -> CustomerSession:
        payload = verify_session(token)
        if not payload or payload.get("kind") != "customer":
            return CustomerSession()
        return CustomerSession(order_id=payload.get("order_id"),
                               payer_identity=payload.get("payer_identity"))
