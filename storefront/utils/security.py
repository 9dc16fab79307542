# storefront/utils/security.py
import base64
import hashlib
import hmac
import json
import time
from typing import Any, Dict, Optional, Tuple
from ..config import Config


def _sign(message: str, secret: Optional[str] = None) -> str:
    return hmac.new(
        (secret or Config.SECRET_KEY).encode(),
        message.encode(),
        hashlib.sha256
    ).hexdigest()


def generate_download_token(order_id: str, now: Optional[int] = None) -> str:
    """Signed token that grants the download of one order"""
    timestamp = int(now if now is not None else time.time())
    message = f"{order_id}:{timestamp}"
    return f"{message}:{_sign(message)}"


def verify_download_token(token: str, order_id: str, max_age: Optional[int] = None,
                          now: Optional[int] = None) -> bool:
    try:
        message, signature = token.rsplit(':', 1)
        token_order_id, timestamp = message.rsplit(':', 1)
        timestamp = int(timestamp)
    except ValueError:
        return False

    if not hmac.compare_digest(signature, _sign(message)):
        return False
    if token_order_id != order_id:
        return False

    max_age = max_age if max_age is not None else Config.DOWNLOAD_LINK_TTL
    current = int(now if now is not None else time.time())
    return current - timestamp <= max_age


def sign_session(payload: Dict[str, Any], now: Optional[int] = None) -> str:
    """Encode a session payload into a signed cookie value"""
    body = dict(payload, iat=int(now if now is not None else time.time()))
    encoded = base64.urlsafe_b64encode(
        json.dumps(body, separators=(",", ":"), sort_keys=True).encode()
    ).decode().rstrip("=")
    return f"{encoded}.{_sign(encoded)}"


def verify_session(token: Optional[str], max_age: Optional[int] = None,
                   now: Optional[int] = None) -> Optional[Dict[str, Any]]:
    if not token or "." not in token:
        return None
    encoded, signature = token.rsplit(".", 1)
    if not hmac.compare_digest(signature, _sign(encoded)):
        return None
    try:
        padded = encoded + "=" * (-len(encoded) % 4)
        payload = json.loads(base64.urlsafe_b64decode(padded.encode()))
        issued_at = int(payload["iat"])
    except (ValueError, KeyError, TypeError):
        return None

    max_age = max_age if max_age is not None else Config.SESSION_TTL
    current = int(now if now is not None else time.time())
    if current - issued_at > max_age:
        return None
    return payload


def check_credentials(username: str, password: str,
                      expected: Optional[Tuple[str, str]] = None) -> bool:
    """Constant-time admin credential check; an unset password never matches"""
    expected_user, expected_password = expected or (Config.ADMIN_USERNAME, Config.ADMIN_PASSWORD)
    if not expected_password:
        return False
    user_ok = hmac.compare_digest((username or "").encode(), expected_user.encode())
    password_ok = hmac.compare_digest((password or "").encode(), expected_password.encode())
    return user_ok and password_ok


def verify_webhook_signature(body: bytes, signature: Optional[str],
                             secret: Optional[str] = None) -> bool:
    """HMAC-SHA256 of the raw body; never true when no secret is configured"""
    secret = secret if secret is not None else Config.WEBHOOK_SECRET
    if not secret or not signature:
        return False
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(signature.strip().lower(), expected)
