# tests/test_security.py
import hashlib
import hmac
from storefront.models.order import PaymentMethod
from storefront.utils.security import (
    check_credentials,
    generate_download_token,
    sign_session,
    verify_download_token,
    verify_session,
    verify_webhook_signature
)
from storefront.utils.validators import is_valid_crypto_address, is_valid_destination
from .conftest import BTC_ADDRESS

NOW = 1_700_000_000
DAY = 24 * 60 * 60


class TestDownloadTokens:

    def test_valid_token(self):
        token = generate_download_token("order-1", now=NOW)
        assert verify_download_token(token, "order-1", now=NOW + 60)

    def test_expires_after_max_age(self):
        token = generate_download_token("order-1", now=NOW)
        assert verify_download_token(token, "order-1", max_age=DAY, now=NOW + DAY)
        assert not verify_download_token(token, "order-1", max_age=DAY, now=NOW + DAY + 1)

    def test_bound_to_order(self):
        token = generate_download_token("order-1", now=NOW)
        assert not verify_download_token(token, "order-2", now=NOW)

    def test_tampered_or_garbage(self):
        token = generate_download_token("order-1", now=NOW)
        forged = token.replace(f":{NOW}:", f":{NOW + DAY}:")
        assert not verify_download_token(forged, "order-1", now=NOW)
        assert not verify_download_token("garbage", "order-1", now=NOW)
        assert not verify_download_token("a:b:c", "a", now=NOW)


class TestSessions:

    def test_round_trip(self):
        token = sign_session({"role": "admin", "username": "admin"}, now=NOW)
        payload = verify_session(token, max_age=DAY, now=NOW + 10)
        assert payload["role"] == "admin"
        assert payload["iat"] == NOW

    def test_expired(self):
        token = sign_session({"role": "customer"}, now=NOW)
        assert verify_session(token, max_age=DAY, now=NOW + DAY + 1) is None

    def test_tampered(self):
        token = sign_session({"role": "customer"}, now=NOW)
        encoded, signature = token.rsplit(".", 1)
        other = sign_session({"role": "admin"}, now=NOW).rsplit(".", 1)[0]
        assert verify_session(f"{other}.{signature}", now=NOW) is None
        assert verify_session(None) is None
        assert verify_session("no-dot") is None


class TestCredentials:

    def test_match(self):
        assert check_credentials("admin", "hunter2", expected=("admin", "hunter2"))

    def test_mismatch(self):
        assert not check_credentials("admin", "wrong", expected=("admin", "hunter2"))
        assert not check_credentials("root", "hunter2", expected=("admin", "hunter2"))
        assert not check_credentials(None, None, expected=("admin", "hunter2"))

    def test_unset_password_never_matches(self):
        assert not check_credentials("admin", "", expected=("admin", ""))


class TestWebhookSignature:

    def test_valid_signature(self):
        body = b'{"orderId":"abc"}'
        signature = hmac.new(b"whsec", body, hashlib.sha256).hexdigest()
        assert verify_webhook_signature(body, signature, secret="whsec")
        assert verify_webhook_signature(body, signature.upper(), secret="whsec")

    def test_invalid_signature(self):
        body = b'{"orderId":"abc"}'
        assert not verify_webhook_signature(body, "deadbeef", secret="whsec")
        assert not verify_webhook_signature(body, None, secret="whsec")

    def test_no_secret_configured_rejects_everything(self):
        body = b"{}"
        assert not verify_webhook_signature(body, None, secret="")
        assert not verify_webhook_signature(body, hmac.new(b"", body, hashlib.sha256).hexdigest(), secret="")


class TestAddressValidation:

    def test_legacy_bitcoin_address(self):
        assert is_valid_crypto_address(PaymentMethod.BITCOIN, "1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfNa")

    def test_bad_checksum(self):
        assert not is_valid_crypto_address(PaymentMethod.BITCOIN, "1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfNb")

    def test_bech32_bitcoin_address(self):
        assert is_valid_crypto_address(PaymentMethod.BITCOIN, BTC_ADDRESS)
        assert is_valid_crypto_address(PaymentMethod.BITCOIN, BTC_ADDRESS.upper())
        assert not is_valid_crypto_address(PaymentMethod.BITCOIN, "bc1QXY2kgdygjrsqtzq2n0yrf2493p83kkfjhx0wlh")

    def test_wrong_network(self):
        assert not is_valid_crypto_address(PaymentMethod.LITECOIN, BTC_ADDRESS)
        assert not is_valid_crypto_address(PaymentMethod.LITECOIN, "1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfNa")

    def test_empty(self):
        assert not is_valid_crypto_address(PaymentMethod.BITCOIN, "")
        assert not is_valid_crypto_address(PaymentMethod.BITCOIN, "   ")

    def test_paypal_destination_is_an_email(self):
        assert is_valid_destination(PaymentMethod.PAYPAL, "shop@example.com")
        assert not is_valid_destination(PaymentMethod.PAYPAL, "not-an-email")
        assert is_valid_destination(PaymentMethod.BITCOIN, BTC_ADDRESS)
