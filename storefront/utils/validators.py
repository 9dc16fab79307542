# storefront/utils/validators.py
import re
import base58
from ..models.order import PaymentMethod

# Base58Check version bytes of mainnet P2PKH / P2SH addresses
ADDRESS_VERSIONS = {
    PaymentMethod.BITCOIN: {0x00, 0x05},
    PaymentMethod.LITECOIN: {0x30, 0x32, 0x05},
}

BECH32_PREFIXES = {
    PaymentMethod.BITCOIN: "bc1",
    PaymentMethod.LITECOIN: "ltc1",
}

BECH32_CHARSET = re.compile(r"^[qpzry9x8gf2tvdw0s3jn54khce6mua7l]+$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def is_valid_crypto_address(method: PaymentMethod, address: str) -> bool:
    """Sanity check of a receiving address for the given coin"""
    address = (address or "").strip()
    if not address:
        return False

    prefix = BECH32_PREFIXES[method]
    if address.lower().startswith(prefix):
        if address != address.lower() and address != address.upper():
            return False
        data = address.lower()[len(prefix):]
        return 6 <= len(data) <= 87 and bool(BECH32_CHARSET.match(data))

    try:
        payload = base58.b58decode_check(address)
    except ValueError:
        return False
    return len(payload) == 21 and payload[0] in ADDRESS_VERSIONS[method]


def is_valid_destination(method: PaymentMethod, destination: str) -> bool:
    if method == PaymentMethod.PAYPAL:
        return bool(EMAIL_PATTERN.match((destination or "").strip()))
    return is_valid_crypto_address(method, destination)
