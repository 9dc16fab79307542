# storefront/config.py
import os
import logging
import secrets
from pathlib import Path
from dotenv import load_dotenv
from typing import List

# Load environment variables
load_dotenv()

# Base directory of the project
BASE_DIR = Path(__file__).resolve().parent.parent


def _ids(value: str) -> List[int]:
    return [
        int(id_) for id_ in value.split(",")
        if id_.strip().lstrip("-").isdigit()
    ]


class Config:
    """Configuration settings for the storefront"""

    # Database settings (empty means in-memory stores)
    DATABASE_URL: str = os.getenv("DATABASE_URL", "")

    # Signing key for sessions, download links and webhooks
    SECRET_KEY: str = os.getenv("SECRET_KEY") or secrets.token_hex(32)
    SECRET_KEY_IS_EPHEMERAL: bool = not os.getenv("SECRET_KEY")

    # Admin settings
    ADMIN_USERNAME: str = os.getenv("ADMIN_USERNAME", "admin")
    ADMIN_PASSWORD: str = os.getenv("ADMIN_PASSWORD", "")

    # Telegram notifications
    TELEGRAM_TOKEN: str = os.getenv("TELEGRAM_TOKEN", "")
    ADMIN_CHAT_IDS: List[int] = _ids(os.getenv("ADMIN_CHAT_IDS", ""))

    # Payment destinations
    BITCOIN_WALLET: str = os.getenv("BITCOIN_WALLET", "")
    LITECOIN_WALLET: str = os.getenv("LITECOIN_WALLET", "")
    PAYPAL_ADDRESS: str = os.getenv("PAYPAL_ADDRESS", "")

    # Block explorer
    EXPLORER_URL: str = os.getenv("EXPLORER_URL", "https://api.blockcypher.com/v1")
    EXPLORER_TOKEN: str = os.getenv("EXPLORER_TOKEN", "")
    EXPLORER_TIMEOUT: float = float(os.getenv("EXPLORER_TIMEOUT", "20"))

    # Fulfillment webhook
    WEBHOOK_SECRET: str = os.getenv("WEBHOOK_SECRET", "")

    # Payment policy
    PAYMENT_TOLERANCE: str = os.getenv("PAYMENT_TOLERANCE", "0.95")
    REQUIRED_CONFIRMATIONS: int = int(os.getenv("REQUIRED_CONFIRMATIONS", "2"))
    POLL_INTERVAL_SECONDS: float = float(os.getenv("POLL_INTERVAL_SECONDS", "120"))
    CONFIRMATION_DISPLAY_CAP: int = int(os.getenv("CONFIRMATION_DISPLAY_CAP", "6"))
    MAX_DETECTION_SECONDS: float = float(os.getenv("MAX_DETECTION_SECONDS", str(6 * 60 * 60)))

    # Download links
    DOWNLOAD_LINK_TTL: int = int(os.getenv("DOWNLOAD_LINK_TTL", str(24 * 60 * 60)))
    SESSION_TTL: int = int(os.getenv("SESSION_TTL", str(24 * 60 * 60)))

    # Server settings
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "5000"))

    # Other settings
    TIMEZONE: str = os.getenv("TZ", "UTC")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Paths
    LOG_DIR = BASE_DIR / "logs"


def setup_logging():
    """Configure logging settings"""
    Config.LOG_DIR.mkdir(exist_ok=True)
    log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    log_file = Config.LOG_DIR / "storefront.log"

    logging.basicConfig(
        level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO),
        format=log_format,
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )
