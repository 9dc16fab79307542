# storefront/services/notifier.py
import logging
from typing import List, Optional
from telegram import Bot
from telegram.error import TelegramError
from ..config import Config
from ..models.order import Order
from ..utils.messages import Messages

logger = logging.getLogger(__name__)


class OrderNotifier:
    """Sends order events to the shop admins over Telegram"""

    def __init__(self, token: Optional[str] = None, chat_ids: Optional[List[int]] = None,
                 bot: Optional[Bot] = None):
        token = token if token is not None else Config.TELEGRAM_TOKEN
        self.chat_ids = chat_ids if chat_ids is not None else Config.ADMIN_CHAT_IDS
        self.bot = bot or (Bot(token) if token else None)
        self.enabled = bool(self.bot and self.chat_ids)
        self._initialized = False

    async def start(self):
        if self.enabled and not self._initialized:
            await self.bot.initialize()
            self._initialized = True

    async def stop(self):
        if self._initialized:
            await self.bot.shutdown()
            self._initialized = False

    async def notify_order_completed(self, order: Order) -> bool:
        return await self._send(Messages.order_completed(order))

    async def notify_order_created(self, order: Order) -> bool:
        return await self._send(Messages.order_created(order))

    async def _send(self, text: str) -> bool:
        if not self.enabled:
            logger.debug("Telegram notifications disabled, skipping message")
            return False

        delivered = True
        for chat_id in self.chat_ids:
            try:
                await self.bot.send_message(chat_id=chat_id, text=text)
            except TelegramError as e:
                delivered = False
                logger.error(f"Failed to notify chat {chat_id}: {e}")
        return delivered
