# storefront/services/confirmation_checker.py
import asyncio
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional
import aiohttp
from ..config import Config
from ..exceptions import ConfirmationCheckFailed
from ..models.payment import ConfirmationResult, Network

logger = logging.getLogger(__name__)

# Smallest on-chain unit per coin (satoshi / litoshi)
UNITS_PER_COIN = Decimal(100_000_000)

EXPLORER_CHAINS = {
    Network.BITCOIN_MAIN: "btc/main",
    Network.LITECOIN_MAIN: "ltc/main",
}


class BlockchainConfirmationChecker:
    """Reads received amount and confirmation depth of an address from a block explorer"""

    def __init__(self, base_url: Optional[str] = None, token: Optional[str] = None,
                 confirmation_cap: Optional[int] = None, timeout: Optional[float] = None,
                 session: Optional[aiohttp.ClientSession] = None):
        self.base_url = (base_url or Config.EXPLORER_URL).rstrip("/")
        self.token = token if token is not None else Config.EXPLORER_TOKEN
        self.confirmation_cap = confirmation_cap or Config.CONFIRMATION_DISPLAY_CAP
        self.timeout = aiohttp.ClientTimeout(total=timeout or Config.EXPLORER_TIMEOUT)
        self._session = session

    async def check(self, address: str, network: Network) -> ConfirmationResult:
        """Query the explorer for an address.

        Raises ConfirmationCheckFailed on any transport error, non-2xx
        response or unreadable payload.
        """
        url = f"{self.base_url}/{EXPLORER_CHAINS[Network(network)]}/addrs/{address}"
        params = {"limit": "1"}
        if self.token:
            params["token"] = self.token

        try:
            if self._session is not None:
                data = await self._fetch(self._session, url, params)
            else:
                async with aiohttp.ClientSession(timeout=self.timeout) as session:
                    data = await self._fetch(session, url, params)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ConfirmationCheckFailed(f"Explorer request failed: {e!r}") from e

        return self.parse(data)

    async def _fetch(self, session: aiohttp.ClientSession, url: str,
                     params: Dict[str, str]) -> Dict[str, Any]:
        async with session.get(url, params=params, timeout=self.timeout) as response:
            if not 200 <= response.status < 300:
                raise ConfirmationCheckFailed(
                    f"Explorer returned HTTP {response.status} for {url}"
                )
            try:
                return await response.json(content_type=None)
            except ValueError as e:
                raise ConfirmationCheckFailed(f"Explorer returned invalid JSON: {e}") from e

    def parse(self, data: Any) -> ConfirmationResult:
        if not isinstance(data, dict):
            raise ConfirmationCheckFailed("Explorer payload is not an object")

        try:
            total_received = self._to_coins(data.get("total_received", 0))
            balance = self._to_coins(data.get("balance", 0))
            unconfirmed = self._to_coins(data.get("unconfirmed_balance", 0))

            txrefs = data.get("txrefs") or []
            confirmations = 0
            transaction_id = None
            if txrefs:
                confirmations = int(txrefs[0].get("confirmations", 0))
                transaction_id = txrefs[0].get("tx_hash")
        except (TypeError, ValueError, InvalidOperation, AttributeError) as e:
            raise ConfirmationCheckFailed(f"Explorer payload could not be read: {e}") from e

        return ConfirmationResult(
            confirmations=max(0, min(confirmations, self.confirmation_cap)),
            received_amount=total_received + max(unconfirmed, Decimal(0)),
            balance=balance,
            unconfirmed_balance=unconfirmed,
            transaction_id=transaction_id,
        )

    @staticmethod
    def _to_coins(value: Any) -> Decimal:
        return Decimal(int(value)) / UNITS_PER_COIN
