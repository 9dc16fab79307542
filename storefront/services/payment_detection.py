# storefront/services/payment_detection.py
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Dict, Optional
from ..exceptions import (
    ConfirmationCheckFailed, InvalidPaymentDetails, InvalidStatusTransition,
    OrderNotFound, ProductNotFound, StorageUnavailable
)
from ..models.base import ApiModel
from ..models.order import Order, OrderStatus
from ..models.payment import (
    ConfirmationResult, DetectionState, Network, PaymentPolicy
)
from ..utils.locks import KeyedLocks

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DetectionProgress(ApiModel):
    """Snapshot of a detection session for the checkout view"""
    order_id: str
    state: DetectionState
    network: Network
    address: str
    expected_amount: Decimal
    received_amount: Decimal
    confirmations: int
    required_confirmations: int
    payment_received: bool
    started_at: Optional[datetime] = None
    last_checked_at: Optional[datetime] = None
    consecutive_failures: int = 0


class PaymentDetectionSession:
    """State machine for one checkout's payment detection.

    Idle -> Detecting on start(); Detecting -> Confirmed once the received
    amount is within tolerance and the confirmation threshold is met;
    Idle/Detecting -> Abandoned on cancel or when the maximum duration
    elapses. Confirmed and Abandoned are terminal. Nothing here sleeps or
    touches the network, so every transition can be driven directly.
    """

    def __init__(self, order_id: str, network: Network, address: str,
                 expected_amount: Decimal, policy: PaymentPolicy):
        self.order_id = order_id
        self.network = network
        self.address = address
        self.expected_amount = Decimal(expected_amount)
        self.policy = policy

        self.state = DetectionState.IDLE
        self.confirmations = 0
        self.received_amount = Decimal(0)
        self.transaction_id: Optional[str] = None
        self.started_at: Optional[datetime] = None
        self.last_checked_at: Optional[datetime] = None
        self.consecutive_failures = 0
        self.last_error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in (DetectionState.CONFIRMED, DetectionState.ABANDONED)

    @property
    def payment_received(self) -> bool:
        return self.policy.is_payment_received(self.received_amount, self.expected_amount)

    def start(self, now: Optional[datetime] = None) -> DetectionState:
        if self.state != DetectionState.IDLE:
            raise InvalidStatusTransition(self.state.value, DetectionState.DETECTING.value)
        self.started_at = now or _utcnow()
        self.state = DetectionState.DETECTING
        return self.state

    def observe(self, result: ConfirmationResult, now: Optional[datetime] = None) -> DetectionState:
        """Apply one explorer reading"""
        if self.state != DetectionState.DETECTING:
            return self.state

        self.last_checked_at = now or _utcnow()
        self.consecutive_failures = 0
        self.last_error = None
        self.confirmations = self.policy.clamp(result.confirmations)
        self.received_amount = Decimal(result.received_amount)
        if result.transaction_id:
            self.transaction_id = result.transaction_id

        if self.payment_received and self.policy.is_final(self.confirmations):
            self.state = DetectionState.CONFIRMED
        return self.state

    def record_failure(self, error: Exception, now: Optional[datetime] = None) -> DetectionState:
        """A failed check leaves the session detecting"""
        if self.state == DetectionState.DETECTING:
            self.last_checked_at = now or _utcnow()
            self.consecutive_failures += 1
            self.last_error = str(error)
        return self.state

    def expire_if_overdue(self, now: Optional[datetime] = None) -> bool:
        if self.state != DetectionState.DETECTING or self.started_at is None:
            return False
        deadline = self.started_at + timedelta(seconds=self.policy.max_duration)
        if (now or _utcnow()) >= deadline:
            self.state = DetectionState.ABANDONED
            return True
        return False

    def abandon(self) -> DetectionState:
        if not self.is_terminal:
            self.state = DetectionState.ABANDONED
        return self.state

    def progress(self) -> DetectionProgress:
        return DetectionProgress(
            order_id=self.order_id,
            state=self.state,
            network=self.network,
            address=self.address,
            expected_amount=self.expected_amount,
            received_amount=self.received_amount,
            confirmations=self.confirmations,
            required_confirmations=self.policy.required_confirmations,
            payment_received=self.payment_received,
            started_at=self.started_at,
            last_checked_at=self.last_checked_at,
            consecutive_failures=self.consecutive_failures,
        )


class PaymentDetector:
    """Polls the confirmation checker for one session until it is terminal.

    Checker errors are logged and retried on the next tick. Once the session
    confirms, the order is moved to confirmed and handed to fulfillment; a
    storage outage during that hand-off is retried on the next tick too.
    """

    def __init__(self, session: PaymentDetectionSession, checker, order_store,
                 fulfillment=None, clock: Callable[[], datetime] = _utcnow):
        self.session = session
        self.checker = checker
        self.order_store = order_store
        self.fulfillment = fulfillment
        self.clock = clock
        self.handed_off = False
        self.polls = 0

    @property
    def finished(self) -> bool:
        if self.session.state == DetectionState.CONFIRMED:
            return self.handed_off
        return self.session.is_terminal

    async def run(self):
        session = self.session
        if session.state == DetectionState.IDLE:
            session.start(self.clock())
        logger.info(f"Payment detection started for order {session.order_id} "
                    f"on {session.network.value}")
        try:
            while True:
                await self.poll_once()
                if self.finished:
                    break
                await asyncio.sleep(session.policy.poll_interval)
        except asyncio.CancelledError:
            session.abandon()
            logger.info(f"Payment detection cancelled for order {session.order_id}")
            raise
        logger.info(f"Payment detection for order {session.order_id} ended: {session.state.value}")

    async def poll_once(self) -> DetectionState:
        """One polling tick"""
        session = self.session

        if session.state == DetectionState.DETECTING:
            if session.expire_if_overdue(self.clock()):
                logger.warning(f"Payment detection for order {session.order_id} "
                               f"abandoned after {session.policy.max_duration:.0f}s")
                return session.state

            self.polls += 1
            try:
                result = await self.checker.check(session.address, session.network)
            except ConfirmationCheckFailed as e:
                session.record_failure(e, self.clock())
                logger.warning(f"Confirmation check failed for order {session.order_id} "
                               f"(attempt {session.consecutive_failures}): {e}")
                return session.state

            session.observe(result, self.clock())
            logger.debug(f"Order {session.order_id}: received {session.received_amount}, "
                         f"{session.confirmations}/{session.policy.required_confirmations} confirmations")

        if session.state == DetectionState.CONFIRMED and not self.handed_off:
            await self._hand_off()
        return session.state

    async def _hand_off(self):
        order_id = self.session.order_id
        try:
            try:
                await self.order_store.update_status(
                    order_id, OrderStatus.CONFIRMED, transaction_id=self.session.transaction_id
                )
            except InvalidStatusTransition:
                # Already completed by another path
                pass
            if self.fulfillment is not None:
                await self.fulfillment.fulfill(order_id)
        except StorageUnavailable as e:
            logger.error(f"Could not record payment for order {order_id}, will retry: {e}")
            return
        except ProductNotFound as e:
            logger.error(f"Order {order_id} is paid but cannot be fulfilled automatically: {e}")
        self.handed_off = True
        logger.info(f"Payment confirmed for order {order_id}")


class PaymentDetectionService:
    """Owns the detection tasks of all in-flight checkouts, one per order"""

    def __init__(self, checker, order_store, fulfillment=None,
                 policy: Optional[PaymentPolicy] = None):
        self.checker = checker
        self.order_store = order_store
        self.fulfillment = fulfillment
        self.policy = policy or PaymentPolicy.from_config()
        self._detectors: Dict[str, PaymentDetector] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._starting = KeyedLocks()

    def get_session(self, order_id: str) -> Optional[PaymentDetectionSession]:
        detector = self._detectors.get(order_id)
        return detector.session if detector else None

    async def start(self, order_id: str) -> PaymentDetectionSession:
        """Start detection for a pending crypto order, or return the running session"""
        async with self._starting.hold(order_id):
            running = self.get_session(order_id)
            task = self._tasks.get(order_id)
            if running is not None and (not running.is_terminal or (task and not task.done())):
                return running
            return await self._launch(order_id)

    async def _launch(self, order_id: str) -> PaymentDetectionSession:
        order = await self.order_store.get_order(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        self._validate(order)

        session = PaymentDetectionSession(
            order_id=order.order_id,
            network=Network.for_method(order.payment_method),
            address=order.wallet_address,
            expected_amount=order.product_price,
            policy=self.policy,
        )
        session.start()
        detector = PaymentDetector(session, self.checker, self.order_store, self.fulfillment)
        self._detectors[order_id] = detector

        task = asyncio.create_task(detector.run(), name=f"payment-detection-{order_id}")
        self._tasks[order_id] = task
        task.add_done_callback(lambda t, oid=order_id: self._finished(oid, t))
        return session

    async def cancel(self, order_id: str) -> bool:
        """Stop polling for an order. Returns False if nothing was running."""
        task = self._tasks.get(order_id)
        detector = self._detectors.get(order_id)
        if detector is not None:
            detector.session.abandon()
        if task is None or task.done():
            return False
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        return True

    async def shutdown(self):
        for order_id in list(self._tasks):
            await self.cancel(order_id)

    @property
    def active_count(self) -> int:
        return sum(1 for t in self._tasks.values() if not t.done())

    @staticmethod
    def _validate(order: Order):
        if not order.payment_method.is_crypto:
            raise InvalidPaymentDetails(
                f"{order.payment_method.value} payments are confirmed manually"
            )
        if order.status != OrderStatus.PENDING:
            raise InvalidStatusTransition(order.status.value, DetectionState.DETECTING.value)
        if not order.wallet_address:
            raise InvalidPaymentDetails("Order has no payment address")

    def _finished(self, order_id: str, task: asyncio.Task):
        detector = None
        if self._tasks.get(order_id) is task:
            del self._tasks[order_id]
            detector = self._detectors.pop(order_id, None)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Payment detection for order {order_id} crashed",
                         exc_info=task.exception())
            if detector is not None:
                detector.session.abandon()
