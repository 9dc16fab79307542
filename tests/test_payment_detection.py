# tests/test_payment_detection.py
import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
import pytest
from storefront.exceptions import InvalidPaymentDetails, InvalidStatusTransition, OrderNotFound
from storefront.models.order import OrderStatus, PaymentMethod
from storefront.models.payment import DetectionState, Network, PaymentPolicy
from storefront.services.order_status import project_order
from storefront.services.payment_detection import (
    PaymentDetectionService, PaymentDetectionSession, PaymentDetector
)
from .conftest import BTC_ADDRESS, ScriptedChecker, failure, reading

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


def make_session(policy, expected="29.99"):
    session = PaymentDetectionSession(
        order_id="order-1",
        network=Network.BITCOIN_MAIN,
        address=BTC_ADDRESS,
        expected_amount=Decimal(expected),
        policy=policy,
    )
    session.start(T0)
    return session


class TestPolicy:

    def test_exactly_ninety_five_percent_is_received(self):
        policy = PaymentPolicy()
        assert policy.is_payment_received(Decimal("95.00"), Decimal("100.00"))

    def test_just_under_ninety_five_percent_is_not_received(self):
        policy = PaymentPolicy()
        assert not policy.is_payment_received(Decimal("94.99"), Decimal("100.00"))

    def test_overpayment_is_received(self):
        assert PaymentPolicy().is_payment_received(Decimal("120"), Decimal("100"))

    def test_confirmation_threshold(self):
        policy = PaymentPolicy()
        assert not policy.is_final(1)
        assert policy.is_final(2)

    def test_confirmations_are_clamped_for_display(self):
        policy = PaymentPolicy()
        assert policy.clamp(250) == 6
        assert policy.clamp(-1) == 0

    def test_values_are_configurable(self):
        policy = PaymentPolicy(tolerance=Decimal("0.99"), required_confirmations=6)
        assert not policy.is_payment_received(Decimal("98"), Decimal("100"))
        assert not policy.is_final(5)


class TestSessionStateMachine:

    def test_new_session_is_idle(self, policy):
        session = PaymentDetectionSession("o", Network.BITCOIN_MAIN, BTC_ADDRESS, Decimal("1"), policy)
        assert session.state == DetectionState.IDLE
        assert session.start(T0) == DetectionState.DETECTING

    def test_cannot_start_twice(self, policy):
        session = make_session(policy)
        with pytest.raises(InvalidStatusTransition):
            session.start(T0)

    def test_one_confirmation_keeps_detecting(self, policy):
        session = make_session(policy)
        assert session.observe(reading(1, "29.99"), T0) == DetectionState.DETECTING
        assert session.confirmations == 1
        assert session.payment_received

    def test_two_confirmations_confirm(self, policy):
        session = make_session(policy)
        assert session.observe(reading(2, "29.99"), T0) == DetectionState.CONFIRMED
        assert session.is_terminal

    def test_underpayment_never_confirms(self, policy):
        session = make_session(policy, expected="100.00")
        assert session.observe(reading(6, "94.99"), T0) == DetectionState.DETECTING
        assert session.observe(reading(6, "95.00"), T0) == DetectionState.CONFIRMED

    def test_failures_are_counted_and_reset(self, policy):
        session = make_session(policy)
        session.record_failure(RuntimeError("boom"), T0)
        session.record_failure(RuntimeError("boom"), T0)
        assert session.consecutive_failures == 2
        assert session.state == DetectionState.DETECTING
        session.observe(reading(0, "0"), T0)
        assert session.consecutive_failures == 0

    def test_times_out_after_max_duration(self):
        session = make_session(PaymentPolicy(max_duration=60))
        assert not session.expire_if_overdue(T0 + timedelta(seconds=59))
        assert session.expire_if_overdue(T0 + timedelta(seconds=60))
        assert session.state == DetectionState.ABANDONED

    def test_terminal_states_ignore_readings(self, policy):
        session = make_session(policy)
        session.abandon()
        assert session.observe(reading(6, "29.99"), T0) == DetectionState.ABANDONED

        confirmed = make_session(policy)
        confirmed.observe(reading(2, "29.99"), T0)
        assert confirmed.abandon() == DetectionState.CONFIRMED

    def test_progress_snapshot(self, policy):
        session = make_session(policy)
        session.observe(reading(1, "10"), T0)
        progress = session.progress().to_json()
        assert progress["state"] == "detecting"
        assert progress["confirmations"] == 1
        assert progress["requiredConfirmations"] == 2
        assert progress["paymentReceived"] is False
        assert progress["receivedAmount"] == "10"


class TestDetector:

    async def test_scenario_one_then_two_confirmations(self, store, order, fulfillment, notifier, policy):
        checker = ScriptedChecker(reading(1, "29.99"), reading(2, "29.99"))
        session = PaymentDetectionSession(order.order_id, Network.BITCOIN_MAIN,
                                          order.wallet_address, order.product_price, policy)
        session.start()
        detector = PaymentDetector(session, checker, store, fulfillment)

        assert await detector.poll_once() == DetectionState.DETECTING
        assert (await store.get_order(order.order_id)).status == OrderStatus.PENDING

        assert await detector.poll_once() == DetectionState.CONFIRMED
        completed = await store.get_order(order.order_id)
        assert completed.status == OrderStatus.COMPLETED

        view = project_order(completed)
        assert view.license_key == "TOOL-7D-AAAA"
        assert view.download_url == "https://downloads.example.com/tool-7d.zip"
        notifier.notify_order_completed.assert_awaited_once()

    async def test_checker_errors_keep_order_pending(self, store, order, fulfillment, policy):
        checker = ScriptedChecker(failure(), failure(), failure(), reading(0, "0"))
        session = PaymentDetectionSession(order.order_id, Network.BITCOIN_MAIN,
                                          order.wallet_address, order.product_price, policy)
        session.start()
        detector = PaymentDetector(session, checker, store, fulfillment)

        for _ in range(3):
            assert await detector.poll_once() == DetectionState.DETECTING
        assert session.consecutive_failures == 3
        assert (await store.get_order(order.order_id)).status == OrderStatus.PENDING

        await detector.poll_once()
        assert len(checker.calls) == 4
        assert session.state == DetectionState.DETECTING

    async def test_overdue_session_stops_polling(self, store, order, policy):
        clock_times = [T0, T0 + timedelta(hours=2)]
        checker = ScriptedChecker(reading(0, "0"))
        session = PaymentDetectionSession(order.order_id, Network.BITCOIN_MAIN,
                                          order.wallet_address, order.product_price, policy)
        detector = PaymentDetector(session, checker, store, clock=lambda: clock_times.pop(0))

        await detector.run()

        assert session.state == DetectionState.ABANDONED
        assert checker.calls == []
        assert (await store.get_order(order.order_id)).status == OrderStatus.PENDING

    async def test_already_completed_order_is_not_regressed(self, store, order, fulfillment, policy):
        await store.update_status(order.order_id, OrderStatus.COMPLETED)
        checker = ScriptedChecker(reading(3, "29.99"))
        session = PaymentDetectionSession(order.order_id, Network.BITCOIN_MAIN,
                                          order.wallet_address, order.product_price, policy)
        session.start()
        detector = PaymentDetector(session, checker, store, fulfillment)

        await detector.poll_once()

        assert detector.finished
        assert (await store.get_order(order.order_id)).status == OrderStatus.COMPLETED


class TestDetectionService:

    async def test_runs_until_confirmed(self, store, order, fulfillment, policy):
        checker = ScriptedChecker(failure(), reading(1, "29.99"), reading(2, "29.99"))
        service = PaymentDetectionService(checker, store, fulfillment, policy)

        session = await service.start(order.order_id)
        task = service._tasks[order.order_id]
        await asyncio.wait_for(task, timeout=5)

        assert session.state == DetectionState.CONFIRMED
        assert len(checker.calls) == 3
        assert (await store.get_order(order.order_id)).status == OrderStatus.COMPLETED
        assert service.get_session(order.order_id) is None

    async def test_start_is_idempotent_while_running(self, store, order, fulfillment):
        service = PaymentDetectionService(ScriptedChecker(reading(0, "0")), store, fulfillment,
                                          PaymentPolicy(poll_interval=60))
        first = await service.start(order.order_id)
        second = await service.start(order.order_id)
        assert first is second
        assert service.active_count == 1
        await service.shutdown()

    async def test_cancel_stops_polling(self, store, order, fulfillment):
        checker = ScriptedChecker(reading(0, "0"))
        service = PaymentDetectionService(checker, store, fulfillment, PaymentPolicy(poll_interval=60))

        session = await service.start(order.order_id)
        await asyncio.sleep(0)
        assert await service.cancel(order.order_id) is True

        polls = len(checker.calls)
        await asyncio.sleep(0.05)
        assert len(checker.calls) == polls
        assert session.state == DetectionState.ABANDONED
        assert service.active_count == 0
        assert (await store.get_order(order.order_id)).status == OrderStatus.PENDING

    async def test_cancel_without_session(self, store, fulfillment, policy):
        service = PaymentDetectionService(ScriptedChecker(reading(0, "0")), store, fulfillment, policy)
        assert await service.cancel("nothing") is False

    async def test_unknown_order(self, store, fulfillment, policy):
        service = PaymentDetectionService(ScriptedChecker(reading(0, "0")), store, fulfillment, policy)
        with pytest.raises(OrderNotFound):
            await service.start("missing")

    async def test_paypal_orders_are_not_detected(self, store, order_data, fulfillment, policy):
        paypal = await store.create_order(order_data.model_copy(update={
            "payment_method": PaymentMethod.PAYPAL, "wallet_address": "shop@example.com"
        }))
        service = PaymentDetectionService(ScriptedChecker(reading(0, "0")), store, fulfillment, policy)
        with pytest.raises(InvalidPaymentDetails):
            await service.start(paypal.order_id)

    async def test_sessions_are_independent(self, store, order_data, fulfillment, policy):
        first = await store.create_order(order_data)
        second = await store.create_order(order_data)
        service = PaymentDetectionService(ScriptedChecker(reading(2, "29.99")), store, fulfillment, policy)

        await service.start(first.order_id)
        await service.start(second.order_id)
        await asyncio.wait_for(asyncio.gather(*service._tasks.values()), timeout=5)

        for o in (first, second):
            assert (await store.get_order(o.order_id)).status == OrderStatus.COMPLETED


class YieldingStore:
    """Order store whose reads suspend like a real database round trip"""

    def __init__(self, store):
        self.store = store

    async def get_order(self, order_id):
        await asyncio.sleep(0)
        return await self.store.get_order(order_id)

    def __getattr__(self, name):
        return getattr(self.store, name)


class TestConcurrentStart:

    async def test_concurrent_starts_share_one_task(self, store, order, fulfillment):
        checker = ScriptedChecker(reading(0, "0"))
        service = PaymentDetectionService(checker, YieldingStore(store), fulfillment,
                                          PaymentPolicy(poll_interval=60))

        first, second = await asyncio.gather(service.start(order.order_id), service.start(order.order_id))
        await asyncio.sleep(0)

        assert first is second
        assert service.active_count == 1
        running = [t for t in asyncio.all_tasks() if t.get_name() == f"payment-detection-{order.order_id}"]
        assert len(running) == 1

        assert await service.cancel(order.order_id) is True
        await asyncio.sleep(0)
        assert all(t.done() for t in running)
        assert len(service._starting) == 0

    async def test_restart_after_cancel(self, store, order, fulfillment):
        service = PaymentDetectionService(ScriptedChecker(reading(0, "0")), store, fulfillment,
                                          PaymentPolicy(poll_interval=60))
        first = await service.start(order.order_id)
        await service.cancel(order.order_id)

        second = await service.start(order.order_id)
        assert second is not first
        assert second.state == DetectionState.DETECTING
        await service.shutdown()
