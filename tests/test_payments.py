"""Tests for payment sessions and gateways."""

from types import SimpleNamespace

import pytest
from kungfu import Ok, Error

from checkout.errors import ErrorKind
from checkout.payments import (
    ConfirmBehaviour,
    InMemoryGateway,
    IntentStatus,
    PaymentSessionManager,
)
from checkout.payments._stripe import intent_id_from_secret, map_status, redirect_url_of


async def opened(manager, key="sess-1", amount=6000, fingerprint="fp-1"):
    match await manager.open(key, amount, fingerprint, {"email": "ada@example.com"}):
        case Ok(session):
            return session
        case Error(e):
            pytest.fail(str(e))


class TestPaymentSessionManager:
    async def test_open_creates_intent_for_final_amount(self, gateway):
        session = await opened(PaymentSessionManager(gateway))
        assert session.amount_minor == 6000
        assert session.currency == "gbp"
        assert gateway.intents[session.intent_id].amount_minor == 6000
        assert gateway.create_calls == 1

    async def test_reopen_with_same_fingerprint_reuses_session(self, gateway):
        manager = PaymentSessionManager(gateway)
        first = await opened(manager)
        second = await opened(manager)
        assert first == second
        assert gateway.create_calls == 1

    async def test_changed_cart_supersedes_session(self, gateway):
        manager = PaymentSessionManager(gateway)
        first = await opened(manager)
        second = await opened(manager, amount=5400, fingerprint="fp-2")
        assert second.intent_id != first.intent_id
        assert gateway.intents[first.intent_id].status is IntentStatus.CANCELED
        assert manager.current("sess-1") == second

    async def test_stale_session_is_rejected(self, gateway):
        manager = PaymentSessionManager(gateway)
        first = await opened(manager)
        await opened(manager, amount=5400, fingerprint="fp-2")
        match manager.require_current("sess-1", first.intent_id):
            case Error(e):
                assert e.kind is ErrorKind.VALIDATION
            case Ok(_):
                pytest.fail("stale session accepted")

    async def test_cancel_failure_still_opens_new_session(self, gateway):
        manager = PaymentSessionManager(gateway)
        first = await opened(manager)
        del gateway.intents[first.intent_id]  # gateway forgot it; cancel raises
        second = await opened(manager, amount=5400, fingerprint="fp-2")
        assert second.intent_id != first.intent_id

    @pytest.mark.parametrize("amount", [0, -100])
    async def test_non_positive_amount_is_invalid(self, gateway, amount):
        match await PaymentSessionManager(gateway).open("sess-1", amount, "fp"):
            case Error(e):
                assert e.kind is ErrorKind.VALIDATION
            case Ok(_):
                pytest.fail("zero charge accepted")
        assert gateway.create_calls == 0

    async def test_gateway_unavailable_persists_nothing(self, gateway):
        gateway.fail_create = True
        manager = PaymentSessionManager(gateway)
        match await manager.open("sess-1", 6000, "fp"):
            case Error(e):
                assert e.kind is ErrorKind.GATEWAY_UNAVAILABLE
                assert e.kind.retryable
            case Ok(_):
                pytest.fail("opened without a gateway")
        assert manager.current("sess-1") is None

    async def test_discard_cancels_live_session(self, gateway):
        manager = PaymentSessionManager(gateway)
        session = await opened(manager)
        await manager.discard("sess-1")

        assert manager.current("sess-1") is None
        assert gateway.intents[session.intent_id].status is IntentStatus.CANCELED
        match manager.require_current("sess-1", session.intent_id):
            case Error(e):
                assert e.kind is ErrorKind.VALIDATION
            case Ok(_):
                pytest.fail("discarded session accepted")

    async def test_discard_without_session_is_a_no_op(self, gateway):
        await PaymentSessionManager(gateway).discard("sess-1")
        assert gateway.cancel_calls == 0


class TestInMemoryGateway:
    async def test_decline_raises_and_marks_failed(self, gateway):
        handle = await gateway.create_intent(1000, "gbp", {})
        gateway.confirm_behaviour = ConfirmBehaviour.DECLINE
        with pytest.raises(Exception, match="declined"):
            await gateway.confirm_intent(handle.client_secret, "https://r", "pm")
        snapshot = await gateway.retrieve_intent(handle.client_secret)
        assert snapshot.status is IntentStatus.FAILED

    async def test_redirect_carries_return_parameters(self, gateway):
        handle = await gateway.create_intent(1000, "gbp", {})
        gateway.confirm_behaviour = ConfirmBehaviour.REDIRECT
        response = await gateway.confirm_intent(handle.client_secret, "https://r", "pm")
        assert response.needs_redirect
        assert f"payment_intent={handle.intent_id}" in response.redirect_url

    async def test_processing_settles_later(self, gateway):
        handle = await gateway.create_intent(1000, "gbp", {})
        gateway.confirm_behaviour = ConfirmBehaviour.PROCESS
        response = await gateway.confirm_intent(handle.client_secret, "https://r", "pm")
        assert response.status is IntentStatus.PROCESSING
        assert not response.needs_redirect

        gateway.complete_redirect(handle.intent_id)
        snapshot = await gateway.retrieve_intent(handle.client_secret)
        assert snapshot.status is IntentStatus.SUCCEEDED


class TestStripeMapping:
    def test_intent_id_from_secret(self):
        assert intent_id_from_secret("pi_123_secret_abc") == "pi_123"

    @pytest.mark.parametrize("raw,status", [
        ("succeeded", IntentStatus.SUCCEEDED),
        ("processing", IntentStatus.PROCESSING),
        ("requires_action", IntentStatus.REQUIRES_ACTION),
        ("requires_payment_method", IntentStatus.FAILED),
        ("canceled", IntentStatus.CANCELED),
        ("something_new", IntentStatus.FAILED),
    ])
    def test_map_status(self, raw, status):
        assert map_status(raw) is status

    def test_redirect_url(self):
        intent = SimpleNamespace(
            next_action=SimpleNamespace(redirect_to_url=SimpleNamespace(url="https://bank.test/3ds"))
        )
        assert redirect_url_of(intent) == "https://bank.test/3ds"
        assert redirect_url_of(SimpleNamespace(next_action=None)) is None
