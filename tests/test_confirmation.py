"""Tests for confirmation bookkeeping: settled outcomes and per-session state."""

import pytest
from kungfu import Ok, Error

from checkout.confirmation import (
    RETURN_REFERENCE,
    RETURN_SECRET,
    ConfirmationState,
    PaymentConfirmationHandler,
    SettledOutcomes,
)
from checkout.errors import ErrorKind

from tests.conftest import RETURN_URL


class RecordingMaterialize:
    def __init__(self) -> None:
        self.references: list[str] = []

    async def __call__(self, captured):
        self.references.append(captured.payment_reference)
        return Ok(f"order-for-{captured.payment_reference}")


async def returned(gateway, *, succeeded: bool | None = True) -> dict[str, str]:
    """Return-page params for a fresh intent, settled as asked (None leaves it pending)."""
    handle = await gateway.create_intent(1000, "gbp", {"email": "ada@example.com"})
    if succeeded is not None:
        gateway.complete_redirect(handle.intent_id, succeeded=succeeded)
    return {RETURN_REFERENCE: handle.intent_id, RETURN_SECRET: handle.client_secret}


class TestSettledOutcomes:
    def test_oldest_entry_is_evicted(self):
        outcomes = SettledOutcomes[str](max_size=2)
        for reference in ("pi_1", "pi_2", "pi_3"):
            outcomes.put(reference, reference.upper())

        assert len(outcomes) == 2
        assert outcomes.get("pi_1") is None
        assert outcomes.get("pi_3") == "PI_3"

    def test_read_keeps_entry_fresh(self):
        outcomes = SettledOutcomes[str](max_size=2)
        outcomes.put("pi_1", "a")
        outcomes.put("pi_2", "b")
        outcomes.get("pi_1")
        outcomes.put("pi_3", "c")

        assert outcomes.get("pi_1") == "a"
        assert outcomes.get("pi_2") is None

    def test_replacing_an_entry_evicts_nothing(self):
        outcomes = SettledOutcomes[str](max_size=2)
        outcomes.put("pi_1", "a")
        outcomes.put("pi_2", "b")
        outcomes.put("pi_1", "a2")

        assert len(outcomes) == 2
        assert outcomes.get("pi_2") == "b"


class TestHandlerBookkeeping:
    async def test_reload_of_settled_payment_skips_gateway(self, handler, gateway):
        materialize = RecordingMaterialize()
        params = await returned(gateway)

        first = await handler.resume("sess-1", params, materialize)
        second = await handler.resume("sess-1", params, materialize)

        assert first is second
        assert gateway.retrieve_calls == 1
        assert materialize.references == [params[RETURN_REFERENCE]]

    async def test_settled_outcomes_are_bounded(self, gateway, continuations):
        handler = PaymentConfirmationHandler(
            gateway, continuations, RETURN_URL, timeout=0.5, outcome_cache_size=1,
        )
        materialize = RecordingMaterialize()
        first = await returned(gateway)
        second = await returned(gateway)

        await handler.resume("sess-1", first, materialize)
        await handler.resume("sess-2", second, materialize)
        await handler.resume("sess-1", first, materialize)

        # Evicted, so read again; materialization itself is idempotent downstream.
        assert gateway.retrieve_calls == 3
        assert materialize.references.count(first[RETURN_REFERENCE]) == 2

    async def test_declines_are_not_remembered(self, handler, gateway):
        materialize = RecordingMaterialize()
        params = await returned(gateway, succeeded=False)

        for _ in range(2):
            match await handler.resume("sess-1", params, materialize):
                case Error(e):
                    assert e.kind is ErrorKind.PAYMENT_DECLINED
                case Ok(_):
                    pytest.fail("failed payment settled")
        assert gateway.retrieve_calls == 2

    async def test_pending_payment_then_forget(self, handler, gateway):
        params = await returned(gateway, succeeded=None)

        match await handler.resume("sess-1", params, RecordingMaterialize()):
            case Ok(confirmed):
                assert confirmed.state is ConfirmationState.PROCESSING
            case Error(e):
                pytest.fail(str(e))
        assert handler.state("sess-1") is ConfirmationState.PROCESSING

        handler.forget("sess-1")
        assert handler.state("sess-1") is ConfirmationState.IDLE
