"""Tests for continuation stores."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from checkout.continuation import (
    CheckoutContinuation,
    FileContinuationStore,
    MemoryContinuationStore,
)
from checkout.pricing import CartLine, price


@pytest.fixture
def continuation(address) -> CheckoutContinuation:
    lines = (CartLine(1, "Desk Lamp", Decimal("25.00"), 2, 10, variant="Brass"),)
    return CheckoutContinuation(
        session_key="sess-1",
        intent_id="pi_123",
        address=address,
        lines=lines,
        breakdown=price(lines),
        coupon_code="SAVE10",
    )


class Clock:
    def __init__(self) -> None:
        self.now = datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now


class TestFileContinuationStore:
    async def test_save_then_load(self, tmp_path, continuation):
        store = FileContinuationStore(tmp_path)
        await store.save(continuation)
        assert await store.load("sess-1") == continuation

    async def test_load_missing_is_none(self, tmp_path):
        assert await FileContinuationStore(tmp_path).load("nobody") is None

    async def test_survives_a_new_store_instance(self, tmp_path, continuation):
        await FileContinuationStore(tmp_path).save(continuation)
        assert await FileContinuationStore(tmp_path).load("sess-1") == continuation

    async def test_no_temp_file_left_behind(self, tmp_path, continuation):
        store = FileContinuationStore(tmp_path)
        await store.save(continuation)
        assert [p.suffix for p in tmp_path.iterdir()] == [".json"]

    async def test_clear(self, tmp_path, continuation):
        store = FileContinuationStore(tmp_path)
        await store.save(continuation)
        await store.clear("sess-1")
        await store.clear("sess-1")
        assert await store.load("sess-1") is None

    async def test_corrupt_record_is_absent_and_removed(self, tmp_path, continuation):
        store = FileContinuationStore(tmp_path)
        await store.save(continuation)
        path = store.path_for("sess-1")
        path.write_text("{not json", encoding="utf-8")
        assert await store.load("sess-1") is None
        assert not path.exists()

    async def test_incomplete_record_is_absent(self, tmp_path):
        store = FileContinuationStore(tmp_path)
        tmp_path.mkdir(exist_ok=True)
        store.path_for("sess-1").write_text('{"session_key": "sess-1"}', encoding="utf-8")
        assert await store.load("sess-1") is None

    async def test_expired_record_is_absent(self, tmp_path, continuation):
        clock = Clock()
        store = FileContinuationStore(tmp_path, max_age=timedelta(hours=24), clock=clock)
        await store.save(continuation)
        clock.now += timedelta(hours=25)
        assert await store.load("sess-1") is None
        assert not store.path_for("sess-1").exists()

    async def test_session_keys_map_to_safe_filenames(self, tmp_path):
        store = FileContinuationStore(tmp_path)
        path = store.path_for("../../etc/passwd")
        assert path.parent == tmp_path


class TestMemoryContinuationStore:
    async def test_round_trip(self, continuation):
        store = MemoryContinuationStore()
        await store.save(continuation)
        assert await store.load("sess-1") == continuation

    async def test_corrupt_record_is_absent(self):
        store = MemoryContinuationStore()
        store.put_raw("sess-1", "garbage")
        assert await store.load("sess-1") is None

    async def test_expired_record_is_absent(self, continuation):
        clock = Clock()
        store = MemoryContinuationStore(max_age=timedelta(minutes=5), clock=clock)
        await store.save(continuation)
        clock.now += timedelta(minutes=6)
        assert await store.load("sess-1") is None
