"""
Continuation stores.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import os
from collections.abc import Callable
from datetime import datetime, timedelta
from pathlib import Path

from checkout._types import utcnow
from checkout.continuation._types import CheckoutContinuation
from checkout.logs import get_logger

DEFAULT_MAX_AGE = timedelta(hours=24)


# ═══════════════════════════════════════════════════════════════════════════════
# File Store
# ═══════════════════════════════════════════════════════════════════════════════


class FileContinuationStore:
    """
    One JSON file per checkout session.

    Writes go to a temp file that is fsynced and then renamed over the
    target, so a reader sees either the old record or the new one.

    Example:
        store = FileContinuationStore(Path(".checkout/continuations"))
        await store.save(continuation)
        restored = await store.load(session_key)
    """

    def __init__(
        self,
        directory: Path,
        max_age: timedelta = DEFAULT_MAX_AGE,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._directory = Path(directory)
        self._max_age = max_age
        self._clock = clock

    def path_for(self, session_key: str) -> Path:
        digest = hashlib.sha256(session_key.encode()).hexdigest()[:32]
        return self._directory / f"{digest}.json"

    async def save(self, continuation: CheckoutContinuation) -> None:
        payload = json.dumps(continuation.to_dict(), separators=(",", ":"))
        await asyncio.to_thread(self._write, self.path_for(continuation.session_key), payload)
        get_logger("continuation").info(
            "continuation_saved", intent_id=continuation.intent_id,
        )

    def _write(self, path: Path, payload: str) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)

    async def load(self, session_key: str) -> CheckoutContinuation | None:
        path = self.path_for(session_key)
        log = get_logger("continuation")
        try:
            raw = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError:
            log.warning("continuation_unreadable", path=str(path), exc_info=True)
            await self.clear(session_key)
            return None

        try:
            continuation = CheckoutContinuation.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError):
            log.warning("continuation_corrupt", path=str(path), exc_info=True)
            await self.clear(session_key)
            return None

        if self._clock() - continuation.created_at > self._max_age:
            log.info("continuation_expired", intent_id=continuation.intent_id)
            await self.clear(session_key)
            return None

        return continuation

    async def clear(self, session_key: str) -> None:
        await asyncio.to_thread(self.path_for(session_key).unlink, missing_ok=True)


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Store
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryContinuationStore:
    """Same contract as the file store; records round-trip through JSON."""

    def __init__(
        self,
        max_age: timedelta = DEFAULT_MAX_AGE,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._records: dict[str, str] = {}
        self._max_age = max_age
        self._clock = clock
        self.save_calls = 0

    async def save(self, continuation: CheckoutContinuation) -> None:
        self.save_calls += 1
        self._records[continuation.session_key] = json.dumps(continuation.to_dict())

    async def load(self, session_key: str) -> CheckoutContinuation | None:
        raw = self._records.get(session_key)
        if raw is None:
            return None
        try:
            continuation = CheckoutContinuation.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError):
            del self._records[session_key]
            return None
        if self._clock() - continuation.created_at > self._max_age:
            del self._records[session_key]
            return None
        return continuation

    async def clear(self, session_key: str) -> None:
        self._records.pop(session_key, None)

    def put_raw(self, session_key: str, raw: str) -> None:
        """Store an arbitrary payload, as a damaged record would look."""
        self._records[session_key] = raw


__all__ = ("FileContinuationStore", "MemoryContinuationStore", "DEFAULT_MAX_AGE")
