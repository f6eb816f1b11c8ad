"""
Continuation — durable checkpoint of an in-flight checkout.

    store = FileContinuationStore(settings.continuation_dir)
    await store.save(CheckoutContinuation(session_key, intent_id, address, lines, breakdown))
    ...                                   # browser leaves for the bank and comes back
    continuation = await store.load(session_key)
"""

from checkout.continuation._types import CheckoutContinuation, ContinuationStore
from checkout.continuation._stores import (
    DEFAULT_MAX_AGE,
    FileContinuationStore,
    MemoryContinuationStore,
)

__all__ = (
    "CheckoutContinuation",
    "ContinuationStore",
    "DEFAULT_MAX_AGE",
    "FileContinuationStore",
    "MemoryContinuationStore",
)
