"""
basedex Exchange Events

Every committed mutation produces one event:
  - PairCreated
  - Swap
  - LiquidityAdded
  - LiquidityRemoved

Events are appended to an EventLog and then delivered to subscribers in
registration order. Delivery happens after commit: a failing subscriber is
logged and skipped, it cannot undo the operation. The log keeps the newest
EVENT_LOG_MAX_EVENTS events; subscribers see every event.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import asdict, dataclass, field
from enum import Flag, auto
from typing import Any, Callable, Deque, Dict, List, Tuple, Union

from ..constants import EVENT_LOG_MAX_EVENTS

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Event flags: which events a subscriber wants to receive
# ---------------------------------------------------------------------------

class EventFlags(Flag):
    NONE = 0
    PAIR_CREATED = auto()
    SWAP = auto()
    LIQUIDITY_ADDED = auto()
    LIQUIDITY_REMOVED = auto()
    LIQUIDITY = LIQUIDITY_ADDED | LIQUIDITY_REMOVED
    ALL = PAIR_CREATED | SWAP | LIQUIDITY_ADDED | LIQUIDITY_REMOVED


# ---------------------------------------------------------------------------
# Event payloads
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PairCreated:
    pool_id: str
    token_a: str
    token_b: str
    fee_bps: int
    pool_type: int
    fee_tier: int
    creator: str = ""
    timestamp: float = field(default_factory=time.time)

    flag = EventFlags.PAIR_CREATED

    def to_dict(self) -> Dict[str, Any]:
        return {"event": "PairCreated", **asdict(self)}


@dataclass(frozen=True)
class Swap:
    pool_id: str
    trader: str
    recipient: str
    token_in: str
    token_out: str
    amount_in: int
    amount_out: int
    fee_paid: int
    reserve_a: int
    reserve_b: int
    timestamp: float = field(default_factory=time.time)

    flag = EventFlags.SWAP

    def to_dict(self) -> Dict[str, Any]:
        return {"event": "Swap", **_stringify(asdict(self))}


@dataclass(frozen=True)
class LiquidityAdded:
    pool_id: str
    provider: str
    amount_a: int
    amount_b: int
    shares: int
    reserve_a: int
    reserve_b: int
    timestamp: float = field(default_factory=time.time)

    flag = EventFlags.LIQUIDITY_ADDED

    def to_dict(self) -> Dict[str, Any]:
        return {"event": "LiquidityAdded", **_stringify(asdict(self))}


@dataclass(frozen=True)
class LiquidityRemoved:
    pool_id: str
    provider: str
    amount_a: int
    amount_b: int
    shares: int
    reserve_a: int
    reserve_b: int
    timestamp: float = field(default_factory=time.time)

    flag = EventFlags.LIQUIDITY_REMOVED

    def to_dict(self) -> Dict[str, Any]:
        return {"event": "LiquidityRemoved", **_stringify(asdict(self))}


ExchangeEvent = Union[PairCreated, Swap, LiquidityAdded, LiquidityRemoved]
Subscriber = Callable[[ExchangeEvent], None]

_AMOUNT_FIELDS = {"amount_in", "amount_out", "fee_paid", "amount_a", "amount_b", "shares",
                  "reserve_a", "reserve_b"}


def _stringify(data: Dict[str, Any]) -> Dict[str, Any]:
    # Amounts can exceed what JSON consumers read as exact numbers
    return {k: str(v) if k in _AMOUNT_FIELDS else v for k, v in data.items()}


# ---------------------------------------------------------------------------
# Event log
# ---------------------------------------------------------------------------

class EventLog:
    """Bounded record of exchange events plus a subscriber registry."""

    def __init__(self, max_events: int = EVENT_LOG_MAX_EVENTS) -> None:
        self._events: Deque[ExchangeEvent] = deque(maxlen=max_events)
        self._subscribers: List[Tuple[EventFlags, Subscriber]] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber, flags: EventFlags = EventFlags.ALL) -> None:
        with self._lock:
            self._subscribers.append((flags, callback))
        logger.debug("Subscriber registered: %s (flags=%s)", getattr(callback, "__name__", callback), flags)

    def unsubscribe(self, callback: Subscriber) -> None:
        with self._lock:
            self._subscribers = [(f, cb) for f, cb in self._subscribers if cb != callback]

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def emit(self, event: ExchangeEvent) -> None:
        with self._lock:
            self._events.append(event)
            subscribers = list(self._subscribers)
        for flags, callback in subscribers:
            if event.flag in flags:
                try:
                    callback(event)
                except Exception:
                    logger.exception("Subscriber %r failed on %s", callback, type(event).__name__)

    def events(self, kind: EventFlags = EventFlags.ALL) -> List[ExchangeEvent]:
        with self._lock:
            return [e for e in self._events if e.flag in kind]

    def __len__(self) -> int:
        return len(self._events)
