"""
Marketplace events and the log that publishes them

Events emitted during an operation are staged first. They become visible
(and reach subscribers) only when the operation commits; a failed operation
discards everything it staged.
"""
import logging
from dataclasses import dataclass
from typing import Callable, List, Type

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ItemListed:
    item_id: int
    seller: str
    name: str
    price: int
    quantity: int


@dataclass(frozen=True)
class ItemUpdated:
    item_id: int
    name: str
    price: int
    quantity: int


@dataclass(frozen=True)
class ItemDeleted:
    item_id: int
    seller: str


@dataclass(frozen=True)
class ItemPurchased:
    item_id: int
    buyer: str
    seller: str
    quantity: int
    total_price: int


@dataclass(frozen=True)
class ItemDeactivated:
    item_id: int


@dataclass(frozen=True)
class AdminTransferred:
    previous: str
    new: str


class EventLog:
    """Staged, append-only event log"""

    def __init__(self):
        self._events = []
        self._pending = []
        self._subscribers = []

    @property
    def events(self) -> List[object]:
        """Published events, oldest first"""
        return list(self._events)

    @property
    def pending(self) -> List[object]:
        return list(self._pending)

    def of_type(self, event_type: Type) -> List[object]:
        return [event for event in self._events if isinstance(event, event_type)]

    def subscribe(self, callback: Callable[[object], None]):
        """Call ``callback`` with every event as it is published"""
        self._subscribers.append(callback)

    def emit(self, event):
        self._pending.append(event)

    def mark(self) -> int:
        """Position in the staging area, for a later discard()"""
        return len(self._pending)

    def discard(self, mark: int = 0):
        """Drop every event staged after ``mark``"""
        dropped = len(self._pending) - mark
        if dropped:
            logger.debug(f"Discarding {dropped} staged event(s)")
        del self._pending[mark:]

    def publish(self):
        staged, self._pending = self._pending, []
        self._events.extend(staged)
        for event in staged:
            for callback in self._subscribers:
                try:
                    callback(event)
                except Exception:
                    logger.exception(f"Subscriber failed on {type(event).__name__}")
