# inventory_optimization/events.py
"""In-process events raised once a fact row is durable."""
import logging
import threading
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, List, Type

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class FactAppended:
    """A fact row for ``product_id`` has been committed."""
    product_id: int
    sales_date: date

class EventBus:
    """Synchronous publish/subscribe dispatcher.

    Handlers run on the publishing thread in subscription order and their
    exceptions propagate to the publisher.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._handlers: Dict[Type, List[Callable[[Any], Any]]] = defaultdict(list)

    def subscribe(self, event_type: Type, handler: Callable[[Any], Any]) -> None:
        with self._lock:
            if handler not in self._handlers[event_type]:
                self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: Type, handler: Callable[[Any], Any]) -> None:
        with self._lock:
            if handler in self._handlers[event_type]:
                self._handlers[event_type].remove(handler)

    def publish(self, event) -> List[Any]:
        with self._lock:
            handlers = list(self._handlers[type(event)])

        if not handlers:
            logger.debug(f"No subscribers for {type(event).__name__}")

        return [handler(event) for handler in handlers]
