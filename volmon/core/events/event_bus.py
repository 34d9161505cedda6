"""
Domain event bus (Mediator Pattern).

Each component that publishes notifications owns one bus, so a subscriber
only ever sees the events of the component it subscribed to.
"""
import asyncio
import logging
from collections import defaultdict
from typing import Awaitable, Callable, Dict, List, Type

from volmon.core.events.domain_event import DomainEvent

# An event handler is an async function that takes a DomainEvent and returns None
EventHandler = Callable[[DomainEvent], Awaitable[None]]


class DomainEventBus:
    """
    Asynchronous publish/subscribe keyed by event class.

    If one event handler fails, it does not prevent other handlers from being
    executed. Errors from failed handlers are logged without stopping the
    publication.
    """

    def __init__(self, name: str = "bus") -> None:
        self._name = name
        self._handlers: Dict[Type[DomainEvent], List[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: Type[DomainEvent], handler: EventHandler) -> None:
        """
        Subscribes a handler to a specific event type.

        Args:
            event_type: The class of the domain event to subscribe to.
            handler: The asynchronous function to call when the event is published.
        """
        self._handlers[event_type].append(handler)
        logging.debug(
            f"[{self._name}] Handler {getattr(handler, '__name__', handler)} "
            f"subscribed to {event_type.__name__}"
        )

    def unsubscribe(self, event_type: Type[DomainEvent], handler: EventHandler) -> bool:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)
            return True
        return False

    def clear(self, event_type: Type[DomainEvent] = None) -> None:
        """Remove all handlers, or only those of one event type."""
        if event_type is None:
            self._handlers.clear()
        else:
            self._handlers.pop(event_type, None)

    def handler_count(self, event_type: Type[DomainEvent]) -> int:
        return len(self._handlers.get(event_type, []))

    async def publish(self, event: DomainEvent) -> None:
        """
        Publishes a domain event, calling all subscribed handlers.

        Executes all handlers concurrently and gathers the results. If a handler
        raises an exception, it is logged, and other handlers continue to execute.

        Args:
            event: The domain event instance to publish.
        """
        event_type = type(event)
        handlers = list(self._handlers.get(event_type, []))

        if not handlers:
            logging.debug(f"[{self._name}] No handlers for event {event_type.__name__}")
            return

        logging.debug(
            f"[{self._name}] Publishing {event_type.__name__} to {len(handlers)} handler(s)"
        )

        tasks = [self._safe_execute(handler, event) for handler in handlers]
        await asyncio.gather(*tasks)

    async def _safe_execute(self, handler: EventHandler, event: DomainEvent) -> None:
        """
        Executes a single event handler safely, catching and logging any exceptions.
        """
        try:
            await handler(event)
        except Exception as e:
            logging.error(
                f"Unhandled exception in handler '{getattr(handler, '__name__', handler)}' "
                f"for event '{type(event).__name__}': {e}",
                exc_info=True,
            )
