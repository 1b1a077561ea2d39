"""
Lightweight Event System for Extensibility

Provides a simple event emitter pattern for hooks and extensibility.
Not a full plugin registry - just enough for clean extensibility.
"""
import logging
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)

# Event registry: event_name -> list of handlers
_event_handlers: Dict[str, List[Callable]] = {}


def subscribe(event_name: str, handler: Callable):
    """
    Subscribe a handler function to an event.

    Args:
        event_name: Name of the event (e.g., 'chakra.activated')
        handler: Function to call when event fires
    """
    if event_name not in _event_handlers:
        _event_handlers[event_name] = []

    _event_handlers[event_name].append(handler)
    logger.debug(f"Subscribed handler to event: {event_name}")


def unsubscribe(event_name: str, handler: Callable):
    """Remove a previously subscribed handler. Unknown handlers are ignored."""
    handlers = _event_handlers.get(event_name, [])
    if handler in handlers:
        handlers.remove(handler)


def emit(event_name: str, **kwargs):
    """
    Emit an event, calling all subscribed handlers.

    Handler failures are logged and never reach the caller: the ledger write
    that triggered the event has already happened.

    Example:
        emit('chakra.activated', user_id=str(user_id), chakra_index=2)
    """
    if event_name not in _event_handlers:
        return

    for handler in list(_event_handlers[event_name]):
        try:
            handler(**kwargs)
        except Exception as e:
            logger.error(f"Error in event handler for {event_name}: {e}", exc_info=True)


# Common event names
EVENT_CHAKRA_ACTIVATED = 'chakra.activated'
EVENT_REFLECTION_SUBMITTED = 'reflection.submitted'
EVENT_CHAKRA_RECALIBRATED = 'chakra.recalibrated'
