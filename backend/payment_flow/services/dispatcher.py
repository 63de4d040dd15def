"""Route verified events to handlers by their type tag.

Handlers get the event's object payload and must be idempotent: Stripe
redelivers on timeouts and non-2xx answers, and nothing here remembers which
event ids were already seen.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping

from payment_flow.schemas.webhook import TypedEvent

logger = logging.getLogger(__name__)

Handler = Callable[[Mapping[str, Any]], None]


class HandlerError(Exception):
    """Raised by a handler that could not process its event.

    A fatal error is answered with a 500 so Stripe delivers the event again;
    a non-fatal one is logged and acknowledged.
    """

    def __init__(self, message: str, fatal: bool = False):
        super().__init__(message)
        self.fatal = fatal


class DispatchStatus(str, Enum):
    HANDLED = "handled"
    ACKNOWLEDGED = "acknowledged"
    HANDLER_FAILED = "handler_failed"


@dataclass(frozen=True)
class DispatchOutcome:
    status: DispatchStatus
    fatal: bool = False
    error: str | None = None


def dispatch(event: TypedEvent, handlers: Mapping[str, Handler]) -> DispatchOutcome:
    handler = handlers.get(event.type)
    if handler is None:
        logger.info(f"No handler for event type {event.type} ({event.id}), acknowledging")
        return DispatchOutcome(DispatchStatus.ACKNOWLEDGED)

    try:
        handler(event.object)
    except HandlerError as e:
        logger.error(
            f"Handler for {event.type} failed on {event.id} (fatal={e.fatal}): {e}"
        )
        return DispatchOutcome(DispatchStatus.HANDLER_FAILED, fatal=e.fatal, error=str(e))
    except Exception as e:
        logger.exception(f"Unexpected error in handler for {event.type} on {event.id}")
        return DispatchOutcome(DispatchStatus.HANDLER_FAILED, fatal=True, error=str(e))

    return DispatchOutcome(DispatchStatus.HANDLED)
