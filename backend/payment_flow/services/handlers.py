import logging
from types import MappingProxyType
from typing import Any, Mapping

from payment_flow.services.dispatcher import Handler, HandlerError

logger = logging.getLogger(__name__)


def _intent_id(payment_intent: Mapping[str, Any]) -> str:
    intent_id = payment_intent.get("id")
    if not intent_id or not isinstance(intent_id, str):
        raise HandlerError("PaymentIntent object has no string id")
    return intent_id


def _failure_reason(payment_intent: Mapping[str, Any]) -> str:
    last_error = payment_intent.get("last_payment_error")
    if not isinstance(last_error, Mapping):
        return "unknown reason"
    message = last_error.get("message")
    return message if isinstance(message, str) and message else "unknown reason"


def payment_intent_succeeded(payment_intent: Mapping[str, Any]) -> None:
    intent_id = _intent_id(payment_intent)
    logger.info(f"PaymentIntent ID: {intent_id} succeeded")
    # Fulfilment hooks in here; it must stay safe to run twice for one intent.


def payment_intent_payment_failed(payment_intent: Mapping[str, Any]) -> None:
    intent_id = _intent_id(payment_intent)
    logger.warning(f"PaymentIntent ID: {intent_id} failed: {_failure_reason(payment_intent)}")


def default_handlers() -> Mapping[str, Handler]:
    """Handlers registered at startup, keyed by event type."""
    return MappingProxyType(
        {
            "payment_intent.succeeded": payment_intent_succeeded,
            "payment_intent.payment_failed": payment_intent_payment_failed,
        }
    )
