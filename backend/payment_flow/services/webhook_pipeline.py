import logging
from dataclasses import dataclass
from enum import Enum
from typing import Mapping

from payment_flow.schemas.webhook import RawWebhookRequest, Rejection
from payment_flow.services import event_parser, stripe_verify
from payment_flow.services.dispatcher import (
    DispatchOutcome,
    DispatchStatus,
    Handler,
    dispatch,
)

logger = logging.getLogger(__name__)


class WebhookState(str, Enum):
    REJECTED = "rejected"
    ACKNOWLEDGED = "acknowledged"
    HANDLER_FAILED = "handler_failed"


@dataclass(frozen=True)
class WebhookResult:
    state: WebhookState
    rejection: Rejection | None = None
    outcome: DispatchOutcome | None = None

    @property
    def http_status(self) -> int:
        if self.state is WebhookState.REJECTED:
            return 400
        if self.state is WebhookState.HANDLER_FAILED and self.outcome and self.outcome.fatal:
            return 500
        return 200


def process_webhook(
    request: RawWebhookRequest,
    secret: str,
    tolerance: int | None,
    handlers: Mapping[str, Handler],
) -> WebhookResult:
    """Verify, parse and dispatch one webhook delivery.

    Each step short-circuits to REJECTED on failure, so handlers only ever see
    events whose signature checked out.
    """
    verified = stripe_verify.verify(
        payload=request.payload,
        header=request.signature_header,
        secret=secret,
        tolerance=tolerance,
        now=request.received_at,
    )
    if isinstance(verified, Rejection):
        logger.warning(f"Webhook rejected ({verified.reason.value}): {verified.message}")
        return WebhookResult(WebhookState.REJECTED, rejection=verified)

    event = event_parser.parse(verified)
    if isinstance(event, Rejection):
        logger.warning(f"Webhook rejected ({event.reason.value}): {event.message}")
        return WebhookResult(WebhookState.REJECTED, rejection=event)

    logger.info(f"Webhook notification with type: {event.type} found for {event.id}")

    outcome = dispatch(event, handlers)
    if outcome.status is DispatchStatus.HANDLER_FAILED:
        return WebhookResult(WebhookState.HANDLER_FAILED, outcome=outcome)
    return WebhookResult(WebhookState.ACKNOWLEDGED, outcome=outcome)
