import logging
from dataclasses import dataclass
from typing import Any

import stripe

from payment_flow.core.config import Settings
from payment_flow.schemas.payments import (
    PaymentIntentRequest,
    PaymentIntentResult,
    PaymentMethodType,
)

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "The payment could not be processed. Please try again."

ACSS_MANDATE_OPTIONS = {
    "payment_schedule": "sporadic",
    "transaction_type": "personal",
}


class GatewayError(Exception):
    """A processor call failed. `message` is safe to show to the customer."""

    def __init__(self, message: str = GENERIC_ERROR_MESSAGE):
        super().__init__(message)
        self.message = message


@dataclass(frozen=True)
class PaymentIntentStatus:
    id: str
    status: str
    client_secret: str


def build_create_params(request: PaymentIntentRequest, amount: int) -> dict[str, Any]:
    method = request.payment_method_type
    if method is PaymentMethodType.LINK:
        method_types = [PaymentMethodType.LINK.value, PaymentMethodType.CARD.value]
    else:
        method_types = [method.value]

    params: dict[str, Any] = {
        "amount": amount,
        "currency": request.currency,
        "payment_method_types": method_types,
    }
    # ACSS debits need mandate options so Stripe can create the mandate
    if method is PaymentMethodType.ACSS_DEBIT:
        params["payment_method_options"] = {
            "acss_debit": {"mandate_options": dict(ACSS_MANDATE_OPTIONS)}
        }
    return params


def _safe_error(e: stripe.StripeError) -> GatewayError:
    logger.error(
        f"Stripe error (status={e.http_status}, code={e.code}, "
        f"request_id={e.request_id}): {e}"
    )
    return GatewayError(e.user_message or GENERIC_ERROR_MESSAGE)


class PaymentIntentGateway:
    def __init__(self, settings: Settings):
        self._api_key = settings.stripe_secret_key
        self._amount = settings.order_amount

    async def create(self, request: PaymentIntentRequest) -> PaymentIntentResult:
        params = build_create_params(request, self._amount)
        try:
            intent = await stripe.PaymentIntent.create_async(api_key=self._api_key, **params)
        except stripe.StripeError as e:
            raise _safe_error(e) from e
        logger.info(f"Created PaymentIntent {intent.id} for {request.payment_method_type.value}")
        return PaymentIntentResult(client_secret=intent.client_secret)

    async def retrieve(self, intent_id: str) -> PaymentIntentStatus:
        try:
            intent = await stripe.PaymentIntent.retrieve_async(intent_id, api_key=self._api_key)
        except stripe.StripeError as e:
            raise _safe_error(e) from e
        return PaymentIntentStatus(
            id=intent.id, status=intent.status, client_secret=intent.client_secret
        )
