import logging
import time
from pathlib import Path
from typing import Mapping
from urllib.parse import urlencode

import stripe
from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from starlette.requests import ClientDisconnect

from payment_flow import __version__
from payment_flow.core.config import Settings, get_settings
from payment_flow.middleware.body_size import BodySizeLimitMiddleware
from payment_flow.schemas.payments import PaymentIntentRequest, PublicConfig
from payment_flow.schemas.webhook import RawWebhookRequest, RejectionReason
from payment_flow.services.dispatcher import Handler
from payment_flow.services.gateway import GatewayError, PaymentIntentGateway
from payment_flow.services.handlers import default_handlers
from payment_flow.services.webhook_pipeline import WebhookState, process_webhook

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "Stripe-Signature"

_REJECTION_DETAIL = {
    RejectionReason.MALFORMED_HEADER: "Invalid Stripe signature",
    RejectionReason.SIGNATURE_MISMATCH: "Invalid Stripe signature",
    RejectionReason.TIMESTAMP_TOO_OLD: "Invalid Stripe signature",
    RejectionReason.PARSE_ERROR: "Invalid JSON payload",
}


def _error_body(message: str) -> dict:
    return {"error": {"message": message}}


# ---------- dependencies ----------
def app_settings(request: Request) -> Settings:
    return request.app.state.settings


def payment_gateway(request: Request) -> PaymentIntentGateway:
    return request.app.state.gateway


def event_handlers(request: Request) -> Mapping[str, Handler]:
    return request.app.state.handlers


async def read_body(request: Request, limit: int) -> bytes | None:
    """Read the request body, giving up with None once it passes `limit` bytes.

    BodySizeLimitMiddleware only sees a declared Content-Length; chunked
    uploads are bounded here.
    """
    chunks: list[bytes] = []
    size = 0
    async for chunk in request.stream():
        size += len(chunk)
        if size > limit:
            return None
        chunks.append(chunk)
    return b"".join(chunks)


def create_app(
    settings: Settings | None = None,
    gateway: PaymentIntentGateway | None = None,
    handlers: Mapping[str, Handler] | None = None,
) -> FastAPI:
    settings = settings or get_settings()

    stripe.set_app_info(
        "stripe-samples/accept-a-payment/custom-payment-flow",
        url="https://github.com/stripe-samples",
        version=__version__,
    )

    app = FastAPI(
        title="Custom Payment Flow",
        description="Creates payment intents and receives Stripe webhooks",
        version=__version__,
    )
    app.state.settings = settings
    app.state.gateway = gateway or PaymentIntentGateway(settings)
    app.state.handlers = handlers if handlers is not None else default_handlers()

    app.add_middleware(BodySizeLimitMiddleware, max_size=settings.max_body_size)

    @app.exception_handler(GatewayError)
    async def gateway_error(request: Request, exc: GatewayError):
        return JSONResponse(_error_body(exc.message), status_code=status.HTTP_400_BAD_REQUEST)

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = errors[0]["msg"] if errors else "Invalid request"
        logger.info(f"Rejected invalid request to {request.url.path}: {errors}")
        return JSONResponse(_error_body(message), status_code=status.HTTP_400_BAD_REQUEST)

    @app.get("/", include_in_schema=False)
    async def index():
        return RedirectResponse("index.html", status_code=status.HTTP_302_FOUND)

    @app.get("/health", include_in_schema=False)
    async def health():
        return {"status": "ok"}

    # ---------- checkout ----------
    @app.get("/config")
    async def public_config(settings: Settings = Depends(app_settings)):
        return PublicConfig(publishable_key=settings.stripe_publishable_key).model_dump(
            by_alias=True
        )

    @app.post("/create-payment-intent")
    async def create_payment_intent(
        data: PaymentIntentRequest,
        gateway: PaymentIntentGateway = Depends(payment_gateway),
    ):
        result = await gateway.create(data)
        return result.model_dump(by_alias=True)

    @app.get("/payment/next")
    async def payment_next(
        payment_intent: str = Query(..., min_length=1),
        gateway: PaymentIntentGateway = Depends(payment_gateway),
    ):
        intent = await gateway.retrieve(payment_intent)
        query = urlencode({"payment_intent_client_secret": intent.client_secret})
        return RedirectResponse(f"/success?{query}", status_code=status.HTTP_302_FOUND)

    @app.get("/success", include_in_schema=False)
    async def success():
        return RedirectResponse("success.html", status_code=status.HTTP_302_FOUND)

    # ---------- webhook ----------
    @app.post("/webhook")
    async def stripe_webhook(
        request: Request,
        settings: Settings = Depends(app_settings),
        handlers: Mapping[str, Handler] = Depends(event_handlers),
    ):
        try:
            payload = await read_body(request, settings.max_body_size)
        except ClientDisconnect:
            logger.info("Client disconnected before the webhook body was read")
            return Response(status_code=status.HTTP_400_BAD_REQUEST)
        if payload is None:
            logger.warning(f"Webhook body exceeded {settings.max_body_size} bytes")
            raise HTTPException(status_code=413, detail="Payload too large")

        raw = RawWebhookRequest(
            payload=payload,
            signature_header=request.headers.get(SIGNATURE_HEADER),
            received_at=int(time.time()),
        )
        result = process_webhook(
            raw,
            secret=settings.stripe_webhook_secret,
            tolerance=settings.webhook_tolerance,
            handlers=handlers,
        )

        if result.state is WebhookState.REJECTED:
            raise HTTPException(
                status_code=result.http_status,
                detail=_REJECTION_DETAIL[result.rejection.reason],
            )
        if result.http_status >= 500:
            # Stripe retries the delivery on a 5xx
            raise HTTPException(status_code=result.http_status, detail="Webhook handler failed")
        return Response(status_code=result.http_status)

    static_dir = Path(settings.static_dir)
    if static_dir.is_dir():
        app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")
    else:
        logger.info(f"Static directory {static_dir} not found, checkout pages not served")

    return app
