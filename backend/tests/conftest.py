import json
import os
import time
from types import MappingProxyType
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

# Set test environment variables
os.environ.update(
    {
        "STRIPE_SECRET_KEY": "sk_test_123",
        "STRIPE_PUBLISHABLE_KEY": "pk_test_123",
        "STRIPE_WEBHOOK_SECRET": "whsec_test",
        "STATIC_DIR": "/nonexistent/client/html",
    }
)

from payment_flow.core.config import Settings
from payment_flow.main import create_app
from payment_flow.services.gateway import PaymentIntentGateway
from payment_flow.services.stripe_verify import build_signature_header

WEBHOOK_SECRET = "whsec_test"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        stripe_secret_key="sk_test_123",
        stripe_publishable_key="pk_test_123",
        stripe_webhook_secret=WEBHOOK_SECRET,
        static_dir="/nonexistent/client/html",
    )


@pytest.fixture
def gateway():
    mock = MagicMock(spec=PaymentIntentGateway)
    mock.create = AsyncMock()
    mock.retrieve = AsyncMock()
    return mock


class RecordingHandler:
    def __init__(self):
        self.calls = []

    def __call__(self, obj):
        self.calls.append(obj)


@pytest.fixture
def succeeded_handler():
    return RecordingHandler()


@pytest.fixture
def handlers(succeeded_handler):
    return MappingProxyType({"payment_intent.succeeded": succeeded_handler})


@pytest.fixture
def app(settings, gateway, handlers):
    return create_app(settings, gateway=gateway, handlers=handlers)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def event_body():
    def _make(event_type: str = "payment_intent.succeeded", event_id: str = "evt_1") -> bytes:
        return json.dumps(
            {"id": event_id, "type": event_type, "object": {"id": "pi_123", "amount": 5999}}
        ).encode()

    return _make


@pytest.fixture
def signed_headers():
    def _sign(body: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None):
        ts = timestamp if timestamp is not None else int(time.time())
        return {
            "Stripe-Signature": build_signature_header(body, secret, ts),
            "Content-Type": "application/json",
        }

    return _sign
