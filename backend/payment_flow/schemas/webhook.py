from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, Field, model_validator


class RejectionReason(str, Enum):
    MALFORMED_HEADER = "malformed_header"
    SIGNATURE_MISMATCH = "signature_mismatch"
    TIMESTAMP_TOO_OLD = "timestamp_too_old"
    PARSE_ERROR = "parse_error"


@dataclass(frozen=True)
class Rejection:
    """A webhook refused before dispatch. Always answered with a 400."""

    reason: RejectionReason
    message: str


@dataclass(frozen=True)
class RawWebhookRequest:
    payload: bytes
    signature_header: str | None
    received_at: int


@dataclass(frozen=True)
class SignedPayload:
    payload: bytes
    timestamp: int
    signatures: tuple[str, ...]


@dataclass(frozen=True)
class VerifiedEvent:
    """Payload bytes whose signature has been checked.

    Only `stripe_verify.verify` builds these; the parser and the dispatcher
    never see anything else.
    """

    payload: bytes = field(repr=False)


@dataclass(frozen=True)
class TypedEvent:
    id: str
    type: str
    object: Mapping[str, Any]


class EventEnvelope(BaseModel, extra="ignore"):
    id: str = Field(..., min_length=1, description="Processor event ID")
    type: str = Field(
        ..., min_length=1, description="Dot-delimited event type, e.g. payment_intent.succeeded"
    )
    object: Any = None
    data: dict[str, Any] | None = None

    @model_validator(mode="after")
    def _require_object(self) -> "EventEnvelope":
        if self.payload_object() is None:
            raise ValueError("event has no object payload")
        return self

    def payload_object(self) -> dict[str, Any] | None:
        # Stripe puts "object": "event" at the top and the resource under data.object
        if isinstance(self.object, dict):
            return self.object
        if self.data is not None and isinstance(self.data.get("object"), dict):
            return self.data["object"]
        return None
