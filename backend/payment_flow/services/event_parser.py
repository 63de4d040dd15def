from pydantic import ValidationError

from payment_flow.schemas.webhook import (
    EventEnvelope,
    Rejection,
    RejectionReason,
    TypedEvent,
    VerifiedEvent,
)


def _describe(error: ValidationError) -> str:
    first = error.errors()[0]
    where = ".".join(str(p) for p in first.get("loc", ())) or "body"
    return f"{where}: {first['msg']}"


def parse(event: VerifiedEvent) -> TypedEvent | Rejection:
    """Turn verified bytes into a `TypedEvent`.

    The object payload is passed through untouched; its shape is the
    business of whichever handler picks up the event type.
    """
    try:
        envelope = EventEnvelope.model_validate_json(event.payload)
    except ValidationError as ve:
        return Rejection(RejectionReason.PARSE_ERROR, _describe(ve))

    return TypedEvent(
        id=envelope.id,
        type=envelope.type,
        object=envelope.payload_object(),
    )
