import json

import pytest
import stripe

from payment_flow.schemas.webhook import Rejection, RejectionReason, VerifiedEvent
from payment_flow.services import stripe_verify
from payment_flow.services.stripe_verify import (
    build_signature_header,
    compute_signature,
    parse_signature_header,
    verify,
)

SECRET = "whsec_test"
NOW = 1_700_000_000
BODY = json.dumps({"id": "evt_1", "type": "payment_intent.succeeded", "object": {}}).encode()


def _flip(hex_sig: str, index: int) -> str:
    replacement = "0" if hex_sig[index] != "0" else "1"
    return hex_sig[:index] + replacement + hex_sig[index + 1 :]


def test_signature_matches_stripe_sdk():
    expected = stripe.WebhookSignature._compute_signature(f"{NOW}.{BODY.decode()}", SECRET)
    assert compute_signature(BODY, SECRET, NOW) == expected


@pytest.mark.parametrize(
    "payload",
    [BODY, b"", b"\x00\xff not utf-8 \xfe", b'{"id": "evt_\\u00e9"}'],
)
def test_valid_signature_returns_payload_unchanged(payload):
    header = build_signature_header(payload, SECRET, NOW)
    result = verify(payload, header, SECRET, now=NOW)
    assert isinstance(result, VerifiedEvent)
    assert result.payload == payload


def test_wrong_secret_is_mismatch():
    header = build_signature_header(BODY, "whsec_other", NOW)
    result = verify(BODY, header, SECRET, now=NOW)
    assert result == Rejection(RejectionReason.SIGNATURE_MISMATCH, "No signature matches the payload")


def test_tampered_body_is_mismatch():
    header = build_signature_header(BODY, SECRET, NOW)
    result = verify(BODY.replace(b"evt_1", b"evt_2"), header, SECRET, now=NOW)
    assert result.reason is RejectionReason.SIGNATURE_MISMATCH


def test_flipping_any_signature_character_is_mismatch():
    signature = compute_signature(BODY, SECRET, NOW)
    for index in range(len(signature)):
        header = f"t={NOW},v1={_flip(signature, index)}"
        result = verify(BODY, header, SECRET, now=NOW)
        assert isinstance(result, Rejection), index
        assert result.reason is RejectionReason.SIGNATURE_MISMATCH


def test_old_timestamp_rejected_even_with_valid_signature():
    ts = NOW - 301
    header = build_signature_header(BODY, SECRET, ts)
    result = verify(BODY, header, SECRET, tolerance=300, now=NOW)
    assert result.reason is RejectionReason.TIMESTAMP_TOO_OLD


def test_timestamp_at_tolerance_edge_accepted():
    header = build_signature_header(BODY, SECRET, NOW - 300)
    assert isinstance(verify(BODY, header, SECRET, tolerance=300, now=NOW), VerifiedEvent)


def test_tolerance_none_skips_freshness_check():
    header = build_signature_header(BODY, SECRET, NOW - 86_400)
    assert isinstance(verify(BODY, header, SECRET, tolerance=None, now=NOW), VerifiedEvent)


def test_old_timestamp_with_bad_signature_reports_mismatch():
    header = f"t={NOW - 1000},v1={'0' * 64}"
    result = verify(BODY, header, SECRET, now=NOW)
    assert result.reason is RejectionReason.SIGNATURE_MISMATCH


def test_rotated_secret_any_v1_matches():
    header = build_signature_header(BODY, SECRET, NOW, extra_signatures=["deadbeef"])
    assert isinstance(verify(BODY, header, SECRET, now=NOW), VerifiedEvent)

    garbage_first = f"t={NOW},v1=deadbeef,v1={compute_signature(BODY, SECRET, NOW)}"
    assert isinstance(verify(BODY, garbage_first, SECRET, now=NOW), VerifiedEvent)


def test_unknown_schemes_are_ignored():
    signature = compute_signature(BODY, SECRET, NOW)
    header = f"t={NOW},v0=legacy,v1={signature},v9=future,junk"
    assert isinstance(verify(BODY, header, SECRET, now=NOW), VerifiedEvent)


@pytest.mark.parametrize(
    "header",
    [
        None,
        "",
        "v1=abc",
        f"t={NOW}",
        f"t={NOW},v0=abc",
        "t=yesterday,v1=abc",
        "garbage",
    ],
)
def test_malformed_headers(header):
    result = verify(BODY, header, SECRET, now=NOW)
    assert isinstance(result, Rejection)
    assert result.reason is RejectionReason.MALFORMED_HEADER


def test_parse_signature_header_collects_all_v1():
    signed = parse_signature_header(BODY, f" t={NOW}, v1=aa ,v1=bb")
    assert signed.timestamp == NOW
    assert signed.signatures == ("aa", "bb")
    assert signed.payload == BODY


def test_verify_uses_clock_when_now_not_given(monkeypatch):
    monkeypatch.setattr(stripe_verify.time, "time", lambda: NOW + 1000)
    header = build_signature_header(BODY, SECRET, NOW)
    assert verify(BODY, header, SECRET).reason is RejectionReason.TIMESTAMP_TOO_OLD


@pytest.mark.parametrize("forged", ["\xff", "caf\xe9", "☃" * 64, "\ud800"])
def test_non_ascii_signature_is_mismatch(forged):
    result = verify(BODY, f"t={NOW},v1={forged}", SECRET, now=NOW)
    assert isinstance(result, Rejection)
    assert result.reason is RejectionReason.SIGNATURE_MISMATCH


def test_non_ascii_garbage_next_to_valid_signature_still_verifies():
    header = f"t={NOW},v1=\xff,v1={compute_signature(BODY, SECRET, NOW)}"
    assert isinstance(verify(BODY, header, SECRET, now=NOW), VerifiedEvent)
