#!/usr/bin/env python3
"""Print a Stripe-Signature header for a payload, for poking /webhook locally.

    curl -X POST localhost:4242/webhook \
        -H "Stripe-Signature: $(python scripts/make_sig.py "$SECRET" "$PAYLOAD")" \
        -d "$PAYLOAD"

Pass --timestamp to replay an old delivery and --extra-signature to mimic a
secret rollover, where Stripe sends one v1 per active secret.
"""

import argparse
import json
import sys

from payment_flow.services.stripe_verify import build_signature_header


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Sign a webhook payload")
    parser.add_argument("secret", help="webhook signing secret (whsec_...)")
    parser.add_argument("payload", help="event JSON exactly as it will be sent")
    parser.add_argument("--timestamp", type=int, help="unix time to sign with (default: now)")
    parser.add_argument(
        "--extra-signature",
        action="append",
        default=[],
        metavar="HEX",
        help="additional v1 value to append; repeatable",
    )
    args = parser.parse_args(argv)

    try:
        json.loads(args.payload)
    except json.JSONDecodeError as e:
        print(f"Payload is not JSON: {e}", file=sys.stderr)
        return 1

    print(
        build_signature_header(
            args.payload.encode("utf-8"),
            args.secret,
            timestamp=args.timestamp,
            extra_signatures=args.extra_signature,
        )
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
