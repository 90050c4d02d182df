"""Anchor Ramp E2E Test Client.

One-shot client that requests a quote from a sandbox anchor provider and
outputs a structured JSON result for the e2e test framework to parse.
Provider credentials are read by RampSettings.from_env().
"""

import asyncio
import json
import os
import sys

from dotenv import load_dotenv

load_dotenv()

# Get environment variables
provider = os.getenv("RAMP_PROVIDER", "")
customer_id = os.getenv("RAMP_CUSTOMER_ID", "")
from_currency = os.getenv("RAMP_FROM_CURRENCY", "MXN")
to_currency = os.getenv("RAMP_TO_CURRENCY", "USDC")
amount = os.getenv("RAMP_AMOUNT", "100")
stellar_address = os.getenv("STELLAR_ADDRESS", "")

if not provider:
    result = {
        "success": False,
        "error": "Missing required environment variables: RAMP_PROVIDER",
    }
    print(json.dumps(result))
    sys.exit(1)


async def main() -> dict:
    """Request a quote through the ramp engine. Returns the e2e result dict."""
    from anchor_ramp import AnchorError, RampEngine, RampSettings, create_anchor
    from anchor_ramp.quotes import expires_in
    from anchor_ramp.types import GetQuoteInput

    settings = RampSettings.from_env()

    try:
        engine = RampEngine(
            create_anchor(provider, settings),
            network=settings.stellar_network,
            poll_interval=settings.poll_interval,
            poll_timeout=settings.poll_timeout,
        )
        quote = await engine.get_quote(
            GetQuoteInput(
                from_currency=from_currency,
                to_currency=to_currency,
                from_amount=amount,
                customer_id=customer_id or None,
                stellar_address=stellar_address or None,
            )
        )
        return {
            "success": True,
            "data": {**quote.to_dict(), "expiresIn": expires_in(quote)},
            "status_code": 200,
        }
    except AnchorError as e:
        return {
            "success": False,
            "error": e.message,
            "code": e.code,
            "status_code": e.status_code,
        }


if __name__ == "__main__":
    e2e_result = asyncio.run(main())
    print(json.dumps(e2e_result))
    sys.exit(0 if e2e_result.get("success") else 1)
