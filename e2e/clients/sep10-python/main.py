"""SEP-10 E2E Test Client.

One-shot client that authenticates a Stellar account against an anchor's
SEP-10 endpoint and outputs a structured JSON result for the e2e test
framework to parse.
"""

import asyncio
import json
import os
import sys

from dotenv import load_dotenv

load_dotenv()

# Get environment variables
auth_endpoint = os.getenv("SEP10_AUTH_ENDPOINT", "")
home_domain = os.getenv("SEP10_HOME_DOMAIN", "")
server_signing_key = os.getenv("SEP10_SIGNING_KEY", "")
stellar_secret = os.getenv("STELLAR_SECRET_KEY", "")
stellar_network = os.getenv("STELLAR_NETWORK", "stellar:testnet")

if not auth_endpoint or not home_domain or not stellar_secret:
    result = {
        "success": False,
        "error": "Missing required environment variables: SEP10_AUTH_ENDPOINT, SEP10_HOME_DOMAIN, STELLAR_SECRET_KEY",
    }
    print(json.dumps(result))
    sys.exit(1)


async def main() -> dict:
    """Authenticate and decode the issued token. Returns the e2e result dict."""
    from anchor_ramp import AnchorError, KeypairSigner, Sep10Authenticator
    from anchor_ramp.sep import Sep10Config
    from anchor_ramp.utils import get_network_passphrase

    signer = KeypairSigner.from_secret(stellar_secret)
    authenticator = Sep10Authenticator(
        Sep10Config(
            auth_endpoint=auth_endpoint,
            network_passphrase=get_network_passphrase(stellar_network),
            home_domain=home_domain,
            server_signing_key=server_signing_key or None,
        )
    )

    try:
        session = await authenticator.authenticate(signer.address, signer)
        payload = session.payload()
        return {
            "success": session.is_authenticated(),
            "data": {"account": session.account, "sub": payload.sub, "exp": payload.exp},
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
