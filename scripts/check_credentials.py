#!/usr/bin/env python3
"""
Inspect the configured service account and optionally mint an access token.

What it does:
- Decodes GCP_SERVICE_ACCOUNT_BASE64 and prints the account identity
- Reports which of the backend's environment variables are set
- With --mint-token, performs the JWT-bearer exchange against the OAuth
  token endpoint and prints a redacted token

Usage:
  export GCP_SERVICE_ACCOUNT_BASE64=...
  python scripts/check_credentials.py [--mint-token]

Exit codes:
  0 = credentials decoded (and token minted when requested)
  1 = token exchange failed
  2 = configuration issue (missing or undecodable credentials)
"""
from __future__ import annotations

import json
import os
import sys

from zai_backend.credentials import decode_service_account
from zai_backend.errors import CredentialError, GatewayError
from zai_backend.telemetry.events import redact_secret
from zai_backend.vertex import VertexClient

ENV_VARS = [
    "GCP_PROJECT_ID",
    "GCP_SERVICE_ACCOUNT_BASE64",
    "GCP_LOCATION",
    "VERTEX_DEFAULT_MODEL",
    "VERTEX_FALLBACK_MODEL",
    "ALLOWED_ORIGIN",
]


def main(argv: list[str]) -> int:
    mint = "--mint-token" in argv[1:]

    print("[check] Environment:")
    for name in ENV_VARS:
        print(f"  {name}: {'set' if os.getenv(name) else 'not set'}")

    encoded = os.getenv("GCP_SERVICE_ACCOUNT_BASE64", "")
    try:
        bundle = decode_service_account(encoded)
    except CredentialError as e:
        print(f"[check] {e.tag}: {e}", file=sys.stderr)
        return 2

    print(json.dumps({
        "type": bundle.account_type,
        "clientEmail": bundle.client_email,
        "projectId": bundle.project_id,
        "privateKeyId": redact_secret(bundle.private_key_id),
    }, indent=2))

    if not mint:
        return 0

    client = VertexClient(
        project=os.getenv("GCP_PROJECT_ID") or bundle.project_id,
        region=os.getenv("GCP_LOCATION", "us-central1"),
        credentials_b64=encoded,
    )
    try:
        token = client.get_access_token()
    except GatewayError as e:
        print(f"[check] Token exchange failed ({e.tag}): {e}", file=sys.stderr)
        return 1
    finally:
        client.close()
    print(f"[check] Access token minted: {redact_secret(token)}")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
