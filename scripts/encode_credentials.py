#!/usr/bin/env python3
"""
Encode a service-account JSON key file to BASE64 for GCP_SERVICE_ACCOUNT_BASE64.

Usage:
  python scripts/encode_credentials.py service-account.json

The file must contain type, project_id, private_key_id, private_key and
client_email. Copy the printed value into your .env / deployment settings.

Exit codes:
  0 = success
  1 = file missing, invalid JSON, or missing fields
  2 = no file path given
"""
from __future__ import annotations

import os
import sys

from zai_backend.credentials import encode_service_account
from zai_backend.errors import CredentialError


def main(argv: list[str]) -> int:
    if len(argv) < 2:
        print("[encode] No file path given.", file=sys.stderr)
        print("[encode] Usage: python scripts/encode_credentials.py <path-to-json-file>", file=sys.stderr)
        return 2

    path = argv[1]
    if not os.path.exists(path):
        print(f"[encode] File not found: {path}", file=sys.stderr)
        return 1

    with open(path, "r", encoding="utf-8") as fh:
        raw = fh.read()

    try:
        encoded = encode_service_account(raw)
    except CredentialError as e:
        print(f"[encode] Service account JSON is not valid: {e}", file=sys.stderr)
        return 1

    print("[encode] Service account encoded. Set GCP_SERVICE_ACCOUNT_BASE64 to:\n")
    print("=" * 80)
    print(encoded)
    print("=" * 80)
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
