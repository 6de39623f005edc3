"""
Service-account credential decoding.

The bundle is stored in configuration as base64-encoded JSON (see
scripts/encode_credentials.py). Decoding is pure: nothing is cached or logged
here, callers keep the result only as long as they need to sign an assertion.
"""
from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass

from .errors import InvalidJson, MalformedEncoding, MissingFields

# Check order matters: MissingFields lists absent fields in this order.
REQUIRED_FIELDS = ("type", "project_id", "private_key_id", "private_key", "client_email")


@dataclass(frozen=True)
class ServiceAccountBundle:
    account_type: str
    project_id: str
    private_key_id: str
    private_key: str
    client_email: str


def _missing_fields(info: dict) -> list[str]:
    return [f for f in REQUIRED_FIELDS if not info.get(f)]


def decode_service_account(encoded: str) -> ServiceAccountBundle:
    """Decode a base64 service-account bundle.

    Raises MalformedEncoding (bad base64 / not UTF-8 / empty value),
    InvalidJson (decoded text is not a JSON object) or MissingFields.
    """
    if not encoded or not str(encoded).strip():
        raise MalformedEncoding("GCP_SERVICE_ACCOUNT_BASE64 is not set")

    # Tolerate line-wrapped values (base64 without -w 0)
    compact = "".join(str(encoded).split())
    try:
        raw = base64.b64decode(compact, validate=True)
        text = raw.decode("utf-8")
    except (binascii.Error, ValueError) as e:
        raise MalformedEncoding(f"Failed to decode credentials: {e}") from e

    try:
        info = json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidJson(f"Invalid JSON in BASE64 string: {e}") from e
    if not isinstance(info, dict):
        raise InvalidJson(f"Invalid JSON in BASE64 string: expected an object, got {type(info).__name__}")

    missing = _missing_fields(info)
    if missing:
        raise MissingFields(missing)

    return ServiceAccountBundle(
        account_type=info["type"],
        project_id=info["project_id"],
        private_key_id=info["private_key_id"],
        private_key=info["private_key"],
        client_email=info["client_email"],
    )


def encode_service_account(raw_json: str) -> str:
    """Validate a service-account JSON document and return it base64-encoded."""
    try:
        info = json.loads(raw_json)
    except json.JSONDecodeError as e:
        raise InvalidJson(f"Invalid JSON: {e}") from e
    if not isinstance(info, dict):
        raise InvalidJson("Invalid JSON: expected an object")
    missing = _missing_fields(info)
    if missing:
        raise MissingFields(missing)
    return base64.b64encode(raw_json.encode("utf-8")).decode("ascii")


__all__ = ["REQUIRED_FIELDS", "ServiceAccountBundle", "decode_service_account", "encode_service_account"]
