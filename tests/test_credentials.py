import base64
import json

import pytest

from zai_backend.credentials import (
    REQUIRED_FIELDS,
    ServiceAccountBundle,
    decode_service_account,
    encode_service_account,
)
from zai_backend.errors import CredentialError, InvalidJson, MalformedEncoding, MissingFields


def b64(obj) -> str:
    raw = obj if isinstance(obj, str) else json.dumps(obj)
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def test_decode_round_trips_field_values(service_account_info, service_account_b64):
    bundle = decode_service_account(service_account_b64)
    assert isinstance(bundle, ServiceAccountBundle)
    assert bundle.account_type == service_account_info["type"]
    assert bundle.project_id == service_account_info["project_id"]
    assert bundle.private_key_id == service_account_info["private_key_id"]
    assert bundle.private_key == service_account_info["private_key"]
    assert bundle.client_email == service_account_info["client_email"]


def test_decode_tolerates_line_wrapped_base64(service_account_b64):
    wrapped = "\n".join(service_account_b64[i:i + 76] for i in range(0, len(service_account_b64), 76))
    assert decode_service_account(wrapped + "\n").client_email.endswith("iam.gserviceaccount.com")


@pytest.mark.parametrize("missing", [["client_email"], ["private_key"], ["private_key", "client_email"]])
def test_missing_fields_are_named_exactly(service_account_info, missing):
    info = {k: v for k, v in service_account_info.items() if k not in missing}
    with pytest.raises(MissingFields) as ei:
        decode_service_account(b64(info))
    assert ei.value.fields == missing
    assert str(ei.value) == f"Missing required fields: {', '.join(missing)}"


def test_missing_fields_follow_check_order_and_treat_empty_as_missing():
    with pytest.raises(MissingFields) as ei:
        decode_service_account(b64({"client_email": "", "private_key": "k", "type": "service_account"}))
    assert ei.value.fields == ["project_id", "private_key_id", "client_email"]
    assert list(REQUIRED_FIELDS) == ["type", "project_id", "private_key_id", "private_key", "client_email"]


def test_invalid_json_includes_parser_detail():
    with pytest.raises(InvalidJson) as ei:
        decode_service_account(b64("{not json"))
    assert str(ei.value).startswith("Invalid JSON in BASE64 string:")
    assert "line 1" in str(ei.value)


def test_json_that_is_not_an_object_is_invalid():
    with pytest.raises(InvalidJson):
        decode_service_account(b64("[1, 2, 3]"))


@pytest.mark.parametrize("value", ["%%%not-base64%%%", "abc", ""])
def test_malformed_base64_is_malformed_encoding(value):
    with pytest.raises(MalformedEncoding):
        decode_service_account(value)


def test_non_utf8_payload_is_malformed_encoding():
    value = base64.b64encode(b"\xff\xfe\xfa\x00").decode("ascii")
    with pytest.raises(MalformedEncoding):
        decode_service_account(value)


def test_all_decode_failures_share_credential_error_base():
    for value in ["", b64("nope"), b64({})]:
        with pytest.raises(CredentialError):
            decode_service_account(value)


def test_encode_service_account_validates_and_encodes(service_account_info):
    raw = json.dumps(service_account_info)
    encoded = encode_service_account(raw)
    assert base64.b64decode(encoded).decode("utf-8") == raw
    assert decode_service_account(encoded).client_email == service_account_info["client_email"]


def test_encode_service_account_rejects_incomplete_json():
    with pytest.raises(MissingFields) as ei:
        encode_service_account(json.dumps({"type": "service_account"}))
    assert ei.value.fields == ["project_id", "private_key_id", "private_key", "client_email"]
