"""
Error taxonomy for the Vertex AI proxy.

Lower layers (credential decoding, token exchange, HTTP dispatch) raise these;
the gateway converts them into a structured GenerationResponse using `tag` as
the caller-visible error code. The HTTP layer maps tags to status codes.
"""
from __future__ import annotations

from typing import Optional, Sequence


class GatewayError(Exception):
    tag = "GatewayError"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


# -------- Credential decoding --------
class CredentialError(GatewayError):
    tag = "CredentialError"


class MalformedEncoding(CredentialError):
    tag = "MalformedEncoding"


class InvalidJson(CredentialError):
    tag = "InvalidJson"


class MissingFields(CredentialError):
    tag = "MissingFields"

    def __init__(self, fields: Sequence[str]):
        self.fields = list(fields)
        super().__init__(f"Missing required fields: {', '.join(self.fields)}")


class InvalidPrivateKey(CredentialError):
    tag = "InvalidPrivateKey"


# -------- Token exchange --------
class TokenError(GatewayError):
    tag = "TokenError"


class TokenExchangeFailed(TokenError):
    tag = "TokenExchangeFailed"

    def __init__(self, status_code: int, body: str):
        self.body = body
        super().__init__(f"Token endpoint returned HTTP {status_code}: {body}", status_code=status_code)


class TokenMissing(TokenError):
    tag = "TokenMissing"


# -------- Generation --------
class GenerationValidationError(GatewayError):
    tag = "ValidationError"


class UpstreamError(GatewayError):
    tag = "UpstreamError"


class UpstreamTimeout(UpstreamError):
    tag = "UpstreamTimeout"


class EmptyResponse(GatewayError):
    tag = "EmptyResponse"


class UnextractableResponse(GatewayError):
    tag = "UnextractableResponse"


class TokenLimitExceeded(GatewayError):
    tag = "TokenLimitExceeded"


class SafetyBlocked(GatewayError):
    tag = "SafetyBlocked"


__all__ = [
    "GatewayError",
    "CredentialError",
    "MalformedEncoding",
    "InvalidJson",
    "MissingFields",
    "InvalidPrivateKey",
    "TokenError",
    "TokenExchangeFailed",
    "TokenMissing",
    "GenerationValidationError",
    "UpstreamError",
    "UpstreamTimeout",
    "EmptyResponse",
    "UnextractableResponse",
    "TokenLimitExceeded",
    "SafetyBlocked",
]
