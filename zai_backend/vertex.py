from typing import Any, Callable, Dict, Optional
import logging
import time

import requests
from google.auth import crypt
from google.auth import jwt as google_jwt

from .credentials import ServiceAccountBundle, decode_service_account
from .errors import (
    InvalidPrivateKey,
    TokenExchangeFailed,
    TokenMissing,
    UpstreamError,
    UpstreamTimeout,
)
from .services.token_cache import DEFAULT_TOKEN_TTL_SECONDS, TokenCache
from .telemetry.events import log_event, truncate_for_log

TOKEN_URL = "https://oauth2.googleapis.com/token"
CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
ASSERTION_LIFETIME_SECONDS = 3600

# Fixed generation parameters; temperature is per-request
MAX_OUTPUT_TOKENS = 2048
TOP_P = 0.8
TOP_K = 40

DEFAULT_TIMEOUT_SECONDS = 30.0
ERROR_BODY_LOG_CAP = 2048


def vertex_host(location: str) -> str:
    return "aiplatform.googleapis.com" if str(location).lower() == "global" else f"{location}-aiplatform.googleapis.com"


def generate_content_url(project: str, location: str, model_id: str) -> str:
    return (
        f"https://{vertex_host(location)}/v1/projects/{project}"
        f"/locations/{location}/publishers/google/models/{model_id}:generateContent"
    )


def build_generate_body(prompt: str, system_prompt: str, temperature: float) -> Dict[str, Any]:
    return {
        "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        "systemInstruction": {"parts": [{"text": system_prompt}]},
        "generationConfig": {
            "temperature": temperature,
            "maxOutputTokens": MAX_OUTPUT_TOKENS,
            "topP": TOP_P,
            "topK": TOP_K,
        },
    }


class VertexClient:
    """REST client for Vertex AI authenticated with a service-account bundle.

    Owns a single-slot TokenCache. A client is meant to serve one caller at a
    time; build a new one per request rather than sharing it across threads.
    """

    def __init__(
        self,
        project: Optional[str],
        region: str,
        credentials_b64: Optional[str],
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        token_cache: Optional[TokenCache] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.logger = logging.getLogger("zai_backend.vertex")
        self.project = project
        self.region = region
        self.credentials_b64 = credentials_b64
        self._owns_session = session is None
        self.session = session or requests.Session()
        self.timeout = timeout
        self.clock = clock
        self.token_cache = token_cache or TokenCache(clock=clock)

    def close(self) -> None:
        """Release the HTTP session if this client created it."""
        if self._owns_session:
            self.session.close()

    # -------- Credentials / token --------
    def _load_bundle(self) -> ServiceAccountBundle:
        return decode_service_account(self.credentials_b64 or "")

    def project_id(self) -> str:
        """Configured project, or the bundle's own project_id when unset."""
        if self.project:
            return self.project
        return self._load_bundle().project_id

    def build_assertion(self, bundle: ServiceAccountBundle) -> str:
        """Sign the JWT-bearer assertion (RS256) for the token endpoint."""
        now = int(self.clock())
        payload = {
            "iss": bundle.client_email,
            "scope": CLOUD_PLATFORM_SCOPE,
            "aud": TOKEN_URL,
            "exp": now + ASSERTION_LIFETIME_SECONDS,
            "iat": now,
        }
        try:
            signer = crypt.RSASigner.from_string(bundle.private_key)
        except (ValueError, TypeError, IndexError) as e:
            raise InvalidPrivateKey(f"Unable to load private key: {e}") from e
        assertion = google_jwt.encode(signer, payload)
        return assertion.decode("utf-8") if isinstance(assertion, bytes) else assertion

    def _post(self, url: str, **kwargs) -> requests.Response:
        try:
            return self.session.post(url, timeout=self.timeout, **kwargs)
        except requests.Timeout as e:
            raise UpstreamTimeout(f"Request to {url} timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise UpstreamError(f"Request to {url} failed: {e}") from e

    def get_access_token(self) -> str:
        cached = self.token_cache.get()
        if cached:
            return cached

        bundle = self._load_bundle()
        assertion = self.build_assertion(bundle)
        started = time.time()
        r = self._post(
            TOKEN_URL,
            data={"grant_type": JWT_BEARER_GRANT, "assertion": assertion},
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        latency_ms = int((time.time() - started) * 1000)
        if not 200 <= r.status_code < 300:
            log_event(
                self.logger,
                "token_mint",
                level="warning",
                caps={"body": ERROR_BODY_LOG_CAP},
                status="error",
                http=r.status_code,
                body=r.text,
                clientEmail=bundle.client_email,
                latencyMs=latency_ms,
            )
            raise TokenExchangeFailed(r.status_code, r.text)

        try:
            data = r.json()
        except ValueError:
            data = {}
        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise TokenMissing("No access token received")

        expires_in = data.get("expires_in", DEFAULT_TOKEN_TTL_SECONDS)
        self.token_cache.set(token, expires_in)
        log_event(
            self.logger,
            "token_mint",
            status="ok",
            clientEmail=bundle.client_email,
            expiresIn=expires_in,
            latencyMs=latency_ms,
        )
        return token

    # -------- Generation --------
    def generate_content(self, model_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """POST generateContent and return the decoded JSON payload.

        Raises UpstreamError (with status_code) on non-2xx responses.
        """
        token = self.get_access_token()
        url = generate_content_url(self.project_id(), self.region, model_id)
        started = time.time()
        r = self._post(
            url,
            json=body,
            headers={"Content-Type": "application/json", "Authorization": f"Bearer {token}"},
        )
        latency_ms = int((time.time() - started) * 1000)
        ok = 200 <= r.status_code < 300
        log_event(
            self.logger,
            "vertex_generate",
            level="info" if ok else "warning",
            url=url,
            modelId=model_id,
            location=self.region,
            http=r.status_code,
            latencyMs=latency_ms,
        )
        if not ok:
            if r.status_code == 401:
                # Token was rejected; force a re-mint on the next call
                self.token_cache.clear()
            raise UpstreamError(f"Vertex AI API error: {r.status_code} - {r.text}", status_code=r.status_code)
        try:
            return r.json()
        except ValueError as e:
            raise UpstreamError(
                f"Vertex AI returned a non-JSON body: {truncate_for_log(r.text, 200)}",
                status_code=r.status_code,
            ) from e


__all__ = [
    "TOKEN_URL",
    "CLOUD_PLATFORM_SCOPE",
    "JWT_BEARER_GRANT",
    "MAX_OUTPUT_TOKENS",
    "TOP_P",
    "TOP_K",
    "vertex_host",
    "generate_content_url",
    "build_generate_body",
    "VertexClient",
]
