import logging
from typing import Any, Dict, List, Optional, Tuple

from ..errors import (
    CredentialError,
    EmptyResponse,
    GatewayError,
    GenerationValidationError,
    SafetyBlocked,
    TokenError,
    TokenLimitExceeded,
    UnextractableResponse,
    UpstreamError,
)
from ..models import GenerationRequest, GenerationResponse
from ..persona import (
    DEFAULT_SYSTEM_PROMPT,
    RESPONSE_TOO_LONG_MESSAGE,
    SAFETY_BLOCKED_MESSAGE,
    TRUNCATION_NOTICE,
)
from ..telemetry.events import log_event
from ..vertex import VertexClient as DefaultVertexClient, build_generate_body
from .response_parser import FINISH_MAX_TOKENS, FINISH_SAFETY, extract_text, finish_reason

MIN_TEMPERATURE = 0.0
MAX_TEMPERATURE = 2.0
SYSTEM_PROMPT_MAX_CHARS = 2000


class VertexGateway:
    """Validated, fallback-aware generation on top of VertexClient.

    generate() never raises: every failure (validation, credentials, token
    exchange, upstream HTTP, unusable candidates) comes back as a
    GenerationResponse with `error` and `error_code` set. Validation failures
    are detected before any network call.

    Fallback policy: when the upstream rejects a request with HTTP 400 and the
    model is not the fallback model, the same request is retried once with the
    fallback model. The fallback attempt itself never retries.
    """

    def __init__(
        self,
        project: Optional[str],
        region: str,
        credentials_b64: Optional[str],
        default_model: str,
        allowed_models: Optional[List[str]] = None,
        fallback_model: Optional[str] = None,
        default_temperature: float = 1.5,
        default_system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        client: Any = None,
        client_cls=None,
        session=None,
        timeout: Optional[float] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.default_model = default_model
        self.fallback_model = fallback_model or None
        allowed = [m for m in (allowed_models or []) if m]
        for m in (default_model, self.fallback_model):
            if m and m not in allowed:
                allowed.append(m)
        self.allowed_models = allowed
        self.default_temperature = default_temperature
        self.default_system_prompt = default_system_prompt
        self.logger = logger or logging.getLogger("zai_backend.gateway")
        self.last_model_used: Optional[str] = None

        if client is None:
            kwargs: Dict[str, Any] = {"project": project, "region": region, "credentials_b64": credentials_b64}
            if session is not None:
                kwargs["session"] = session
            if timeout is not None:
                kwargs["timeout"] = timeout
            client = (client_cls or DefaultVertexClient)(**kwargs)
        self.client = client

    def get_access_token(self) -> str:
        return self.client.get_access_token()

    def close(self) -> None:
        close = getattr(self.client, "close", None)
        if close is not None:
            close()

    def validate(self, request: GenerationRequest) -> Optional[GenerationResponse]:
        """Return the ValidationError outcome for `request`, or None if it is acceptable."""
        try:
            self._validate(request)
        except GenerationValidationError as e:
            return GenerationResponse.failure(e.message, e.tag)
        return None

    # -------- Validation --------
    def _validate(self, request: GenerationRequest) -> Tuple[str, str, float, str]:
        prompt = request.prompt
        if not isinstance(prompt, str) or not prompt.strip():
            raise GenerationValidationError("Prompt cannot be empty")

        model = self.default_model if request.model is None else request.model
        if not isinstance(model, str) or model not in self.allowed_models:
            raise GenerationValidationError(
                f"Invalid model '{model}'. Allowed models: {', '.join(self.allowed_models)}"
            )

        temperature = self.default_temperature if request.temperature is None else request.temperature
        if (
            isinstance(temperature, bool)
            or not isinstance(temperature, (int, float))
            or not MIN_TEMPERATURE <= temperature <= MAX_TEMPERATURE
        ):
            raise GenerationValidationError(
                f"Temperature must be a number between {MIN_TEMPERATURE:g} and {MAX_TEMPERATURE:g}"
            )

        system_prompt = self.default_system_prompt if request.system_prompt is None else request.system_prompt
        if not isinstance(system_prompt, str) or not 1 <= len(system_prompt) <= SYSTEM_PROMPT_MAX_CHARS:
            raise GenerationValidationError(
                f"System prompt must be between 1 and {SYSTEM_PROMPT_MAX_CHARS} characters"
            )

        return prompt, model, float(temperature), system_prompt

    # -------- Dispatch --------
    def _dispatch(self, model: str, body: Dict[str, Any]) -> Tuple[Dict[str, Any], str]:
        current = model
        fallback_attempted = False
        while True:
            self.last_model_used = current
            try:
                return self.client.generate_content(current, body), current
            except UpstreamError as e:
                can_fallback = (
                    not fallback_attempted
                    and e.status_code == 400
                    and bool(self.fallback_model)
                    and current != self.fallback_model
                )
                if not can_fallback:
                    raise
                log_event(
                    self.logger,
                    "vertex_model_fallback",
                    failedModel=current,
                    next=self.fallback_model,
                    http=e.status_code,
                )
                fallback_attempted = True
                current = self.fallback_model

    @staticmethod
    def _interpret(data: Any, model: str) -> GenerationResponse:
        candidates = data.get("candidates") if isinstance(data, dict) else None
        if not isinstance(candidates, list) or not candidates:
            raise EmptyResponse("No candidates returned from Vertex AI")

        candidate = candidates[0]
        reason = finish_reason(candidate)
        if reason == FINISH_SAFETY:
            raise SafetyBlocked(SAFETY_BLOCKED_MESSAGE)

        text = extract_text(candidate)
        if reason == FINISH_MAX_TOKENS:
            if text.strip():
                return GenerationResponse.success(text + TRUNCATION_NOTICE, model=model, finish_reason=reason)
            raise TokenLimitExceeded(RESPONSE_TOO_LONG_MESSAGE)

        if not text.strip():
            raise UnextractableResponse("Unable to extract response text from Vertex AI response")
        return GenerationResponse.success(text, model=model, finish_reason=reason)

    def generate(self, request: GenerationRequest) -> GenerationResponse:
        try:
            prompt, model, temperature, system_prompt = self._validate(request)
        except GenerationValidationError as e:
            return GenerationResponse.failure(e.message, e.tag)

        body = build_generate_body(prompt, system_prompt, temperature)
        try:
            data, used_model = self._dispatch(model, body)
            result = self._interpret(data, used_model)
        except (CredentialError, TokenError) as e:
            result = GenerationResponse.failure(
                f"Failed to get access token: {e.message}", e.tag, model=self.last_model_used
            )
        except (SafetyBlocked, TokenLimitExceeded) as e:
            result = GenerationResponse.failure(
                e.message,
                e.tag,
                model=self.last_model_used,
                finish_reason=FINISH_SAFETY if isinstance(e, SafetyBlocked) else FINISH_MAX_TOKENS,
            )
        except GatewayError as e:
            result = GenerationResponse.failure(e.message, e.tag, model=self.last_model_used)
        except Exception as e:
            self.logger.exception("Vertex gateway unexpected error")
            result = GenerationResponse.failure(str(e) or e.__class__.__name__, UpstreamError.tag, model=self.last_model_used)

        log_event(
            self.logger,
            "generation_result",
            level="info" if result.ok else "warning",
            caps={"error": 512},
            status="ok" if result.ok else "error",
            requestedModel=model,
            modelUsed=result.model,
            finishReason=result.finish_reason,
            errorCode=result.error_code,
            error=result.error,
            responseLen=len(result.response),
        )
        return result


__all__ = ["VertexGateway", "MIN_TEMPERATURE", "MAX_TEMPERATURE", "SYSTEM_PROMPT_MAX_CHARS"]
