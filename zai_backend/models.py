from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    """Request model for POST /api/chat.

    Only the prompt is checked here; model, temperature and systemPrompt are
    validated by the gateway so the caller gets the gateway's error messages.
    """

    prompt: str = Field(min_length=1, description="User prompt")
    model: Optional[str] = Field(default=None, description="Model id from the allow-list")
    # Untyped so the gateway sees the raw JSON value (true, "1.5", ...)
    temperature: Optional[Any] = Field(default=None, description="Sampling temperature in [0, 2]")
    systemPrompt: Optional[str] = Field(
        default=None, description="System instruction override (1-2000 chars)"
    )


class EchoRequest(BaseModel):
    prompt: str = Field(min_length=1, description="Prompt echoed back in test mode")


@dataclass(frozen=True)
class GenerationRequest:
    prompt: Any
    model: Any = None
    temperature: Any = None
    system_prompt: Any = None


@dataclass(frozen=True)
class GenerationResponse:
    """Outcome of one gateway call.

    Exactly one of `response` / `error` is meaningful: when `error` is set,
    `response` is "". `error_code` is the taxonomy tag (e.g. SafetyBlocked)
    and `error` the human-readable message.
    """

    response: str = ""
    error: Optional[str] = None
    error_code: Optional[str] = None
    model: Optional[str] = None
    finish_reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, text: str, *, model: Optional[str] = None, finish_reason: Optional[str] = None) -> "GenerationResponse":
        return cls(response=text, model=model, finish_reason=finish_reason)

    @classmethod
    def failure(
        cls,
        message: str,
        error_code: str,
        *,
        model: Optional[str] = None,
        finish_reason: Optional[str] = None,
    ) -> "GenerationResponse":
        return cls(response="", error=message, error_code=error_code, model=model, finish_reason=finish_reason)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"response": self.response}
        if self.error is not None:
            out["error"] = self.error
            out["errorCode"] = self.error_code
        return out


__all__ = ["ChatRequest", "EchoRequest", "GenerationRequest", "GenerationResponse"]
