import json
import logging
import os
import time
import uuid
from datetime import datetime, timezone

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .models import ChatRequest, EchoRequest, GenerationRequest
from .persona import DEFAULT_SYSTEM_PROMPT as BUILTIN_SYSTEM_PROMPT
from .services.vertex_gateway import VertexGateway
from .telemetry.events import log_event
from .vertex import VertexClient

SERVICE_NAME = "Z AI Backend"

# Environment configuration with sensible defaults
PROJECT_ID = os.getenv("GCP_PROJECT_ID")
LOCATION = os.getenv("GCP_LOCATION", "us-central1")
DEFAULT_MODEL = os.getenv("VERTEX_DEFAULT_MODEL", "gemini-2.5-flash")
allowed_models = os.getenv(
    "VERTEX_ALLOWED_MODELS",
    "gemini-2.5-flash,gemini-2.5-pro,gemini-2.5-flash-lite,gemini-2.0-flash,gemini-2.0-flash-lite",
).split(",")
ALLOWED_MODELS = [m.strip() for m in allowed_models if m.strip()]
# Model used for the single automatic retry after an upstream HTTP 400
FALLBACK_MODEL = os.getenv("VERTEX_FALLBACK_MODEL", "gemini-2.0-flash").strip() or None
DEFAULT_TEMPERATURE = float(os.getenv("DEFAULT_TEMPERATURE", "1.5"))
DEFAULT_SYSTEM_PROMPT = os.getenv("DEFAULT_SYSTEM_PROMPT") or BUILTIN_SYSTEM_PROMPT
SERVICE_ACCOUNT_BASE64 = os.getenv("GCP_SERVICE_ACCOUNT_BASE64")
HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))
ALLOWED_ORIGINS = [o.strip() for o in os.getenv("ALLOWED_ORIGIN", "https://zverse.my.id").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "info").upper()
LOG_REQUEST_BODY_MAX = int(os.getenv("LOG_REQUEST_BODY_MAX", "1024"))
EXPOSE_UPSTREAM_ERROR = os.getenv("EXPOSE_UPSTREAM_ERROR", "false").lower() == "true"

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("zai_backend")

app = FastAPI(title="Z AI Backend (Vertex AI)", version="1.0.0")

if ALLOWED_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=3600,
    )

# Gateway error tag -> HTTP status for /api/chat failures
ERROR_STATUS = {
    "ValidationError": 400,
    "MalformedEncoding": 500,
    "InvalidJson": 500,
    "MissingFields": 500,
    "InvalidPrivateKey": 500,
    "TokenExchangeFailed": 502,
    "TokenMissing": 502,
    "UpstreamError": 502,
    "UpstreamTimeout": 504,
    "EmptyResponse": 502,
    "UnextractableResponse": 502,
}
# Failures that carry a message meant for the end user; rendered as a 200 reply
USER_FACING_ERRORS = {"SafetyBlocked", "TokenLimitExceeded"}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _get_request_id(request: Request) -> str:
    h = request.headers.get("x-cloud-trace-context") or request.headers.get("x-request-id")
    if h:
        return h
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def _build_gateway() -> VertexGateway:
    # One gateway (and token cache) per request; nothing is shared between requests
    return VertexGateway(
        project=PROJECT_ID,
        region=LOCATION,
        credentials_b64=SERVICE_ACCOUNT_BASE64,
        default_model=DEFAULT_MODEL,
        allowed_models=ALLOWED_MODELS,
        fallback_model=FALLBACK_MODEL,
        default_temperature=DEFAULT_TEMPERATURE,
        default_system_prompt=DEFAULT_SYSTEM_PROMPT,
        client_cls=VertexClient,
        timeout=HTTP_TIMEOUT_SECONDS,
    )


# Exception handlers to surface consistent errors with request correlation
@app.exception_handler(HTTPException)
async def on_http_exception(request: Request, exc: HTTPException):
    req_id = _get_request_id(request)
    log_event(
        logger,
        "http_exception",
        level="warning",
        status=exc.status_code,
        detail=exc.detail,
        requestId=req_id,
        path=request.url.path,
        method=request.method,
    )

    if isinstance(exc.detail, dict):
        base = exc.detail.get("error", exc.detail).copy()
    elif isinstance(exc.detail, list):
        base = {"errors": exc.detail}
    else:
        base = {"message": str(exc.detail)}

    base.setdefault("message", "")
    base.setdefault("code", exc.status_code)
    base.setdefault("requestId", req_id)

    return JSONResponse(status_code=exc.status_code, content={"error": base})


@app.exception_handler(RequestValidationError)
async def on_validation_error(request: Request, exc: RequestValidationError):
    req_id = _get_request_id(request)
    # Pydantic error entries may carry non-JSON context (e.g. exceptions); keep it printable
    errors = json.loads(json.dumps(exc.errors(), default=str))
    fields = []
    for err in errors:
        loc = [str(p) for p in err.get("loc", []) if p != "body"]
        if loc and loc[-1] not in fields:
            fields.append(loc[-1])
    message = f"Invalid request body: {', '.join(fields)}" if fields else "Invalid request body"
    log_event(
        logger,
        "request_validation_error",
        level="warning",
        errors=errors,
        requestId=req_id,
        path=request.url.path,
        method=request.method,
    )
    return JSONResponse(
        status_code=422,
        content={"error": {
            "message": message,
            "code": 422,
            "requestId": req_id,
            "errors": errors,
        }},
    )


@app.exception_handler(Exception)
async def on_unhandled_exception(request: Request, exc: Exception):
    req_id = _get_request_id(request)
    logger.exception("Unhandled application exception: %s", exc)
    log_event(
        logger,
        "unhandled_exception",
        level="error",
        error=str(exc),
        requestId=req_id,
        path=request.url.path,
        method=request.method,
    )
    return JSONResponse(status_code=500,
                        content={"error": {"message": "Internal server error", "code": 500, "requestId": req_id}})


# Structured request logging with request id and capped body preview
@app.middleware("http")
async def log_requests(request: Request, call_next):
    req_id = request.headers.get("x-cloud-trace-context") or request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = req_id
    start = time.time()

    body_logged = None
    if request.method in ("POST", "PUT", "PATCH"):
        body_bytes = await request.body()
        if body_bytes:
            preview = body_bytes[:LOG_REQUEST_BODY_MAX]
            try:
                body_logged = json.loads(preview.decode("utf-8"))
                # systemPrompt may hold customer instructions; keep only its size
                if isinstance(body_logged, dict) and isinstance(body_logged.get("systemPrompt"), str):
                    body_logged["systemPrompt"] = f"<{len(body_logged['systemPrompt'])} chars>"
            except (UnicodeDecodeError, ValueError):
                body_logged = preview.decode("utf-8", errors="replace")

    log_event(
        logger,
        "request_start",
        method=request.method,
        path=request.url.path,
        client=request.client.host if request.client else None,
        requestId=req_id,
        body=body_logged,
    )

    try:
        response = await call_next(request)
    except Exception as e:
        log_event(
            logger,
            "request_error",
            level="error",
            requestId=req_id,
            latencyMs=int((time.time() - start) * 1000),
            error=str(e),
        )
        raise

    response.headers["x-request-id"] = req_id
    status_code = response.status_code
    level = "error" if status_code >= 500 else "warning" if status_code >= 400 else "info"
    log_event(
        logger,
        "request_end",
        level=level,
        method=request.method,
        path=request.url.path,
        status=status_code,
        latencyMs=int((time.time() - start) * 1000),
        requestId=req_id,
    )
    return response


@app.get("/health")
async def health():
    return {"status": "OK", "timestamp": _now_iso(), "service": SERVICE_NAME}


@app.post("/api/chat")
def chat(request: Request, body: ChatRequest):
    """Forward a prompt to Vertex AI and return the extracted text."""
    if not body.prompt.strip():
        raise HTTPException(status_code=400, detail={
            "error": {"message": "Prompt cannot be empty", "code": 400, "errorCode": "ValidationError"}
        })
    gen_request = GenerationRequest(
        prompt=body.prompt,
        model=body.model,
        temperature=body.temperature,
        system_prompt=body.systemPrompt,
    )
    gateway = _build_gateway()
    try:
        # Request errors are reported before configuration errors
        result = gateway.validate(gen_request)
        if result is None:
            if not SERVICE_ACCOUNT_BASE64:
                raise HTTPException(status_code=500, detail={
                    "error": {"message": "GCP_SERVICE_ACCOUNT_BASE64 not set; configure the service account.", "code": 500}
                })
            result = gateway.generate(gen_request)
    finally:
        gateway.close()

    if result.ok:
        return {
            "success": True,
            "response": result.response,
            "model": result.model,
            "timestamp": _now_iso(),
        }

    if result.error_code in USER_FACING_ERRORS:
        return {
            "success": False,
            "response": result.error,
            "errorCode": result.error_code,
            "model": result.model,
            "timestamp": _now_iso(),
        }

    status = ERROR_STATUS.get(result.error_code, 502)
    error = {
        "message": "Failed to generate response",
        "code": status,
        "errorCode": result.error_code,
    }
    if EXPOSE_UPSTREAM_ERROR or result.error_code == "ValidationError":
        error["details"] = result.error
    else:
        log_event(
            logger,
            "chat_error_hidden",
            level="warning",
            caps={"error": 1024},
            requestId=_get_request_id(request),
            errorCode=result.error_code,
            error=result.error,
        )
    raise HTTPException(status_code=status, detail={"error": error})


@app.post("/api/test")
async def test_echo(body: EchoRequest):
    """Canned reply for wiring checks; never calls Vertex AI."""
    return {
        "success": True,
        "response": f"Test response for: {body.prompt}",
        "timestamp": _now_iso(),
        "debug": {
            "modelId": DEFAULT_MODEL,
            "location": LOCATION,
            "hasProjectId": bool(PROJECT_ID),
            "hasServiceAccount": bool(SERVICE_ACCOUNT_BASE64),
        },
    }


@app.get("/api/models")
async def list_models():
    models = list(ALLOWED_MODELS)
    for m in (DEFAULT_MODEL, FALLBACK_MODEL):
        if m and m not in models:
            models.append(m)
    return {"models": models, "default": DEFAULT_MODEL, "fallback": FALLBACK_MODEL}


@app.get("/config")
async def config():
    return {
        "projectId": PROJECT_ID,
        "location": LOCATION,
        "defaultModel": DEFAULT_MODEL,
        "allowedModels": ALLOWED_MODELS,
        "fallbackModel": FALLBACK_MODEL,
        "defaultTemperature": DEFAULT_TEMPERATURE,
        "customSystemPrompt": DEFAULT_SYSTEM_PROMPT != BUILTIN_SYSTEM_PROMPT,
        "hasServiceAccount": bool(SERVICE_ACCOUNT_BASE64),
        "httpTimeoutSeconds": HTTP_TIMEOUT_SECONDS,
        "allowedOrigins": ALLOWED_ORIGINS,
        "logLevel": LOG_LEVEL,
        "logRequestBodyMax": LOG_REQUEST_BODY_MAX,
        "exposeUpstreamError": EXPOSE_UPSTREAM_ERROR,
    }
