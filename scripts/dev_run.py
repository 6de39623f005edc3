#!/usr/bin/env python3
import os
import shlex
import subprocess
import sys

# Simple local dev runner for the FastAPI backend (uvicorn with reload).
#
# Usage:
#   python scripts/dev_run.py
#
# PORT (default 3000) and LOG_LEVEL (default info) are read from the environment.

PORT = int(os.getenv("PORT", "3000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "info")

uvicorn_cmd = f"uvicorn zai_backend.main:app --host 0.0.0.0 --port {PORT} --reload --log-level {shlex.quote(LOG_LEVEL.lower())}"

print("[dev_run.py] Starting backend:", uvicorn_cmd, flush=True)
print(f"[dev_run.py] Health check: http://localhost:{PORT}/health", flush=True)
print(f"[dev_run.py] Chat endpoint: http://localhost:{PORT}/api/chat", flush=True)
backend = subprocess.Popen(shlex.split(uvicorn_cmd), env=os.environ.copy())

try:
    sys.exit(backend.wait())
except KeyboardInterrupt:
    print("[dev_run.py] KeyboardInterrupt: stopping backend...")
    backend.terminate()
    try:
        backend.wait(timeout=5)
    except subprocess.TimeoutExpired:
        backend.kill()
    sys.exit(130)
