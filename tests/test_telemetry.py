import json

from zai_backend.telemetry.events import log_event, redact_secret, truncate_for_log


class StubLogger:
    def __init__(self):
        self.lines = []
        self.levels = []

    def _record(self, level, msg):
        self.levels.append(level)
        self.lines.append(msg)

    def info(self, msg):
        self._record("info", msg)

    def warning(self, msg):
        self._record("warning", msg)

    def error(self, msg):
        self._record("error", msg)


def test_truncate_for_log_caps_length_and_is_safe():
    assert truncate_for_log("x" * 10, 5) == "x" * 5
    # Non-string input becomes str
    assert truncate_for_log(12345, 3) == "123"

    class Bad:
        def __str__(self):
            raise RuntimeError("boom")

    assert isinstance(truncate_for_log(Bad(), 3), str)


def test_log_event_basic_and_caps():
    lg = StubLogger()
    log_event(lg, "test_evt", caps={"error": 10}, requestId="abc", error="y" * 100, other=1)
    payload = json.loads(lg.lines[0])
    assert payload["event"] == "test_evt"
    assert payload["requestId"] == "abc"
    assert payload["other"] == 1
    assert payload["error"] == "y" * 10


def test_log_event_routes_to_requested_level():
    lg = StubLogger()
    log_event(lg, "evt_warn", level="warning")
    log_event(lg, "evt_err", level="error")
    log_event(lg, "evt_unknown", level="nope")
    assert lg.levels == ["warning", "error", "info"]


def test_log_event_keeps_non_ascii_text():
    lg = StubLogger()
    log_event(lg, "evt", message="Maaf, respons terpotong…")
    assert "terpotong…" in lg.lines[0]


def test_log_event_falls_back_to_str_when_not_json_serializable():
    lg = StubLogger()
    log_event(lg, "evt", payload={1, 2})
    assert lg.lines
    assert "evt" in lg.lines[0]


def test_redact_secret_keeps_only_prefix_and_length():
    token = "ya29.a0AfH6SMBx-very-secret-value"
    out = redact_secret(token)
    assert out == f"ya29.a…({len(token)} chars)"
    assert "secret" not in out
    assert redact_secret("abc") == "<redacted>"
    assert redact_secret(None) is None
