"""
Name: Structured Logger Unit Tests

Responsibilities:
  - Test JSON formatting of log records
  - Test redaction of provider keys and truncation of large payloads
  - Test enrichment with the turn context
"""

import json
import logging
import sys

import pytest

from assistant_core.context import clear_context, set_request_context, set_turn_context
from assistant_core.crosscutting.logger import JSONFormatter, _Redactor


def _record(msg="hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="assistant-core",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.mark.unit
class TestRedactor:
    def test_sensitive_keys_redacted(self):
        redactor = _Redactor()

        cleaned = redactor.sanitize(
            {"x-api-key": "sk-ant-123", "headers": {"Authorization": "Bearer t"}, "ok": 1}
        )

        assert cleaned == {
            "x-api-key": "***REDACTED***",
            "headers": {"Authorization": "***REDACTED***"},
            "ok": 1,
        }

    def test_long_strings_truncated(self):
        cleaned = _Redactor(max_str=10).sanitize("a" * 50)

        assert cleaned == "a" * 10 + "…(truncated, 50 chars)"

    def test_conversation_text_only_previewed(self):
        redactor = _Redactor(max_conversation_text=5)

        assert redactor.sanitize("user question", key="query") == (
            "user …(truncated, 13 chars)"
        )
        assert redactor.sanitize("user question", key="path") == "user question"

    def test_depth_limit(self):
        assert _Redactor(max_depth=1).sanitize({"a": {"b": {"c": 1}}}) == {
            "a": {"b": "***TRUNCATED***"}
        }

    def test_non_serializable_becomes_string(self):
        assert _Redactor().sanitize(object()).startswith("<object object")


@pytest.mark.unit
class TestJSONFormatter:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_basic_fields(self):
        payload = json.loads(JSONFormatter().format(_record("Index saved")))

        assert payload["message"] == "Index saved"
        assert payload["level"] == "INFO"
        assert payload["logger"] == "assistant-core"
        assert "timestamp" in payload

    def test_extra_fields_sanitized(self):
        payload = json.loads(
            JSONFormatter().format(_record(document_count=3, api_key="secret"))
        )

        assert payload["document_count"] == 3
        assert payload["api_key"] == "***REDACTED***"

    def test_turn_context_included(self):
        set_request_context(request_id="req-1")
        set_turn_context(turn_id="turn-9", operation="send_message")

        payload = json.loads(JSONFormatter().format(_record()))

        assert payload["request_id"] == "req-1"
        assert payload["turn_id"] == "turn-9"
        assert payload["operation"] == "send_message"

    def test_empty_context_omitted(self):
        payload = json.loads(JSONFormatter().format(_record()))

        assert "request_id" not in payload
        assert "turn_id" not in payload

    def test_exception_info(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = _record()
            record.exc_info = sys.exc_info()

        payload = json.loads(JSONFormatter().format(record))

        assert payload["exception"]["type"] == "ValueError"
        assert payload["exception"]["message"] == "boom"
