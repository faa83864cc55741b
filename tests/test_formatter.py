import json
import math
import re
from datetime import datetime

import pytest

from spanlog.config import LoggerConfig, LogLevel
from spanlog.errors import FormattingError
from spanlog.formatter import MASK, format_record, mask_sensitive_fields
from spanlog.trace_context import TraceContext

CTX = TraceContext("4bf92f3577b34da6a3ce929d0e0e4736", "00f067aa0ba902b7")


def _config(**overrides):
    return LoggerConfig(service_name="checkout", **overrides)


class TestMaskSensitiveFields:
    def test_masks_password_and_keeps_other_fields(self):
        line = format_record(
            _config(), LogLevel.INFO, "login", CTX, {"username": "john", "password": "secret123"}
        )

        assert '"username":"john"' in line
        assert '"password":"***MASKED***"' in line
        assert "secret123" not in line

    @pytest.mark.parametrize(
        "key",
        ["apiToken", "apiKey", "api_key", "APIKEY", "secret", "clientSecret", "db_PASSWORD", "refresh_token"],
    )
    def test_sensitive_key_variants(self, key):
        line = format_record(_config(), LogLevel.INFO, "msg", CTX, {key: "secret123"})
        assert "secret123" not in line
        assert json.loads(line)[key] == MASK

    def test_non_string_values_are_masked_too(self):
        masked = mask_sensitive_fields({"token": {"nested": 1}, "secret_count": 42})
        assert masked == {"token": MASK, "secret_count": MASK}

    def test_nested_mappings_are_masked_recursively(self):
        masked = mask_sensitive_fields(
            {"user": {"name": "ann", "auth": {"password": "pw", "method": "basic"}}}
        )
        assert masked == {"user": {"name": "ann", "auth": {"password": MASK, "method": "basic"}}}

    def test_lists_are_not_recursed_into(self):
        fields = {"attempts": [{"password": "pw1"}, {"password": "pw2"}]}
        assert mask_sensitive_fields(fields) == fields

    def test_input_is_not_mutated(self):
        fields = {"password": "pw", "nested": {"token": "t"}}
        mask_sensitive_fields(fields)
        assert fields == {"password": "pw", "nested": {"token": "t"}}


class TestFormatRecord:
    def test_canonical_fields_come_first(self):
        record = json.loads(format_record(_config(), LogLevel.WARN, "disk low", CTX))

        assert list(record)[:6] == ["timestamp", "level", "message", "service.name", "trace.id", "span.id"]
        assert record["level"] == "WARN"
        assert record["message"] == "disk low"
        assert record["service.name"] == "checkout"
        assert record["trace.id"] == CTX.trace_id
        assert record["span.id"] == CTX.span_id

    def test_timestamp_is_utc_with_milliseconds(self):
        record = json.loads(format_record(_config(), LogLevel.INFO, "hi", CTX))

        assert re.search(r"T\d{2}:\d{2}:\d{2}\.\d{3}\+00:00$", record["timestamp"])
        assert datetime.fromisoformat(record["timestamp"]).utcoffset().total_seconds() == 0

    def test_optional_config_fields_are_omitted_when_unset(self):
        record = json.loads(format_record(_config(), LogLevel.INFO, "hi", CTX))
        for key in ("environment", "host", "version", "app.name", "error.type"):
            assert key not in record

    def test_optional_config_fields_are_included_when_set(self):
        config = _config(environment="prod", host="web-1", version="1.4.2", app_name="shop")
        record = json.loads(format_record(config, LogLevel.INFO, "hi", CTX))

        assert record["environment"] == "prod"
        assert record["host"] == "web-1"
        assert record["version"] == "1.4.2"
        assert record["app.name"] == "shop"

    def test_reserved_fields_win_over_caller_fields(self):
        fields = {"level": "DEBUG", "trace.id": "bogus", "message": "other", "order_id": 7}
        record = json.loads(format_record(_config(), LogLevel.ERROR, "failed", CTX, fields))

        assert record["level"] == "ERROR"
        assert record["trace.id"] == CTX.trace_id
        assert record["message"] == "failed"
        assert record["order_id"] == 7

    def test_caller_fields_follow_reserved_fields(self):
        record = json.loads(format_record(_config(), LogLevel.INFO, "hi", CTX, {"b": 1, "a": 2}))
        assert list(record)[-2:] == ["b", "a"]

    def test_error_fields_from_raised_exception(self):
        try:
            raise ValueError("bad input")
        except ValueError as exc:
            err = exc

        record = json.loads(format_record(_config(), LogLevel.ERROR, "boom", CTX, err=err))

        assert record["error.type"] == "ValueError"
        assert record["error.message"] == "bad input"
        assert "Traceback" in record["error.stack"]
        assert "ValueError: bad input" in record["error.stack"]

    def test_error_without_traceback_has_empty_stack(self):
        record = json.loads(
            format_record(_config(), LogLevel.ERROR, "boom", CTX, err=KeyError("missing"))
        )
        assert record["error.type"] == "KeyError"
        assert record["error.stack"] == ""

    def test_unserializable_field_raises_formatting_error(self):
        with pytest.raises(FormattingError):
            format_record(_config(), LogLevel.INFO, "hi", CTX, {"conn": object()})

    def test_nan_is_rejected(self):
        with pytest.raises(FormattingError):
            format_record(_config(), LogLevel.INFO, "hi", CTX, {"ratio": math.nan})
