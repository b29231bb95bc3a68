"""Tests for the logging framework.

Covers:
- LogContext merge semantics
- push_context / clear_context scoping
- add_context_processor injection (explicit keys win)
- log_step timing, fields and error capture
- configure_logging idempotence
"""

import logging

import pytest
import structlog
from structlog.testing import capture_logs

from docspine.framework.logging import (
    LogContext,
    clear_context,
    configure_logging,
    get_context,
    is_configured,
    log_step,
    new_build_id,
    push_context,
)
from docspine.framework.logging.context import add_context_processor


class TestLogContext:
    def test_merge_ignores_none_and_unknown_keys(self):
        ctx = LogContext(build_id="b1", stage="expand")
        merged = ctx.merge(stage=None, file="a.md", colour="blue")
        assert merged.build_id == "b1"
        assert merged.stage == "expand"
        assert merged.file == "a.md"
        assert "colour" not in merged.to_dict()
        assert ctx.file is None

    def test_to_dict_drops_none(self):
        assert LogContext(build_id="b1").to_dict() == {"build_id": "b1"}

    def test_new_build_id(self):
        first, second = new_build_id(), new_build_id()
        assert len(first) == 12
        assert first != second


class TestContextScoping:
    def test_push_and_restore(self):
        outer = push_context(build_id="b1")
        token = push_context(stage="crossrefs")
        assert get_context().stage == "crossrefs"
        assert get_context().build_id == "b1"
        token.restore()
        assert get_context().stage is None
        assert get_context().build_id == "b1"
        outer.restore()
        assert get_context().to_dict() == {}

    def test_nested_pushes_merge(self):
        push_context(build_id="b1")
        push_context(file="guide.md")
        assert get_context().to_dict() == {"build_id": "b1", "file": "guide.md"}

    def test_clear_context(self):
        push_context(file="guide.md")
        clear_context()
        assert get_context().to_dict() == {}


class TestContextProcessor:
    def test_adds_context_fields(self):
        push_context(build_id="b1", stage="expand")
        event = add_context_processor(None, "info", {"event": "x"})
        assert event == {"event": "x", "build_id": "b1", "stage": "expand"}

    def test_explicit_keys_win(self):
        push_context(stage="expand")
        event = add_context_processor(None, "info", {"event": "x", "stage": "explicit"})
        assert event["stage"] == "explicit"


class TestLogStep:
    def test_records_duration_and_metrics(self):
        with capture_logs() as logs:
            with log_step("builder.stage", stage="expand") as timer:
                timer.note(new_errors=2)

        assert timer.ended_at is not None
        assert timer.duration_ms >= 0
        end = [entry for entry in logs if entry["event"] == "builder.stage.end"][0]
        assert end["new_errors"] == 2
        assert end["stage"] == "expand"

    def test_nested_steps_link_spans(self):
        with log_step("outer") as outer:
            with log_step("inner") as inner:
                assert get_context().span_id == inner.span_id
        assert inner.parent_span_id == outer.span_id
        assert get_context().span_id is None

    def test_error_is_logged_and_reraised(self):
        with capture_logs() as logs:
            with pytest.raises(ValueError):
                with log_step("builder.write") as timer:
                    raise ValueError("disk full")

        assert timer.status == "error"
        assert timer.error["error_type"] == "ValueError"
        assert [entry["event"] for entry in logs if entry["log_level"] == "error"] == [
            "builder.write.error"
        ]


class TestConfigureLogging:
    def test_configure_is_idempotent(self, monkeypatch):
        monkeypatch.setenv("DOCSPINE_LOG_FORMAT", "json")
        configure_logging(level="WARNING", force=True)
        assert is_configured()
        configure_logging(level="DEBUG")
        assert not logging.getLogger("docspine").isEnabledFor(logging.DEBUG)
        structlog.reset_defaults()
