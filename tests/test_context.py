"""Tests for log context, tracing spans and section guards."""

import logging

import pytest

from adsync_documenter.context import LogContext, section_guard, trace_span

logger = logging.getLogger("adsync_documenter.tests")


def test_bind_returns_new_context():
    """Test that binding leaves the original context untouched."""
    base = LogContext().bind(connector="contoso.com")
    child = base.bind(sync_rule="In from AD - User Join")

    assert base.get("sync_rule") is None
    assert child.as_dict() == {
        "connector": "contoso.com",
        "sync_rule": "In from AD - User Join",
    }


def test_bind_none_removes_item():
    """Test that binding None drops an item."""
    context = LogContext().bind(connector="contoso.com").bind(connector=None)

    assert context.items == ()


def test_bind_unknown_item():
    """Test that only known context items can be bound."""
    with pytest.raises(KeyError):
        LogContext().bind(colour="blue")


def test_context_str_uses_labels():
    """Test the human-readable rendition of a context."""
    context = LogContext().bind(connector="contoso.com", object_type="user")

    assert str(context) == "Connector: 'contoso.com'. Object Type: 'user'."


def test_adapter_appends_context(caplog):
    """Test that adapter records carry the bound context."""
    caplog.set_level(logging.INFO)
    log = LogContext().bind(attribute="mail").adapter(logger)

    log.info("Processing")

    assert "Processing [Attribute: 'mail'.]" in caplog.text


def test_adapter_without_context(caplog):
    """Test that an empty context leaves messages unchanged."""
    caplog.set_level(logging.INFO)

    LogContext().adapter(logger).info("Plain")

    assert caplog.records[-1].getMessage() == "Plain"


def test_trace_span_logs_failure_and_reraises(caplog):
    """Test that a span records its failure and propagates the exception."""
    caplog.set_level(logging.DEBUG)

    with pytest.raises(RuntimeError):
        with trace_span(logger, "Partitions"):
            raise RuntimeError("boom")

    assert "Entering Partitions" in caplog.text
    assert "Exiting Partitions (failed" in caplog.text


def test_section_guard_contains_failure(caplog):
    """Test that a failing section is logged and skipped."""
    reached = []

    with section_guard(logger, "Run Profiles"):
        raise ValueError("bad step")
    reached.append(True)

    assert reached == [True]
    assert "Skipping section 'Run Profiles': ValueError: bad step" in caplog.text
    assert caplog.records[0].levelno == logging.ERROR
