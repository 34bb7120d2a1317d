"""Diagnostic context and tracing spans for section processing.

Section builders carry a :class:`LogContext` naming the object being
documented (connector, sync rule, metaverse object type...) and extend it
with :meth:`LogContext.bind` as they descend. Log records written through
:meth:`LogContext.adapter` are prefixed with that context.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

LABELS = {
    "connector": "Connector",
    "connector_guid": "Connector Guid",
    "connector_category": "Connector Category",
    "connector_subtype": "Connector SubType",
    "object_type": "Object Type",
    "attribute": "Attribute",
    "sync_rule": "Sync Rule",
    "sync_rule_guid": "Sync Rule Guid",
}


@dataclass(frozen=True)
class LogContext:
    """Immutable set of identifiers describing what is being processed."""

    items: tuple[tuple[str, str], ...] = ()

    def bind(self, **items: Any) -> "LogContext":
        """Return a new context with ``items`` added or replaced."""
        merged = dict(self.items)
        for key, value in items.items():
            if key not in LABELS:
                raise KeyError(f"Unknown log context item '{key}'")
            if value is None:
                merged.pop(key, None)
            else:
                merged[key] = str(value)
        return LogContext(tuple(merged.items()))

    def get(self, key: str) -> str | None:
        return dict(self.items).get(key)

    def as_dict(self) -> dict[str, str]:
        return dict(self.items)

    def __str__(self) -> str:
        return " ".join(f"{LABELS[k]}: '{v}'." for k, v in self.items)

    def adapter(self, log: logging.Logger) -> "ContextAdapter":
        return ContextAdapter(log, {"context": self})


class ContextAdapter(logging.LoggerAdapter):
    """Prefixes messages with the bound :class:`LogContext`."""

    def process(self, msg, kwargs):
        context = self.extra["context"]
        if context.items:
            msg = f"{msg} [{context}]"
        return msg, kwargs


@contextmanager
def trace_span(log: logging.Logger | logging.LoggerAdapter, name: str) -> Iterator[None]:
    """Log entry and exit of a unit of work at DEBUG level.

    The exit record is written on every path, including exceptions, which
    are re-raised.
    """
    start = time.perf_counter()
    log.debug(f"Entering {name}")
    failed = False
    try:
        yield
    except Exception:
        failed = True
        raise
    finally:
        elapsed = time.perf_counter() - start
        outcome = "failed" if failed else "done"
        log.debug(f"Exiting {name} ({outcome}, {elapsed:.3f}s)")


@contextmanager
def section_guard(log: logging.Logger | logging.LoggerAdapter, section: str) -> Iterator[None]:
    """Contain a failure to one report section.

    Any exception raised inside the block is logged as an error (with the
    traceback at DEBUG level) and not propagated, so the report continues
    with the next section.
    """
    try:
        yield
    except Exception as e:
        log.error(f"Skipping section '{section}': {type(e).__name__}: {e}")
        log.debug("Section failure details", exc_info=True)
