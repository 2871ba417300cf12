# src/logging/context.py — v1
"""Contextual logging support: attach document, symbol and operation to log records.

Cache and gate code sets these per request so that every log line carries
enough context to reproduce a miss, an eviction or a backend failure.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

_document_key: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "document_key", default=None
)
_symbol: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "symbol", default=None
)
_operation: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "operation", default=None
)
_cache_key: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "cache_key", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    document_key: str | None = None
    symbol: str | None = None
    operation: str | None = None
    cache_key: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        document_key=_document_key.get(),
        symbol=_symbol.get(),
        operation=_operation.get(),
        cache_key=_cache_key.get(),
    )


def set_document_context(document_key: str, symbol: str | None = None) -> None:
    """Set document-level context (called once per guarded request)."""
    _document_key.set(document_key)
    _symbol.set(symbol)


def set_operation_context(operation: str, cache_key: str | None = None) -> None:
    """Set operation-level context (inspect, resolve_imports, sweep...)."""
    _operation.set(operation)
    _cache_key.set(cache_key)


def clear_context() -> None:
    """Reset all context variables."""
    _document_key.set(None)
    _symbol.set(None)
    _operation.set(None)
    _cache_key.set(None)
