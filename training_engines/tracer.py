"""
training_engines.tracer -- Engine invocation tracer emitting TRAINING_ENGINE_TRACE.

Responsibility:
    Provide a lightweight decorator (``@traced_engine``) that wraps pure
    engine invocations with structured trace logging.  The trace captures
    engine_name, engine_version, input_fingerprint (deterministic SHA-256
    hash of selected arguments), duration_ms and the outcome.

Architecture position:
    Engines -- infrastructure support for the pure workflow layer.
    Does NOT introduce I/O into engines; emits a log record only.
    Uses its own logger (``training_kernel.engines.tracer``) and does not
    import kernel logging infrastructure.

Invariants enforced:
    - Fingerprints are deterministic: _canonicalize produces stable string
      representations (dataclasses field by field, dict keys sorted, enums
      by value, datetimes in ISO-8601); the hash is SHA-256 truncated to
      16 hex chars.
    - Engine purity: the decorator only reads arguments and emits a log
      record; it does not mutate inputs or swallow exceptions.

Failure modes:
    - Arguments named in fingerprint_fields but not bound by the call are
      recorded as "null".
    - A rejected call (engine raised) is still traced, with
      ``outcome="error"`` and the error code, then the exception propagates.

Usage:
    from training_engines.tracer import traced_engine

    @traced_engine("approval.decide", "1.0", fingerprint_fields=("request", "decision"))
    def decide(request, actor, decision, notes, *, manager_id, now, policy):
        ...
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import inspect
import logging
import time
from collections.abc import Callable
from datetime import date, datetime
from enum import Enum
from typing import Any

_logger = logging.getLogger("training_kernel.engines.tracer")


def _canonicalize(value: Any) -> str:
    """Produce a stable string representation of a value for fingerprinting."""
    if value is None:
        return "null"
    if isinstance(value, Enum):
        return _canonicalize(value.value)
    if isinstance(value, (int, float, str)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        items = [
            (f.name, getattr(value, f.name)) for f in dataclasses.fields(value)
        ]
        return (
            type(value).__name__
            + "("
            + ",".join(f"{k}:{_canonicalize(v)}" for k, v in items)
            + ")"
        )
    if isinstance(value, dict):
        items = sorted(value.items())
        return "{" + ",".join(f"{k}:{_canonicalize(v)}" for k, v in items) + "}"
    if isinstance(value, (set, frozenset)):
        return "{" + ",".join(sorted(_canonicalize(v) for v in value)) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: dict[str, Any],
) -> str:
    """Compute a deterministic SHA-256 fingerprint of selected arguments.

    Only the fields listed in fingerprint_fields are included.  Missing
    fields are recorded as "null".  The result is a 16-char hex prefix.
    """
    parts: list[str] = []
    for field in fingerprint_fields:
        val = arguments.get(field)
        parts.append(f"{field}={_canonicalize(val)}")
    canonical = "|".join(parts)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Decorator that emits TRAINING_ENGINE_TRACE for pure engine invocations.

    Args:
        engine_name: Engine identifier (e.g., "approval.decide").
        engine_version: Engine version (e.g., "1.0").
        fingerprint_fields: Parameter names (positional or keyword) to
            include in the input fingerprint hash.

    Returns:
        Decorator function.
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fp = ""
            if fingerprint_fields:
                try:
                    bound = signature.bind_partial(*args, **kwargs)
                except TypeError:
                    # Let the real call raise with Python's own message.
                    return func(*args, **kwargs)
                fp = compute_input_fingerprint(fingerprint_fields, bound.arguments)

            outcome = "ok"
            error_code = None
            t0 = time.monotonic()
            try:
                return func(*args, **kwargs)
            except Exception as exc:
                outcome = "error"
                error_code = getattr(exc, "code", type(exc).__name__)
                raise
            finally:
                duration_ms = round((time.monotonic() - t0) * 1000, 2)
                _logger.info(
                    "TRAINING_ENGINE_TRACE",
                    extra={
                        "trace_type": "TRAINING_ENGINE_TRACE",
                        "engine_name": engine_name,
                        "engine_version": engine_version,
                        "input_fingerprint": fp,
                        "duration_ms": duration_ms,
                        "function": func.__qualname__,
                        "outcome": outcome,
                        "error_code": error_code,
                    },
                )

        return wrapper

    return decorator
