"""
Configuration Loader (``training_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into the typed, frozen
``training_config.schema`` dataclasses.  The single public entry point for
runtime config is ``training_config.get_active_config()``; services never
call this module directly.

Invariants enforced
-------------------
* Every parse or validation failure raises ``ValueError`` with a
  descriptive message; unknown modes and out-of-range numbers are never
  silently clamped.
* Omitted sections fall back to the schema defaults.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import logging
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from training_config.schema import (
    ConcurrencyConfig,
    DatabaseConfig,
    EscalationConfig,
    LoggingConfig,
    WorkflowConfig,
)
from training_kernel.domain.training import LocationMode

_KNOWN_MODES = frozenset(mode.value for mode in LocationMode)
_KNOWN_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top-level YAML value must be a mapping")
    return data


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ValueError(f"'{name}' must be a mapping, got {type(value).__name__}")
    return value


def parse_escalation(data: dict[str, Any]) -> EscalationConfig:
    """Parse the ``escalation`` section."""
    default = EscalationConfig()
    raw_threshold = data.get("cost_threshold", default.cost_threshold)
    try:
        threshold = Decimal(str(raw_threshold))
    except InvalidOperation:
        raise ValueError(
            f"escalation.cost_threshold is not a number: {raw_threshold!r}"
        ) from None
    if not threshold.is_finite() or threshold < 0:
        raise ValueError(
            f"escalation.cost_threshold must be a non-negative amount, got {threshold}"
        )

    modes = data.get("modes", list(default.modes))
    if not isinstance(modes, list):
        raise ValueError("escalation.modes must be a list")
    unknown = sorted(str(m) for m in modes if m not in _KNOWN_MODES)
    if unknown:
        raise ValueError(
            f"escalation.modes has unknown mode(s) {unknown}; "
            f"expected any of {sorted(_KNOWN_MODES)}"
        )
    return EscalationConfig(cost_threshold=threshold, modes=tuple(modes))


def parse_concurrency(data: dict[str, Any]) -> ConcurrencyConfig:
    """Parse the ``concurrency`` section."""
    retries = data.get("max_conflict_retries", ConcurrencyConfig().max_conflict_retries)
    if isinstance(retries, bool) or not isinstance(retries, int) or retries < 1:
        raise ValueError(
            f"concurrency.max_conflict_retries must be an integer >= 1, got {retries!r}"
        )
    return ConcurrencyConfig(max_conflict_retries=retries)


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    """Parse the ``database`` section."""
    default = DatabaseConfig()
    url = data.get("url", default.url)
    if not isinstance(url, str) or not url:
        raise ValueError("database.url must be a non-empty string")
    echo = data.get("echo", default.echo)
    if not isinstance(echo, bool):
        raise ValueError(f"database.echo must be a boolean, got {echo!r}")
    return DatabaseConfig(url=url, echo=echo)


def parse_logging(data: dict[str, Any]) -> LoggingConfig:
    """Parse the ``logging`` section."""
    level = str(data.get("level", LoggingConfig().level)).upper()
    if level not in _KNOWN_LEVELS:
        raise ValueError(
            f"logging.level must be one of {sorted(_KNOWN_LEVELS)}, got {level!r}"
        )
    return LoggingConfig(level=level)


def parse_workflow_config(data: dict[str, Any]) -> WorkflowConfig:
    """
    Parse a complete ``WorkflowConfig`` from a dict.

    Postconditions:
        - Returns a frozen ``WorkflowConfig`` whose ``checksum`` is the
          checksum of ``data``.
    Raises:
        ValueError: if any section is invalid.
    """
    version = data.get("version", 1)
    if isinstance(version, bool) or not isinstance(version, int):
        raise ValueError(f"version must be an integer, got {version!r}")

    return WorkflowConfig(
        config_id=str(data.get("config_id", WorkflowConfig().config_id)),
        version=version,
        escalation=parse_escalation(_section(data, "escalation")),
        concurrency=parse_concurrency(_section(data, "concurrency")),
        database=parse_database(_section(data, "database")),
        logging=parse_logging(_section(data, "logging")),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def log_level(config: WorkflowConfig) -> int:
    """Numeric ``logging`` level for ``config.logging.level``."""
    return logging.getLevelName(config.logging.level)
