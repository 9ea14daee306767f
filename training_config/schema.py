"""
WorkflowConfig schema.

Typed, frozen view of a configuration set.  YAML files are parsed into
these types by ``training_config.loader``; callers only ever receive a
``WorkflowConfig`` from ``training_config.get_active_config()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class EscalationConfig:
    """Thresholds that route a thr-approved request to the CEO."""

    cost_threshold: Decimal = Decimal("2000")
    modes: tuple[str, ...] = ("overseas",)


@dataclass(frozen=True)
class ConcurrencyConfig:
    """Optimistic-concurrency retry budget for controller mutations."""

    max_conflict_retries: int = 3


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite:///training_workflow.db"
    echo: bool = False


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class WorkflowConfig:
    """Root configuration object.

    ``checksum`` is the SHA-256 of the canonical source document and
    identifies the exact configuration that governed a run.
    """

    config_id: str = "training-workflow-default"
    version: int = 1
    escalation: EscalationConfig = field(default_factory=EscalationConfig)
    concurrency: ConcurrencyConfig = field(default_factory=ConcurrencyConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    checksum: str = ""
