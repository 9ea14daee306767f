"""
training_config -- single public entrypoint for workflow configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration
    files directly.  Returns a frozen ``WorkflowConfig``.

Architecture position:
    Configuration -- sits above ``training_kernel`` and beside
    ``training_engines``; ``training_services`` consume it.  The kernel
    MUST NEVER import from ``training_config``; ``bridges`` translates the
    config into engine inputs.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Deterministic identity: the same YAML always yields the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``ValueError`` -- validation failures (negative threshold, retries
      below 1, unknown mode, unknown log level).

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``TRAINING_CONFIG_TRACE`` log entry with the config id, version,
    checksum and effective escalation settings.
"""

from __future__ import annotations

import logging
from pathlib import Path

from training_config.loader import load_yaml_file, parse_workflow_config
from training_config.schema import WorkflowConfig

_logger = logging.getLogger("training_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | str | None = None) -> WorkflowConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Override path to a YAML configuration set.
            Defaults to training_config/sets/default.yaml.

    Returns:
        WorkflowConfig -- frozen, validated.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If configuration validation fails.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_PATH
    config = parse_workflow_config(load_yaml_file(path))

    _logger.info(
        "TRAINING_CONFIG_TRACE",
        extra={
            "trace_type": "TRAINING_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "config_path": str(path),
            "cost_threshold": config.escalation.cost_threshold,
            "escalating_modes": config.escalation.modes,
            "max_conflict_retries": config.concurrency.max_conflict_retries,
        },
    )
    return config


__all__ = ["WorkflowConfig", "get_active_config"]
