"""
Config -> Engine Bridges.

Functions that convert a ``WorkflowConfig`` into engine-compatible inputs.
These live in training_config (the producer) because the kernel and the
engines must never import training_config.

Usage:
    from training_config.bridges import build_escalation_policy

    config = get_active_config()
    policy = build_escalation_policy(config)
"""

from __future__ import annotations

from training_config.schema import WorkflowConfig
from training_engines.approval import EscalationPolicy
from training_kernel.domain.training import LocationMode


def build_escalation_policy(config: WorkflowConfig) -> EscalationPolicy:
    """Build the engine's EscalationPolicy from the escalation section."""
    return EscalationPolicy(
        cost_threshold=config.escalation.cost_threshold,
        escalating_modes=frozenset(
            LocationMode(mode) for mode in config.escalation.modes
        ),
    )
