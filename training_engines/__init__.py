"""
Pure workflow engines for training requests.

Engines take frozen snapshots plus explicit ``now`` and ``actor`` values and
return new snapshots.  They never read clocks, databases or the directory.
"""

from training_engines.approval import (
    DEFAULT_POLICY,
    ENGINE_VERSION,
    EscalationPolicy,
    cancel,
    decide,
    next_step_after_approval,
    process_by_cm,
    requires_ceo_approval,
    submit,
)
from training_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "DEFAULT_POLICY",
    "ENGINE_VERSION",
    "EscalationPolicy",
    "cancel",
    "compute_input_fingerprint",
    "decide",
    "next_step_after_approval",
    "process_by_cm",
    "requires_ceo_approval",
    "submit",
    "traced_engine",
]
