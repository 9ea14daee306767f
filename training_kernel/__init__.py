"""
Training Kernel - approval workflow core

Employee training requests routed through an ordered, role-gated
approval chain with:
- Pure, deterministic transition logic
- Append-only approval chains
- Optimistic concurrency on every mutation
- Structured, machine-readable errors
"""

__version__ = "0.1.0"
