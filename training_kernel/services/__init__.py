"""Kernel service adapters: request persistence and the employee directory."""

from training_kernel.services.directory_service import (
    InMemoryDirectory,
    SqlAlchemyDirectory,
)
from training_kernel.services.request_repository import (
    InMemoryRequestRepository,
    SqlAlchemyRequestRepository,
)

__all__ = [
    "InMemoryDirectory",
    "InMemoryRequestRepository",
    "SqlAlchemyDirectory",
    "SqlAlchemyRequestRepository",
]
