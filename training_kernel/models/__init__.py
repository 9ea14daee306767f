"""ORM models.  Importing this package registers every table on Base.metadata."""

from training_kernel.models.employee import EmployeeModel
from training_kernel.models.training_request import (
    ApprovalActionModel,
    TrainingRequestModel,
)

__all__ = [
    "ApprovalActionModel",
    "EmployeeModel",
    "TrainingRequestModel",
]
