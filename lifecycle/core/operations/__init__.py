"""Lifecycle operations (joiner / mover / leaver).

Each operation takes a parameter object and returns a tagged result:
``Success(record)``, ``Skipped(reason)`` or ``Failed(kind, message)``.
"""
from .base import LifecycleOperation, STEP_ERRORS, StepLog
from .onboard import OnboardOperation, generate_temp_password
from .update import UpdateOperation
from .offboard import OffboardOperation

OPERATIONS = {
    "onboard": OnboardOperation,
    "update": UpdateOperation,
    "offboard": OffboardOperation,
}

__all__ = [
    "LifecycleOperation",
    "STEP_ERRORS",
    "StepLog",
    "OnboardOperation",
    "UpdateOperation",
    "OffboardOperation",
    "OPERATIONS",
    "generate_temp_password",
]
