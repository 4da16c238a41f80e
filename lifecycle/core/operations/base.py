"""Shared plumbing for lifecycle operations.

Every operation runs its sub-steps in a fixed order. Non-essential steps
are isolated: a directory error becomes a warning and the next step runs.
Essential steps (create, target lookup, delete) turn into a ``Failed``
result instead.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Union

import requests

from ..directory import DirectoryClient
from ..gate import ConfirmationGate
from ..graph import DirectoryError
from ..mapper import RecordMapper
from ..models import Failed, FailureKind, IdentityRecord, OperationResult, Skipped
from scripts import audit

# Errors a directory call may raise that are contained per step
STEP_ERRORS = (DirectoryError, requests.RequestException)


@dataclass
class StepLog:
    """What happened to the mutating steps of one operation run."""
    applied: list[str] = field(default_factory=list)
    suppressed: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def as_details(self) -> dict[str, Any]:
        return {
            "applied": list(self.applied),
            "suppressed": list(self.suppressed),
            "warnings": list(self.warnings),
        }


class LifecycleOperation:
    """Base class; subclasses implement ``run(params)``."""

    name = "Operation"
    mapper: RecordMapper

    def __init__(
        self,
        directory: DirectoryClient,
        gate: Optional[ConfirmationGate] = None,
        logger: Optional[logging.Logger] = None,
        operator: str = "system",
    ):
        self.directory = directory
        self.gate = gate or ConfirmationGate()
        self.logger = logger or logging.getLogger(self.__module__)
        self.operator = operator

    def __call__(self, params) -> OperationResult:
        return self.run(params)

    def run(self, params) -> OperationResult:
        raise NotImplementedError

    # ─────────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────────

    def _require_session(self, identifier: str) -> Optional[Failed]:
        if self.directory.is_authenticated():
            return None
        message = "No authenticated directory session; connect before running lifecycle operations"
        self.logger.error("%s %s: %s", self.name, identifier, message)
        return Failed(identifier, FailureKind.NOT_AUTHENTICATED, message)

    def _resolve_target(self, identifier: str) -> Union[IdentityRecord, Failed]:
        try:
            record = self.directory.get_user(identifier)
        except STEP_ERRORS as e:
            self.logger.error("%s %s: lookup failed: %s", self.name, identifier, e)
            return Failed(identifier, FailureKind.DIRECTORY_ERROR, str(e))
        if record is None:
            message = f"User '{identifier}' not found"
            self.logger.error("%s: %s", self.name, message)
            return Failed(identifier, FailureKind.NOT_FOUND, message)
        return record

    def _resolve_user(self, upn: str, purpose: str, steps: StepLog) -> Optional[IdentityRecord]:
        """Read-only lookup of a related user; warns instead of failing."""
        try:
            user = self.directory.get_user(upn)
        except STEP_ERRORS as e:
            self._warn(steps, f"Could not look up {purpose} '{upn}': {e}")
            return None
        if user is None:
            self._warn(steps, f"{purpose.capitalize()} '{upn}' not found")
        return user

    def _resolve_licenses(self, skus: list[str], steps: StepLog) -> set[str]:
        """Map SKU ids or part numbers to SKU ids, warning on unknown entries."""
        resolved = set()
        for sku in skus:
            try:
                sku_id = self.directory.resolve_license(sku)
            except STEP_ERRORS as e:
                self._warn(steps, f"Could not resolve license '{sku}': {e}")
                continue
            if not sku_id:
                self._warn(steps, f"License '{sku}' not found; skipping")
                continue
            resolved.add(sku_id)
        return resolved

    def _mutate(self, steps: StepLog, target: str, action: str, fn: Callable, *args) -> bool:
        """Run one gated, fault-isolated mutating step.

        Returns:
            True if the call went through
        """
        if not self.gate.should_process(target, action):
            steps.suppressed.append(action)
            return False
        try:
            fn(*args)
        except STEP_ERRORS as e:
            self._warn(steps, f"{action} failed for {target}: {e}")
            return False
        steps.applied.append(action)
        self.logger.info("%s: %s", target, action)
        return True

    def _warn(self, steps: StepLog, message: str) -> None:
        steps.warnings.append(message)
        self.logger.warning(message)

    def _skipped(self, identifier: str) -> Skipped:
        reason = "dry run" if self.gate.dry_run else "declined by operator"
        self.logger.warning("%s %s skipped (%s)", self.name, identifier, reason)
        return Skipped(identifier, reason)

    def _audit(self, event_type: str, principal_name: str, steps: StepLog, success: bool, **extra) -> None:
        if self.gate.dry_run:
            return
        details = steps.as_details()
        details.update(extra)
        audit.safe_log_lifecycle_event(
            event_type,
            principal_name,
            operator=self.operator,
            details=details,
            success=success,
        )
