"""Offboard (leaver): disable, revoke, strip access, optionally soft-delete."""
from __future__ import annotations

from ..graph import UserNotFoundError
from ..mapper import OFFBOARD_MAPPER
from ..models import (
    Failed,
    FailureKind,
    IdentityRecord,
    OffboardAction,
    OffboardParams,
    OperationResult,
    SOFT_DELETE_RETENTION_DAYS,
    Success,
)
from .base import LifecycleOperation, STEP_ERRORS, StepLog


class OffboardOperation(LifecycleOperation):
    """Remove a user's access.

    Steps run in a fixed order: disable, revoke sessions, remove licenses,
    remove group memberships, soft-delete. Sign-in is disabled first even
    when the user is about to be deleted. Only a failed delete makes the
    operation fail; everything before it degrades to warnings.
    """

    name = "Offboard"
    mapper = OFFBOARD_MAPPER

    def run(self, params: OffboardParams) -> OperationResult:
        identifier = params.identifier
        failed = self._require_session(identifier)
        if failed:
            return failed

        target = self._resolve_target(identifier)
        if isinstance(target, Failed):
            return target
        record = target
        upn = record.user_principal_name
        self.logger.info("Offboarding %s (action=%s)", upn, params.action.value)
        steps = StepLog()
        event = "offboard_delete" if params.action is OffboardAction.DELETE else "offboard_disable"

        self._disable(record, steps)
        if params.revoke_sessions:
            self._mutate(steps, upn, "Revoke sign-in sessions", self.directory.revoke_sessions, record.object_id)
        if params.remove_licenses:
            self._remove_licenses(record, steps)
        if params.remove_from_groups:
            self._remove_from_groups(record, steps)

        if params.action is OffboardAction.DELETE:
            if self.gate.should_process(upn, "Delete user"):
                try:
                    self.directory.delete_user(record.object_id)
                except UserNotFoundError as e:
                    self.logger.error("Delete failed for %s: %s", upn, e)
                    self._audit(event, upn, steps, success=False, error=str(e))
                    return Failed(upn, FailureKind.NOT_FOUND, str(e))
                except STEP_ERRORS as e:
                    self.logger.error("Delete failed for %s: %s", upn, e)
                    self._audit(event, upn, steps, success=False, error=str(e))
                    return Failed(upn, FailureKind.DIRECTORY_ERROR, str(e))
                steps.applied.append("Delete user")
                self.logger.info(
                    "%s soft-deleted; restorable for %d days", upn, SOFT_DELETE_RETENTION_DAYS
                )
            else:
                steps.suppressed.append("Delete user")

        if steps.suppressed and not steps.applied:
            return self._skipped(upn)

        self.logger.info("Offboarded %s (%d step(s), %d warning(s))", upn, len(steps.applied), len(steps.warnings))
        self._audit(event, upn, steps, success=True, object_id=record.object_id, action=params.action.value)
        return Success(record, warnings=tuple(steps.warnings))

    def _disable(self, record: IdentityRecord, steps: StepLog) -> None:
        if not record.account_enabled:
            self.logger.info("%s is already disabled", record.user_principal_name)
            return
        if self._mutate(steps, record.user_principal_name, "Disable account",
                        self.directory.update_user, record.object_id, {"account_enabled": False}):
            record.account_enabled = False

    def _remove_licenses(self, record: IdentityRecord, steps: StepLog) -> None:
        upn = record.user_principal_name
        try:
            current = self.directory.get_assigned_licenses(record.object_id)
        except STEP_ERRORS as e:
            self._warn(steps, f"Could not read licenses for {upn}: {e}")
            return
        if not current:
            self.logger.info("%s has no licenses assigned", upn)
            return
        if self._mutate(steps, upn, f"Remove {len(current)} license(s)",
                        self.directory.set_assigned_licenses, record.object_id, set()):
            record.licenses = set()

    def _remove_from_groups(self, record: IdentityRecord, steps: StepLog) -> None:
        upn = record.user_principal_name
        try:
            memberships = self.directory.get_group_memberships(record.object_id)
        except STEP_ERRORS as e:
            self._warn(steps, f"Could not list group memberships for {upn}: {e}")
            return
        if not memberships:
            self.logger.info("%s is not a member of any group", upn)
            return
        for group in memberships:
            if self._mutate(steps, upn, f"Remove from group {group.display_name}",
                            self.directory.remove_group_member, group.object_id, record.object_id):
                record.groups.discard(group.display_name)
