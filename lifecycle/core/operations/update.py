"""Update (mover): attributes, manager, group membership and licenses."""
from __future__ import annotations
from typing import Optional

from ..mapper import UPDATE_MAPPER
from ..models import Failed, FailureKind, IdentityRecord, OperationResult, Skipped, Success, UpdateParams
from .base import LifecycleOperation, STEP_ERRORS, StepLog


class UpdateOperation(LifecycleOperation):
    """Apply a partial update to an existing user.

    Each group of fields is applied independently. Licenses are reconciled
    as a whole set, ``(current | assign) - remove``, because the directory
    replaces the assigned set rather than adding or removing entries.
    """

    name = "Update"
    mapper = UPDATE_MAPPER

    def run(self, params: UpdateParams) -> OperationResult:
        identifier = params.identifier
        failed = self._require_session(identifier)
        if failed:
            return failed

        if not params.has_changes():
            self.logger.warning("No attributes supplied for %s; nothing to update", identifier)
            return Skipped(identifier, "no attributes to update")

        target = self._resolve_target(identifier)
        if isinstance(target, Failed):
            return target
        record = target
        upn = record.user_principal_name
        self.logger.info("Updating %s", upn)
        steps = StepLog()

        attribute_error = self._apply_attributes(record, params, steps)
        if params.manager_upn is not None:
            self._apply_manager(record, params.manager_upn, steps)
        for name_or_id in params.groups_to_add:
            self._apply_group(record, name_or_id, steps, add=True)
        for name_or_id in params.groups_to_remove:
            self._apply_group(record, name_or_id, steps, add=False)
        if params.licenses_to_assign or params.licenses_to_remove:
            self._apply_licenses(record, params.licenses_to_assign, params.licenses_to_remove, steps)

        if attribute_error:
            self._audit("update", upn, steps, success=False, error=attribute_error)
            return Failed(upn, FailureKind.DIRECTORY_ERROR, attribute_error)
        if steps.suppressed and not steps.applied:
            return self._skipped(upn)

        refreshed = self._refresh(record)
        self.logger.info("Updated %s (%d change(s), %d warning(s))", upn, len(steps.applied), len(steps.warnings))
        self._audit("update", upn, steps, success=True, object_id=record.object_id)
        return Success(refreshed, warnings=tuple(steps.warnings))

    def _apply_attributes(self, record: IdentityRecord, params: UpdateParams, steps: StepLog) -> Optional[str]:
        """Single combined attribute update; returns the error text on failure."""
        changes = params.attribute_changes()
        if not changes:
            return None
        action = f"Update attributes {', '.join(sorted(changes))}"
        if not self.gate.should_process(record.user_principal_name, action):
            steps.suppressed.append(action)
            return None
        try:
            self.directory.update_user(record.object_id, changes)
        except STEP_ERRORS as e:
            self.logger.error("Attribute update failed for %s: %s", record.user_principal_name, e)
            return str(e)
        steps.applied.append(action)
        self.logger.info("%s: %s", record.user_principal_name, action)
        for name, value in changes.items():
            setattr(record, name, value or None)
        return None

    def _apply_manager(self, record: IdentityRecord, manager_upn: str, steps: StepLog) -> None:
        upn = record.user_principal_name
        if manager_upn == "":
            if self._mutate(steps, upn, "Clear manager", self.directory.clear_manager, record.object_id):
                record.manager_upn = None
            return
        manager = self._resolve_user(manager_upn, "manager", steps)
        if manager is None:
            return
        if self._mutate(steps, upn, f"Set manager to {manager.user_principal_name}",
                        self.directory.set_manager, record.object_id, manager.object_id):
            record.manager_upn = manager.user_principal_name

    def _apply_group(self, record: IdentityRecord, name_or_id: str, steps: StepLog, add: bool) -> None:
        try:
            group = self.directory.find_group(name_or_id)
        except STEP_ERRORS as e:
            self._warn(steps, f"Could not look up group '{name_or_id}': {e}")
            return
        if group is None:
            self._warn(steps, f"Group '{name_or_id}' not found; skipping")
            return
        if add:
            self._mutate(steps, record.user_principal_name, f"Add to group {group.display_name}",
                         self.directory.add_group_member, group.object_id, record.object_id)
        else:
            self._mutate(steps, record.user_principal_name, f"Remove from group {group.display_name}",
                         self.directory.remove_group_member, group.object_id, record.object_id)

    def _apply_licenses(self, record: IdentityRecord, assign: list[str], remove: list[str], steps: StepLog) -> None:
        to_assign = self._resolve_licenses(assign, steps)
        to_remove = self._resolve_licenses(remove, steps)
        try:
            current = set(self.directory.get_assigned_licenses(record.object_id))
        except STEP_ERRORS as e:
            self._warn(steps, f"Could not read licenses for {record.user_principal_name}: {e}")
            return
        target = (current | to_assign) - to_remove
        if target == current:
            self.logger.info("%s: licenses already up to date", record.user_principal_name)
            return
        if self._mutate(steps, record.user_principal_name, f"Set licenses to {', '.join(sorted(target)) or '(none)'}",
                        self.directory.set_assigned_licenses, record.object_id, target):
            record.licenses = target

    def _refresh(self, record: IdentityRecord) -> IdentityRecord:
        try:
            return self.directory.get_user(record.object_id) or record
        except STEP_ERRORS as e:
            self.logger.warning("Could not re-read %s after update: %s", record.user_principal_name, e)
            return record
