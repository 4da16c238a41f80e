"""Onboard (joiner): create a user, then manager, groups and licenses."""
from __future__ import annotations
import secrets
import string

from ..graph import UserAlreadyExistsError
from ..mapper import ONBOARD_MAPPER
from ..models import Failed, FailureKind, IdentityRecord, OnboardParams, OperationResult, Success
from .base import LifecycleOperation, STEP_ERRORS, StepLog


def generate_temp_password(length: int = 16) -> str:
    """Generate a temporary password meeting directory complexity rules.

    Args:
        length: Password length (default: 16, minimum 8)

    Returns:
        Random password with upper, lower, digit and special characters
    """
    length = max(length, 8)
    specials = "!@#$%^&*"
    alphabet = string.ascii_letters + string.digits + specials
    required = [
        secrets.choice(string.ascii_uppercase),
        secrets.choice(string.ascii_lowercase),
        secrets.choice(string.digits),
        secrets.choice(specials),
    ]
    rest = [secrets.choice(alphabet) for _ in range(length - len(required))]
    chars = required + rest
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)


class OnboardOperation(LifecycleOperation):
    """Create a directory user.

    Step 1 (create) is essential: if it fails nothing else is attempted.
    Manager, groups and licenses are best-effort. Re-running for an existing
    principal name fails at step 1 by design.
    """

    name = "Onboard"
    mapper = ONBOARD_MAPPER

    def __init__(self, *args, default_usage_location: str | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.default_usage_location = default_usage_location

    def run(self, params: OnboardParams) -> OperationResult:
        upn = params.user_principal_name
        failed = self._require_session(upn)
        if failed:
            return failed

        self.logger.info("Onboarding %s (%s)", upn, params.display_name)
        steps = StepLog()
        password = params.password or generate_temp_password()
        generated = None if params.password else password
        if generated:
            self.logger.debug("No password supplied for %s; generated a temporary one", upn)

        if not self.gate.should_process(upn, "Create user"):
            steps.suppressed.append("Create user")
            if self.gate.dry_run:
                self._preview(params, steps)
            return self._skipped(upn)

        try:
            record = self.directory.create_user(
                upn,
                params.display_name,
                password,
                force_change_password=params.force_change_password,
                department=params.department,
                job_title=params.job_title,
                usage_location=params.usage_location or self.default_usage_location,
            )
        except UserAlreadyExistsError as e:
            self.logger.error("Onboard %s failed: %s", upn, e)
            self._audit("onboard", upn, steps, success=False, error=str(e))
            return Failed(upn, FailureKind.CONFLICT, str(e))
        except STEP_ERRORS as e:
            self.logger.error("Onboard %s failed: %s", upn, e)
            self._audit("onboard", upn, steps, success=False, error=str(e))
            return Failed(upn, FailureKind.DIRECTORY_ERROR, str(e))

        steps.applied.append("Create user")
        self.logger.info("Created %s (id=%s)", upn, record.object_id)

        if params.manager_upn:
            self._assign_manager(record, params.manager_upn, steps)
        for group in params.initial_groups:
            self._add_to_group(record, group, steps)
        if params.license_skus:
            self._assign_licenses(record, params.license_skus, steps)

        if steps.warnings:
            self.logger.warning("Onboarded %s with %d warning(s)", upn, len(steps.warnings))
        else:
            self.logger.info("Onboarded %s", upn)
        self._audit(
            "onboard",
            upn,
            steps,
            success=True,
            object_id=record.object_id,
            display_name=params.display_name,
            groups=params.initial_groups,
            licenses=params.license_skus,
        )
        return Success(record, warnings=tuple(steps.warnings), generated_password=generated)

    def _assign_manager(self, record: IdentityRecord, manager_upn: str, steps: StepLog) -> None:
        manager = self._resolve_user(manager_upn, "manager", steps)
        if manager is None:
            self.logger.warning("Skipping manager assignment for %s", record.user_principal_name)
            return
        if self._mutate(steps, record.user_principal_name, f"Set manager to {manager.user_principal_name}",
                        self.directory.set_manager, record.object_id, manager.object_id):
            record.manager_upn = manager.user_principal_name

    def _add_to_group(self, record: IdentityRecord, name_or_id: str, steps: StepLog) -> None:
        try:
            group = self.directory.find_group(name_or_id)
        except STEP_ERRORS as e:
            self._warn(steps, f"Could not look up group '{name_or_id}': {e}")
            return
        if group is None:
            self._warn(steps, f"Group '{name_or_id}' not found; skipping")
            return
        if self._mutate(steps, record.user_principal_name, f"Add to group {group.display_name}",
                        self.directory.add_group_member, group.object_id, record.object_id):
            record.groups.add(group.display_name)

    def _assign_licenses(self, record: IdentityRecord, skus: list[str], steps: StepLog) -> None:
        resolved = self._resolve_licenses(skus, steps)
        if not resolved:
            return
        target = record.licenses | resolved
        if self._mutate(steps, record.user_principal_name, f"Assign licenses {', '.join(sorted(resolved))}",
                        self.directory.set_assigned_licenses, record.object_id, target):
            record.licenses = target

    def _preview(self, params: OnboardParams, steps: StepLog) -> None:
        """Exercise the read-only lookups a real run would perform."""
        upn = params.user_principal_name
        if params.manager_upn:
            manager = self._resolve_user(params.manager_upn, "manager", steps)
            if manager is not None:
                self.gate.should_process(upn, f"Set manager to {manager.user_principal_name}")
        for name_or_id in params.initial_groups:
            try:
                group = self.directory.find_group(name_or_id)
            except STEP_ERRORS as e:
                self._warn(steps, f"Could not look up group '{name_or_id}': {e}")
                continue
            if group is None:
                self._warn(steps, f"Group '{name_or_id}' not found; skipping")
            else:
                self.gate.should_process(upn, f"Add to group {group.display_name}")
        for sku in params.license_skus:
            try:
                if not self.directory.resolve_license(sku):
                    self._warn(steps, f"License '{sku}' not found; skipping")
            except STEP_ERRORS as e:
                self._warn(steps, f"Could not resolve license '{sku}': {e}")
