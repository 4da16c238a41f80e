"""Pytest shared fixtures: in-memory directory, isolated audit trail, CSV writer."""
import csv
import dataclasses
import itertools
import pathlib
import sys
from typing import Optional

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
import requests

from lifecycle.core.gate import ConfirmationGate
from lifecycle.core.graph import DirectoryAPIError, UserAlreadyExistsError, UserNotFoundError
from lifecycle.core.models import Group, IdentityRecord
from scripts import audit


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _block_network(monkeypatch):
    """Fail loudly if a unit test reaches for the real Graph API.

    Tests that exercise the HTTP client install their own stubs on top.
    """
    def _blocked(url, *args, **kwargs):
        raise RuntimeError(f"Unexpected network access in tests: {url}")

    for verb in ("get", "post", "put", "patch", "delete"):
        monkeypatch.setattr(requests, verb, _blocked)


@pytest.fixture(autouse=True)
def temp_audit_dir(monkeypatch, tmp_path):
    """Provide an isolated audit directory for each test."""
    audit_dir = tmp_path / "audit"
    audit_file = audit_dir / "lifecycle-events.jsonl"
    monkeypatch.setattr(audit, "AUDIT_LOG_DIR", audit_dir)
    monkeypatch.setattr(audit, "AUDIT_LOG_FILE", audit_file)
    monkeypatch.setattr(audit, "_secret_file", tmp_path / "no-such-secret")
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY", "test-signing-key-for-audit-trail")
    return audit_dir, audit_file


# ─────────────────────────────────────────────────────────────────────────────
# In-memory directory
# ─────────────────────────────────────────────────────────────────────────────
class FakeDirectory:
    """DirectoryClient implementation backed by dictionaries.

    Every call is recorded in ``calls``; ``fail_on[method]`` may hold an
    exception, or a callable taking the call arguments and returning an
    exception (or None), to make that method raise.
    """

    MUTATING = {
        "create_user",
        "update_user",
        "set_manager",
        "clear_manager",
        "add_group_member",
        "remove_group_member",
        "set_assigned_licenses",
        "revoke_sessions",
        "delete_user",
    }

    def __init__(self):
        self.authenticated = True
        self.users: dict[str, IdentityRecord] = {}
        self.deleted: dict[str, IdentityRecord] = {}
        self.groups: dict[str, Group] = {}
        self.members: dict[str, set[str]] = {}
        self.skus = {"ENTERPRISEPACK": "sku-e3", "EMS": "sku-ems", "POWER_BI_PRO": "sku-pbi"}
        self.revoked: list[str] = []
        self.calls: list[tuple] = []
        self.fail_on: dict = {}
        self._ids = itertools.count(1)

    # Test helpers -------------------------------------------------------
    def add_user(self, upn: str, **attrs) -> IdentityRecord:
        record = IdentityRecord(user_principal_name=upn, object_id=f"user-{next(self._ids)}", display_name=upn, **attrs)
        self.users[record.object_id] = record
        return record

    def add_group(self, name: str) -> Group:
        group = Group(object_id=f"group-{next(self._ids)}", display_name=name)
        self.groups[group.object_id] = group
        self.members[group.object_id] = set()
        return group

    def user(self, upn: str) -> Optional[IdentityRecord]:
        return self._find(upn)

    def mutating_calls(self) -> list[tuple]:
        return [call for call in self.calls if call[0] in self.MUTATING]

    def calls_to(self, name: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == name]

    def _call(self, name: str, *args) -> None:
        self.calls.append((name,) + args)
        failure = self.fail_on.get(name)
        if callable(failure) and not isinstance(failure, BaseException):
            failure = failure(*args)
        if failure is not None:
            raise failure

    def _find(self, identifier: str) -> Optional[IdentityRecord]:
        if identifier in self.users:
            return self.users[identifier]
        for record in self.users.values():
            if record.user_principal_name.lower() == identifier.lower():
                return record
        return None

    def _require(self, object_id: str) -> IdentityRecord:
        record = self.users.get(object_id)
        if record is None:
            raise DirectoryAPIError(404, "Resource does not exist", f"/users/{object_id}")
        return record

    # DirectoryClient ----------------------------------------------------
    def is_authenticated(self) -> bool:
        return self.authenticated

    def create_user(self, user_principal_name, display_name, password, force_change_password=True,
                    department=None, job_title=None, usage_location=None) -> IdentityRecord:
        self._call("create_user", user_principal_name, display_name)
        if self._find(user_principal_name):
            raise UserAlreadyExistsError(f"User '{user_principal_name}' already exists")
        record = self.add_user(user_principal_name, department=department, job_title=job_title)
        record.display_name = display_name
        return dataclasses.replace(record)

    def get_user(self, identifier: str) -> Optional[IdentityRecord]:
        self._call("get_user", identifier)
        record = self._find(identifier)
        if record is None:
            return None
        groups = {g.display_name for gid, g in self.groups.items() if record.object_id in self.members[gid]}
        return dataclasses.replace(record, groups=groups, licenses=set(record.licenses))

    def update_user(self, object_id: str, changes: dict) -> None:
        self._call("update_user", object_id, dict(changes))
        record = self._require(object_id)
        for name, value in changes.items():
            setattr(record, name, value)

    def set_manager(self, object_id: str, manager_id: str) -> None:
        self._call("set_manager", object_id, manager_id)
        self._require(object_id).manager_upn = self._require(manager_id).user_principal_name

    def clear_manager(self, object_id: str) -> bool:
        self._call("clear_manager", object_id)
        record = self._require(object_id)
        had_manager = record.manager_upn is not None
        record.manager_upn = None
        return had_manager

    def find_group(self, name_or_id: str) -> Optional[Group]:
        self._call("find_group", name_or_id)
        if name_or_id in self.groups:
            return self.groups[name_or_id]
        return next((g for g in self.groups.values() if g.display_name == name_or_id), None)

    def add_group_member(self, group_id: str, object_id: str) -> bool:
        self._call("add_group_member", group_id, object_id)
        members = self.members[group_id]
        added = object_id not in members
        members.add(object_id)
        return added

    def remove_group_member(self, group_id: str, object_id: str) -> bool:
        self._call("remove_group_member", group_id, object_id)
        members = self.members[group_id]
        removed = object_id in members
        members.discard(object_id)
        return removed

    def get_group_memberships(self, object_id: str) -> list[Group]:
        self._call("get_group_memberships", object_id)
        return [g for gid, g in self.groups.items() if object_id in self.members[gid]]

    def resolve_license(self, identifier: str) -> Optional[str]:
        self._call("resolve_license", identifier)
        if identifier in self.skus.values():
            return identifier
        return self.skus.get(identifier.upper())

    def get_assigned_licenses(self, object_id: str) -> set[str]:
        self._call("get_assigned_licenses", object_id)
        return set(self._require(object_id).licenses)

    def set_assigned_licenses(self, object_id: str, sku_ids) -> None:
        sku_ids = set(sku_ids)
        self._call("set_assigned_licenses", object_id, sku_ids)
        self._require(object_id).licenses = sku_ids

    def revoke_sessions(self, object_id: str) -> bool:
        self._call("revoke_sessions", object_id)
        self._require(object_id)
        self.revoked.append(object_id)
        return True

    def delete_user(self, object_id: str) -> None:
        self._call("delete_user", object_id)
        if object_id not in self.users:
            raise UserNotFoundError(f"User '{object_id}' not found")
        self.deleted[object_id] = self.users.pop(object_id)
        for members in self.members.values():
            members.discard(object_id)


@pytest.fixture()
def directory():
    return FakeDirectory()


@pytest.fixture()
def gate():
    return ConfirmationGate()


@pytest.fixture()
def dry_gate():
    return ConfirmationGate(dry_run=True)


@pytest.fixture()
def write_csv(tmp_path):
    """Write rows (list of dicts) to a CSV file and return its path."""
    def _write(rows, fieldnames=None, name="input.csv"):
        path = tmp_path / name
        fieldnames = fieldnames or list(rows[0].keys())
        with path.open("w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=fieldnames)
            writer.writeheader()
            writer.writerows(rows)
        return path
    return _write
