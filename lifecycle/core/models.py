"""Data model for identity lifecycle operations.

Records mirror the directory user; parameter classes carry one operation's
inputs; results are tagged so callers can classify them without inspecting
strings.
"""
from __future__ import annotations
import enum
from dataclasses import dataclass, field
from typing import Any, Optional, Union

SOFT_DELETE_RETENTION_DAYS = 30

# Attribute name -> Microsoft Graph property name
ATTRIBUTE_FIELDS = {
    "display_name": "displayName",
    "department": "department",
    "job_title": "jobTitle",
    "office_location": "officeLocation",
    "street_address": "streetAddress",
    "city": "city",
    "state": "state",
    "postal_code": "postalCode",
    "country": "country",
    "mobile_phone": "mobilePhone",
    "office_phone": "businessPhones",
}


@dataclass
class IdentityRecord:
    """A directory user."""
    user_principal_name: str
    object_id: str = ""
    display_name: str = ""
    department: Optional[str] = None
    job_title: Optional[str] = None
    office_location: Optional[str] = None
    street_address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    mobile_phone: Optional[str] = None
    office_phone: Optional[str] = None
    account_enabled: bool = True
    manager_upn: Optional[str] = None
    groups: set[str] = field(default_factory=set)
    licenses: set[str] = field(default_factory=set)

    @classmethod
    def from_graph(cls, data: dict) -> "IdentityRecord":
        """Build a record from a Graph user representation."""
        phones = data.get("businessPhones") or []
        manager = data.get("manager") or {}
        return cls(
            user_principal_name=data.get("userPrincipalName", ""),
            object_id=data.get("id", ""),
            display_name=data.get("displayName") or "",
            department=data.get("department"),
            job_title=data.get("jobTitle"),
            office_location=data.get("officeLocation"),
            street_address=data.get("streetAddress"),
            city=data.get("city"),
            state=data.get("state"),
            postal_code=data.get("postalCode"),
            country=data.get("country"),
            mobile_phone=data.get("mobilePhone"),
            office_phone=phones[0] if phones else None,
            account_enabled=bool(data.get("accountEnabled", True)),
            manager_upn=manager.get("userPrincipalName"),
            licenses={lic["skuId"].lower() for lic in data.get("assignedLicenses") or [] if lic.get("skuId")},
        )


@dataclass(frozen=True)
class Group:
    """A directory group."""
    object_id: str
    display_name: str

    @classmethod
    def from_graph(cls, data: dict) -> "Group":
        return cls(object_id=data.get("id", ""), display_name=data.get("displayName") or "")


# ─────────────────────────────────────────────────────────────────────────────
# Operation parameters
# ─────────────────────────────────────────────────────────────────────────────

class OffboardAction(str, enum.Enum):
    DISABLE = "Disable"
    DELETE = "Delete"


@dataclass
class OnboardParams:
    user_principal_name: str
    display_name: str
    password: Optional[str] = None
    force_change_password: bool = True
    department: Optional[str] = None
    job_title: Optional[str] = None
    manager_upn: Optional[str] = None
    initial_groups: list[str] = field(default_factory=list)
    license_skus: list[str] = field(default_factory=list)
    usage_location: Optional[str] = None

    @property
    def identifier(self) -> str:
        return self.user_principal_name


@dataclass
class _TargetParams:
    """Exactly one of principal name or object id addresses the target."""
    user_principal_name: Optional[str] = None
    object_id: Optional[str] = None

    def __post_init__(self):
        if bool(self.user_principal_name) == bool(self.object_id):
            raise ValueError("Exactly one of user_principal_name or object_id is required")

    @property
    def identifier(self) -> str:
        return self.user_principal_name or self.object_id


@dataclass
class UpdateParams(_TargetParams):
    """Optional fields for an update.

    ``manager_upn`` is ``None`` when absent (leave unchanged) and ``""`` when
    the caller explicitly asks to clear the manager.
    """
    display_name: Optional[str] = None
    department: Optional[str] = None
    job_title: Optional[str] = None
    office_location: Optional[str] = None
    street_address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    mobile_phone: Optional[str] = None
    office_phone: Optional[str] = None
    manager_upn: Optional[str] = None
    groups_to_add: list[str] = field(default_factory=list)
    groups_to_remove: list[str] = field(default_factory=list)
    licenses_to_assign: list[str] = field(default_factory=list)
    licenses_to_remove: list[str] = field(default_factory=list)

    def attribute_changes(self) -> dict[str, str]:
        """Return the simple attribute fields that were supplied."""
        return {
            name: getattr(self, name)
            for name in ATTRIBUTE_FIELDS
            if getattr(self, name) is not None
        }

    def has_changes(self) -> bool:
        return bool(
            self.attribute_changes()
            or self.manager_upn is not None
            or self.groups_to_add
            or self.groups_to_remove
            or self.licenses_to_assign
            or self.licenses_to_remove
        )


@dataclass
class OffboardParams(_TargetParams):
    action: OffboardAction = OffboardAction.DISABLE
    revoke_sessions: bool = True
    remove_licenses: bool = True
    remove_from_groups: bool = False


# ─────────────────────────────────────────────────────────────────────────────
# Results
# ─────────────────────────────────────────────────────────────────────────────

class FailureKind(str, enum.Enum):
    NOT_AUTHENTICATED = "not_authenticated"
    INVALID_INPUT = "invalid_input"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    DIRECTORY_ERROR = "directory_error"


@dataclass(frozen=True)
class Success:
    record: IdentityRecord
    warnings: tuple[str, ...] = ()
    generated_password: Optional[str] = field(default=None, repr=False, compare=False)

    @property
    def principal_name(self) -> str:
        return self.record.user_principal_name

    def __str__(self) -> str:
        return f"Success: {self.principal_name}"


@dataclass(frozen=True)
class Skipped:
    principal_name: str
    reason: str

    def __str__(self) -> str:
        return f"Skipped: {self.principal_name} ({self.reason})"


@dataclass(frozen=True)
class Failed:
    principal_name: str
    kind: FailureKind
    message: str

    def __str__(self) -> str:
        return f"Error: {self.principal_name} ({self.kind.value}): {self.message}"


OperationResult = Union[Success, Skipped, Failed]


# ─────────────────────────────────────────────────────────────────────────────
# Batch bookkeeping
# ─────────────────────────────────────────────────────────────────────────────

class RowStatus(str, enum.Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class RowOutcome:
    row: int
    identifier: str
    status: RowStatus
    detail: str
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class RunSummary:
    """Aggregate over one batch run.

    ``failed`` counts every non-success row, skipped rows included, so
    ``succeeded + failed == processed`` always holds.
    """
    total: int = 0
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    failures: list[RowOutcome] = field(default_factory=list)
    aborted: Optional[str] = None

    def record(self, outcome: RowOutcome) -> None:
        if outcome.status is RowStatus.SUCCESS:
            self.succeeded += 1
            return
        self.failed += 1
        if outcome.status is RowStatus.SKIPPED:
            self.skipped += 1
        self.failures.append(outcome)

    @property
    def ok(self) -> bool:
        return self.aborted is None and self.failed == 0
