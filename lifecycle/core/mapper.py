"""Map CSV rows onto typed operation parameters.

Identifier columns (``UserPrincipalName``, ``ObjectId``) are matched
case-sensitively; optional columns are matched case-insensitively and
unknown columns are ignored. Blank cells mean "not supplied", except for
nullable columns where a present-but-empty cell asks to clear the value.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Type

from .models import OffboardParams, OnboardParams, UpdateParams
from .validators import (
    parse_bool,
    parse_offboard_action,
    split_list,
    validate_display_name,
    validate_principal_name,
)

UPN_COLUMN = "UserPrincipalName"
OBJECT_ID_COLUMN = "ObjectId"
# where row reports keep cells that had no header column
OVERFLOW_KEY = "(extra cells)"


class RowMappingError(ValueError):
    """A row cannot be turned into operation parameters."""
    pass


@dataclass(frozen=True)
class Column:
    name: str
    attr: str
    kind: str = "str"  # str | bool | list | action | nullable


def _cell(row: Mapping[str, Any], key: str) -> Optional[str]:
    value = row.get(key)
    if value is None:
        return None
    return str(value).strip()


def best_effort_identifier(row: Mapping[str, Any]) -> str:
    """Pick something recognisable out of a row for error reporting."""
    for key in (UPN_COLUMN, OBJECT_ID_COLUMN):
        value = _cell(row, key)
        if value:
            return value
    for key, value in row.items():
        if key and key.lower() in (UPN_COLUMN.lower(), OBJECT_ID_COLUMN.lower()) and value:
            return str(value).strip()
    return ""


class RecordMapper:
    """Turns one row into the parameter object of a lifecycle operation."""

    def __init__(
        self,
        operation: str,
        params_type: Type,
        columns: tuple[Column, ...],
        required: tuple[Column, ...] = (),
        accepts_object_id: bool = True,
    ):
        self.operation = operation
        self.params_type = params_type
        self.columns = columns
        self.required = required
        self.accepts_object_id = accepts_object_id

    @property
    def column_names(self) -> list[str]:
        names = [UPN_COLUMN]
        if self.accepts_object_id:
            names.append(OBJECT_ID_COLUMN)
        return names + [col.name for col in self.required + self.columns]

    def identifier(self, row: Mapping[str, Any]) -> tuple[str, str]:
        """Return ``(attribute, value)`` for the row's target.

        Principal name takes precedence when both columns are filled.

        Raises:
            RowMappingError: If no identifier is present
        """
        upn = _cell(row, UPN_COLUMN)
        if upn:
            if not self.accepts_object_id:
                try:
                    upn = validate_principal_name(upn)
                except ValueError as e:
                    raise RowMappingError(str(e)) from e
            return "user_principal_name", upn
        if self.accepts_object_id:
            object_id = _cell(row, OBJECT_ID_COLUMN)
            if object_id:
                return "object_id", object_id
            raise RowMappingError(f"Row has neither {UPN_COLUMN} nor {OBJECT_ID_COLUMN}")
        raise RowMappingError(f"Row is missing {UPN_COLUMN}")

    def map(self, row: Mapping[str, Any]):
        """Build the parameter object for ``row``.

        Raises:
            RowMappingError: On more cells than header columns, a missing
                identifier, a missing required column or a malformed
                boolean/action cell
        """
        # csv.DictReader files surplus cells under the None key; an unquoted
        # comma list shifts every later cell one column to the left
        extra = row.get(None)
        if extra:
            raise RowMappingError(
                f"Row has {len(extra)} more cell(s) than the header; quote comma-separated lists"
            )
        attr, value = self.identifier(row)
        kwargs: dict[str, Any] = {attr: value}
        by_lower = {
            key.lower(): key
            for key in row
            if key and key not in (UPN_COLUMN, OBJECT_ID_COLUMN)
        }

        for col in self.required:
            raw = _cell(row, by_lower.get(col.name.lower(), col.name))
            if not raw:
                raise RowMappingError(f"Row is missing required column '{col.name}'")
            try:
                kwargs[col.attr] = validate_display_name(raw, col.name)
            except ValueError as e:
                raise RowMappingError(str(e)) from e

        for col in self.columns:
            key = by_lower.get(col.name.lower())
            if key is None:
                continue
            raw = _cell(row, key)
            if raw is None:
                continue
            if raw == "":
                if col.kind == "nullable":
                    kwargs[col.attr] = ""
                continue
            try:
                kwargs[col.attr] = self._coerce(col, raw)
            except ValueError as e:
                raise RowMappingError(str(e)) from e

        return self.params_type(**kwargs)

    @staticmethod
    def _coerce(col: Column, raw: str) -> Any:
        if col.kind == "bool":
            return parse_bool(raw, col.name)
        if col.kind == "list":
            return split_list(raw)
        if col.kind == "action":
            return parse_offboard_action(raw)
        return raw


ONBOARD_MAPPER = RecordMapper(
    "Onboard",
    OnboardParams,
    required=(Column("DisplayName", "display_name"),),
    columns=(
        Column("Password", "password"),
        Column("ForceChangePasswordNextLogin", "force_change_password", "bool"),
        Column("InitialGroups", "initial_groups", "list"),
        Column("LicenseSKUs", "license_skus", "list"),
        Column("Department", "department"),
        Column("JobTitle", "job_title"),
        Column("ManagerUPN", "manager_upn"),
        Column("UsageLocation", "usage_location"),
    ),
    accepts_object_id=False,
)

UPDATE_MAPPER = RecordMapper(
    "Update",
    UpdateParams,
    columns=(
        Column("DisplayName", "display_name"),
        Column("Department", "department"),
        Column("JobTitle", "job_title"),
        Column("OfficeLocation", "office_location"),
        Column("StreetAddress", "street_address"),
        Column("City", "city"),
        Column("State", "state"),
        Column("PostalCode", "postal_code"),
        Column("Country", "country"),
        Column("MobilePhone", "mobile_phone"),
        Column("OfficePhone", "office_phone"),
        Column("ManagerUPN", "manager_upn", "nullable"),
        Column("GroupsToAdd", "groups_to_add", "list"),
        Column("GroupsToRemove", "groups_to_remove", "list"),
        Column("LicensesToAssign", "licenses_to_assign", "list"),
        Column("LicensesToRemove", "licenses_to_remove", "list"),
    ),
)

OFFBOARD_MAPPER = RecordMapper(
    "Offboard",
    OffboardParams,
    columns=(
        Column("Action", "action", "action"),
        Column("RevokeSignInSessions", "revoke_sessions", "bool"),
        Column("RemoveAllLicenses", "remove_licenses", "bool"),
        Column("RemoveFromAllGroups", "remove_from_groups", "bool"),
    ),
)
