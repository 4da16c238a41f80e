"""Microsoft Graph license assignment operations."""
from __future__ import annotations
from typing import Iterable, Optional

from .client import GraphClient
from .exceptions import LicenseNotFoundError
from .groups import is_guid


class LicenseService:
    """Service for reading and replacing a user's assigned licenses.

    Graph only offers incremental assignLicense; ``set_assigned_licenses``
    diffs against the current assignment so callers can think in terms of
    the complete set.
    """

    def __init__(self, client: GraphClient):
        self.client = client
        self._sku_cache: Optional[dict[str, str]] = None

    def subscribed_skus(self) -> dict[str, str]:
        """Return skuPartNumber (upper-case) -> skuId for the tenant."""
        if self._sku_cache is None:
            self._sku_cache = {
                sku["skuPartNumber"].upper(): sku["skuId"]
                for sku in self.client.get_all("/subscribedSkus")
                if sku.get("skuPartNumber") and sku.get("skuId")
            }
        return self._sku_cache

    def resolve_sku_id(self, identifier: str) -> str:
        """Resolve a SKU id or part number (e.g. ENTERPRISEPACK) to a SKU id.

        Raises:
            LicenseNotFoundError: If the part number is not subscribed
        """
        if is_guid(identifier):
            return identifier.lower()
        sku_id = self.subscribed_skus().get(identifier.upper())
        if not sku_id:
            raise LicenseNotFoundError(f"License SKU '{identifier}' is not subscribed in this tenant")
        return sku_id

    def get_assigned_licenses(self, object_id: str) -> set[str]:
        resp = self.client.get(f"/users/{object_id}", params={"$select": "assignedLicenses"})
        return {
            lic["skuId"].lower()
            for lic in resp.json().get("assignedLicenses") or []
            if lic.get("skuId")
        }

    def set_assigned_licenses(self, object_id: str, sku_ids: Iterable[str]) -> bool:
        """Replace the user's assigned licenses with exactly ``sku_ids``.

        Returns:
            True if an assignLicense call was made, False if already in sync
        """
        target = {sku.lower() for sku in sku_ids}
        current = self.get_assigned_licenses(object_id)
        to_add = sorted(target - current)
        to_remove = sorted(current - target)
        if not to_add and not to_remove:
            return False
        self.client.post(
            f"/users/{object_id}/assignLicense",
            json={
                "addLicenses": [{"skuId": sku, "disabledPlans": []} for sku in to_add],
                "removeLicenses": to_remove,
            },
        )
        return True
