"""Unit tests for the Graph user, group, license and session services."""
import pytest

from lifecycle.core.directory import GraphDirectory
from lifecycle.core.graph import (
    DirectoryAPIError,
    GroupService,
    LicenseNotFoundError,
    LicenseService,
    SessionService,
    UserAlreadyExistsError,
    UserNotFoundError,
    UserService,
)
from lifecycle.core.graph.users import to_graph_attributes

SKU_E3 = "6fd2c87f-b296-42f0-b197-1e91e994b900"
SKU_EMS = "efccb6f7-5641-4e0e-bd10-b4976e1bf68e"
GROUP_ID = "0b6c2a1e-1111-4222-8333-944445555666"


class _Resp:
    def __init__(self, payload=None):
        self._payload = payload
        self.content = b"{}" if payload is not None else b""

    def json(self):
        return self._payload


class FakeGraphClient:
    """Stands in for GraphClient: records calls, replays canned answers."""

    base_url = "https://graph.test/v1.0"

    def __init__(self):
        self.calls = []
        self.answers = {}

    def _answer(self, verb, path, **kwargs):
        self.calls.append((verb, path, kwargs))
        answer = self.answers.get((verb, path))
        if isinstance(answer, Exception):
            raise answer
        return answer

    def get(self, path, params=None):
        return _Resp(self._answer("get", path, params=params))

    def get_all(self, path, params=None):
        return iter(self._answer("get_all", path, params=params) or [])

    def post(self, path, json=None):
        return _Resp(self._answer("post", path, json=json))

    def patch(self, path, json=None):
        return _Resp(self._answer("patch", path, json=json))

    def put(self, path, json=None):
        return _Resp(self._answer("put", path, json=json))

    def delete(self, path):
        return _Resp(self._answer("delete", path))

    def is_authenticated(self):
        return True


@pytest.fixture
def client():
    return FakeGraphClient()


class TestUserService:
    def test_get_user_expands_manager(self, client):
        client.answers[("get", "/users/alice@contoso.com")] = {
            "id": "oid-1",
            "userPrincipalName": "alice@contoso.com",
            "manager": {"userPrincipalName": "boss@contoso.com"},
        }
        user = UserService(client).get_user("alice@contoso.com")
        assert user.object_id == "oid-1"
        assert user.manager_upn == "boss@contoso.com"
        params = client.calls[0][2]["params"]
        assert "manager" in params["$expand"]
        assert "accountEnabled" in params["$select"]

    def test_get_user_not_found(self, client):
        client.answers[("get", "/users/ghost@contoso.com")] = DirectoryAPIError(404, "not found", "/users")
        assert UserService(client).get_user("ghost@contoso.com") is None

    def test_get_user_other_errors_propagate(self, client):
        client.answers[("get", "/users/alice@contoso.com")] = DirectoryAPIError(503, "busy", "/users")
        with pytest.raises(DirectoryAPIError):
            UserService(client).get_user("alice@contoso.com")

    def test_create_user_payload(self, client):
        client.answers[("post", "/users")] = {"id": "oid-1", "userPrincipalName": "alice@contoso.com"}
        record = UserService(client).create_user(
            "alice@contoso.com", "Alice", "Pa55word!", department="Sales", usage_location="NO"
        )
        payload = client.calls[0][2]["json"]
        assert record.object_id == "oid-1"
        assert payload["accountEnabled"] is True
        assert payload["mailNickname"] == "alice"
        assert payload["passwordProfile"] == {"forceChangePasswordNextSignIn": True, "password": "Pa55word!"}
        assert payload["department"] == "Sales"
        assert payload["usageLocation"] == "NO"
        assert "jobTitle" not in payload

    def test_create_duplicate(self, client):
        client.answers[("post", "/users")] = DirectoryAPIError(
            400, "Another object with the same value for property userPrincipalName already exists.", "/users"
        )
        with pytest.raises(UserAlreadyExistsError):
            UserService(client).create_user("alice@contoso.com", "Alice", "x")

    def test_update_user_translates_names(self, client):
        UserService(client).update_user("oid-1", {"job_title": "Lead", "office_phone": "123", "city": ""})
        verb, path, kwargs = client.calls[0]
        assert (verb, path) == ("patch", "/users/oid-1")
        assert kwargs["json"] == {"jobTitle": "Lead", "businessPhones": ["123"], "city": None}

    def test_unknown_attribute(self):
        with pytest.raises(ValueError):
            to_graph_attributes({"shoe_size": "42"})

    def test_set_and_clear_manager(self, client):
        users = UserService(client)
        users.set_manager("oid-1", "oid-2")
        assert client.calls[0][1] == "/users/oid-1/manager/$ref"
        assert client.calls[0][2]["json"] == {"@odata.id": "https://graph.test/v1.0/users/oid-2"}

        assert users.clear_manager("oid-1") is True
        client.answers[("delete", "/users/oid-1/manager/$ref")] = DirectoryAPIError(404, "none", "/manager")
        assert users.clear_manager("oid-1") is False

    def test_delete_missing_user(self, client):
        client.answers[("delete", "/users/oid-1")] = DirectoryAPIError(404, "gone", "/users/oid-1")
        with pytest.raises(UserNotFoundError):
            UserService(client).delete_user("oid-1")


class TestGroupService:
    def test_find_by_exact_display_name(self, client):
        client.answers[("get", "/groups")] = {"value": [
            {"id": "g1", "displayName": "sales"},
            {"id": "g2", "displayName": "Sales"},
        ]}
        group = GroupService(client).find_group("Sales")
        assert group.object_id == "g2"
        assert client.calls[0][2]["params"]["$filter"] == "displayName eq 'Sales'"

    def test_find_escapes_quotes(self, client):
        client.answers[("get", "/groups")] = {"value": []}
        assert GroupService(client).find_group("O'Brien Team") is None
        assert client.calls[0][2]["params"]["$filter"] == "displayName eq 'O''Brien Team'"

    def test_find_by_id(self, client):
        client.answers[("get", f"/groups/{GROUP_ID}")] = {"id": GROUP_ID, "displayName": "Sales"}
        assert GroupService(client).find_group(GROUP_ID).display_name == "Sales"

    def test_add_member_already_present(self, client):
        client.answers[("post", "/groups/g1/members/$ref")] = DirectoryAPIError(
            400, "One or more added object references already exist", "/groups/g1/members/$ref"
        )
        assert GroupService(client).add_member("g1", "oid-1") is False

    def test_remove_member_not_present(self, client):
        client.answers[("delete", "/groups/g1/members/oid-1/$ref")] = DirectoryAPIError(404, "x", "/groups")
        assert GroupService(client).remove_member("g1", "oid-1") is False

    def test_memberships(self, client):
        client.answers[("get_all", "/users/oid-1/memberOf/microsoft.graph.group")] = [
            {"id": "g1", "displayName": "Sales"},
        ]
        groups = GroupService(client).get_memberships("oid-1")
        assert [g.display_name for g in groups] == ["Sales"]


class TestLicenseService:
    def test_resolve_part_number_and_guid(self, client):
        client.answers[("get_all", "/subscribedSkus")] = [{"skuPartNumber": "ENTERPRISEPACK", "skuId": SKU_E3}]
        licenses = LicenseService(client)
        assert licenses.resolve_sku_id("enterprisepack") == SKU_E3
        assert licenses.resolve_sku_id(SKU_EMS.upper()) == SKU_EMS
        with pytest.raises(LicenseNotFoundError):
            licenses.resolve_sku_id("NOPE")
        assert len([c for c in client.calls if c[1] == "/subscribedSkus"]) == 1

    def test_set_assigned_licenses_single_call(self, client):
        client.answers[("get", "/users/oid-1")] = {"assignedLicenses": [{"skuId": SKU_E3}]}
        changed = LicenseService(client).set_assigned_licenses("oid-1", {SKU_EMS})
        posts = [c for c in client.calls if c[0] == "post"]
        assert changed is True
        assert len(posts) == 1
        assert posts[0][1] == "/users/oid-1/assignLicense"
        assert posts[0][2]["json"] == {
            "addLicenses": [{"skuId": SKU_EMS, "disabledPlans": []}],
            "removeLicenses": [SKU_E3],
        }

    def test_set_assigned_licenses_in_sync(self, client):
        client.answers[("get", "/users/oid-1")] = {"assignedLicenses": [{"skuId": SKU_E3}]}
        assert LicenseService(client).set_assigned_licenses("oid-1", {SKU_E3.upper()}) is False
        assert not [c for c in client.calls if c[0] == "post"]


def test_revoke_sessions(client):
    client.answers[("post", "/users/oid-1/revokeSignInSessions")] = {"value": True}
    assert SessionService(client).revoke_sessions("oid-1") is True


def test_graph_directory_unknown_license_is_none(client):
    client.answers[("get_all", "/subscribedSkus")] = []
    directory = GraphDirectory(client)
    assert directory.resolve_license("MISSING") is None
    assert directory.is_authenticated()
