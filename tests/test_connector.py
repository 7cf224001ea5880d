"""Tests for the connector facade (cognito_connector.connector)."""

from __future__ import annotations

from unittest import mock

import pytest
from botocore.exceptions import ClientError

from cognito_connector.config import ConnectorConfig
from cognito_connector.connector import CognitoUserPoolConnector
from cognito_connector.errors import (
    ConfigurationError,
    ConnectorIOError,
    InvalidAttributeValueError,
    RetryableError,
    UnknownUidError,
)
from cognito_connector.filters import equals_filter
from cognito_connector.model import AttributeDelta, ConnectorAttribute, OperationOptions, Uid

POOL_ID = "us-west-2_TestPool"
SUB = "00000000-0000-0000-0000-000000000001"

USER_POOL = {
    "Id": POOL_ID,
    "SchemaAttributes": [
        {"Name": "sub", "AttributeDataType": "String", "Mutable": False},
        {"Name": "email", "AttributeDataType": "String"},
    ],
}


def _ok(**body) -> dict:
    return {**body, "ResponseMetadata": {"HTTPStatusCode": 200}}


def _make_client_error(code: str, operation: str = "Operation") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": f"{code} raised"}}, operation)


def _mock_client() -> mock.MagicMock:
    client = mock.MagicMock()
    client.describe_user_pool.return_value = _ok(UserPool=USER_POOL)
    client.admin_create_user.return_value = _ok(
        User={"Username": "foo", "Attributes": [{"Name": "sub", "Value": SUB}], "Enabled": True}
    )
    client.create_group.return_value = _ok(Group={"GroupName": "staff"})
    client.admin_update_user_attributes.return_value = _ok()
    client.admin_delete_user.return_value = _ok()
    client.delete_group.return_value = _ok()
    client.admin_add_user_to_group.return_value = _ok()
    client.admin_remove_user_from_group.return_value = _ok()
    client.get_paginator.return_value.paginate.return_value = [_ok(Users=[], Groups=[])]
    return client


def _connector(client: mock.MagicMock = None) -> CognitoUserPoolConnector:
    return CognitoUserPoolConnector(ConnectorConfig(user_pool_id=POOL_ID), client or _mock_client())


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    def test_invalid_config(self) -> None:
        with pytest.raises(ConfigurationError):
            CognitoUserPoolConnector(ConnectorConfig(user_pool_id=""))

    def test_init_checks_pool(self) -> None:
        client = _mock_client()
        connector = _connector(client)
        assert connector.init() is connector
        client.describe_user_pool.assert_called_once_with(UserPoolId=POOL_ID)

    @mock.patch("cognito_connector.connector.build_cognito_client")
    def test_init_builds_client(self, mock_build: mock.MagicMock) -> None:
        mock_build.return_value = _mock_client()
        config = ConnectorConfig(user_pool_id=POOL_ID)
        connector = CognitoUserPoolConnector(config).init()
        mock_build.assert_called_once_with(config)
        assert connector.client is mock_build.return_value

    def test_init_unexpected_status(self) -> None:
        client = _mock_client()
        client.describe_user_pool.return_value = {"ResponseMetadata": {"HTTPStatusCode": 503}}
        with pytest.raises(ConnectorIOError, match="Failed to describe user pool"):
            _connector(client).init()

    def test_init_pool_not_found(self) -> None:
        client = _mock_client()
        client.describe_user_pool.side_effect = _make_client_error("ResourceNotFoundException")
        with pytest.raises(UnknownUidError):
            _connector(client).init()

    def test_dispose_closes_client(self) -> None:
        client = _mock_client()
        connector = _connector(client)
        connector.dispose()
        client.close.assert_called_once_with()
        assert connector.client is None

    @mock.patch("cognito_connector.connector.build_cognito_client")
    def test_test_rebuilds_client(self, mock_build: mock.MagicMock) -> None:
        old = _mock_client()
        mock_build.return_value = _mock_client()
        connector = _connector(old)
        connector.test()
        old.close.assert_called_once_with()
        assert connector.client is mock_build.return_value
        mock_build.return_value.describe_user_pool.assert_called_once()


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------


class TestSchema:
    def test_schema_projects_pool(self) -> None:
        schema = _connector().schema()
        assert schema.user.attribute("email") is not None
        assert schema.group.name == "Group"

    def test_refresh_replaces_map(self) -> None:
        client = _mock_client()
        connector = _connector(client)
        first = connector.user_schema_map

        pool = dict(USER_POOL, SchemaAttributes=USER_POOL["SchemaAttributes"] + [{"Name": "custom:team"}])
        client.describe_user_pool.return_value = _ok(UserPool=pool)
        connector.schema()

        assert "custom_team" in connector.user_schema_map
        assert "custom_team" not in first

    def test_schema_loaded_once_lazily(self) -> None:
        client = _mock_client()
        connector = _connector(client)
        connector.user_schema_map
        connector.user_schema_map
        client.describe_user_pool.assert_called_once()


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


class TestDispatch:
    def test_create_user(self) -> None:
        uid = _connector().create(
            "User", [ConnectorAttribute.of("__NAME__", "foo"), ConnectorAttribute.of("email", "foo@example.com")]
        )
        assert uid == Uid(SUB, "foo")

    def test_create_group(self) -> None:
        assert _connector().create("Group", [ConnectorAttribute.of("__NAME__", "staff")]) == Uid("staff", "staff")

    @pytest.mark.parametrize("object_class", ["Account", "__ACCOUNT__", ""])
    def test_unsupported_object_class(self, object_class: str) -> None:
        connector = _connector()
        with pytest.raises(InvalidAttributeValueError, match="Unsupported object class"):
            connector.create(object_class, [ConnectorAttribute.of("__NAME__", "x")])
        with pytest.raises(InvalidAttributeValueError):
            connector.delete(object_class, Uid("x", "x"))
        with pytest.raises(InvalidAttributeValueError):
            list(connector.search(object_class))

    def test_create_without_attributes(self) -> None:
        with pytest.raises(InvalidAttributeValueError):
            _connector().create("User", None)

    def test_update_delta_user(self) -> None:
        client = _mock_client()
        _connector(client).update_delta("User", Uid(SUB, "foo"), [AttributeDelta.replace("email")])
        client.admin_update_user_attributes.assert_called_once_with(
            UserPoolId=POOL_ID, Username="foo", UserAttributes=[{"Name": "email", "Value": ""}]
        )

    def test_update_group(self) -> None:
        client = _mock_client()
        client.update_group.return_value = _ok()
        _connector(client).update("Group", Uid("staff", "staff"), [ConnectorAttribute.of("Description", "x")])
        client.update_group.assert_called_once_with(UserPoolId=POOL_ID, GroupName="staff", Description="x")

    def test_delete_group(self) -> None:
        client = _mock_client()
        _connector(client).delete("Group", Uid("staff", "staff"))
        client.delete_group.assert_called_once_with(UserPoolId=POOL_ID, GroupName="staff")

    def test_native_errors_translated(self) -> None:
        client = _mock_client()
        client.admin_delete_user.side_effect = _make_client_error("TooManyRequestsException")
        with pytest.raises(RetryableError):
            _connector(client).delete("User", Uid(SUB, "foo"))

    def test_unmapped_error(self) -> None:
        client = _mock_client()
        client.admin_create_user.side_effect = _make_client_error("NotAuthorizedException")
        with pytest.raises(ConnectorIOError):
            _connector(client).create("User", [ConnectorAttribute.of("__NAME__", "foo")])


class TestSearch:
    def test_user_by_name(self) -> None:
        client = _mock_client()
        client.admin_get_user.return_value = _ok(
            Username="foo", UserAttributes=[{"Name": "sub", "Value": SUB}], Enabled=True
        )
        results = list(_connector(client).search("User", equals_filter("__NAME__", "foo")))
        assert [r.uid for r in results] == [Uid(SUB, "foo")]

    def test_not_found_ends_quietly(self) -> None:
        client = _mock_client()
        client.get_paginator.return_value.paginate.side_effect = _make_client_error("ResourceNotFoundException")
        assert list(_connector(client).search("User")) == []

    def test_vanished_user_during_group_read_ends_quietly(self) -> None:
        client = _mock_client()
        listing = mock.MagicMock()
        listing.paginate.return_value = [
            _ok(Users=[{"Username": "foo", "Attributes": [{"Name": "sub", "Value": SUB}], "Enabled": True}])
        ]
        groups = mock.MagicMock()
        groups.paginate.side_effect = _make_client_error("UserNotFoundException", "AdminListGroupsForUser")
        paginators = {"list_users": listing, "admin_list_groups_for_user": groups}
        client.get_paginator.side_effect = lambda name: paginators[name]

        options = OperationOptions.build(["groups"])
        assert list(_connector(client).search("User", options=options)) == []

    def test_vanished_group_during_member_read_ends_quietly(self) -> None:
        client = _mock_client()
        listing = mock.MagicMock()
        listing.paginate.return_value = [_ok(Groups=[{"GroupName": "staff"}])]
        members = mock.MagicMock()
        members.paginate.side_effect = _make_client_error("ResourceNotFoundException", "ListUsersInGroup")
        paginators = {"list_groups": listing, "list_users_in_group": members}
        client.get_paginator.side_effect = lambda name: paginators[name]

        options = OperationOptions.build(["users"])
        assert list(_connector(client).search("Group", options=options)) == []

    def test_other_errors_translated(self) -> None:
        client = _mock_client()
        client.get_paginator.return_value.paginate.side_effect = _make_client_error("LimitExceededException")
        with pytest.raises(RetryableError):
            list(_connector(client).search("Group"))
