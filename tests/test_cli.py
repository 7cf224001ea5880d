"""Tests for the cogconn CLI (cli.py)."""

from __future__ import annotations

import os
from unittest import mock

import typer.testing
from botocore.exceptions import ClientError

from cognito_connector.cli import connector_app

runner = typer.testing.CliRunner()

POOL_ID = "us-west-2_TestPool"

_BASE_ENV = {
    "AWS_REGION": "us-west-2",
    "COGNITO_USER_POOL_ID": POOL_ID,
    "COGNITO_REGION": "us-west-2",
}

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


def _user(username: str, sub: str) -> dict:
    return {
        "Username": username,
        "Attributes": [{"Name": "sub", "Value": sub}, {"Name": "email", "Value": f"{username}@example.com"}],
        "Enabled": True,
        "UserStatus": "CONFIRMED",
    }


def _mock_cognito_client() -> mock.MagicMock:
    """Return a pre-configured mock cognito-idp client."""
    client = mock.MagicMock()
    client.describe_user_pool.return_value = _ok(UserPool=USER_POOL)
    client.admin_get_user.return_value = _ok(
        Username="alice",
        UserAttributes=[{"Name": "sub", "Value": "sub-a"}, {"Name": "email", "Value": "alice@example.com"}],
        Enabled=True,
        UserStatus="CONFIRMED",
    )
    client.get_group.return_value = _ok(Group={"GroupName": "staff", "Description": "All staff"})

    names = ("list_users", "list_groups", "admin_list_groups_for_user", "list_users_in_group")
    paginators = {name: mock.MagicMock() for name in names}
    paginators["list_users"].paginate.return_value = [_ok(Users=[_user("alice", "sub-a"), _user("bob", "sub-b")])]
    paginators["list_groups"].paginate.return_value = [
        _ok(Groups=[{"GroupName": "staff", "Description": "All staff", "Precedence": 1}, {"GroupName": "admins"}])
    ]
    paginators["admin_list_groups_for_user"].paginate.return_value = [_ok(Groups=[{"GroupName": "staff"}])]
    paginators["list_users_in_group"].paginate.return_value = [_ok(Users=[{"Username": "alice"}, {"Username": "bob"}])]
    client.get_paginator.side_effect = lambda name: paginators[name]
    client.paginators = paginators
    return client


# ---------------------------------------------------------------------------
# test
# ---------------------------------------------------------------------------


class TestTestCommand:
    @mock.patch.dict(os.environ, _BASE_ENV, clear=False)
    @mock.patch("cognito_connector.cli.build_cognito_client")
    def test_reachable(self, mock_build: mock.MagicMock) -> None:
        mc = _mock_cognito_client()
        mock_build.return_value = mc
        result = runner.invoke(connector_app, ["test"])
        assert result.exit_code == 0
        assert "User pool reachable" in result.output
        mc.describe_user_pool.assert_called_once_with(UserPoolId=POOL_ID)

    @mock.patch.dict(os.environ, {"COGNITO_USER_POOL_ID": ""}, clear=False)
    def test_missing_config(self) -> None:
        result = runner.invoke(connector_app, ["test"])
        assert result.exit_code == 1
        assert "COGNITO_USER_POOL_ID" in result.output

    @mock.patch.dict(os.environ, _BASE_ENV, clear=False)
    @mock.patch("cognito_connector.cli.build_cognito_client")
    def test_pool_unreachable(self, mock_build: mock.MagicMock) -> None:
        mc = _mock_cognito_client()
        mc.describe_user_pool.side_effect = _make_client_error("NotAuthorizedException")
        mock_build.return_value = mc
        result = runner.invoke(connector_app, ["test"])
        assert result.exit_code == 1
        assert "Error" in result.output

    @mock.patch.dict(os.environ, {"COGCONN_PROD_USER_POOL_ID": "us-east-1_Prod"}, clear=False)
    @mock.patch("cognito_connector.cli.build_cognito_client")
    def test_named_config(self, mock_build: mock.MagicMock) -> None:
        mc = _mock_cognito_client()
        mock_build.return_value = mc
        result = runner.invoke(connector_app, ["--config", "prod", "test"])
        assert result.exit_code == 0
        assert mock_build.call_args.args[0].user_pool_id == "us-east-1_Prod"
        mc.describe_user_pool.assert_called_once_with(UserPoolId="us-east-1_Prod")


# ---------------------------------------------------------------------------
# schema
# ---------------------------------------------------------------------------


class TestSchemaCommand:
    @mock.patch.dict(os.environ, _BASE_ENV, clear=False)
    @mock.patch("cognito_connector.cli.build_cognito_client")
    def test_user_schema(self, mock_build: mock.MagicMock) -> None:
        mock_build.return_value = _mock_cognito_client()
        result = runner.invoke(connector_app, ["schema"])
        assert result.exit_code == 0
        assert "email" in result.output
        assert "groups" in result.output

    @mock.patch.dict(os.environ, _BASE_ENV, clear=False)
    @mock.patch("cognito_connector.cli.build_cognito_client")
    def test_group_schema(self, mock_build: mock.MagicMock) -> None:
        mock_build.return_value = _mock_cognito_client()
        result = runner.invoke(connector_app, ["schema", "--class", "Group"])
        assert result.exit_code == 0
        assert "Group schema" in result.output
        assert "users" in result.output

    @mock.patch.dict(os.environ, _BASE_ENV, clear=False)
    @mock.patch("cognito_connector.cli.build_cognito_client")
    def test_unknown_class(self, mock_build: mock.MagicMock) -> None:
        mock_build.return_value = _mock_cognito_client()
        result = runner.invoke(connector_app, ["schema", "--class", "Account"])
        assert result.exit_code == 1
        assert "Unsupported object class" in result.output


# ---------------------------------------------------------------------------
# list-users / get-user
# ---------------------------------------------------------------------------


class TestListUsersCommand:
    @mock.patch.dict(os.environ, _BASE_ENV, clear=False)
    @mock.patch("cognito_connector.cli.build_cognito_client")
    def test_lists_users(self, mock_build: mock.MagicMock) -> None:
        mc = _mock_cognito_client()
        mock_build.return_value = mc
        result = runner.invoke(connector_app, ["list-users"])
        assert result.exit_code == 0
        assert "alice" in result.output
        assert "bob" in result.output
        assert "Total: 2 users" in result.output
        mc.paginators["admin_list_groups_for_user"].paginate.assert_not_called()

    @mock.patch.dict(os.environ, _BASE_ENV, clear=False)
    @mock.patch("cognito_connector.cli.build_cognito_client")
    def test_limit(self, mock_build: mock.MagicMock) -> None:
        mock_build.return_value = _mock_cognito_client()
        result = runner.invoke(connector_app, ["list-users", "--limit", "1"])
        assert result.exit_code == 0
        assert "Total: 1 users" in result.output

    @mock.patch.dict(os.environ, _BASE_ENV, clear=False)
    @mock.patch("cognito_connector.cli.build_cognito_client")
    def test_prefix_filter(self, mock_build: mock.MagicMock) -> None:
        mc = _mock_cognito_client()
        mock_build.return_value = mc
        result = runner.invoke(connector_app, ["list-users", "--filter", "email^=ali"])
        assert result.exit_code == 0
        mc.paginators["list_users"].paginate.assert_called_once_with(UserPoolId=POOL_ID, Filter='email ^= "ali"')

    @mock.patch.dict(os.environ, _BASE_ENV, clear=False)
    @mock.patch("cognito_connector.cli.build_cognito_client")
    def test_with_groups(self, mock_build: mock.MagicMock) -> None:
        mc = _mock_cognito_client()
        mock_build.return_value = mc
        result = runner.invoke(connector_app, ["list-users", "--attrs", "__ENABLE__,groups"])
        assert result.exit_code == 0
        assert "staff" in result.output
        assert mc.paginators["admin_list_groups_for_user"].paginate.call_count == 2

    @mock.patch.dict(os.environ, _BASE_ENV, clear=False)
    def test_unsearchable_filter(self) -> None:
        result = runner.invoke(connector_app, ["list-users", "--filter", "custom_dept=ops"])
        assert result.exit_code == 1
        assert "cannot search" in result.output

    @mock.patch.dict(os.environ, _BASE_ENV, clear=False)
    def test_malformed_filter(self) -> None:
        result = runner.invoke(connector_app, ["list-users", "--filter", "email"])
        assert result.exit_code == 1
        assert "Invalid filter" in result.output


class TestGetUserCommand:
    @mock.patch.dict(os.environ, _BASE_ENV, clear=False)
    @mock.patch("cognito_connector.cli.build_cognito_client")
    def test_found(self, mock_build: mock.MagicMock) -> None:
        mc = _mock_cognito_client()
        mock_build.return_value = mc
        result = runner.invoke(connector_app, ["get-user", "alice"])
        assert result.exit_code == 0
        assert "alice@example.com" in result.output
        mc.admin_get_user.assert_called_once_with(UserPoolId=POOL_ID, Username="alice")
        mc.paginators["admin_list_groups_for_user"].paginate.assert_not_called()

    @mock.patch.dict(os.environ, _BASE_ENV, clear=False)
    @mock.patch("cognito_connector.cli.build_cognito_client")
    def test_with_groups(self, mock_build: mock.MagicMock) -> None:
        mc = _mock_cognito_client()
        mock_build.return_value = mc
        result = runner.invoke(connector_app, ["get-user", "alice", "--groups"])
        assert result.exit_code == 0
        assert "staff" in result.output
        mc.paginators["admin_list_groups_for_user"].paginate.assert_called_once_with(
            UserPoolId=POOL_ID, Username="alice"
        )

    @mock.patch.dict(os.environ, _BASE_ENV, clear=False)
    @mock.patch("cognito_connector.cli.build_cognito_client")
    def test_not_found(self, mock_build: mock.MagicMock) -> None:
        mc = _mock_cognito_client()
        mc.admin_get_user.side_effect = _make_client_error("UserNotFoundException")
        mock_build.return_value = mc
        result = runner.invoke(connector_app, ["get-user", "ghost"])
        assert result.exit_code == 1
        assert "User not found" in result.output


# ---------------------------------------------------------------------------
# list-groups / group-members
# ---------------------------------------------------------------------------


class TestListGroupsCommand:
    @mock.patch.dict(os.environ, _BASE_ENV, clear=False)
    @mock.patch("cognito_connector.cli.build_cognito_client")
    def test_lists_groups(self, mock_build: mock.MagicMock) -> None:
        mc = _mock_cognito_client()
        mock_build.return_value = mc
        result = runner.invoke(connector_app, ["list-groups"])
        assert result.exit_code == 0
        assert "staff" in result.output
        assert "admins" in result.output
        assert "Total: 2 groups" in result.output
        mc.paginators["list_users_in_group"].paginate.assert_not_called()

    @mock.patch.dict(os.environ, _BASE_ENV, clear=False)
    @mock.patch("cognito_connector.cli.build_cognito_client")
    def test_with_members(self, mock_build: mock.MagicMock) -> None:
        mc = _mock_cognito_client()
        mock_build.return_value = mc
        result = runner.invoke(connector_app, ["list-groups", "--members"])
        assert result.exit_code == 0
        assert mc.paginators["list_users_in_group"].paginate.call_count == 2


class TestGroupMembersCommand:
    @mock.patch.dict(os.environ, _BASE_ENV, clear=False)
    @mock.patch("cognito_connector.cli.build_cognito_client")
    def test_members(self, mock_build: mock.MagicMock) -> None:
        mc = _mock_cognito_client()
        mock_build.return_value = mc
        result = runner.invoke(connector_app, ["group-members", "staff"])
        assert result.exit_code == 0
        assert "alice" in result.output
        assert "bob" in result.output
        assert "Total: 2 users" in result.output
        mc.get_group.assert_called_once_with(UserPoolId=POOL_ID, GroupName="staff")

    @mock.patch.dict(os.environ, _BASE_ENV, clear=False)
    @mock.patch("cognito_connector.cli.build_cognito_client")
    def test_group_not_found(self, mock_build: mock.MagicMock) -> None:
        mc = _mock_cognito_client()
        mc.get_group.side_effect = _make_client_error("ResourceNotFoundException")
        mock_build.return_value = mc
        result = runner.invoke(connector_app, ["group-members", "gone"])
        assert result.exit_code == 1
        assert "Group not found" in result.output
