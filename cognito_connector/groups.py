"""Group lifecycle against a Cognito user pool.

A group's primary key and name are both its GroupName, which cannot be
changed. Membership is maintained through separate add/remove calls after
the primary CreateGroup/UpdateGroup call, without rollback.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Optional

from botocore.exceptions import ClientError

from .config import ConnectorConfig
from .errors import (
    AlreadyExistsError,
    InvalidAttributeValueError,
    MembershipTargetNotFoundError,
    RetryableError,
    SchemaMismatchError,
    UnknownUidError,
    check_response,
    error_code,
)
from .filters import UserPoolFilter
from .membership import MembershipSynchronizer
from .model import (
    GROUP_OBJECT_CLASS,
    AttributeDelta,
    ConnectorAttribute,
    ConnectorObject,
    GroupRecord,
    OperationOptions,
    Uid,
)
from .results import group_to_connector_object
from .schema import ATTR_PRECEDENCE, AttributeRole, classify_group_attribute

LOGGER = logging.getLogger("cognito_connector.groups")

# UpdateGroup clears a field when sent these values
DELETE_DESCRIPTION = ""
DELETE_PRECEDENCE = 0
DELETE_ROLE_ARN = ""


@dataclass
class GroupChanges:
    """An incoming attribute set split into UpdateGroup fields and members."""

    group_name: Optional[str] = None
    fields: dict[str, Any] = field(default_factory=dict)
    # Full replacement of the members (diff-based)
    users: Optional[list[Any]] = None
    users_to_add: list[Any] = field(default_factory=list)
    users_to_remove: list[Any] = field(default_factory=list)


def _as_int(attr: ConnectorAttribute) -> int:
    try:
        return int(attr.single_value)
    except (TypeError, ValueError) as e:
        raise InvalidAttributeValueError(f"{ATTR_PRECEDENCE} must be an integer", (attr.name,)) from e


class GroupHandler:
    """Create, update, delete and search groups.

    Args:
        config: Connector configuration
        client: boto3 ``cognito-idp`` client
        memberships: Optional synchronizer (built from ``client`` if omitted)
    """

    def __init__(
        self,
        config: ConnectorConfig,
        client: Any,
        memberships: Optional[MembershipSynchronizer] = None,
    ) -> None:
        self.config = config
        self.client = client
        self.memberships = memberships or MembershipSynchronizer(client, config.user_pool_id)

    @property
    def user_pool_id(self) -> str:
        return self.config.user_pool_id

    def _partition(self, attributes: Iterable[ConnectorAttribute], *, creating: bool) -> GroupChanges:
        changes = GroupChanges()

        for attr in attributes:
            role = classify_group_attribute(attr.name)

            if role is AttributeRole.UNKNOWN:
                raise SchemaMismatchError(f"Unknown group attribute: {attr.name}", (attr.name,))
            if role is AttributeRole.METADATA:
                LOGGER.warning("Ignoring read-only attribute %s", attr.name)
                continue

            if attr.is_empty:
                if creating:
                    continue
                if role is AttributeRole.DESCRIPTION:
                    changes.fields["Description"] = DELETE_DESCRIPTION
                elif role is AttributeRole.PRECEDENCE:
                    changes.fields["Precedence"] = DELETE_PRECEDENCE
                elif role is AttributeRole.ROLE_ARN:
                    changes.fields["RoleArn"] = DELETE_ROLE_ARN
                elif role is AttributeRole.ASSOCIATION:
                    changes.users = []
                continue

            if role is AttributeRole.NAME:
                changes.group_name = str(attr.single_value)
            elif role is AttributeRole.DESCRIPTION:
                changes.fields["Description"] = str(attr.single_value)
            elif role is AttributeRole.PRECEDENCE:
                changes.fields["Precedence"] = _as_int(attr)
            elif role is AttributeRole.ROLE_ARN:
                changes.fields["RoleArn"] = str(attr.single_value)
            elif role is AttributeRole.ASSOCIATION:
                changes.users = list(attr.values)

        return changes

    def _partition_deltas(self, deltas: Iterable[AttributeDelta]) -> GroupChanges:
        replaced: list[ConnectorAttribute] = []
        users_to_add: list[Any] = []
        users_to_remove: list[Any] = []

        for delta in deltas:
            role = classify_group_attribute(delta.name)
            if role is AttributeRole.ASSOCIATION and delta.values_to_replace is None:
                users_to_add.extend(delta.values_to_add or ())
                users_to_remove.extend(delta.values_to_remove or ())
                continue

            if delta.values_to_replace is not None:
                values = delta.values_to_replace
            else:
                values = delta.values_to_add or ()
            replaced.append(ConnectorAttribute(name=delta.name, values=tuple(values)))

        changes = self._partition(replaced, creating=False)
        changes.users_to_add = users_to_add
        changes.users_to_remove = users_to_remove
        return changes

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, attributes: Iterable[ConnectorAttribute]) -> Uid:
        """https://docs.aws.amazon.com/cognito-user-identity-pools/latest/APIReference/API_CreateGroup.html

        Raises:
            AlreadyExistsError: If a group with the same name exists.
            RetryableError: If the group or a member vanished while adding members.
        """
        attributes = list(attributes or ())
        if not attributes:
            raise InvalidAttributeValueError("attributes not provided or empty")

        changes = self._partition(attributes, creating=True)
        if not changes.group_name:
            raise InvalidAttributeValueError("GroupName not provided", ("__NAME__",))

        try:
            response = check_response(
                self.client.create_group(
                    UserPoolId=self.user_pool_id,
                    GroupName=changes.group_name,
                    **changes.fields,
                ),
                "CreateGroup",
            )
        except ClientError as e:
            if error_code(e) == "GroupExistsException":
                LOGGER.warning("The group already exists when creating. GroupName: %s", changes.group_name)
                raise AlreadyExistsError(f"The group exists. GroupName: {changes.group_name}") from e
            raise

        group_name = response["Group"]["GroupName"]
        new_uid = Uid(group_name, group_name)
        LOGGER.info("Created group %s", group_name)

        # Not atomic: the group persists if setting members fails
        try:
            self.memberships.reconcile_users_of_group(group_name, changes.users)
        except MembershipTargetNotFoundError as e:
            LOGGER.warning("The group or a user was deleted when setting users after create. GroupName: %s", group_name)
            raise RetryableError(
                "The group or a user was deleted when setting users of the group after created. "
                f"GroupName: {group_name}"
            ) from e

        return new_uid

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update(self, uid: Uid, attributes: Iterable[ConnectorAttribute]) -> Uid:
        """https://docs.aws.amazon.com/cognito-user-identity-pools/latest/APIReference/API_UpdateGroup.html"""
        if uid is None:
            raise InvalidAttributeValueError("uid not provided")

        changes = self._partition(attributes, creating=False)
        self._apply(uid, changes)
        return uid

    def update_delta(self, uid: Uid, deltas: Iterable[AttributeDelta]) -> Uid:
        if uid is None:
            raise InvalidAttributeValueError("uid not provided")

        changes = self._partition_deltas(deltas)
        self._apply(uid, changes)
        return uid

    def _apply(self, uid: Uid, changes: GroupChanges) -> None:
        if changes.group_name is not None and changes.group_name != uid.value:
            raise InvalidAttributeValueError(
                f"GroupName cannot be changed: {uid.value} -> {changes.group_name}", ("__NAME__",)
            )

        if changes.fields:
            try:
                check_response(
                    self.client.update_group(
                        UserPoolId=self.user_pool_id,
                        GroupName=uid.value,
                        **changes.fields,
                    ),
                    "UpdateGroup",
                )
            except ClientError as e:
                if error_code(e) == "ResourceNotFoundException":
                    LOGGER.warning("Not found group when updating. uid: %s", uid)
                    raise UnknownUidError(f"Group not found: {uid.value}", uid, GROUP_OBJECT_CLASS) from e
                raise

        # Not atomic: the field update persists if setting members fails
        try:
            self.memberships.reconcile_users_of_group(uid.value, changes.users)
            if changes.users_to_add or changes.users_to_remove:
                self.memberships.apply_users_of_group(uid.value, changes.users_to_add, changes.users_to_remove)
        except MembershipTargetNotFoundError as e:
            if e.native_code == "ResourceNotFoundException":
                LOGGER.warning("Not found group when updating members. uid: %s", uid)
                raise UnknownUidError(f"Group not found: {uid.value}", uid, GROUP_OBJECT_CLASS) from e
            LOGGER.warning("Not found a user when updating members. uid: %s", uid)
            raise

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete(self, uid: Uid) -> None:
        """Remove every member, then DeleteGroup.

        https://docs.aws.amazon.com/cognito-user-identity-pools/latest/APIReference/API_DeleteGroup.html
        """
        if uid is None:
            raise InvalidAttributeValueError("uid not provided")

        try:
            self.memberships.remove_all_users(uid.value)
        except MembershipTargetNotFoundError as e:
            if e.native_code == "ResourceNotFoundException":
                LOGGER.warning("Not found group when deleting. uid: %s", uid)
                raise UnknownUidError(f"Group not found: {uid.value}", uid, GROUP_OBJECT_CLASS) from e
            raise

        try:
            check_response(
                self.client.delete_group(UserPoolId=self.user_pool_id, GroupName=uid.value),
                "DeleteGroup",
            )
        except ClientError as e:
            if error_code(e) == "ResourceNotFoundException":
                LOGGER.warning("Not found group when deleting. uid: %s", uid)
                raise UnknownUidError(f"Group not found: {uid.value}", uid, GROUP_OBJECT_CLASS) from e
            raise
        LOGGER.info("Deleted group %s", uid.value)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def find_group_by_name(self, group_name: str) -> Optional[GroupRecord]:
        try:
            response = check_response(
                self.client.get_group(UserPoolId=self.user_pool_id, GroupName=group_name),
                "GetGroup",
            )
        except ClientError as e:
            if error_code(e) == "ResourceNotFoundException":
                return None
            raise
        return GroupRecord.from_group_type(response["Group"])

    def list_groups(self) -> Iterator[GroupRecord]:
        paginator = self.client.get_paginator("list_groups")
        for page in paginator.paginate(UserPoolId=self.user_pool_id):
            check_response(page, "ListGroups")
            for group in page.get("Groups", []):
                yield GroupRecord.from_group_type(group)

    def search(
        self,
        query: Optional[UserPoolFilter] = None,
        options: Optional[OperationOptions] = None,
    ) -> Iterator[ConnectorObject]:
        """Yield groups; only name/uid equality is resolved natively.

        ListGroups cannot filter, so any other query returns every group.
        """
        options = options or OperationOptions()

        if query is not None and (query.is_by_name or query.is_by_uid):
            group = self.find_group_by_name(query.value)
            if group is not None:
                yield self.to_connector_object(group, options)
            return

        for group in self.list_groups():
            yield self.to_connector_object(group, options)

    def to_connector_object(self, group: GroupRecord, options: OperationOptions) -> ConnectorObject:
        return group_to_connector_object(group, options, self.memberships.list_users_in_group)
