"""User lifecycle against a Cognito user pool.

Cognito has no multi-call transaction. Creating or updating a user is a
primary call (AdminCreateUser / AdminUpdateUserAttributes) followed by
dependent calls in a fixed order:

    1. AdminEnableUser / AdminDisableUser
    2. AdminSetUserPassword
    3. group membership

A failed dependent call does not roll back the primary call; the user
stays created/updated and the error is raised. Each dependent step is
idempotent or set-based, so the IDM can re-drive the same operation to
converge.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Optional

from botocore.exceptions import ClientError

from .codec import to_native_attribute, to_native_attribute_for_delete
from .config import ConnectorConfig
from .errors import (
    AlreadyExistsError,
    ConnectorError,
    InvalidAttributeValueError,
    SchemaMismatchError,
    UnknownUidError,
    check_response,
    error_code,
)
from .filters import UserPoolFilter, sub_filter
from .membership import MembershipSynchronizer
from .model import (
    PASSWORD_NAME,
    USER_OBJECT_CLASS,
    AttributeDelta,
    ConnectorAttribute,
    ConnectorObject,
    OperationOptions,
    SchemaMap,
    Uid,
    UserRecord,
)
from .results import user_to_connector_object
from .schema import ATTR_SUB, AttributeRole, classify_user_attribute

LOGGER = logging.getLogger("cognito_connector.users")


@dataclass
class UserChanges:
    """An incoming attribute set split by role."""

    username: Optional[str] = None
    enabled: Optional[bool] = None
    password: Optional[str] = None
    password_permanent: Optional[bool] = None
    # Full replacement of the user's groups (diff-based)
    groups: Optional[list[Any]] = None
    # Explicit membership delta
    groups_to_add: list[Any] = field(default_factory=list)
    groups_to_remove: list[Any] = field(default_factory=list)
    native_attributes: list[dict[str, str]] = field(default_factory=list)


def _as_bool(attr: ConnectorAttribute) -> bool:
    value = attr.single_value
    if isinstance(value, str):
        return value.lower() == "true"
    return bool(value)


class UserHandler:
    """Create, update, delete and search users.

    Args:
        config: Connector configuration
        client: boto3 ``cognito-idp`` client
        schema: Connector name -> SchemaAttribute map from the last schema fetch
        memberships: Optional synchronizer (built from ``client`` if omitted)
    """

    def __init__(
        self,
        config: ConnectorConfig,
        client: Any,
        schema: SchemaMap,
        memberships: Optional[MembershipSynchronizer] = None,
    ) -> None:
        self.config = config
        self.client = client
        self.schema = schema
        self.memberships = memberships or MembershipSynchronizer(client, config.user_pool_id)

    @property
    def user_pool_id(self) -> str:
        return self.config.user_pool_id

    # ------------------------------------------------------------------
    # Attribute partitioning
    # ------------------------------------------------------------------

    def _partition(self, attributes: Iterable[ConnectorAttribute], *, creating: bool) -> UserChanges:
        """Split attributes by role; schema errors are raised before any call."""
        changes = UserChanges()

        for attr in attributes:
            role = classify_user_attribute(attr.name, self.schema)

            if role is AttributeRole.UNKNOWN:
                raise SchemaMismatchError(f"Unknown attribute: {attr.name}", (attr.name,))

            if role in (AttributeRole.UID, AttributeRole.METADATA):
                LOGGER.warning("Ignoring read-only attribute %s", attr.name)
                continue

            if attr.is_empty:
                # The IDM sends an empty value to delete the attribute
                if creating:
                    continue
                if role is AttributeRole.ASSOCIATION:
                    changes.groups = []
                elif role is AttributeRole.PLAIN:
                    if not self.schema[attr.name].mutable:
                        raise InvalidAttributeValueError(f"Attribute {attr.name} is not updatable", (attr.name,))
                    changes.native_attributes.append(to_native_attribute_for_delete(attr))
                continue

            if role is AttributeRole.NAME:
                changes.username = str(attr.single_value)
            elif role is AttributeRole.ENABLED:
                changes.enabled = _as_bool(attr)
            elif role is AttributeRole.PASSWORD:
                changes.password = str(attr.single_value)
            elif role is AttributeRole.PASSWORD_PERMANENT:
                changes.password_permanent = _as_bool(attr)
            elif role is AttributeRole.ASSOCIATION:
                changes.groups = list(attr.values)
            else:
                schema_attr = self.schema[attr.name]
                if not creating and not schema_attr.mutable:
                    raise InvalidAttributeValueError(f"Attribute {attr.name} is not updatable", (attr.name,))
                changes.native_attributes.append(to_native_attribute(self.schema, attr))

        return changes

    def _partition_deltas(self, deltas: Iterable[AttributeDelta]) -> UserChanges:
        replaced: list[ConnectorAttribute] = []
        groups_to_add: list[Any] = []
        groups_to_remove: list[Any] = []

        for delta in deltas:
            role = classify_user_attribute(delta.name, self.schema)
            if role is AttributeRole.ASSOCIATION and delta.values_to_replace is None:
                groups_to_add.extend(delta.values_to_add or ())
                groups_to_remove.extend(delta.values_to_remove or ())
                continue

            if delta.values_to_replace is not None:
                values = delta.values_to_replace
            else:
                # Single-valued attribute: add means set, remove alone means delete
                values = delta.values_to_add or ()
            replaced.append(ConnectorAttribute(name=delta.name, values=tuple(values)))

        changes = self._partition(replaced, creating=False)
        changes.groups_to_add = groups_to_add
        changes.groups_to_remove = groups_to_remove
        return changes

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, attributes: Iterable[ConnectorAttribute]) -> Uid:
        """Create a user via AdminCreateUser plus dependent calls.

        https://docs.aws.amazon.com/cognito-user-identity-pools/latest/APIReference/API_AdminCreateUser.html

        Raises:
            InvalidAttributeValueError: If no attributes are given.
            SchemaMismatchError: If an attribute is not in the schema.
            AlreadyExistsError: If the username is taken.
        """
        attributes = list(attributes or ())
        if not attributes:
            raise InvalidAttributeValueError("attributes not provided or empty")

        changes = self._partition(attributes, creating=True)

        # Cognito requires a username; generate one when the IDM has no mapping for it
        username = changes.username or str(uuid.uuid4())

        request: dict[str, Any] = {
            "UserPoolId": self.user_pool_id,
            "Username": username,
            "UserAttributes": changes.native_attributes,
        }
        if self.config.suppress_invitation_message:
            request["MessageAction"] = "SUPPRESS"

        try:
            response = check_response(self.client.admin_create_user(**request), "AdminCreateUser")
        except ClientError as e:
            if error_code(e) == "UsernameExistsException":
                LOGGER.warning("The user already exists when creating. username: %s", username)
                raise AlreadyExistsError(f"The user exists. Username: {username}") from e
            raise

        user = UserRecord.from_user_type(response["User"])
        sub = user.attribute_value(ATTR_SUB)
        if sub is None:
            raise ConnectorError(f"AdminCreateUser returned no sub for user {user.username}")
        new_uid = Uid(sub, user.username)
        LOGGER.info("Created user %s (sub=%s)", user.username, sub)

        # Not atomic: the user persists if any call below fails
        if changes.enabled is False:
            self._disable(new_uid, user.username)
        self._set_password(user.username, changes.password, changes.password_permanent)
        self.memberships.reconcile_groups_of_user(user.username, changes.groups)

        return new_uid

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update(self, uid: Uid, attributes: Iterable[ConnectorAttribute]) -> Uid:
        """Replace the given attributes; groups are reconciled to the given set.

        https://docs.aws.amazon.com/cognito-user-identity-pools/latest/APIReference/API_AdminUpdateUserAttributes.html
        """
        if uid is None:
            raise InvalidAttributeValueError("uid not provided")

        username = self.resolve_name(uid)
        changes = self._partition(attributes, creating=False)
        self._check_rename(username, changes)
        self._apply(uid, username, changes)
        return uid

    def update_delta(self, uid: Uid, deltas: Iterable[AttributeDelta]) -> Uid:
        """Apply attribute deltas; group add/remove lists are applied as given."""
        if uid is None:
            raise InvalidAttributeValueError("uid not provided")

        username = self.resolve_name(uid)
        changes = self._partition_deltas(deltas)
        self._check_rename(username, changes)
        self._apply(uid, username, changes)
        return uid

    def _check_rename(self, username: str, changes: UserChanges) -> None:
        # Cognito forbids changing the username after creation
        if changes.username is not None and changes.username != username:
            raise InvalidAttributeValueError(
                f"Username cannot be changed: {username} -> {changes.username}", ("__NAME__",)
            )

    def _apply(self, uid: Uid, username: str, changes: UserChanges) -> None:
        if changes.native_attributes:
            try:
                check_response(
                    self.client.admin_update_user_attributes(
                        UserPoolId=self.user_pool_id,
                        Username=username,
                        UserAttributes=changes.native_attributes,
                    ),
                    "AdminUpdateUserAttributes",
                )
            except ClientError as e:
                if error_code(e) == "UserNotFoundException":
                    LOGGER.warning("Not found user when updating. uid: %s", uid)
                    raise UnknownUidError(f"User not found: {uid.value}", uid, USER_OBJECT_CLASS) from e
                raise

        # Not atomic: the attribute update persists if any call below fails
        if changes.enabled is True:
            self._enable(uid, username)
        elif changes.enabled is False:
            self._disable(uid, username)
        self._set_password(username, changes.password, changes.password_permanent)
        self.memberships.reconcile_groups_of_user(username, changes.groups)
        if changes.groups_to_add or changes.groups_to_remove:
            self.memberships.apply_groups_of_user(username, changes.groups_to_add, changes.groups_to_remove)

    def _enable(self, uid: Uid, username: str) -> None:
        try:
            check_response(
                self.client.admin_enable_user(UserPoolId=self.user_pool_id, Username=username),
                "AdminEnableUser",
            )
        except ClientError as e:
            if error_code(e) == "UserNotFoundException":
                LOGGER.warning("Not found user when enabling. uid: %s", uid)
                raise UnknownUidError(f"User not found: {uid.value}", uid, USER_OBJECT_CLASS) from e
            raise

    def _disable(self, uid: Uid, username: str) -> None:
        try:
            check_response(
                self.client.admin_disable_user(UserPoolId=self.user_pool_id, Username=username),
                "AdminDisableUser",
            )
        except ClientError as e:
            if error_code(e) == "UserNotFoundException":
                LOGGER.warning("Not found user when disabling. uid: %s", uid)
                raise UnknownUidError(f"User not found: {uid.value}", uid, USER_OBJECT_CLASS) from e
            raise

    def _set_password(self, username: str, password: Optional[str], permanent: Optional[bool]) -> None:
        if password is None:
            return

        request: dict[str, Any] = {
            "UserPoolId": self.user_pool_id,
            "Username": username,
            "Password": password,
        }
        # Omitted means Cognito's default: a temporary password
        if permanent is not None:
            request["Permanent"] = permanent

        try:
            check_response(self.client.admin_set_user_password(**request), "AdminSetUserPassword")
        except ClientError as e:
            if error_code(e) == "InvalidPasswordException":
                raise InvalidAttributeValueError("Password policy error in cognito", (PASSWORD_NAME,)) from e
            raise

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete(self, uid: Uid) -> None:
        """https://docs.aws.amazon.com/cognito-user-identity-pools/latest/APIReference/API_AdminDeleteUser.html"""
        if uid is None:
            raise InvalidAttributeValueError("uid not provided")

        username = self.resolve_name(uid)
        try:
            check_response(
                self.client.admin_delete_user(UserPoolId=self.user_pool_id, Username=username),
                "AdminDeleteUser",
            )
        except ClientError as e:
            if error_code(e) == "UserNotFoundException":
                LOGGER.warning("Not found user when deleting. uid: %s", uid)
                raise UnknownUidError(f"User not found: {uid.value}", uid, USER_OBJECT_CLASS) from e
            raise
        LOGGER.info("Deleted user %s", username)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def resolve_name(self, uid: Uid) -> str:
        """Return the username for ``uid``, looking it up by sub without a hint."""
        if uid.name_hint:
            return uid.name_hint

        user = self.find_user_by_sub(uid.value)
        if user is None:
            LOGGER.warning("Not found user when resolving the username. uid: %s", uid)
            raise UnknownUidError(f"User not found: {uid.value}", uid, USER_OBJECT_CLASS)
        return user.username

    def find_user_by_sub(self, sub: str) -> Optional[UserRecord]:
        users = list(self._list_users(sub_filter(sub).to_filter_string(self.schema)))
        if not users:
            return None
        if len(users) > 1:
            raise ConnectorError(f'Unexpected error. ListUsers returns multiple users when searching by sub = "{sub}"')
        return users[0]

    def find_user_by_name(self, username: str) -> Optional[UserRecord]:
        try:
            response = check_response(
                self.client.admin_get_user(UserPoolId=self.user_pool_id, Username=username),
                "AdminGetUser",
            )
        except ClientError as e:
            if error_code(e) == "UserNotFoundException":
                return None
            raise
        return UserRecord.from_admin_get_user(response)

    def _list_users(self, filter_string: Optional[str] = None) -> Iterator[UserRecord]:
        kwargs: dict[str, Any] = {"UserPoolId": self.user_pool_id}
        if filter_string:
            kwargs["Filter"] = filter_string

        paginator = self.client.get_paginator("list_users")
        for page in paginator.paginate(**kwargs):
            check_response(page, "ListUsers")
            for user in page.get("Users", []):
                yield UserRecord.from_user_type(user)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search(
        self,
        query: Optional[UserPoolFilter] = None,
        options: Optional[OperationOptions] = None,
    ) -> Iterator[ConnectorObject]:
        """Yield users matching ``query`` (all users when None)."""
        options = options or OperationOptions()

        if query is not None and query.is_by_name:
            user = self.find_user_by_name(query.value)
            if user is not None:
                yield self.to_connector_object(user, options)
            return

        filter_string = query.to_filter_string(self.schema) if query is not None else None
        for user in self._list_users(filter_string):
            yield self.to_connector_object(user, options)

    def to_connector_object(self, user: UserRecord, options: OperationOptions) -> ConnectorObject:
        return user_to_connector_object(user, self.schema, options, self.memberships.list_groups_for_user)
