"""User pool schema projection.

Builds the connector-visible 'User' and 'Group' object classes from a
live ``DescribeUserPool`` result, and the role table that tells the
lifecycle handlers what an incoming attribute name means.
"""

from __future__ import annotations

import enum
import logging
from typing import Any

from .codec import escape_name
from .errors import check_response
from .model import (
    ENABLE_NAME,
    GROUP_OBJECT_CLASS,
    NAME_NAME,
    PASSWORD_NAME,
    UID_NAME,
    USER_OBJECT_CLASS,
    DataType,
    ObjectClassInfo,
    SchemaAttribute,
    SchemaMap,
    UserPoolSchema,
    freeze_schema_map,
)

LOGGER = logging.getLogger("cognito_connector.schema")

# Unique and unchangeable within the user pool
ATTR_SUB = "sub"
# Cannot be changed after the user is created
ATTR_USERNAME = "username"

ATTR_EMAIL = "email"
ATTR_PREFERRED_USERNAME = "preferred_username"

# User metadata
ATTR_USER_CREATE_DATE = "UserCreateDate"
ATTR_USER_LAST_MODIFIED_DATE = "UserLastModifiedDate"
ATTR_USER_STATUS = "UserStatus"

ATTR_GROUPS = "groups"
ATTR_PASSWORD_PERMANENT = "password_permanent"

# Group attributes
ATTR_GROUP_NAME = "GroupName"
ATTR_DESCRIPTION = "Description"
ATTR_PRECEDENCE = "Precedence"
ATTR_ROLE_ARN = "RoleArn"
ATTR_CREATION_DATE = "CreationDate"
ATTR_LAST_MODIFIED_DATE = "LastModifiedDate"
ATTR_USERS = "users"

USER_METADATA = (ATTR_USER_CREATE_DATE, ATTR_USER_LAST_MODIFIED_DATE, ATTR_USER_STATUS)
GROUP_METADATA = (ATTR_CREATION_DATE, ATTR_LAST_MODIFIED_DATE)

# https://docs.aws.amazon.com/cognito-user-identity-pools/latest/APIReference/API_SchemaAttributeType.html
NATIVE_DATA_TYPES = {
    "String": DataType.STRING,
    "Number": DataType.INTEGER,
    "DateTime": DataType.TIMESTAMP,
    "Boolean": DataType.BOOLEAN,
}


class AttributeRole(enum.Enum):
    """What an incoming attribute name means to a lifecycle handler."""

    UID = "uid"
    NAME = "name"
    ENABLED = "enabled"
    PASSWORD = "password"
    PASSWORD_PERMANENT = "password_permanent"
    ASSOCIATION = "association"
    METADATA = "metadata"
    DESCRIPTION = "description"
    PRECEDENCE = "precedence"
    ROLE_ARN = "role_arn"
    PLAIN = "plain"
    UNKNOWN = "unknown"


USER_ROLES = {
    UID_NAME: AttributeRole.UID,
    NAME_NAME: AttributeRole.NAME,
    ENABLE_NAME: AttributeRole.ENABLED,
    PASSWORD_NAME: AttributeRole.PASSWORD,
    ATTR_PASSWORD_PERMANENT: AttributeRole.PASSWORD_PERMANENT,
    ATTR_GROUPS: AttributeRole.ASSOCIATION,
    **{name: AttributeRole.METADATA for name in USER_METADATA},
}

GROUP_ROLES = {
    UID_NAME: AttributeRole.NAME,
    NAME_NAME: AttributeRole.NAME,
    ATTR_DESCRIPTION: AttributeRole.DESCRIPTION,
    ATTR_PRECEDENCE: AttributeRole.PRECEDENCE,
    ATTR_ROLE_ARN: AttributeRole.ROLE_ARN,
    ATTR_USERS: AttributeRole.ASSOCIATION,
    **{name: AttributeRole.METADATA for name in GROUP_METADATA},
}


def classify_user_attribute(name: str, schema: SchemaMap) -> AttributeRole:
    role = USER_ROLES.get(name)
    if role is not None:
        return role
    return AttributeRole.PLAIN if name in schema else AttributeRole.UNKNOWN


def classify_group_attribute(name: str) -> AttributeRole:
    return GROUP_ROLES.get(name, AttributeRole.UNKNOWN)


def fetch_user_pool(client: Any, user_pool_id: str) -> dict[str, Any]:
    """Describe the user pool; the result is the schema source."""
    response = check_response(client.describe_user_pool(UserPoolId=user_pool_id), "DescribeUserPool")
    return response["UserPool"]


def is_username_case_sensitive(user_pool: dict[str, Any]) -> bool:
    # Pools created without UsernameConfiguration compare usernames case-sensitively
    return user_pool.get("UsernameConfiguration", {}).get("CaseSensitive", True)


def _project_pool_attribute(native: dict[str, Any], case_sensitive: bool) -> SchemaAttribute:
    name = native["Name"]
    data_type = NATIVE_DATA_TYPES.get(native.get("AttributeDataType", "String"), DataType.STRING)
    case_ignore = name in (ATTR_EMAIL, ATTR_PREFERRED_USERNAME) and not case_sensitive
    return SchemaAttribute(
        native_name=name,
        connector_name=escape_name(name),
        data_type=data_type,
        required=native.get("Required", False),
        mutable=native.get("Mutable", True),
        case_sensitive=not case_ignore,
    )


def build_user_schema(user_pool: dict[str, Any]) -> ObjectClassInfo:
    """Project the pool's schema attributes into the 'User' object class."""
    LOGGER.debug("UserPoolType: %s", user_pool.get("Id"))
    case_sensitive = is_username_case_sensitive(user_pool)

    attributes = [
        # Assigned by Cognito on create
        SchemaAttribute(
            native_name=ATTR_SUB,
            connector_name=UID_NAME,
            required=True,
            creatable=False,
            mutable=False,
        ),
        SchemaAttribute(
            native_name=ATTR_USERNAME,
            connector_name=NAME_NAME,
            required=True,
            mutable=False,
            case_sensitive=case_sensitive,
        ),
        SchemaAttribute(native_name=ENABLE_NAME, connector_name=ENABLE_NAME, data_type=DataType.BOOLEAN),
        SchemaAttribute(
            native_name=PASSWORD_NAME,
            connector_name=PASSWORD_NAME,
            readable=False,
            returned_by_default=False,
        ),
        SchemaAttribute(
            native_name=ATTR_PASSWORD_PERMANENT,
            connector_name=ATTR_PASSWORD_PERMANENT,
            data_type=DataType.BOOLEAN,
            readable=False,
            returned_by_default=False,
        ),
    ]

    attributes.extend(
        _project_pool_attribute(native, case_sensitive)
        for native in user_pool.get("SchemaAttributes", [])
        if native["Name"] != ATTR_SUB
    )

    attributes.extend(
        [
            SchemaAttribute(
                native_name=ATTR_USER_CREATE_DATE,
                connector_name=ATTR_USER_CREATE_DATE,
                data_type=DataType.TIMESTAMP,
                creatable=False,
                mutable=False,
            ),
            SchemaAttribute(
                native_name=ATTR_USER_LAST_MODIFIED_DATE,
                connector_name=ATTR_USER_LAST_MODIFIED_DATE,
                data_type=DataType.TIMESTAMP,
                creatable=False,
                mutable=False,
            ),
            SchemaAttribute(
                native_name=ATTR_USER_STATUS,
                connector_name=ATTR_USER_STATUS,
                creatable=False,
                mutable=False,
            ),
            SchemaAttribute(
                native_name=ATTR_GROUPS,
                connector_name=ATTR_GROUPS,
                multi_valued=True,
                returned_by_default=False,
            ),
        ]
    )

    info = ObjectClassInfo(name=USER_OBJECT_CLASS, attributes=tuple(attributes))
    LOGGER.info("The constructed User schema has %d attributes", len(info.attributes))
    return info


def build_group_schema(user_pool: dict[str, Any]) -> ObjectClassInfo:
    """The 'Group' object class; Cognito groups have a fixed shape."""
    attributes = (
        SchemaAttribute(native_name=ATTR_GROUP_NAME, connector_name=UID_NAME, required=True, mutable=False),
        SchemaAttribute(native_name=ATTR_GROUP_NAME, connector_name=NAME_NAME, required=True, mutable=False),
        SchemaAttribute(
            native_name=ATTR_CREATION_DATE,
            connector_name=ATTR_CREATION_DATE,
            data_type=DataType.TIMESTAMP,
            creatable=False,
            mutable=False,
        ),
        SchemaAttribute(
            native_name=ATTR_LAST_MODIFIED_DATE,
            connector_name=ATTR_LAST_MODIFIED_DATE,
            data_type=DataType.TIMESTAMP,
            creatable=False,
            mutable=False,
        ),
        SchemaAttribute(native_name=ATTR_DESCRIPTION, connector_name=ATTR_DESCRIPTION),
        SchemaAttribute(native_name=ATTR_PRECEDENCE, connector_name=ATTR_PRECEDENCE, data_type=DataType.INTEGER),
        SchemaAttribute(native_name=ATTR_ROLE_ARN, connector_name=ATTR_ROLE_ARN),
        SchemaAttribute(
            native_name=ATTR_USERS,
            connector_name=ATTR_USERS,
            multi_valued=True,
            returned_by_default=False,
        ),
    )
    info = ObjectClassInfo(name=GROUP_OBJECT_CLASS, attributes=attributes)
    LOGGER.info("The constructed Group schema has %d attributes", len(info.attributes))
    return info


def build_schema_map(user_info: ObjectClassInfo) -> SchemaMap:
    """Index the User object class by connector name."""
    return freeze_schema_map({attr.connector_name: attr for attr in user_info.attributes})


def project_schema(user_pool: dict[str, Any]) -> UserPoolSchema:
    """Build both object classes and a fresh schema map from one pool fetch."""
    user_info = build_user_schema(user_pool)
    group_info = build_group_schema(user_pool)
    return UserPoolSchema(user=user_info, group=group_info, user_attributes=build_schema_map(user_info))
