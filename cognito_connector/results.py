"""Projection of native user/group records into connector objects."""

from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

from .codec import escape_name, to_connector_attribute, to_zoned_datetime
from .model import (
    ENABLE_NAME,
    GROUP_OBJECT_CLASS,
    USER_OBJECT_CLASS,
    ConnectorAttribute,
    ConnectorObject,
    GroupRecord,
    OperationOptions,
    SchemaMap,
    Uid,
    UserRecord,
)
from .schema import (
    ATTR_CREATION_DATE,
    ATTR_DESCRIPTION,
    ATTR_GROUPS,
    ATTR_LAST_MODIFIED_DATE,
    ATTR_PRECEDENCE,
    ATTR_ROLE_ARN,
    ATTR_SUB,
    ATTR_USER_CREATE_DATE,
    ATTR_USER_LAST_MODIFIED_DATE,
    ATTR_USER_STATUS,
    ATTR_USERS,
)

LOGGER = logging.getLogger("cognito_connector.results")


def should_return(attrs_to_get: Optional[Sequence[str]], name: str) -> bool:
    """True when no explicit selection was made or ``name`` is selected."""
    if attrs_to_get is None:
        return True
    return name in attrs_to_get


def association_attribute(
    options: OperationOptions,
    name: str,
    fetch: Callable[[], list[str]],
) -> Optional[ConnectorAttribute]:
    """Decide whether to fetch an association and build its attribute.

    Associations are not returned by default: without an explicit selection
    that names them nothing is fetched. With partial attribute values the
    attribute is returned empty and marked incomplete.
    """
    if options.allow_partial_attribute_values:
        LOGGER.debug("Suppress fetching %s because partial attribute values is requested", name)
        return ConnectorAttribute(name=name, values=(), complete=False)

    if options.attributes_to_get is None:
        LOGGER.debug("Suppress fetching %s because it is not returned by default", name)
        return None

    if name in options.attributes_to_get:
        LOGGER.debug("Fetching %s because attributes to get is requested", name)
        return ConnectorAttribute(name=name, values=tuple(fetch()))

    return None


def user_to_connector_object(
    record: UserRecord,
    schema: SchemaMap,
    options: OperationOptions,
    fetch_groups: Callable[[str], list[str]],
) -> ConnectorObject:
    attrs_to_get = options.attributes_to_get
    sub = record.attribute_value(ATTR_SUB)
    obj = ConnectorObject(
        object_class=USER_OBJECT_CLASS,
        uid=Uid(sub, record.username),
        name=record.username,
    )

    if should_return(attrs_to_get, ENABLE_NAME):
        obj.add(ConnectorAttribute.of(ENABLE_NAME, record.enabled))
    if should_return(attrs_to_get, ATTR_USER_CREATE_DATE):
        obj.add(ConnectorAttribute.of(ATTR_USER_CREATE_DATE, to_zoned_datetime(record.create_date)))
    if should_return(attrs_to_get, ATTR_USER_LAST_MODIFIED_DATE):
        obj.add(ConnectorAttribute.of(ATTR_USER_LAST_MODIFIED_DATE, to_zoned_datetime(record.last_modified_date)))
    if should_return(attrs_to_get, ATTR_USER_STATUS):
        obj.add(ConnectorAttribute.of(ATTR_USER_STATUS, record.status))

    for native in record.attributes:
        if native["Name"] == ATTR_SUB:
            continue
        schema_attr = schema.get(escape_name(native["Name"]))
        if schema_attr is None:
            LOGGER.debug("Skipping attribute %s missing from the schema", native["Name"])
            continue
        if should_return(attrs_to_get, schema_attr.connector_name):
            obj.add(to_connector_attribute(schema_attr, native))

    groups = association_attribute(options, ATTR_GROUPS, lambda: fetch_groups(record.username))
    if groups is not None:
        obj.add(groups)

    return obj


def group_to_connector_object(
    record: GroupRecord,
    options: OperationOptions,
    fetch_users: Callable[[str], list[str]],
) -> ConnectorObject:
    attrs_to_get = options.attributes_to_get
    obj = ConnectorObject(
        object_class=GROUP_OBJECT_CLASS,
        uid=Uid(record.group_name, record.group_name),
        name=record.group_name,
    )

    values = {
        ATTR_DESCRIPTION: record.description,
        ATTR_PRECEDENCE: record.precedence,
        ATTR_ROLE_ARN: record.role_arn,
        ATTR_CREATION_DATE: to_zoned_datetime(record.creation_date),
        ATTR_LAST_MODIFIED_DATE: to_zoned_datetime(record.last_modified_date),
    }
    for name, value in values.items():
        if not should_return(attrs_to_get, name):
            continue
        obj.add(ConnectorAttribute(name=name, values=() if value is None else (value,)))

    users = association_attribute(options, ATTR_USERS, lambda: fetch_users(record.group_name))
    if users is not None:
        obj.add(users)

    return obj
