"""Connector-side data model.

Immutable value objects exchanged between the dispatch layer, the
lifecycle handlers and the codec. Native records (``UserRecord``,
``GroupRecord``) are snapshots built from boto3 response dicts.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Mapping, Optional, Sequence

# Object classes
USER_OBJECT_CLASS = "User"
GROUP_OBJECT_CLASS = "Group"

# Operational attribute names shared with the IDM side
UID_NAME = "__UID__"
NAME_NAME = "__NAME__"
ENABLE_NAME = "__ENABLE__"
PASSWORD_NAME = "__PASSWORD__"


class DataType(enum.Enum):
    """Logical attribute types; Cognito itself only transports strings."""

    STRING = "String"
    INTEGER = "Integer"
    BOOLEAN = "Boolean"
    TIMESTAMP = "Timestamp"


@dataclass(frozen=True)
class SchemaAttribute:
    """One attribute of a connector object class.

    Attributes:
        native_name: Name used on the Cognito wire (e.g. 'custom:dept')
        connector_name: Escaped name exposed to the IDM (e.g. 'custom_dept')
        data_type: Logical type used for conversion
        required: Must be supplied on create
        mutable: May be changed after create
        case_sensitive: False when the pool compares values case-insensitively
    """

    native_name: str
    connector_name: str
    data_type: DataType = DataType.STRING
    required: bool = False
    mutable: bool = True
    case_sensitive: bool = True
    creatable: bool = True
    multi_valued: bool = False
    returned_by_default: bool = True
    readable: bool = True


SchemaMap = Mapping[str, SchemaAttribute]


@dataclass(frozen=True)
class ObjectClassInfo:
    """Schema of one object class ('User' or 'Group')."""

    name: str
    attributes: tuple[SchemaAttribute, ...]

    def attribute(self, connector_name: str) -> Optional[SchemaAttribute]:
        for attr in self.attributes:
            if attr.connector_name == connector_name:
                return attr
        return None


@dataclass(frozen=True)
class UserPoolSchema:
    """Result of one schema fetch.

    ``user_attributes`` is the connector name -> SchemaAttribute lookup used
    by the codec. It is read-only and replaced wholesale on schema refresh.
    """

    user: ObjectClassInfo
    group: ObjectClassInfo
    user_attributes: SchemaMap


def freeze_schema_map(attributes: dict[str, SchemaAttribute]) -> SchemaMap:
    return MappingProxyType(dict(attributes))


@dataclass(frozen=True)
class ConnectorAttribute:
    """Typed attribute as exchanged with the IDM side.

    ``complete`` is False when the values were intentionally not fetched
    (partial attribute values).
    """

    name: str
    values: tuple[Any, ...] = ()
    complete: bool = True

    @classmethod
    def of(cls, name: str, *values: Any) -> "ConnectorAttribute":
        return cls(name=name, values=tuple(values))

    @property
    def single_value(self) -> Any:
        return self.values[0] if self.values else None

    @property
    def is_empty(self) -> bool:
        return not self.values or all(v is None for v in self.values)


@dataclass(frozen=True)
class AttributeDelta:
    """Change to a single attribute.

    Either ``values_to_replace`` is set, or one or both of
    ``values_to_add``/``values_to_remove``. An empty replace list means
    "delete the attribute".
    """

    name: str
    values_to_add: Optional[tuple[Any, ...]] = None
    values_to_remove: Optional[tuple[Any, ...]] = None
    values_to_replace: Optional[tuple[Any, ...]] = None

    @classmethod
    def replace(cls, name: str, *values: Any) -> "AttributeDelta":
        return cls(name=name, values_to_replace=tuple(values))

    @classmethod
    def add_remove(cls, name: str, add: Sequence[Any] = (), remove: Sequence[Any] = ()) -> "AttributeDelta":
        return cls(name=name, values_to_add=tuple(add), values_to_remove=tuple(remove))


@dataclass(frozen=True)
class Uid:
    """Identity reference: immutable primary key plus optional name hint."""

    value: str
    name_hint: Optional[str] = None


@dataclass(frozen=True)
class OperationOptions:
    """Query options supplied with a search.

    Attributes:
        attributes_to_get: Explicit attribute selection; None means defaults
        allow_partial_attribute_values: Skip expensive association lookups
    """

    attributes_to_get: Optional[tuple[str, ...]] = None
    allow_partial_attribute_values: bool = False

    @classmethod
    def build(
        cls,
        attributes_to_get: Optional[Sequence[str]] = None,
        allow_partial_attribute_values: bool = False,
    ) -> "OperationOptions":
        attrs = tuple(attributes_to_get) if attributes_to_get is not None else None
        return cls(attributes_to_get=attrs, allow_partial_attribute_values=allow_partial_attribute_values)


@dataclass
class ConnectorObject:
    """A user or group as returned to the IDM side."""

    object_class: str
    uid: Uid
    name: str
    attributes: dict[str, ConnectorAttribute] = field(default_factory=dict)

    def add(self, attribute: ConnectorAttribute) -> None:
        self.attributes[attribute.name] = attribute

    def get(self, name: str) -> Optional[ConnectorAttribute]:
        return self.attributes.get(name)


@dataclass(frozen=True)
class UserRecord:
    """Snapshot of a Cognito user (ListUsers ``UserType`` or AdminGetUser)."""

    username: str
    enabled: bool
    status: Optional[str]
    create_date: Optional[datetime]
    last_modified_date: Optional[datetime]
    attributes: tuple[dict[str, str], ...]

    @classmethod
    def from_user_type(cls, user: dict[str, Any]) -> "UserRecord":
        return cls(
            username=user["Username"],
            enabled=user.get("Enabled", True),
            status=user.get("UserStatus"),
            create_date=user.get("UserCreateDate"),
            last_modified_date=user.get("UserLastModifiedDate"),
            attributes=tuple(user.get("Attributes", [])),
        )

    @classmethod
    def from_admin_get_user(cls, response: dict[str, Any]) -> "UserRecord":
        return cls(
            username=response["Username"],
            enabled=response.get("Enabled", True),
            status=response.get("UserStatus"),
            create_date=response.get("UserCreateDate"),
            last_modified_date=response.get("UserLastModifiedDate"),
            attributes=tuple(response.get("UserAttributes", [])),
        )

    def attribute_value(self, native_name: str) -> Optional[str]:
        for attr in self.attributes:
            if attr.get("Name") == native_name:
                return attr.get("Value")
        return None


@dataclass(frozen=True)
class GroupRecord:
    """Snapshot of a Cognito ``GroupType``."""

    group_name: str
    description: Optional[str] = None
    precedence: Optional[int] = None
    role_arn: Optional[str] = None
    creation_date: Optional[datetime] = None
    last_modified_date: Optional[datetime] = None

    @classmethod
    def from_group_type(cls, group: dict[str, Any]) -> "GroupRecord":
        return cls(
            group_name=group["GroupName"],
            description=group.get("Description"),
            precedence=group.get("Precedence"),
            role_arn=group.get("RoleArn"),
            creation_date=group.get("CreationDate"),
            last_modified_date=group.get("LastModifiedDate"),
        )
