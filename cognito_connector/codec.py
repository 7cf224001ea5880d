"""Translation between Cognito's string-only attributes and typed attributes.

Cognito returns every user attribute as a string, even when the pool
schema declares it a Number, Boolean or DateTime. The schema map decides
how each value is parsed and formatted.

Custom attribute names carry a ``custom:`` prefix. ``:`` is reserved in
XML identifiers on the IDM side, so the prefix is exposed as ``custom_``.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time
from typing import Any, Optional

from .errors import InvalidAttributeValueError, SchemaMismatchError, TypeConversionError
from .model import ConnectorAttribute, DataType, SchemaAttribute, SchemaMap

LOGGER = logging.getLogger("cognito_connector.codec")

NATIVE_CUSTOM_PREFIX = "custom:"
ESCAPED_CUSTOM_PREFIX = "custom_"

# Cognito deletes a user attribute when it is updated with an empty string
DELETE_SENTINEL = ""


def escape_name(name: str) -> str:
    """Rewrite a leading ``custom:`` to ``custom_``."""
    if name.startswith(NATIVE_CUSTOM_PREFIX):
        return ESCAPED_CUSTOM_PREFIX + name[len(NATIVE_CUSTOM_PREFIX) :]
    return name


def unescape_name(name: str) -> str:
    """Restore an escaped name to its native Cognito form."""
    if name.startswith(ESCAPED_CUSTOM_PREFIX):
        return NATIVE_CUSTOM_PREFIX + name[len(ESCAPED_CUSTOM_PREFIX) :]
    return name


def to_zoned_datetime(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize an SDK timestamp to an aware datetime in the local zone."""
    if value is None:
        return None
    return value.astimezone()


def parse_native_datetime(value: str) -> datetime:
    """Parse ``YYYY-MM-DD`` or an ISO-8601 instant into a local aware datetime.

    Raises:
        TypeConversionError: If the value is neither form.
    """
    try:
        if len(value) == 10:
            # Naive midnight interpreted in the local zone
            return datetime.combine(date.fromisoformat(value), time.min).astimezone()
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise TypeConversionError(f"Invalid date value: {value!r}") from e
    return parsed.astimezone()


def format_native_date(value: Any) -> str:
    """Format a date/datetime as Cognito's ``YYYY-MM-DD``; time-of-day is dropped."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        # The calendar date in the value's own offset, as for a datetime
        try:
            if len(value) == 10:
                return date.fromisoformat(value).isoformat()
            return datetime.fromisoformat(value.replace("Z", "+00:00")).date().isoformat()
        except ValueError as e:
            raise TypeConversionError(f"Invalid date value: {value!r}") from e
    raise InvalidAttributeValueError(f"Not a date value: {value!r}")


def format_native_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def parse_native_value(data_type: DataType, value: str) -> Any:
    if data_type is DataType.INTEGER:
        try:
            return int(value, 10)
        except (TypeError, ValueError) as e:
            raise TypeConversionError(f"Invalid integer value: {value!r}") from e
    if data_type is DataType.TIMESTAMP:
        return parse_native_datetime(value)
    if data_type is DataType.BOOLEAN:
        # Lenient: anything but "true" (any case) is False
        return value.lower() == "true"
    return value


def to_connector_attribute(schema_attr: SchemaAttribute, native_attr: dict[str, str]) -> ConnectorAttribute:
    """Convert a native ``{"Name", "Value"}`` pair using its schema entry."""
    value = parse_native_value(schema_attr.data_type, native_attr["Value"])
    return ConnectorAttribute.of(escape_name(native_attr["Name"]), value)


def _single_value(attr: ConnectorAttribute) -> Any:
    if len(attr.values) > 1:
        raise InvalidAttributeValueError(f"Attribute {attr.name} accepts a single value", (attr.name,))
    return attr.single_value


def to_native_attribute(schema: SchemaMap, attr: ConnectorAttribute) -> dict[str, str]:
    """Convert a typed attribute to the native wire form.

    Raises:
        SchemaMismatchError: If the attribute is not in the schema map.
    """
    # The schema map is keyed by the escaped name
    schema_attr = schema.get(attr.name)
    if schema_attr is None:
        raise SchemaMismatchError(f"Unknown attribute: {attr.name}", (attr.name,))

    value = _single_value(attr)
    if value is None:
        native_value = DELETE_SENTINEL
    elif schema_attr.data_type is DataType.TIMESTAMP:
        native_value = format_native_date(value)
    else:
        native_value = format_native_value(value)

    return {"Name": unescape_name(attr.name), "Value": native_value}


def to_native_attribute_for_delete(attr: ConnectorAttribute) -> dict[str, str]:
    """Build the native update entry that removes ``attr`` from the user."""
    return {"Name": unescape_name(attr.name), "Value": DELETE_SENTINEL}
