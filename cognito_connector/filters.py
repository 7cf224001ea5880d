"""Search filters expressible in Cognito's ListUsers grammar.

Cognito supports only exact (``=``) and prefix (``^=``) matches, on a small
set of standard attributes. Anything else (negation, custom attributes,
other fields) translates to ``None``, meaning "no native filter": the
caller then receives the unfiltered listing.

https://docs.aws.amazon.com/cognito-user-identity-pools/latest/APIReference/API_ListUsers.html
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Optional

from .codec import ESCAPED_CUSTOM_PREFIX, NATIVE_CUSTOM_PREFIX, unescape_name
from .model import ENABLE_NAME, NAME_NAME, UID_NAME, SchemaMap
from .schema import ATTR_SUB, ATTR_USER_STATUS, ATTR_USERNAME

SEARCHABLE_NATIVE_FIELDS = frozenset(
    {
        "username",
        "email",
        "phone_number",
        "name",
        "given_name",
        "family_name",
        "preferred_username",
        "cognito:user_status",
        "status",
        "sub",
    }
)

# Connector names that do not unescape to their native field name
SPECIAL_NATIVE_FIELDS = {
    UID_NAME: ATTR_SUB,
    NAME_NAME: ATTR_USERNAME,
    ATTR_USER_STATUS: "cognito:user_status",
    ENABLE_NAME: "status",
}


class FilterType(enum.Enum):
    EXACT_MATCH = "="
    PREFIX_MATCH = "^="


@dataclass(frozen=True)
class UserPoolFilter:
    attribute_name: str
    filter_type: FilterType
    value: str

    @property
    def is_by_name(self) -> bool:
        return self.attribute_name == NAME_NAME and self.filter_type is FilterType.EXACT_MATCH

    @property
    def is_by_uid(self) -> bool:
        return self.attribute_name == UID_NAME and self.filter_type is FilterType.EXACT_MATCH

    def native_field(self, schema: Optional[SchemaMap] = None) -> str:
        special = SPECIAL_NATIVE_FIELDS.get(self.attribute_name)
        if special is not None:
            return special
        if schema is not None and self.attribute_name in schema:
            return schema[self.attribute_name].native_name
        return unescape_name(self.attribute_name)

    def to_filter_string(self, schema: Optional[SchemaMap] = None) -> str:
        """Render e.g. ``email ^= "foo"``."""
        value = self.value
        if self.attribute_name == ENABLE_NAME:
            value = "Enabled" if str(value).lower() == "true" else "Disabled"
        escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
        return f'{self.native_field(schema)} {self.filter_type.value} "{escaped}"'


def sub_filter(sub: str) -> UserPoolFilter:
    return UserPoolFilter(UID_NAME, FilterType.EXACT_MATCH, sub)


def _is_searchable(name: str) -> bool:
    if name.startswith(ESCAPED_CUSTOM_PREFIX) or name.startswith(NATIVE_CUSTOM_PREFIX):
        return False
    native = SPECIAL_NATIVE_FIELDS.get(name, name)
    return native in SEARCHABLE_NATIVE_FIELDS


def equals_filter(
    name: str,
    value: Any,
    uid_name_hint: Optional[str] = None,
    negated: bool = False,
) -> Optional[UserPoolFilter]:
    """Translate an equality predicate, or return None if Cognito can't run it."""
    if negated:
        return None
    if name == UID_NAME and uid_name_hint is not None:
        return UserPoolFilter(NAME_NAME, FilterType.EXACT_MATCH, uid_name_hint)
    if not _is_searchable(name):
        return None
    return UserPoolFilter(name, FilterType.EXACT_MATCH, str(value))


def starts_with_filter(name: str, value: Any, negated: bool = False) -> Optional[UserPoolFilter]:
    """Translate a prefix predicate, or return None if Cognito can't run it."""
    if negated or not _is_searchable(name):
        return None
    return UserPoolFilter(name, FilterType.PREFIX_MATCH, str(value))
