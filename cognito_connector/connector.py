"""Connector facade: dispatches IDM operations to the user/group handlers.

Holds the Cognito client and the schema of the last fetch. The schema map
is replaced, never mutated, when ``schema()`` is called again; handlers are
built per operation with the map current at that time.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterable, Iterator, Optional

from botocore.exceptions import ClientError

from .client import build_cognito_client
from .config import ConnectorConfig
from .errors import (
    NOT_FOUND_CODES,
    ConnectorIOError,
    InvalidAttributeValueError,
    MembershipTargetNotFoundError,
    error_code,
    translate_client_error,
)
from .filters import UserPoolFilter
from .groups import GroupHandler
from .model import (
    GROUP_OBJECT_CLASS,
    USER_OBJECT_CLASS,
    AttributeDelta,
    ConnectorAttribute,
    ConnectorObject,
    OperationOptions,
    SchemaMap,
    Uid,
    UserPoolSchema,
)
from .schema import fetch_user_pool, project_schema
from .users import UserHandler

LOGGER = logging.getLogger("cognito_connector.connector")


@contextmanager
def translate_errors() -> Iterator[None]:
    """Re-raise native faults escaping a handler as connector errors."""
    try:
        yield
    except ClientError as e:
        raise translate_client_error(e) from e


class CognitoUserPoolConnector:
    """Identity connector for one Cognito user pool.

    Args:
        config: Connector configuration
        client: Optional pre-built ``cognito-idp`` client (built on ``init``)
    """

    def __init__(self, config: ConnectorConfig, client: Any = None) -> None:
        config.validate()
        self.config = config
        self.client = client
        self._schema: Optional[UserPoolSchema] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def init(self) -> "CognitoUserPoolConnector":
        """Build the client if needed and verify the user pool is reachable."""
        with translate_errors():
            if self.client is None:
                self.client = build_cognito_client(self.config)
            self.describe_user_pool()
        LOGGER.info("Connector for user pool %s successfully initialized", self.config.user_pool_id)
        return self

    def describe_user_pool(self) -> dict[str, Any]:
        try:
            return fetch_user_pool(self.client, self.config.user_pool_id)
        except ConnectorIOError as e:
            raise ConnectorIOError(f"Failed to describe user pool: {self.config.user_pool_id}") from e

    def test(self) -> None:
        """Rebuild the client and check connectivity."""
        self.dispose()
        self.init()

    def dispose(self) -> None:
        if self.client is not None and hasattr(self.client, "close"):
            self.client.close()
        self.client = None

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def schema(self) -> UserPoolSchema:
        """Re-query the user pool and replace the cached schema."""
        with translate_errors():
            schema = project_schema(self.describe_user_pool())
        self._schema = schema
        return schema

    @property
    def user_schema_map(self) -> SchemaMap:
        # Load the schema if it's not loaded yet
        if self._schema is None:
            self.schema()
        return self._schema.user_attributes

    def _user_handler(self) -> UserHandler:
        return UserHandler(self.config, self.client, self.user_schema_map)

    def _group_handler(self) -> GroupHandler:
        return GroupHandler(self.config, self.client)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def create(self, object_class: str, attributes: Iterable[ConnectorAttribute]) -> Uid:
        LOGGER.debug("CREATE object class: %s", object_class)
        if attributes is None:
            raise InvalidAttributeValueError("Attributes not provided or empty")

        with translate_errors():
            if object_class == USER_OBJECT_CLASS:
                return self._user_handler().create(attributes)
            if object_class == GROUP_OBJECT_CLASS:
                return self._group_handler().create(attributes)
        raise InvalidAttributeValueError(f"Unsupported object class {object_class}")

    def update(self, object_class: str, uid: Uid, attributes: Iterable[ConnectorAttribute]) -> Uid:
        with translate_errors():
            if object_class == USER_OBJECT_CLASS:
                return self._user_handler().update(uid, attributes)
            if object_class == GROUP_OBJECT_CLASS:
                return self._group_handler().update(uid, attributes)
        raise InvalidAttributeValueError(f"Unsupported object class {object_class}")

    def update_delta(self, object_class: str, uid: Uid, deltas: Iterable[AttributeDelta]) -> Uid:
        with translate_errors():
            if object_class == USER_OBJECT_CLASS:
                return self._user_handler().update_delta(uid, deltas)
            if object_class == GROUP_OBJECT_CLASS:
                return self._group_handler().update_delta(uid, deltas)
        raise InvalidAttributeValueError(f"Unsupported object class {object_class}")

    def delete(self, object_class: str, uid: Uid) -> None:
        with translate_errors():
            if object_class == USER_OBJECT_CLASS:
                self._user_handler().delete(uid)
                return
            if object_class == GROUP_OBJECT_CLASS:
                self._group_handler().delete(uid)
                return
        raise InvalidAttributeValueError(f"Unsupported object class {object_class}")

    def search(
        self,
        object_class: str,
        query: Optional[UserPoolFilter] = None,
        options: Optional[OperationOptions] = None,
    ) -> Iterator[ConnectorObject]:
        """Yield matching objects; a vanished target ends the search quietly."""
        if object_class == USER_OBJECT_CLASS:
            results = self._user_handler().search(query, options)
        elif object_class == GROUP_OBJECT_CLASS:
            results = self._group_handler().search(query, options)
        else:
            raise InvalidAttributeValueError(f"Unsupported object class {object_class}")

        with translate_errors():
            try:
                yield from results
            except ClientError as e:
                # Don't raise UnknownUidError from a search
                if error_code(e) not in NOT_FOUND_CODES:
                    raise
                LOGGER.debug("Search ended on not-found: %s", e)
            except MembershipTargetNotFoundError as e:
                # A user or group vanished between the listing and its association read
                LOGGER.debug("Search ended on not-found: %s", e)
