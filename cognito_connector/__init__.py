"""Cognito User Pool connector - identity-management provisioning for Amazon Cognito.

Maps an IDM system's generic User/Group create, update, delete and search
operations onto the Cognito user pool administrative API.

Example usage:
    from cognito_connector import ConnectorConfig, CognitoUserPoolConnector, ConnectorAttribute

    # Load config from environment
    config = ConnectorConfig.from_legacy_env()

    # Connect and fetch the pool schema
    connector = CognitoUserPoolConnector(config).init()
    connector.schema()

    uid = connector.create("User", [
        ConnectorAttribute.of("__NAME__", "jsmith"),
        ConnectorAttribute.of("email", "jsmith@example.com"),
        ConnectorAttribute.of("groups", "staff", "admins"),
    ])
"""

from .cli import connector_app, main
from .client import build_cognito_client
from .codec import (
    escape_name,
    to_connector_attribute,
    to_native_attribute,
    to_native_attribute_for_delete,
    unescape_name,
)
from .config import ConnectorConfig
from .connector import CognitoUserPoolConnector
from .errors import (
    AlreadyExistsError,
    ConfigurationError,
    ConnectorError,
    ConnectorIOError,
    InvalidAttributeValueError,
    MembershipTargetNotFoundError,
    RetryableError,
    SchemaMismatchError,
    TypeConversionError,
    UnknownUidError,
)
from .filters import FilterType, UserPoolFilter, equals_filter, starts_with_filter
from .groups import GroupHandler
from .membership import MembershipSynchronizer
from .model import (
    AttributeDelta,
    ConnectorAttribute,
    ConnectorObject,
    DataType,
    OperationOptions,
    SchemaAttribute,
    Uid,
)
from .schema import project_schema
from .users import UserHandler

__all__ = [
    # Config
    "ConnectorConfig",
    "build_cognito_client",
    # Connector
    "CognitoUserPoolConnector",
    "UserHandler",
    "GroupHandler",
    "MembershipSynchronizer",
    "project_schema",
    # Model
    "AttributeDelta",
    "ConnectorAttribute",
    "ConnectorObject",
    "DataType",
    "OperationOptions",
    "SchemaAttribute",
    "Uid",
    # Codec
    "escape_name",
    "unescape_name",
    "to_connector_attribute",
    "to_native_attribute",
    "to_native_attribute_for_delete",
    # Filters
    "FilterType",
    "UserPoolFilter",
    "equals_filter",
    "starts_with_filter",
    # Errors
    "ConnectorError",
    "ConfigurationError",
    "InvalidAttributeValueError",
    "SchemaMismatchError",
    "TypeConversionError",
    "UnknownUidError",
    "AlreadyExistsError",
    "RetryableError",
    "MembershipTargetNotFoundError",
    "ConnectorIOError",
    # CLI
    "connector_app",
    "main",
]

try:
    from importlib.metadata import version as _get_version

    __version__ = _get_version("cognito-userpool-connector")
except Exception:
    __version__ = "0.0.0"  # fallback for editable installs without metadata
