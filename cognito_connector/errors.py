"""Connector error taxonomy and native fault translation.

Cognito signals failures as botocore ``ClientError`` instances carrying an
error code. Handlers catch the codes they have a specific meaning for and
let the rest escape to the dispatch layer, which runs them through
``translate_client_error``.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from botocore.exceptions import ClientError

LOGGER = logging.getLogger("cognito_connector.errors")

RETRYABLE_CODES = frozenset({"LimitExceededException", "TooManyRequestsException", "InternalErrorException"})
NOT_FOUND_CODES = frozenset({"UserNotFoundException", "ResourceNotFoundException"})
EXISTS_CODES = frozenset({"UsernameExistsException", "GroupExistsException"})
INVALID_VALUE_CODES = frozenset({"InvalidParameterException", "InvalidPasswordException"})


class ConnectorError(Exception):
    """Base class for every error raised by the connector."""


class ConfigurationError(ConnectorError):
    """The connector configuration is missing or invalid."""


class InvalidAttributeValueError(ConnectorError):
    """An incoming attribute cannot be applied to the user pool."""

    def __init__(self, message: str, affected_attributes: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.affected_attributes = tuple(affected_attributes)


class SchemaMismatchError(InvalidAttributeValueError):
    """Attribute name not present in the derived schema map."""


class TypeConversionError(ConnectorError):
    """A native string value could not be parsed into its schema type."""


class UnknownUidError(ConnectorError):
    """The referenced user or group does not exist in the pool."""

    def __init__(self, message: str, uid: Any = None, object_class: Optional[str] = None) -> None:
        super().__init__(message)
        self.uid = uid
        self.object_class = object_class


class AlreadyExistsError(ConnectorError):
    """A user or group with the same name already exists."""


class RetryableError(ConnectorError):
    """Transient failure; the caller may re-drive the whole operation."""

    retryable = True


class MembershipTargetNotFoundError(RetryableError):
    """A membership call referenced a user or group that vanished."""

    def __init__(self, message: str, native_code: str) -> None:
        super().__init__(message)
        self.native_code = native_code


class ConnectorIOError(ConnectorError):
    """Unexpected transport status or unmapped native fault."""


def error_code(error: ClientError) -> str:
    """Return the native error code carried by a ClientError."""
    return error.response.get("Error", {}).get("Code", "")


def check_response(response: dict[str, Any], api_name: str) -> dict[str, Any]:
    """Fail on any non-200 status the SDK did not already raise for.

    Args:
        response: boto3 response dict
        api_name: Native operation name, used in the error message

    Returns:
        The response, unchanged.

    Raises:
        ConnectorIOError: If the HTTP status is not 200.
    """
    status = response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    if status != 200:
        raise ConnectorIOError(f'Cognito returns unexpected error when calling "{api_name}". status: {status}')
    return response


def translate_client_error(error: ClientError) -> ConnectorError:
    """Map a native Cognito fault to a connector error.

    The caller raises the result ``from`` the original error.
    """
    code = error_code(error)
    message = str(error)

    if code in INVALID_VALUE_CODES:
        affected = ("__PASSWORD__",) if code == "InvalidPasswordException" else ()
        return InvalidAttributeValueError(message, affected)
    if code in NOT_FOUND_CODES:
        return UnknownUidError(message)
    if code in EXISTS_CODES:
        return AlreadyExistsError(message)
    if code in RETRYABLE_CODES:
        return RetryableError(message)

    LOGGER.debug("Unmapped Cognito error code: %s", code)
    return ConnectorIOError(message)
