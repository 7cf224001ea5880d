"""Cognito IDP client factory."""

from __future__ import annotations

import logging
from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import InvalidRegionError

from .config import ConnectorConfig
from .errors import ConfigurationError

LOGGER = logging.getLogger("cognito_connector.client")

ROLE_SESSION_NAME = "identity-connector"


def _client_config(config: ConnectorConfig) -> Optional[Config]:
    proxy = config.proxy_url()
    if proxy is None:
        return None
    return Config(proxies={"http": proxy, "https": proxy})


def build_session(config: ConnectorConfig) -> boto3.Session:
    """Create a boto3 session from static keys, a profile, or the default chain.

    When ``assume_role_arn`` is set the returned session carries the
    temporary credentials of the assumed role.
    """
    session_kwargs: dict[str, Any] = {}
    if config.region:
        session_kwargs["region_name"] = config.region
    if config.aws_access_key_id and config.aws_secret_access_key:
        session_kwargs["aws_access_key_id"] = config.aws_access_key_id
        session_kwargs["aws_secret_access_key"] = config.aws_secret_access_key
    elif config.aws_profile:
        session_kwargs["profile_name"] = config.aws_profile

    session = boto3.Session(**session_kwargs)

    if not config.assume_role_arn:
        return session

    # TODO: wrap in botocore RefreshableCredentials so long-lived connectors survive role session expiry
    sts = session.client("sts", config=_client_config(config))
    request: dict[str, Any] = {
        "RoleArn": config.assume_role_arn,
        "RoleSessionName": ROLE_SESSION_NAME,
        "DurationSeconds": config.assume_role_duration_seconds,
    }
    if config.assume_role_external_id:
        request["ExternalId"] = config.assume_role_external_id

    credentials = sts.assume_role(**request)["Credentials"]
    LOGGER.debug("Assumed role %s until %s", config.assume_role_arn, credentials.get("Expiration"))

    return boto3.Session(
        aws_access_key_id=credentials["AccessKeyId"],
        aws_secret_access_key=credentials["SecretAccessKey"],
        aws_session_token=credentials["SessionToken"],
        region_name=config.region,
    )


def build_cognito_client(config: ConnectorConfig) -> Any:
    """Create and return a Cognito IDP client for ``config``.

    Raises:
        ConfigurationError: If the configured region is invalid.
    """
    session = build_session(config)
    client_kwargs: dict[str, Any] = {}
    if config.endpoint_url:
        client_kwargs["endpoint_url"] = config.endpoint_url
    client_config = _client_config(config)
    if client_config is not None:
        client_kwargs["config"] = client_config

    try:
        return session.client("cognito-idp", **client_kwargs)
    except InvalidRegionError as e:
        LOGGER.error("Invalid AWS region: %s", config.region)
        raise ConfigurationError(f"Invalid AWS region: {config.region}") from e
