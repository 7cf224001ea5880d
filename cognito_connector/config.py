"""Connector configuration management.

Provides an immutable configuration object for the user pool connector.
Supports both namespaced env vars (COGCONN_<NAME>_*) and legacy env vars
(COGNITO_*, AWS_*).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from .errors import ConfigurationError

DEFAULT_ASSUME_ROLE_DURATION_SECONDS = 3600


def _env_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, value: Optional[str], default: Optional[int]) -> Optional[int]:
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"Invalid integer for {name}: {value!r}") from e


@dataclass(frozen=True)
class ConnectorConfig:
    """Immutable connector configuration.

    Attributes:
        user_pool_id: Cognito User Pool ID
        region: AWS region (e.g., 'us-west-2'); None uses the SDK default chain
        name: Optional config name (for namespaced env loading)
        aws_profile: Optional AWS profile name
        aws_access_key_id: Optional static access key (overrides the profile)
        aws_secret_access_key: Optional static secret key
        endpoint_url: Optional endpoint override (e.g. a local emulator)
        http_proxy_host: Optional HTTP proxy host
        http_proxy_port: HTTP proxy port
        http_proxy_user: Optional HTTP proxy user
        http_proxy_password: Optional HTTP proxy password
        assume_role_arn: Optional role to assume through STS
        assume_role_external_id: Optional external ID for the assumed role
        assume_role_duration_seconds: Assumed role session duration
        suppress_invitation_message: Send MessageAction=SUPPRESS on AdminCreateUser
    """

    user_pool_id: str
    region: Optional[str] = None
    name: Optional[str] = None
    aws_profile: Optional[str] = None
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    endpoint_url: Optional[str] = None
    http_proxy_host: Optional[str] = None
    http_proxy_port: Optional[int] = None
    http_proxy_user: Optional[str] = None
    http_proxy_password: Optional[str] = None
    assume_role_arn: Optional[str] = None
    assume_role_external_id: Optional[str] = None
    assume_role_duration_seconds: int = DEFAULT_ASSUME_ROLE_DURATION_SECONDS
    suppress_invitation_message: bool = True

    def validate(self) -> None:
        """Validate configuration fields.

        Raises:
            ConfigurationError: If required fields are missing or inconsistent.
        """
        if not self.user_pool_id:
            raise ConfigurationError("Missing required connector config field: user_pool_id")
        if bool(self.aws_access_key_id) != bool(self.aws_secret_access_key):
            raise ConfigurationError("aws_access_key_id and aws_secret_access_key must be set together")
        if self.http_proxy_host and not self.http_proxy_port:
            raise ConfigurationError("http_proxy_port is required when http_proxy_host is set")

    def proxy_url(self) -> Optional[str]:
        """Build the proxy URL for botocore, or None without a proxy host."""
        if not self.http_proxy_host:
            return None
        credentials = ""
        if self.http_proxy_user and self.http_proxy_password is not None:
            credentials = f"{self.http_proxy_user}:{self.http_proxy_password}@"
        return f"http://{credentials}{self.http_proxy_host}:{self.http_proxy_port}"

    @classmethod
    def from_env(cls, name: str, *, prefix: str = "COGCONN") -> "ConnectorConfig":
        """Load configuration from namespaced environment variables.

        Reads:
            {prefix}_{NAME}_USER_POOL_ID
            {prefix}_{NAME}_REGION (optional)
            {prefix}_{NAME}_AWS_PROFILE (optional)
            {prefix}_{NAME}_AWS_ACCESS_KEY_ID (optional)
            {prefix}_{NAME}_AWS_SECRET_ACCESS_KEY (optional)
            {prefix}_{NAME}_ENDPOINT_URL (optional)
            {prefix}_{NAME}_HTTP_PROXY_HOST / _PORT / _USER / _PASSWORD (optional)
            {prefix}_{NAME}_ASSUME_ROLE_ARN / _EXTERNAL_ID / _DURATION_SECONDS (optional)
            {prefix}_{NAME}_SUPPRESS_INVITATION (optional, default true)

        Args:
            name: Config name (used in env var names, uppercased)
            prefix: Env var prefix (default: COGCONN)

        Raises:
            ConfigurationError: If required env vars are missing.
        """
        env_prefix = f"{prefix}_{name.upper()}_"
        env = os.environ

        user_pool_id = env.get(f"{env_prefix}USER_POOL_ID", "")
        if not user_pool_id:
            raise ConfigurationError(
                f"Missing required environment variables for config '{name}': {env_prefix}USER_POOL_ID"
            )

        config = cls(
            user_pool_id=user_pool_id,
            region=env.get(f"{env_prefix}REGION"),
            name=name,
            aws_profile=env.get(f"{env_prefix}AWS_PROFILE"),
            aws_access_key_id=env.get(f"{env_prefix}AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=env.get(f"{env_prefix}AWS_SECRET_ACCESS_KEY"),
            endpoint_url=env.get(f"{env_prefix}ENDPOINT_URL"),
            http_proxy_host=env.get(f"{env_prefix}HTTP_PROXY_HOST"),
            http_proxy_port=_env_int(
                f"{env_prefix}HTTP_PROXY_PORT", env.get(f"{env_prefix}HTTP_PROXY_PORT"), None
            ),
            http_proxy_user=env.get(f"{env_prefix}HTTP_PROXY_USER"),
            http_proxy_password=env.get(f"{env_prefix}HTTP_PROXY_PASSWORD"),
            assume_role_arn=env.get(f"{env_prefix}ASSUME_ROLE_ARN"),
            assume_role_external_id=env.get(f"{env_prefix}ASSUME_ROLE_EXTERNAL_ID"),
            assume_role_duration_seconds=_env_int(
                f"{env_prefix}ASSUME_ROLE_DURATION_SECONDS",
                env.get(f"{env_prefix}ASSUME_ROLE_DURATION_SECONDS"),
                DEFAULT_ASSUME_ROLE_DURATION_SECONDS,
            ),
            suppress_invitation_message=_env_bool(env.get(f"{env_prefix}SUPPRESS_INVITATION"), True),
        )
        config.validate()
        return config

    @classmethod
    def from_legacy_env(cls) -> "ConnectorConfig":
        """Load configuration from legacy environment variables.

        Reads:
            COGNITO_USER_POOL_ID
            COGNITO_REGION (fallback: AWS_REGION)
            AWS_PROFILE, AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY (optional)
            COGNITO_ENDPOINT_URL (optional)
            HTTP_PROXY_HOST, HTTP_PROXY_PORT, HTTP_PROXY_USER, HTTP_PROXY_PASSWORD (optional)
            COGNITO_ASSUME_ROLE_ARN, COGNITO_ASSUME_ROLE_EXTERNAL_ID,
            COGNITO_ASSUME_ROLE_DURATION_SECONDS (optional)
            COGNITO_SUPPRESS_INVITATION (optional, default true)

        Raises:
            ConfigurationError: If required env vars are missing.
        """
        env = os.environ

        user_pool_id = env.get("COGNITO_USER_POOL_ID", "")
        if not user_pool_id:
            raise ConfigurationError("Missing required environment variables: COGNITO_USER_POOL_ID")

        config = cls(
            user_pool_id=user_pool_id,
            region=env.get("COGNITO_REGION") or env.get("AWS_REGION"),
            name=None,
            aws_profile=env.get("AWS_PROFILE"),
            aws_access_key_id=env.get("AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=env.get("AWS_SECRET_ACCESS_KEY"),
            endpoint_url=env.get("COGNITO_ENDPOINT_URL"),
            http_proxy_host=env.get("HTTP_PROXY_HOST"),
            http_proxy_port=_env_int("HTTP_PROXY_PORT", env.get("HTTP_PROXY_PORT"), None),
            http_proxy_user=env.get("HTTP_PROXY_USER"),
            http_proxy_password=env.get("HTTP_PROXY_PASSWORD"),
            assume_role_arn=env.get("COGNITO_ASSUME_ROLE_ARN"),
            assume_role_external_id=env.get("COGNITO_ASSUME_ROLE_EXTERNAL_ID"),
            assume_role_duration_seconds=_env_int(
                "COGNITO_ASSUME_ROLE_DURATION_SECONDS",
                env.get("COGNITO_ASSUME_ROLE_DURATION_SECONDS"),
                DEFAULT_ASSUME_ROLE_DURATION_SECONDS,
            ),
            suppress_invitation_message=_env_bool(env.get("COGNITO_SUPPRESS_INVITATION"), True),
        )
        config.validate()
        return config
