"""Connection defaults and settings loaded from arguments or the environment.

Every setting can be supplied through a ``FLUENT_QUERY_*`` environment
variable (``FLUENT_QUERY_HOST``, ``FLUENT_QUERY_DB_NAME``, ...). Explicit
arguments take precedence over the environment.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

#: Environment variable prefix for connection settings.
ENV_PREFIX = "FLUENT_QUERY_"

#: Server defaults for a local MySQL-compatible database.
DEFAULT_HOST = "localhost"
DEFAULT_PORT = 3306
DEFAULT_CHARSET = "utf8mb4"
DEFAULT_CONNECT_TIMEOUT = 10.0


class ConnectionSettings(BaseSettings):
    """Where and how to connect to the database server."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    host: str = Field(default=DEFAULT_HOST, description="Server hostname or IP.")
    db_name: str = Field(description="Schema every statement runs against.")
    user: str = Field(description="Database user name.")
    password: str = Field(default="", repr=False)
    port: int = Field(default=DEFAULT_PORT, gt=0, lt=65536)
    charset: str = Field(default=DEFAULT_CHARSET)
    connect_timeout: float = Field(default=DEFAULT_CONNECT_TIMEOUT, gt=0)

    @classmethod
    def from_env(cls, **overrides: Any) -> ConnectionSettings:
        """Build settings from ``FLUENT_QUERY_*`` variables.

        Args:
            **overrides: Field values that win over the environment.
                ``None`` values are ignored.

        Raises:
            pydantic.ValidationError: If a required field is missing or a
                value has the wrong type.
        """
        return cls(**{k: v for k, v in overrides.items() if v is not None})
