"""
Configuration management for the Redis session store.

This module provides two layers of configuration, both built on Pydantic:

- StoreOptions: the structured options object a caller hands to
  RedisSessionStore (client, host, port, socket, db, pass, prefix).
- StoreSettings: environment-driven settings loaded from SESSION_STORE_*
  variables and .env files, used to build StoreOptions and to configure
  logging, tracing and health checks.
"""

import os
from enum import Enum
from pathlib import Path
from typing import Any, Optional, List, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_HOST = "localhost"
DEFAULT_PORT = 6379


class Environment(str, Enum):
    """Supported deployment environments."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


def _detect_environment() -> Environment:
    """
    Detect the current environment from the ENVIRONMENT variable.
    
    Returns:
        Environment: The detected environment, defaults to DEVELOPMENT if not set.
    """
    env_value = os.environ.get("ENVIRONMENT", "development").lower().strip()
    try:
        return Environment(env_value)
    except ValueError:
        return Environment.DEVELOPMENT


def _get_env_files(environment: Environment) -> Tuple[str, ...]:
    """
    Get the list of .env files to load for the given environment.
    
    The base .env file is loaded first, then the environment-specific file
    overrides it.
    """
    return (".env", f".env.{environment.value}")


class StoreOptions(BaseModel):
    """
    Options accepted by RedisSessionStore.
    
    Exactly one connection path is meaningful: either an existing ``client``
    or the ``host``/``port``/``socket`` triple. ``db`` and ``pass`` only apply
    when the store creates its own client. ``pass`` is exposed as ``pass_``
    in Python since ``pass`` is a keyword; both names are accepted on input.
    """
    
    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        populate_by_name=True,
        extra="forbid",
    )
    
    client: Optional[Any] = Field(
        default=None,
        description="Existing redis.asyncio.Redis client to use"
    )
    host: str = Field(
        default=DEFAULT_HOST,
        min_length=1,
        description="Redis host, used when no client is given"
    )
    port: int = Field(
        default=DEFAULT_PORT,
        ge=1,
        le=65535,
        description="Redis port, used when no client is given"
    )
    socket: Optional[str] = Field(
        default=None,
        description="Unix socket path; takes precedence over host/port"
    )
    db: Optional[int] = Field(
        default=None,
        ge=0,
        description="Logical database selected on every connection"
    )
    pass_: Optional[str] = Field(
        default=None,
        alias="pass",
        description="Password sent on every connection"
    )
    prefix: str = Field(
        default="",
        description="Key prefix for user session sets, stripped from returned sids"
    )
    
    def ignored_fields(self) -> List[str]:
        """
        List the explicitly provided fields that have no effect.
        
        When a client is supplied, the connection fields are ignored.
        """
        if self.client is None:
            return []
        connection_fields = {"host", "port", "socket", "db", "pass_"}
        return sorted(connection_fields & self.model_fields_set)
    
    @classmethod
    def from_settings(cls, settings: "StoreSettings") -> "StoreOptions":
        """Build store options from environment settings."""
        return cls(
            host=settings.host,
            port=settings.port,
            socket=settings.socket,
            db=settings.db,
            pass_=settings.password,
            prefix=settings.prefix,
        )


class StoreSettings(BaseSettings):
    """
    Session store settings loaded from environment variables.
    
    Every field is read from a ``SESSION_STORE_`` prefixed variable, e.g.
    ``SESSION_STORE_HOST`` or ``SESSION_STORE_PASSWORD``.
    
    Environment-specific configuration is supported through:
    - .env.development - Development environment settings
    - .env.staging - Staging environment settings  
    - .env.production - Production environment settings
    
    The ENVIRONMENT variable determines which file to load.
    """
    
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        validation_alias=AliasChoices("environment", "ENVIRONMENT"),
        description="Deployment environment (development, staging, production)"
    )
    
    # Redis connection
    host: str = Field(
        default=DEFAULT_HOST,
        description="Redis host"
    )
    port: int = Field(
        default=DEFAULT_PORT,
        ge=1,
        le=65535,
        description="Redis port"
    )
    socket: Optional[str] = Field(
        default=None,
        description="Redis unix socket path"
    )
    db: Optional[int] = Field(
        default=None,
        ge=0,
        description="Redis logical database index"
    )
    password: Optional[str] = Field(
        default=None,
        description="Redis password"
    )
    prefix: str = Field(
        default="",
        description="Key prefix for user session sets"
    )
    
    # Observability
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    otel_endpoint: Optional[str] = Field(
        default=None,
        description="OpenTelemetry collector endpoint URL"
    )
    otel_service_name: str = Field(
        default="redis-session-store",
        description="Service name for OpenTelemetry traces"
    )
    
    # Health checks
    health_check_timeout: float = Field(
        default=5.0,
        gt=0,
        le=60,
        description="Timeout in seconds for the session store health check"
    )
    
    model_config = SettingsConfigDict(
        env_prefix="SESSION_STORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )
    
    @field_validator("host")
    @classmethod
    def validate_host(cls, v: str) -> str:
        """Validate that host is not empty."""
        if not v or not v.strip():
            raise ValueError("host cannot be empty")
        return v.strip()
    
    @field_validator("socket", "password")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        """Treat blank strings from .env files as unset."""
        if v is None or not v.strip():
            return None
        return v
    
    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log_level is a valid logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.strip().upper()
        if v not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(sorted(valid_levels))}")
        return v
    
    @field_validator("otel_endpoint")
    @classmethod
    def validate_otel_endpoint(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        v = v.strip()
        if not (v.startswith("http://") or v.startswith("https://")):
            raise ValueError("otel_endpoint must be a valid HTTP/HTTPS URL")
        return v
    
    @model_validator(mode="after")
    def validate_production_password(self) -> "StoreSettings":
        """Require a Redis password outside development and staging."""
        if self.environment == Environment.PRODUCTION and not self.password:
            raise ValueError(
                "password is required in the production environment"
            )
        return self


class ConfigurationError(Exception):
    """Exception raised when configuration validation fails."""
    
    def __init__(self, message: str, missing_fields: Optional[List[str]] = None, 
                 invalid_fields: Optional[dict] = None):
        self.message = message
        self.missing_fields = missing_fields or []
        self.invalid_fields = invalid_fields or {}
        super().__init__(self.format_error_message())
    
    def format_error_message(self) -> str:
        """Format a descriptive error message listing all issues."""
        parts = [self.message]
        
        if self.missing_fields:
            parts.append(f"\nMissing required fields: {', '.join(self.missing_fields)}")
        
        if self.invalid_fields:
            invalid_parts = [f"  - {field}: {error}" for field, error in self.invalid_fields.items()]
            parts.append("\nInvalid field values:\n" + "\n".join(invalid_parts))
        
        return "".join(parts)


def summarize_validation_errors(exc: Exception) -> Tuple[List[str], dict]:
    """
    Split a Pydantic ValidationError into missing and invalid fields.
    
    Args:
        exc: The exception raised by Pydantic validation
    
    Returns:
        Tuple of (missing field names, {field name: error message})
    """
    missing_fields: List[str] = []
    invalid_fields: dict = {}
    
    if hasattr(exc, "errors"):
        for error in exc.errors():
            field_name = ".".join(str(loc) for loc in error.get("loc", [])) or "__root__"
            error_type = error.get("type", "")
            error_msg = error.get("msg", str(error))
            
            if error_type == "missing":
                missing_fields.append(field_name)
            else:
                invalid_fields[field_name] = error_msg
    
    return missing_fields, invalid_fields


def create_settings_for_environment(environment: Optional[Environment] = None) -> StoreSettings:
    """
    Factory function to create StoreSettings for a specific environment.
    
    Args:
        environment: Optional environment override. If not provided, detected from
                    ENVIRONMENT variable.
    
    Returns:
        StoreSettings: Validated settings for the specified environment.
    
    Raises:
        ConfigurationError: If settings are missing or invalid.
    """
    if environment is None:
        environment = _detect_environment()
    
    env_files = tuple(f for f in _get_env_files(environment) if Path(f).exists())
    
    try:
        class EnvironmentSettings(StoreSettings):
            model_config = SettingsConfigDict(
                env_prefix="SESSION_STORE_",
                env_file=env_files or None,
                env_file_encoding="utf-8",
                case_sensitive=False,
                extra="ignore"
            )
        
        return EnvironmentSettings(environment=environment)
    except Exception as e:
        missing_fields, invalid_fields = summarize_validation_errors(e)
        raise ConfigurationError(
            f"Failed to load session store configuration for environment '{environment.value}'",
            missing_fields=missing_fields,
            invalid_fields=invalid_fields
        ) from e


# Global settings cache
_settings_cache: Optional[StoreSettings] = None


def get_settings() -> StoreSettings:
    """
    Get the session store settings singleton.
    
    Settings are loaded once and cached for subsequent calls.
    
    Raises:
        ConfigurationError: If settings are missing or invalid.
    """
    global _settings_cache
    
    if _settings_cache is None:
        _settings_cache = create_settings_for_environment()
    
    return _settings_cache


def clear_settings_cache() -> None:
    """
    Clear the settings cache.
    
    This is primarily useful for testing to allow reloading settings
    with different environment variables.
    """
    global _settings_cache
    _settings_cache = None
