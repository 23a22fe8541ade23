"""Configuration management for changeresponse.

Configuration Discovery Precedence (Highest to Lowest Priority):
===============================================================

1. **CHANGERESPONSE_CONFIG_DIR Environment Variable** (Highest Priority)
   - Looks for: `${CHANGERESPONSE_CONFIG_DIR}/changeresponse.yaml`
   - Use case: Development, testing, custom deployments

2. **~/.changeresponse Directory** (Fallback)
   - Looks for: `~/.changeresponse/changeresponse.yaml`
   - Use case: Default user installations

The first existing `changeresponse.yaml` found in this order is used.
If none is found, default configuration is applied (which has no override
rules, so an engine cannot be built from it).

File format:
-----------
changeresponse:
  name: api-errors
  debug: false
  overrides:
    - from: [500, 502]
      to: 503
      headers:
        Content-Type: application/json
      removeHeaders: [Server]
      mode: replace
      body: '{"error": "upstream unavailable"}'
"""

import logging
import os
import threading
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from changeresponse.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "changeresponse.yaml"
DEFAULT_NAME = "changeresponse"


class BodyMode(str, Enum):
    """How a rule's body text combines with the current body."""

    REPLACE = "replace"  # default
    KEEP = "keep"
    APPEND = "append"
    PREPEND = "prepend"


def _check_latin1(what: str, text: str) -> None:
    # HTTP/1.1 header fields are latin-1 on the wire
    try:
        text.encode("latin-1")
    except UnicodeEncodeError as e:
        raise ValueError(f"{what} {text!r} must be latin-1 encodable") from e


class OverrideRule(BaseModel):
    """A single override rule.

    Field aliases are the keys used in configuration files.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    match_statuses: list[int] = Field(alias="from")
    """Status codes that trigger this rule. Required"""

    target_status: int = Field(alias="to")
    """Status code that replaces the upstream one. Required"""

    set_headers: dict[str, list[str]] = Field(default_factory=dict, alias="headers")
    """Headers to set; each name fully replaces existing values"""

    remove_headers: list[str] = Field(default_factory=list, alias="removeHeaders")
    """Upstream headers to delete before set_headers is applied"""

    body_mode: str = Field(default=BodyMode.REPLACE.value, alias="mode")
    """replace (default), keep, append or prepend"""

    body_content: str = Field(default="", alias="body")
    """Body text used according to body_mode"""

    @field_validator("set_headers", mode="before")
    @classmethod
    def _coerce_header_values(cls, value: Any) -> Any:
        # Allow `Content-Type: application/json` as shorthand for a one-item list
        if isinstance(value, dict):
            return {k: [v] if isinstance(v, str) else v for k, v in value.items()}
        return value

    @field_validator("set_headers")
    @classmethod
    def _check_set_headers(cls, value: dict[str, list[str]]) -> dict[str, list[str]]:
        for name, values in value.items():
            _check_latin1("header name", name)
            for item in values:
                _check_latin1(f"value of header {name!r}", item)
        return value

    @field_validator("remove_headers")
    @classmethod
    def _check_remove_headers(cls, value: list[str]) -> list[str]:
        for name in value:
            _check_latin1("header name", name)
        return value

    @field_validator("body_mode", mode="before")
    @classmethod
    def _coerce_body_mode(cls, value: Any) -> Any:
        if value is None:
            return BodyMode.REPLACE.value
        if isinstance(value, BodyMode):
            return value.value
        return value

    def matches(self, status: int) -> bool:
        """Check if this rule triggers on the given status."""
        return status in self.match_statuses


class ChangeResponseConfig(BaseSettings):
    """Main configuration for changeresponse that reads from changeresponse.yaml."""

    model_config = SettingsConfigDict(
        env_prefix="CHANGERESPONSE_",
        case_sensitive=False,
        extra="ignore",
    )

    # Ordered override rules
    overrides: list[OverrideRule] = Field(default_factory=list)

    # Diagnostic mode: verbose notifications and the marker header
    debug: bool = False

    # Instance name used in diagnostics
    name: str = DEFAULT_NAME

    # Path to the changeresponse config
    config_path: Path = Field(default_factory=lambda: Path("./changeresponse.yaml"))

    @classmethod
    def from_yaml(cls, yaml_path: Path, **kwargs: Any) -> "ChangeResponseConfig":
        """Load configuration from a changeresponse.yaml file.

        Args:
            yaml_path: Path to the changeresponse.yaml file
            **kwargs: Additional keyword arguments

        Returns:
            ChangeResponseConfig instance

        Raises:
            ConfigError: If the file content does not describe a valid config
        """
        instance = cls(config_path=yaml_path, **kwargs)

        if not yaml_path.exists():
            return instance

        with yaml_path.open(encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"cannot parse {yaml_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"{yaml_path} must contain a mapping")

        section = data.get("changeresponse", {}) or {}
        if not isinstance(section, dict):
            raise ConfigError(f"'changeresponse' section in {yaml_path} must be a mapping")

        try:
            if "debug" in section:
                instance.debug = TypeAdapter(bool).validate_python(section["debug"])
            if "name" in section:
                instance.name = str(section["name"])
            instance.overrides = [OverrideRule.model_validate(rule) for rule in section.get("overrides", []) or []]
        except ValidationError as e:
            raise ConfigError(f"invalid configuration in {yaml_path}: {e}") from e

        logger.debug("Loaded %d override rule(s) from %s", len(instance.overrides), yaml_path)
        return instance


def create_config() -> ChangeResponseConfig:
    """Create the default configuration (no override rules)."""
    return ChangeResponseConfig()


# Global configuration instance
_config_instance: ChangeResponseConfig | None = None
_config_lock = threading.Lock()


def get_config() -> ChangeResponseConfig:
    """Get the configuration instance."""
    global _config_instance

    if _config_instance is None:
        with _config_lock:
            # Double-check locking pattern
            if _config_instance is None:
                env_config_dir = os.environ.get("CHANGERESPONSE_CONFIG_DIR")
                if env_config_dir:
                    config_dir = Path(env_config_dir)
                    logger.info(f"Using config directory from environment: {config_dir}")
                else:
                    config_dir = Path.home() / ".changeresponse"

                yaml_path = config_dir / CONFIG_FILENAME
                if yaml_path.exists():
                    logger.info(f"Loading changeresponse config from: {yaml_path}")
                else:
                    logger.info(f"{CONFIG_FILENAME} not found at {yaml_path}, using default config")
                _config_instance = ChangeResponseConfig.from_yaml(yaml_path)

    return _config_instance


def load_config(config_dir: Path) -> ChangeResponseConfig:
    """Load configuration from a specific directory, bypassing discovery."""
    return ChangeResponseConfig.from_yaml(config_dir / CONFIG_FILENAME)


def set_config_instance(config: ChangeResponseConfig) -> None:
    """Set the global configuration instance (for testing)."""
    global _config_instance
    _config_instance = config


def clear_config_instance() -> None:
    """Clear the global configuration instance (for testing)."""
    global _config_instance
    _config_instance = None
