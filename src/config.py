# Copyright (c) 2025 Stephen Clau

# This file is part of IIROSE Room Plugins.

# IIROSE Room Plugins is dual-licensed:

# 1. GNU Affero General Public License v3.0 (AGPL-3.0)
#    See LICENSE file for full terms

# 2. Commercial License
#    For proprietary use without AGPL requirements
#    Contact: licensing@laudiversified.com

# SPDX-License-Identifier: AGPL-3.0-only OR Commercial

"""
Configuration module for IIROSE Room Plugins.

- plugins.yml is OPTIONAL (welcome lists, toggles, cooldown, trigger file)
- Discord bot token is REQUIRED
- Environment variables override plugins.yml
- Docker secrets support: reads from /run/secrets/* and env vars
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Dict, Any, List
import os
import yaml
import structlog

logger = structlog.get_logger()


DEFAULT_WELCOME_LIST: List[str] = [
    "Welcome, (@)!",
    "Hey~! Welcome (@)~~",
    "(@) is here, welcome!",
    "(@) joined the room",
    "A wild (@) appeared!",
]

DEFAULT_EXIT_LIST: List[str] = [
    "Bye bye, (@)!",
    "Aww, come back soon (@)~",
    "(@) quietly left. We'll miss you.",
    "Looking forward to seeing (@) again!",
]

DEFAULT_REFRESH_LIST: List[str] = [
    "Huh, (@) refreshed? Bad connection?",
    "(@) reconnected to the conversation!",
    "Beep beep -- (@) refreshed the page --",
    "(@) refreshed, need a change of mood?",
]


def _read_docker_secret(secret_name: str) -> Optional[str]:
    """
    Read a secret from Docker secrets location.

    Args:
        secret_name: Name of the secret (e.g., 'discord_bot_token')

    Returns:
        Secret value or None if not found
    """
    secret_path = Path(f"/run/secrets/{secret_name}")

    if secret_path.exists():
        try:
            return secret_path.read_text().strip()
        except (IOError, OSError) as e:
            logger.warning("docker_secret_read_error", secret=secret_name, error=str(e))
            return None

    return None


def get_config_value(
    env_var: str,
    secret_name: Optional[str] = None,
    required: bool = False,
    default: Optional[str] = None,
) -> Optional[str]:
    """
    Get configuration value from Docker secrets or environment variables.

    Tries in order:
    1. Docker secret file at /run/secrets/{secret_name}
    2. Environment variable {env_var}
    3. Default value if provided
    4. Raise error if required and not found

    Args:
        env_var: Environment variable name (e.g., 'DISCORD_BOT_TOKEN')
        secret_name: Docker secret name. Defaults to env_var lowercased
        required: If True, raises ValueError when value not found
        default: Default value if not found in env or secrets

    Returns:
        Configuration value from secret, env var, or default

    Raises:
        ValueError: If required=True and value not found
    """
    if secret_name is None:
        secret_name = env_var.lower()

    secret_value = _read_docker_secret(secret_name)
    if secret_value is not None:
        logger.debug("config_value_loaded_from_secret", source="docker_secret", var=env_var)
        return secret_value

    env_value = os.getenv(env_var)
    if env_value is not None:
        logger.debug("config_value_loaded_from_env", source="environment", var=env_var)
        return env_value

    if default is not None:
        logger.debug("config_value_loaded_from_default", source="default", var=env_var)
        return default

    if required:
        raise ValueError(
            f"Required configuration value not found for '{env_var}'. "
            f"Checked: Docker secret '{secret_name}', environment variable '{env_var}'"
        )

    return None


def _safe_int(value: Any, field_name: str, default: int) -> int:
    """
    Safely convert value to int with proper type checking.

    Raises:
        ValueError: If conversion fails
    """
    if value is None:
        return default

    if isinstance(value, bool):
        raise ValueError(f"Cannot convert {field_name} to int: bool")

    if isinstance(value, int):
        return value

    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            raise ValueError(f"Invalid integer for {field_name}: {value}")

    raise ValueError(f"Cannot convert {field_name} to int: {type(value).__name__}")


def _safe_float(value: Any, field_name: str, default: float) -> float:
    """
    Safely convert value to float with proper type checking.

    Raises:
        ValueError: If conversion fails
    """
    if value is None:
        return default

    if isinstance(value, bool):
        raise ValueError(f"Cannot convert {field_name} to float: bool")

    if isinstance(value, (int, float)):
        return float(value)

    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            raise ValueError(f"Invalid float for {field_name}: {value}")

    raise ValueError(f"Cannot convert {field_name} to float: {type(value).__name__}")


def _safe_bool(value: Any, field_name: str, default: bool) -> bool:
    """Convert YAML/env booleans ('true', 'off', 1, ...) to bool."""
    if value is None:
        return default

    if isinstance(value, bool):
        return value

    if isinstance(value, int):
        return value != 0

    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False

    raise ValueError(f"Invalid boolean for {field_name}: {value!r}")


def _string_list(value: Any, field_name: str, default: List[str]) -> List[str]:
    if value is None:
        return list(default)
    if not isinstance(value, list):
        raise ValueError(f"{field_name} must be a list, got {type(value).__name__}")
    return [str(item) for item in value]


@dataclass
class WelcomeConfig:
    """Welcome / farewell / refresh plugin configuration."""

    enable_add: bool = True
    """Greet members who join."""

    enable_remove: bool = True
    """Say goodbye to members who leave."""

    enable_refresh: bool = True
    """Comment when a member reconnects."""

    welcome_list: List[str] = field(default_factory=lambda: list(DEFAULT_WELCOME_LIST))
    """Join templates; (@) is replaced with a mention of the member."""

    exit_list: List[str] = field(default_factory=lambda: list(DEFAULT_EXIT_LIST))
    """Leave templates."""

    refresh_list: List[str] = field(default_factory=lambda: list(DEFAULT_REFRESH_LIST))
    """Reconnect templates."""

    only_platform: bool = True
    """Ignore events and commands from platforms other than `platform`."""

    platform: str = "discord"
    """Platform this plugin serves when only_platform is set."""

    cooldown: float = 0.0
    """Seconds during which a user triggers at most one message per event kind. 0 disables."""

    be_private: bool = False
    """Send join greetings by direct message instead of in the room."""

    channel_id: Optional[int] = None
    """Room channel override. Default: the guild system channel."""

    def __post_init__(self) -> None:
        """Validate welcome config after initialization."""
        if self.cooldown < 0:
            raise ValueError(f"welcome cooldown must be >= 0, got {self.cooldown}")

        if not self.platform:
            raise ValueError("welcome platform cannot be empty")

        for name in ("welcome_list", "exit_list", "refresh_list"):
            if not isinstance(getattr(self, name), list):
                raise ValueError(f"welcome {name} must be a list")


@dataclass
class Config:
    """Main application configuration."""

    discord_bot_token: str
    """Discord bot token (required)."""

    bot_name: str = "IIROSE Room Plugins"
    """Discord bot display name."""

    welcome: WelcomeConfig = field(default_factory=WelcomeConfig)
    """Welcome plugin settings."""

    welcome_store_path: Path = field(default_factory=lambda: Path("data/welcome.yml"))
    """YAML file holding per-user welcome settings."""

    supported_platforms: List[str] = field(default_factory=lambda: ["discord"])
    """Platforms on which /iirose cut and /iirose allcut reply with cut text."""

    event_triggers_enabled: bool = True
    """Fire word triggers on member join/move/leave."""

    word_triggers_file: Path = field(default_factory=lambda: Path("config/word_triggers.yml"))
    """YAML file with trigger phrase -> reply templates."""

    health_check_host: str = "0.0.0.0"
    """Host to bind health check server to. Default: 0.0.0.0"""

    health_check_port: int = 8080
    """Port to bind health check server to. Default: 8080"""

    log_level: str = "info"
    """Logging level: debug, info, warning, error. Default: info"""

    log_format: str = "console"
    """Logging format: console or json. Default: console"""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not self.discord_bot_token:
            raise ValueError("discord_bot_token is REQUIRED")

        if not isinstance(self.welcome_store_path, Path):
            self.welcome_store_path = Path(self.welcome_store_path)

        if not isinstance(self.word_triggers_file, Path):
            self.word_triggers_file = Path(self.word_triggers_file)

        valid_levels = {"debug", "info", "warning", "error"}
        if self.log_level.lower() not in valid_levels:
            raise ValueError(
                f"Invalid log_level '{self.log_level}'. Must be one of: {', '.join(sorted(valid_levels))}"
            )

        if not 1 <= self.health_check_port <= 65535:
            raise ValueError(
                f"Invalid health_check_port: {self.health_check_port}. Must be 1-65535"
            )

        valid_formats = {"console", "json"}
        if self.log_format.lower() not in valid_formats:
            raise ValueError(
                f"Invalid log_format '{self.log_format}'. Must be one of: {', '.join(sorted(valid_formats))}"
            )


def _load_plugins_yml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.info("plugins_yml_not_found", path=str(path))
        return {}

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping at the top level")

    return data


def _build_welcome_config(data: Dict[str, Any]) -> WelcomeConfig:
    if not isinstance(data, dict):
        raise ValueError("plugins.yml 'welcome' section must be a mapping")

    cooldown = _safe_float(
        get_config_value(env_var="WELCOME_COOLDOWN", default=None) or data.get("cooldown"),
        "welcome.cooldown",
        0.0,
    )
    channel_id = data.get("channel_id")

    return WelcomeConfig(
        enable_add=_safe_bool(data.get("enable_add"), "welcome.enable_add", True),
        enable_remove=_safe_bool(data.get("enable_remove"), "welcome.enable_remove", True),
        enable_refresh=_safe_bool(data.get("enable_refresh"), "welcome.enable_refresh", True),
        welcome_list=_string_list(data.get("welcome_list"), "welcome.welcome_list", DEFAULT_WELCOME_LIST),
        exit_list=_string_list(data.get("exit_list"), "welcome.exit_list", DEFAULT_EXIT_LIST),
        refresh_list=_string_list(data.get("refresh_list"), "welcome.refresh_list", DEFAULT_REFRESH_LIST),
        only_platform=_safe_bool(data.get("only_platform"), "welcome.only_platform", True),
        platform=str(data.get("platform", "discord")),
        cooldown=cooldown,
        be_private=_safe_bool(data.get("be_private"), "welcome.be_private", False),
        channel_id=_safe_int(channel_id, "welcome.channel_id", 0) or None,
    )


def load_config() -> Config:
    """
    Load configuration from environment variables and plugins.yml.

    Priority order for each config value:
    1. Environment variable (or Docker secret for the token)
    2. plugins.yml YAML file
    3. Hardcoded defaults

    Returns:
        Fully populated Config object with validation

    Raises:
        ValueError: If required config values missing or invalid
        yaml.YAMLError: If plugins.yml is invalid YAML
    """
    config_dir = os.getenv("CONFIG_DIR", ".")
    plugins_data = _load_plugins_yml(Path(config_dir) / "plugins.yml")

    welcome = _build_welcome_config(plugins_data.get("welcome") or {})

    triggers_data = plugins_data.get("event_triggers") or {}
    if not isinstance(triggers_data, dict):
        raise ValueError("plugins.yml 'event_triggers' section must be a mapping")

    self_cut_data = plugins_data.get("self_cut") or {}
    supported_platforms = _string_list(
        self_cut_data.get("platforms") if isinstance(self_cut_data, dict) else None,
        "self_cut.platforms",
        ["discord"],
    )

    discord_bot_token = get_config_value(
        env_var="DISCORD_BOT_TOKEN",
        secret_name="discord_bot_token",
        required=True,
    )

    bot_name = get_config_value(env_var="BOT_NAME", default="IIROSE Room Plugins")

    word_triggers_file = Path(
        get_config_value(
            env_var="WORD_TRIGGERS_FILE",
            default=str(triggers_data.get("file", "config/word_triggers.yml")),
        )
    )

    welcome_store_path = Path(
        get_config_value(
            env_var="WELCOME_STORE_PATH",
            default=str(plugins_data.get("store_path", "data/welcome.yml")),
        )
    )

    health_check_host = get_config_value(env_var="HEALTH_CHECK_HOST", default="0.0.0.0")

    health_check_port = _safe_int(
        get_config_value(env_var="HEALTH_CHECK_PORT", default="8080"),
        "health_check_port",
        8080,
    )

    log_level = get_config_value(env_var="LOG_LEVEL", default="info")
    log_format = get_config_value(env_var="LOG_FORMAT", default="console")

    config = Config(
        discord_bot_token=discord_bot_token or "",
        bot_name=bot_name or "IIROSE Room Plugins",
        welcome=welcome,
        welcome_store_path=welcome_store_path,
        supported_platforms=supported_platforms,
        event_triggers_enabled=_safe_bool(
            triggers_data.get("enabled"), "event_triggers.enabled", True
        ),
        word_triggers_file=word_triggers_file,
        health_check_host=health_check_host or "0.0.0.0",
        health_check_port=health_check_port,
        log_level=log_level or "info",
        log_format=log_format or "console",
    )

    return config


def validate_config(config: Config) -> bool:
    """
    Validate a Config object for completeness.

    Args:
        config: Config object to validate

    Returns:
        True if config is valid, False otherwise
    """
    try:
        if not config.discord_bot_token:
            logger.error("config_validation_failed_no_token")
            return False

        if config.welcome.cooldown < 0:
            logger.error("config_validation_failed_negative_cooldown", cooldown=config.welcome.cooldown)
            return False

        # Warn if the trigger file is missing (but don't fail)
        if config.event_triggers_enabled and not config.word_triggers_file.exists():
            logger.warning(
                "config_word_triggers_missing",
                word_triggers_file=str(config.word_triggers_file),
            )

        return True

    except Exception as e:
        logger.error("config_validation_error", error=str(e))
        return False
