"""Configuration management for picturefill.

Settings resolve through a fixed fallback chain: environment variable,
then an options object handed over by the embedding application, then an
INI file named by ``PICTUREFILL_CONFIG``, then the built-in default.
"""

from __future__ import annotations

import configparser
import logging
import os
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

# Module-level config cache
_config: Optional[Dict[str, Any]] = None
_options: Optional[Any] = None  # Options object from the embedding application


def initialize(options: Any) -> None:
    """Initialize config module with an application options object.

    Attributes named ``picturefill_<key>`` on the object take precedence over
    the config file.

    Args:
        options: Any object exposing picturefill_* attributes
    """
    global _options
    _options = options
    logger.debug("Config module initialized with options object")


def _parse_config_file(config_file: Optional[str] = None) -> Dict[str, Any]:
    """Parse the [picturefill] section of an INI file.

    Args:
        config_file: Optional path to config file. If None, nothing is read.

    Returns:
        Dict of raw string values, empty when the file or section is missing
    """
    if not config_file:
        return {}

    parser = configparser.ConfigParser()
    try:
        read = parser.read(config_file)
    except configparser.Error as exc:
        logger.warning("Failed to parse config file %s: %s", config_file, exc)
        return {}

    if not read:
        logger.debug("Config file %s not found", config_file)
        return {}
    if not parser.has_section("picturefill"):
        logger.debug("Config file %s has no [picturefill] section", config_file)
        return {}
    return dict(parser.items("picturefill"))


def _get_config() -> Dict[str, Any]:
    """Get parsed config dict, initializing if needed."""
    global _config
    if _config is None:
        config_file = os.environ.get("PICTUREFILL_CONFIG")
        _config = _parse_config_file(config_file)
    return _config


def _get_config_value(
    key: str,
    default: Any,
    env_var: Optional[str] = None,
    converter: Optional[Callable[[Any], Any]] = None,
) -> Any:
    """Get config value with fallback chain: env var, options, config file, default.

    Args:
        key: Config key name (in [picturefill] section)
        default: Default value if not found
        env_var: Optional environment variable name (e.g., PICTUREFILL_KEY)
        converter: Optional function to convert string value (e.g., int, bool)

    Returns:
        Config value (converted if converter provided)
    """
    if env_var:
        env_value = os.environ.get(env_var)
        if env_value is not None:
            if converter:
                try:
                    return converter(env_value)
                except (ValueError, TypeError):
                    logger.warning(
                        "Invalid value for %s: %s, using default", env_var, env_value
                    )
                    return default
            return env_value

    if _options is not None:
        option_key = f"picturefill_{key}"
        if hasattr(_options, option_key):
            value = getattr(_options, option_key)
            if converter:
                try:
                    return converter(value)
                except (ValueError, TypeError):
                    logger.warning("Invalid value for %s: %s, using default", key, value)
                    return default
            return value

    config = _get_config()
    value = config.get(key)
    if value is not None:
        if converter:
            try:
                return converter(value)
            except (ValueError, TypeError):
                logger.warning(
                    "Invalid value for config key %s: %s, using default", key, value
                )
                return default
        return value

    return default


def _parse_bool(value: Any) -> bool:
    """Parse boolean value from config (string or bool).

    Accepts: True, "true", "True", "1", "yes", "on" -> True
             anything else -> False
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.lower() in ("true", "1", "yes", "on")
    return bool(value)


def _parse_delay(value: Any) -> int:
    """Parse a non-negative millisecond delay."""
    delay = int(value)
    if delay < 0:
        raise ValueError(f"negative delay: {value}")
    return delay


def _parse_list(value: Any) -> List[str]:
    """Parse a comma separated list.

    Accepts:
    - List: ["image/jpeg", "image/png"]
    - String: "image/jpeg, image/png"
    """
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return []


def picturefill_resize_debounce_ms() -> int:
    """Quiet period after the last resize signal before re-evaluating."""
    return _get_config_value(
        "resize_debounce_ms",
        60,
        env_var="PICTUREFILL_RESIZE_DEBOUNCE_MS",
        converter=_parse_delay,
    )


def picturefill_size_poll_interval_ms() -> int:
    """Retry interval for intrinsic width back-fill while an image loads."""
    return _get_config_value(
        "size_poll_interval_ms",
        250,
        env_var="PICTUREFILL_SIZE_POLL_INTERVAL_MS",
        converter=_parse_delay,
    )


def picturefill_default_length() -> str:
    """Layout width used when no sizes entry applies (default: "100vw")."""
    value = _get_config_value(
        "default_length",
        "100vw",
        env_var="PICTUREFILL_DEFAULT_LENGTH",
    )
    value = str(value).strip()
    if not value:
        logger.warning("Empty default_length, using default: 100vw")
        return "100vw"
    return value


def picturefill_warn_mixed_content() -> bool:
    """Log a warning when a mixed content candidate is blocked."""
    return _get_config_value(
        "warn_mixed_content",
        True,
        env_var="PICTUREFILL_WARN_MIXED_CONTENT",
        converter=_parse_bool,
    )


def picturefill_static_types() -> List[str]:
    """MIME types treated as universally supported."""
    value = _get_config_value(
        "static_types",
        ["image/jpeg", "image/gif", "image/png"],
        env_var="PICTUREFILL_STATIC_TYPES",
    )
    return _parse_list(value)


def picturefill_webp_probe_enabled() -> bool:
    """Register the asynchronous image/webp probe."""
    return _get_config_value(
        "webp_probe_enabled",
        True,
        env_var="PICTUREFILL_WEBP_PROBE_ENABLED",
        converter=_parse_bool,
    )


def picturefill_monitoring_bind() -> str:
    """Status app bind address (default: "127.0.0.1:8080")."""
    value = _get_config_value(
        "monitoring_bind",
        "127.0.0.1:8080",
        env_var="PICTUREFILL_MONITORING_BIND",
    )
    if ":" not in value:
        logger.warning("Invalid monitoring_bind format, using default: 127.0.0.1:8080")
        return "127.0.0.1:8080"
    return value


def reset_config() -> None:
    """Reset config cache (useful for testing)."""
    global _config, _options
    _config = None
    _options = None
