"""
Environment configuration for viewc.

The VIEWC_ENV environment variable follows the familiar NODE_ENV pattern:

Environment values:
    - development (default): debug logging is allowed, warnings stay warnings
    - test: used by the test suite
    - production: compiler warnings are reported as failures

VIEWC_LOG_LEVEL picks the log level the CLI configures (default WARNING).

Usage:
    from viewc.core.environment import get_viewc_env, get_log_level

    env = get_viewc_env()  # Returns "development", "test", or "production"
    logging.basicConfig(level=get_log_level())
"""

from __future__ import annotations

import logging
import os
from enum import StrEnum

logger = logging.getLogger(__name__)


class ViewcEnv(StrEnum):
    """Runtime environment values."""

    DEVELOPMENT = "development"
    TEST = "test"
    PRODUCTION = "production"


_DEFAULT_ENV = ViewcEnv.DEVELOPMENT
_DEFAULT_LOG_LEVEL = logging.WARNING

VIEWC_ENV_VAR = "VIEWC_ENV"
VIEWC_LOG_LEVEL_VAR = "VIEWC_LOG_LEVEL"


def get_viewc_env() -> ViewcEnv:
    """Get the current environment from VIEWC_ENV.

    Returns:
        ViewcEnv: The current environment (development, test, or production).
        Defaults to development if VIEWC_ENV is not set or invalid.

    Examples:
        >>> import os
        >>> os.environ["VIEWC_ENV"] = "prod"
        >>> get_viewc_env()
        <ViewcEnv.PRODUCTION: 'production'>
    """
    env_value = os.environ.get(VIEWC_ENV_VAR, "").lower().strip()

    if env_value in ("production", "prod"):
        return ViewcEnv.PRODUCTION
    elif env_value in ("test", "testing"):
        return ViewcEnv.TEST
    elif env_value in ("development", "dev", ""):
        return ViewcEnv.DEVELOPMENT
    else:
        logger.warning(
            "Unknown VIEWC_ENV value '%s'. "
            "Valid values: development, test, production. Defaulting to development.",
            env_value,
        )
        return _DEFAULT_ENV


def is_production() -> bool:
    """Check if running in production environment."""
    return get_viewc_env() == ViewcEnv.PRODUCTION


def get_log_level(verbose: bool = False) -> int:
    """Resolve the log level.

    Resolution order:
    1. ``verbose`` (the CLI's --verbose flag) forces DEBUG
    2. VIEWC_LOG_LEVEL, by name (``info``) or number (``20``)
    3. WARNING
    """
    if verbose:
        return logging.DEBUG

    value = os.environ.get(VIEWC_LOG_LEVEL_VAR, "").strip()
    if not value:
        return _DEFAULT_LOG_LEVEL
    if value.isdigit():
        return int(value)
    level = logging.getLevelName(value.upper())
    if isinstance(level, int):
        return level
    logger.warning(
        "Unknown VIEWC_LOG_LEVEL value '%s'. Defaulting to WARNING.",
        value,
    )
    return _DEFAULT_LOG_LEVEL
