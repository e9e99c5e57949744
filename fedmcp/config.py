"""
Configuration module for FedMCP.

Ambient settings read from the environment. Protocol constants (ES256,
the 1 MiB body cap, the 16-character key identifier) are not configurable.
"""

import os

ENV = os.getenv("FEDMCP_ENV", "dev")  # dev|stage|prod

# Logging
LOG_LEVEL = os.getenv("FEDMCP_LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("FEDMCP_LOG_JSON", "true").lower() in ("1", "true", "yes")
LOG_FILE = os.getenv("FEDMCP_LOG_FILE") or None


def is_production() -> bool:
    """Check if running in production mode."""
    return ENV == "prod"


def is_debug() -> bool:
    """Check if debug mode is enabled."""
    return os.getenv("FEDMCP_DEBUG", "").lower() in ("1", "true", "yes")


def configure_from_env() -> None:
    """Apply the environment's logging settings to the root logger."""
    from .logging_config import configure_logging

    level = "DEBUG" if is_debug() else LOG_LEVEL
    configure_logging(level=level, json_format=LOG_JSON, log_file=LOG_FILE)
