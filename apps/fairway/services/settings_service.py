"""
Settings service for runtime configuration.

Values come from environment variables (optionally loaded from a .env file),
falling back to the defaults in fairway.utils.constants.
"""

import os
import logging
from typing import Optional
from pydantic import BaseModel
from dotenv import load_dotenv

from fairway.utils import constants

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_bool_env(key: str, default: bool = True) -> bool:
    """
    Parse a boolean environment variable from a string value.

    Args:
        key: Environment variable name
        default: Default value if the variable is not set

    Returns:
        bool: Parsed boolean value
    """
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes")


def get_int_env(key: str, default: int) -> int:
    """Parse an integer environment variable, falling back to default on bad input."""
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Invalid integer for {key}: {value!r}, using default {default}")
        return default


def get_float_env(key: str, default: float) -> float:
    """Parse a float environment variable, falling back to default on bad input."""
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Invalid float for {key}: {value!r}, using default {default}")
        return default


class SettlementSettings(BaseModel):
    """Tunables for the settlement engine."""

    platform_fee_percentage: float = constants.PLATFORM_FEE_PERCENTAGE
    stuck_after_minutes: int = constants.STUCK_AFTER_MINUTES
    poll_interval_seconds: int = constants.POLL_INTERVAL_SECONDS
    scheduler_enabled: bool = False
    admin_token: Optional[str] = None


def load_settings() -> SettlementSettings:
    """Build settings from the environment."""
    return SettlementSettings(
        platform_fee_percentage=get_float_env(
            "PLATFORM_FEE_PERCENTAGE", constants.PLATFORM_FEE_PERCENTAGE
        ),
        stuck_after_minutes=get_int_env(
            "SETTLEMENT_STUCK_AFTER_MINUTES", constants.STUCK_AFTER_MINUTES
        ),
        poll_interval_seconds=get_int_env(
            "SETTLEMENT_POLL_INTERVAL_SECONDS", constants.POLL_INTERVAL_SECONDS
        ),
        scheduler_enabled=get_bool_env("SETTLEMENT_SCHEDULER_ENABLED", False),
        admin_token=os.getenv("SETTLEMENT_ADMIN_TOKEN") or None,
    )


def configure_logging() -> str:
    """
    Configure root logging from LOG_LEVEL (default: INFO).

    Returns:
        The effective log level name
    """
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    numeric_level = getattr(logging, log_level, logging.INFO)
    logging.basicConfig(level=numeric_level, format=LOG_FORMAT)
    return log_level
