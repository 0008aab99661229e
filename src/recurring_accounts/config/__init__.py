"""Configuration module for the recurring accounts job."""

from recurring_accounts.config.logging import configure_logging
from recurring_accounts.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings", "configure_logging"]
