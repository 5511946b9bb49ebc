"""Utility modules for the credential vault."""

from .logger import (
    AzureQueueHandler,
    ContextAwareLogger,
    configure_logging,
    get_logger,
    mask_sensitive,
)

__all__ = [
    "AzureQueueHandler",
    "ContextAwareLogger",
    "configure_logging",
    "get_logger",
    "mask_sensitive",
]
