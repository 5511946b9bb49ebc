"""Tests for the vault logger and token masking."""

import logging

from credential_vault.context.tenant_context import tenant_context
from credential_vault.utils.logger import (
    MASK,
    AzureQueueHandler,
    ContextAwareLogger,
    TenantContextFilter,
    configure_logging,
    get_logger,
    mask_sensitive,
)


class _Capture(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


def capturing_logger(name: str):
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    handler = _Capture()
    logger.handlers = [handler]
    return ContextAwareLogger(logger), handler


class TestMaskSensitive:

    def test_masks_token_keys_recursively(self):
        masked = mask_sensitive(
            {
                "service_name": "gmail",
                "tokens": {"access_token": "ya29", "refresh_token": "1//r", "expires_in": 3600},
                "items": [{"api_key": "sk"}],
            }
        )

        assert masked == {
            "service_name": "gmail",
            "tokens": {"access_token": MASK, "refresh_token": MASK, "expires_in": 3600},
            "items": [{"api_key": MASK}],
        }

    def test_none_values_are_left_alone(self):
        assert mask_sensitive({"refresh_token": None}) == {"refresh_token": None}


class TestContextAwareLogger:

    def test_extras_are_rendered_and_masked(self):
        logger, handler = capturing_logger("test.vault.render")

        logger.info("Stored", extra={"service_name": "slack", "access_token": "xoxb-secret"})

        record = handler.records[0]
        assert record.getMessage() == f"Stored | service_name=slack | access_token={MASK}"
        assert record.service_name == "slack"
        assert "xoxb-secret" not in record.getMessage()

    def test_reserved_record_keys_do_not_break_logging(self):
        """Keys such as 'message' or 'module' are rendered but not attached to the record."""
        logger, handler = capturing_logger("test.vault.reserved")

        logger.warning("Conflict", extra={"message": "m", "module": "x"})

        record = handler.records[0]
        assert "message=m" in record.getMessage()
        assert record.module != "x"

    def test_get_logger_returns_configured_function_logger(self):
        configured = configure_logging("credential_vault_test", enable_queue=False)

        assert get_logger() is configured
        assert configured.logger.name == "function.credential_vault_test"


class TestAzureQueueHandler:

    def test_entry_masks_context_and_carries_tenant(self):
        """Queue entries carry tenant and masked context without contacting Azure."""
        handler = AzureQueueHandler(connection_string="")
        logger, capture = capturing_logger("test.vault.queue")
        logger.logger.addFilter(TenantContextFilter())

        with tenant_context("tenant-123"):
            logger.info("Refreshed", extra={"service_name": "gmail", "refresh_token": "1//r"})

        entry = handler.build_entry(capture.records[0])

        assert entry["tenant_id"] == "tenant-123"
        assert entry["context"]["service_name"] == "gmail"
        assert entry["context"]["refresh_token"] == MASK
        assert entry["level"] == "INFO"

    def test_flush_without_connection_keeps_buffer(self):
        handler = AzureQueueHandler(connection_string="")
        handler.log_buffer.append({"message": "x"})

        handler.flush()

        assert handler.log_buffer == [{"message": "x"}]
