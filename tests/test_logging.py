"""
Tests for the logging helpers.
"""

import logging

import pytest
from rich.console import Console
from rich.logging import RichHandler

from awsrpc.core.logging import LOGGER_NAME, mask_key, redact_headers, setup_logging
from awsrpc.services import firehose

from conftest import json_response


@pytest.fixture
def restore_package_logger():
    """Put the awsrpc and httpx loggers back the way they were."""
    package_logger = logging.getLogger(LOGGER_NAME)
    saved = (list(package_logger.handlers), package_logger.level, package_logger.propagate)
    wire_levels = {name: logging.getLogger(name).level for name in ("httpx", "httpcore")}
    yield package_logger
    for handler in package_logger.handlers:
        if handler not in saved[0]:
            handler.close()
    package_logger.handlers[:] = saved[0]
    package_logger.setLevel(saved[1])
    package_logger.propagate = saved[2]
    for name, level in wire_levels.items():
        logging.getLogger(name).setLevel(level)


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_rich_handler(self, restore_package_logger):
        """Test a RichHandler is attached to the package logger only."""
        root_handlers = list(logging.getLogger().handlers)

        logger = setup_logging(level="DEBUG", console=Console(file=None, force_terminal=False))

        assert logger is restore_package_logger
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], RichHandler)
        assert logger.level == logging.DEBUG
        assert not logger.propagate
        assert logging.getLogger().handlers == root_handlers
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_repeated_setup_replaces_handlers(self, restore_package_logger):
        """Test calling setup again does not stack handlers."""
        setup_logging(level="INFO")
        setup_logging(level="WARNING")
        assert len(restore_package_logger.handlers) == 1
        assert restore_package_logger.level == logging.WARNING

    def test_wire_logging(self, restore_package_logger):
        """Test wire=True lets httpx log at the requested level."""
        setup_logging(level="DEBUG", wire=True)
        assert logging.getLogger("httpx").level == logging.DEBUG
        assert logging.getLogger("httpcore").level == logging.DEBUG

    def test_log_file(self, restore_package_logger, tmp_path):
        """Test package records are also written to the log file."""
        log_file = tmp_path / "awsrpc.log"
        setup_logging(level="INFO", log_file=str(log_file))

        logging.getLogger("awsrpc.auth.cache").info("Refreshing credentials ****1234")
        for handler in restore_package_logger.handlers:
            handler.flush()

        content = log_file.read_text()
        assert "INFO" in content
        assert "awsrpc.auth.cache" in content
        assert "Refreshing credentials ****1234" in content


class TestRedaction:
    """Tests for the redaction helpers."""

    def test_mask_key(self):
        """Test only the last four characters remain visible."""
        assert mask_key("AKIDEXAMPLE1234") == "***********1234"
        assert mask_key("abc") == "abc"
        assert mask_key(None) == "<none>"

    def test_redact_headers(self):
        """Test signatures and session tokens are hidden, other headers kept."""
        text = redact_headers(
            [
                ("X-Amz-Date", "20150830T123600Z"),
                ("X-Amz-Security-Token", "FQoGZXIvYXdzEXAMPLE"),
                (
                    "Authorization",
                    "AWS4-HMAC-SHA256 Credential=AKIDEXAMPLE/20150830/us-east-1/firehose/aws4_request, "
                    "SignedHeaders=host;x-amz-date, Signature=5d672d79c15b13162d9279b0855cfba6789a8edb",
                ),
            ]
        )

        assert "X-Amz-Date: 20150830T123600Z" in text
        assert "FQoGZXIvYXdzEXAMPLE" not in text
        assert "5d672d79" not in text
        assert "AKIDEXAMPLE" not in text
        assert "Credential=*******MPLE/20150830/us-east-1/firehose/aws4_request" in text

    def test_dispatch_log_is_redacted(self, make_client, caplog):
        """Test the per-attempt debug line never carries the signature."""
        client, transport = make_client(json_response(200, {}))

        with caplog.at_level(logging.DEBUG, logger="awsrpc.core.client"):
            client.request_or_raise(firehose.list_delivery_streams())

        signature = transport.requests[0].headers["Authorization"].rsplit("Signature=", 1)[1]
        dispatch_lines = [r.getMessage() for r in caplog.records if "Dispatching" in r.getMessage()]
        assert len(dispatch_lines) == 1
        assert "X-Amz-Date" in dispatch_lines[0]
        assert signature not in dispatch_lines[0]
