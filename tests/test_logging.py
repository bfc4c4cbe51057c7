"""Tests for logging configuration"""
import tempfile
import os
import logging
from pathlib import Path
from unittest.mock import patch

from config import Config
from logging_config import (
    setup_structured_logging,
    get_logger,
    bind_target,
    log_scrape_result,
    log_server_startup,
    log_error
)
from validator.loop import Loop


class TestLoggingConfig:
    """Test logging configuration and structured logging"""

    def test_setup_structured_logging(self):
        """Test structured logging setup"""
        with tempfile.TemporaryDirectory() as tmp_dir:
            log_file = Path(tmp_dir) / "logs" / "test.log"

            # Create config with test log file
            config = Config()
            config.log_file = log_file
            config.log_level = "DEBUG"

            setup_structured_logging(config)

            assert log_file.parent.exists()
            logger = logging.getLogger("test")
            assert logger.isEnabledFor(logging.DEBUG)

    def test_console_only_without_log_file(self):
        """Test no file handler is installed when no log file is configured"""
        setup_structured_logging(Config())

        handlers = logging.getLogger().handlers
        assert not any(isinstance(h, logging.FileHandler) for h in handlers)
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_get_logger(self):
        """Test getting structured logger"""
        logger = get_logger("test_logger")

        assert logger is not None
        assert hasattr(logger, 'info')
        assert hasattr(logger, 'error')
        assert hasattr(logger, 'debug')
        assert hasattr(logger, 'warning')

    def test_log_scrape_result(self):
        """Test structured scrape result logging"""
        logger = get_logger("test")
        loop = Loop("http://localhost/metrics", error_level="should", clock=lambda: 1.0)

        # This should not raise an exception
        clean = loop.parse_and_validate("# TYPE a gauge\na 1\n# EOF\n")
        log_scrape_result(logger, loop.target, clean, duration=0.01)
        dirty = loop.parse_and_validate("# EOF\n")
        log_scrape_result(logger, loop.target, dirty, duration=0.02)

    def test_log_server_startup(self):
        """Test structured server startup logging"""
        logger = get_logger("test")
        config = Config()

        # This should not raise an exception
        log_server_startup(logger, config)

    def test_log_error(self):
        """Test structured error logging"""
        logger = get_logger("test")
        error = ValueError("Test error")
        context = {"component": "test", "target": "http://localhost/metrics"}

        # This should not raise an exception
        log_error(logger, error, context)
        log_error(logger, error)  # Without context

    def test_development_vs_production_logging(self):
        """Test different logging configurations for development vs production"""
        with tempfile.TemporaryDirectory() as tmp_dir:
            log_file = Path(tmp_dir) / "test.log"
            config = Config()
            config.log_file = log_file

            # Test development mode
            with patch.dict(os.environ, {"ENVIRONMENT": "development"}):
                setup_structured_logging(config)
                logger = get_logger("test")
                logger.info("Test development log")

            # Test production mode
            with patch.dict(os.environ, {"ENVIRONMENT": "production"}):
                setup_structured_logging(config)
                logger = get_logger("test")
                logger.info("Test production log")

    def test_bind_target(self):
        """Test target context binding"""
        logger = get_logger("test")

        bound_logger = bind_target(logger, "http://localhost/metrics")
        bound_logger.info("Test message with target")

        more_bound = bound_logger.bind(scrape=1)
        more_bound.info("Test message with more context")
