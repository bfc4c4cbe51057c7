"""Structured logging configuration for the scrape validator"""
import logging
import os
import sys
from typing import Any, Dict, TYPE_CHECKING

import structlog
from structlog.dev import ConsoleRenderer
from structlog.processors import JSONRenderer, StackInfoRenderer, TimeStamper
from structlog.stdlib import LoggerFactory

if TYPE_CHECKING:
    from config import Config


def setup_structured_logging(config: "Config") -> None:
    """Setup structured logging with JSON format for production and console for development"""

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        TimeStamper(fmt="iso"),
        StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    # Use JSON renderer for production, console for development
    is_development = os.getenv("ENVIRONMENT", "production").lower() == "development"
    if is_development:
        processors.append(ConsoleRenderer())
    else:
        processors.append(JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    level = getattr(logging, config.log_level.upper())
    handlers = []

    # Console handler goes to stderr so validated payloads on stdout stay clean
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    handlers.append(console_handler)

    if config.log_file is not None:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(config.log_file))
        file_handler.setLevel(level)
        handlers.append(file_handler)

    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=handlers,
        force=True,
    )

    # Set specific logger levels to reduce noise
    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('httpcore').setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance"""
    return structlog.get_logger(name)


def bind_target(logger: structlog.stdlib.BoundLogger, target: str) -> structlog.stdlib.BoundLogger:
    """Add the scrape target to logger context"""
    return logger.bind(target=target)


def log_scrape_result(logger: structlog.stdlib.BoundLogger, target: str, result, duration: float) -> None:
    """Log a validated scrape with structured data"""
    if result.violations:
        logger.warning(
            "Scrape has violations",
            target=target,
            violations=[v.to_dict() for v in result.violations],
            violation_count=len(result.violations),
            families=len(result.metric_set),
            duration_seconds=round(duration, 3),
            event_type="scrape_violations",
        )
    else:
        logger.info(
            "Scrape validated",
            target=target,
            families=len(result.metric_set),
            duration_seconds=round(duration, 3),
            event_type="scrape_validated",
        )


def log_server_startup(logger: structlog.stdlib.BoundLogger, config: "Config") -> None:
    """Log startup with configuration details"""
    logger.info(
        "Validator starting up",
        service_name=config.service_name,
        service_version=config.service_version,
        target=config.target,
        error_level=config.error_level,
        interval=config.interval,
        scrape_count=config.scrape_count,
        server_port=config.server_port,
        event_type="server_startup"
    )


def log_error(logger: structlog.stdlib.BoundLogger, error: Exception, context: Dict[str, Any] = None) -> None:
    """Log error with structured context"""
    logger.error(
        "Error occurred",
        error=str(error),
        error_type=type(error).__name__,
        context=context or {},
        event_type="error",
        exc_info=True
    )
