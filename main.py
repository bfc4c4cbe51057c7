#!/usr/bin/env python3
"""Main entry point for the scrape validator"""
import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from config import Config
from exposition.errors import ParseError
from logging_config import get_logger, log_error, log_server_startup, setup_structured_logging
from validator.errors import ConfigurationError, RuleViolation
from validator.fetcher import TargetFetcher
from validator.loop import Loop
from validator.runner import ScrapeRunner


EXIT_OK = 0
EXIT_VIOLATIONS = 1
EXIT_FATAL = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scrape-validator",
        description="Validate successive OpenMetrics scrapes against MUST and SHOULD rules.",
    )
    parser.add_argument("--target", help="URL of the OpenMetrics endpoint to scrape")
    parser.add_argument("--error-level", choices=["must", "should"], help="rule level to report")
    parser.add_argument("--interval", help="scrape interval, e.g. 10s, 500ms, 1m")
    parser.add_argument("--timeout", help="HTTP timeout per scrape, e.g. 5s")
    parser.add_argument("--count", type=int, help="number of scrapes to run, 0 for no limit")
    parser.add_argument("--fail-fast", action="store_true", default=None, help="stop at the first failing scrape")
    parser.add_argument("--require-type", action="store_true", default=None,
                        help="reject samples without a # TYPE declaration")
    parser.add_argument("--serve", action="store_true", help="run the status server with a background scrape loop")
    parser.add_argument("--file", dest="files", nargs="+", type=Path, metavar="PATH",
                        help="validate payload files in order instead of scraping")
    return parser


def load_config(args: argparse.Namespace) -> Config:
    """Build the configuration from the environment with CLI flags on top"""
    overrides = {
        "target": args.target,
        "error_level": args.error_level,
        "interval": args.interval,
        "scrape_timeout": args.timeout,
        "scrape_count": args.count,
        "fail_fast": args.fail_fast,
        "require_type": args.require_type,
    }
    try:
        return Config(**{key: value for key, value in overrides.items() if value is not None})
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e


def format_violation(source: str, violation: RuleViolation) -> str:
    """One report line: source, payload line, canonical message and family"""
    return f"{source}:{violation.line_number}: {violation} [{violation.family_name}]"


def validate_files(config: Config, paths: List[Path]) -> int:
    """Validate local payload files as successive scrapes of one target"""
    logger = get_logger(__name__)
    loop = Loop(config.target or "file", error_level=config.error_level, require_type=config.require_type)
    exit_code = EXIT_OK

    for path in paths:
        try:
            payload = path.read_bytes()
        except OSError as e:
            log_error(logger, e, {"component": "file_validation", "path": str(path)})
            return EXIT_FATAL

        try:
            result = loop.parse_and_validate(payload)
        except ParseError as e:
            print(f"{path}:{e.line_number}: {e}")
            exit_code = EXIT_VIOLATIONS
            continue

        for violation in result.violations:
            print(format_violation(str(path), violation))
        if result.violations:
            exit_code = EXIT_VIOLATIONS

    return exit_code


def run_scraper(config: Config) -> int:
    """Scrape the configured target until done, returning the exit code"""
    if not config.target:
        raise ConfigurationError("--target is required unless --file is given")

    loop = Loop(config.target, error_level=config.error_level, require_type=config.require_type)
    fetcher = TargetFetcher(config.target, timeout=config.scrape_timeout)

    def report_violations(result):
        for violation in result.violations:
            print(format_violation(config.target, violation), flush=True)

    def report_parse_error(error):
        print(f"{config.target}:{error.line_number}: {error}", flush=True)

    runner = ScrapeRunner(
        loop,
        fetcher,
        interval=config.interval,
        scrape_count=config.scrape_count,
        fail_fast=config.fail_fast,
        on_result=report_violations,
        on_parse_error=report_parse_error,
    )
    try:
        stats = asyncio.run(runner.run())
    except KeyboardInterrupt:
        stats = runner.stats

    if stats.failed:
        return EXIT_VIOLATIONS
    if stats.scrapes == 0 and stats.fetch_errors > 0:
        return EXIT_FATAL
    return EXIT_OK


def serve(config: Config) -> int:
    """Run the status server with the background scrape loop"""
    import uvicorn
    from app.server import ValidatorServer

    server = ValidatorServer(config)
    uvicorn.run(
        server.get_app(),
        host=config.server_host,
        port=config.server_port,
        log_config=None  # We handle logging ourselves
    )
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """Main application entry point"""
    args = build_parser().parse_args(argv)
    logger = get_logger(__name__)

    try:
        config = load_config(args)
        setup_structured_logging(config)
        log_server_startup(logger, config)

        if args.files:
            return validate_files(config, args.files)
        if args.serve:
            return serve(config)
        return run_scraper(config)
    except ConfigurationError as e:
        print(f"configuration error: {e}", file=sys.stderr)
        return EXIT_FATAL
    except Exception as e:
        log_error(logger, e, {"component": "main"})
        return EXIT_FATAL


if __name__ == '__main__':
    sys.exit(main())
