"""Live scrape loop feeding a validator Loop at a fixed interval"""
import asyncio
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from exposition.errors import ParseError
from logging_config import bind_target, get_logger, log_error, log_scrape_result
from validator.errors import RuleViolation
from validator.fetcher import FetchError, TargetFetcher
from validator.loop import Loop, ScrapeResult


logger = get_logger(__name__)


@dataclass
class RunnerStats:
    """Totals collected over the lifetime of a runner"""
    scrapes: int = 0
    parse_errors: int = 0
    fetch_errors: int = 0
    violations: int = 0
    scrapes_with_violations: int = 0
    last_scrape_time: float = 0.0
    last_error: Optional[str] = None
    last_violations: List[RuleViolation] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        """Whether any scrape produced a violation or failed to parse"""
        return self.violations > 0 or self.parse_errors > 0


class ScrapeRunner:
    """Scrapes a target repeatedly and validates each payload"""

    def __init__(
        self,
        loop: Loop,
        fetcher: TargetFetcher,
        interval: float = 10.0,
        scrape_count: int = 0,
        fail_fast: bool = False,
        on_result: Optional[Callable[[ScrapeResult], None]] = None,
        on_parse_error: Optional[Callable[[ParseError], None]] = None,
    ):
        self.loop = loop
        self.fetcher = fetcher
        self.interval = interval
        self.scrape_count = scrape_count
        self.fail_fast = fail_fast
        self.on_result = on_result
        self.on_parse_error = on_parse_error
        self.stats = RunnerStats()
        self.last_result: Optional[ScrapeResult] = None
        self._attempts = 0
        self.logger = bind_target(logger, loop.target)

    @property
    def done(self) -> bool:
        if self.fail_fast and self.stats.failed:
            return True
        return self.scrape_count > 0 and self._attempts >= self.scrape_count

    async def scrape_once(self) -> Optional[ScrapeResult]:
        """Fetch and validate one payload.

        Fetch and parse failures are counted and logged, and return None.
        Validated results and parse errors are also handed to the
        ``on_result`` and ``on_parse_error`` hooks when set.
        """
        self._attempts += 1
        start_time = time.time()
        try:
            payload = await self.fetcher.fetch()
        except FetchError as e:
            self.stats.fetch_errors += 1
            self.stats.last_error = str(e)
            self.logger.warning("Scrape failed", error=str(e), event_type="fetch_error")
            return None

        try:
            result = self.loop.parse_and_validate(payload)
        except ParseError as e:
            self.stats.parse_errors += 1
            self.stats.last_error = str(e)
            if self.on_parse_error is not None:
                self.on_parse_error(e)
            return None
        finally:
            self.stats.scrapes += 1
            self.stats.last_scrape_time = time.time()

        self.last_result = result
        self.stats.last_violations = list(result.violations)
        if result.violations:
            self.stats.violations += len(result.violations)
            self.stats.scrapes_with_violations += 1
        log_scrape_result(self.logger, self.loop.target, result, time.time() - start_time)
        if self.on_result is not None:
            self.on_result(result)
        return result

    async def run(self) -> RunnerStats:
        """Scrape until the configured count is reached, fail-fast triggers, or cancelled"""
        await self.fetcher.start()
        try:
            while not self.done:
                try:
                    await self.scrape_once()
                except Exception as e:
                    log_error(logger, e, {"component": "scrape_runner", "target": self.loop.target})
                    self.stats.last_error = str(e)
                    raise
                if self.done:
                    break
                await asyncio.sleep(self.interval)
        finally:
            await self.fetcher.close()
        return self.stats
