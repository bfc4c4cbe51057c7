"""FastAPI server setup and routes"""
import asyncio
import os
import time
from typing import Dict, Optional

from fastapi import FastAPI, HTTPException, Request

from config import Config
from exposition.errors import ParseError
from logging_config import get_logger, log_error
from validator.fetcher import TargetFetcher
from validator.loop import Loop
from validator.rules import RuleRegistry
from validator.runner import ScrapeRunner


logger = get_logger(__name__)

AD_HOC_TARGET = "ad-hoc"


class ValidatorServer:
    """FastAPI server exposing validator status and on-demand validation"""

    def __init__(self, config: Config, runner: Optional[ScrapeRunner] = None):
        self.config = config
        self.app = FastAPI(
            title="Scrape Validator",
            version=config.service_version,
            docs_url=None,
            redoc_url=None,
            openapi_url=None
        )
        self.registry = RuleRegistry()
        self.runner = runner if runner is not None else self._create_runner()
        self.runner_task = None

        # Loops for payloads posted to /validate, keyed by target name
        self.ad_hoc_loops: Dict[str, Loop] = {}

        self.app.state.start_time = time.time()
        self._setup_routes()
        self._setup_events()

    def _create_runner(self) -> Optional[ScrapeRunner]:
        """Create the background runner when a target is configured"""
        if not self.config.target:
            return None
        loop = Loop(
            self.config.target,
            error_level=self.config.error_level,
            require_type=self.config.require_type,
            registry=self.registry,
        )
        fetcher = TargetFetcher(self.config.target, timeout=self.config.scrape_timeout)
        return ScrapeRunner(
            loop,
            fetcher,
            interval=self.config.interval,
            scrape_count=self.config.scrape_count,
            fail_fast=self.config.fail_fast,
        )

    def _get_ad_hoc_loop(self, target: str) -> Loop:
        loop = self.ad_hoc_loops.get(target)
        if loop is None:
            limit = self.config.max_ad_hoc_targets
            if len(self.ad_hoc_loops) >= limit:
                logger.warning(
                    "Ad-hoc target limit reached",
                    target=target,
                    limit=limit,
                    event_type="ad_hoc_limit"
                )
                raise HTTPException(
                    status_code=429,
                    detail={"error": "too many ad-hoc targets, reset one first", "limit": limit},
                )
            loop = Loop(
                target,
                error_level=self.config.error_level,
                require_type=self.config.require_type,
                registry=self.registry,
            )
            self.ad_hoc_loops[target] = loop
        return loop

    def _setup_routes(self):
        """Setup FastAPI routes"""

        @self.app.get('/health')
        def health_check():
            """Health check endpoint"""
            if self.runner is None:
                return {"status": "healthy", "scraping": False}

            stats = self.runner.stats
            age = time.time() - stats.last_scrape_time if stats.last_scrape_time > 0 else float('inf')
            is_healthy = age < self.config.interval * 2

            health_data = {
                "status": "healthy" if is_healthy else "unhealthy",
                "scraping": True,
                "target": self.runner.loop.target,
                "last_scrape_seconds_ago": round(age, 1) if age != float('inf') else None,
                "interval": self.config.interval,
                "total_scrapes": stats.scrapes,
            }

            if not is_healthy:
                raise HTTPException(status_code=503, detail=health_data)

            return health_data

        @self.app.get('/status')
        def get_status():
            """Detailed status information"""
            status = {
                "service": {
                    "name": self.config.service_name,
                    "version": self.config.service_version,
                    "uptime_seconds": round(time.time() - self.app.state.start_time, 1),
                    "hostname": os.uname().nodename
                },
                "error_level": self.config.error_level,
                "scrape": None,
                "ad_hoc_targets": sorted(self.ad_hoc_loops),
                "ad_hoc_limit": self.config.max_ad_hoc_targets,
            }
            if self.runner is not None:
                stats = self.runner.stats
                status["scrape"] = {
                    "target": self.runner.loop.target,
                    "interval_seconds": self.config.interval,
                    "total_scrapes": stats.scrapes,
                    "parse_errors": stats.parse_errors,
                    "fetch_errors": stats.fetch_errors,
                    "violations": stats.violations,
                    "scrapes_with_violations": stats.scrapes_with_violations,
                    "last_error": stats.last_error,
                    "last_violations": [v.to_dict() for v in stats.last_violations],
                }
            return status

        @self.app.get('/rules')
        def list_rules():
            """List all registered rules"""
            return {"rules": self.registry.get_rule_status()}

        @self.app.post('/validate')
        async def validate(request: Request, target: str = AD_HOC_TARGET):
            """Validate a posted payload against the previous payload posted for the same target"""
            payload = await request.body()
            loop = self._get_ad_hoc_loop(target)
            try:
                result = loop.parse_and_validate(payload)
            except ParseError as e:
                raise HTTPException(
                    status_code=422,
                    detail={"error": str(e), "kind": e.kind, "line": e.line_number},
                )

            return {
                "target": target,
                "families": result.metric_set.family_names(),
                "violations": [v.to_dict() for v in result.violations],
                "error": str(result.error) if result.error else None,
            }

        @self.app.post('/reset')
        def reset(target: Optional[str] = None):
            """Forget ad-hoc validation state for one target or all of them"""
            if target is None:
                dropped = sorted(self.ad_hoc_loops)
                self.ad_hoc_loops.clear()
            else:
                dropped = [target] if self.ad_hoc_loops.pop(target, None) is not None else []
            return {"reset": dropped}

    def _setup_events(self):
        """Setup FastAPI startup/shutdown events"""

        @self.app.on_event("startup")
        async def startup_event():
            """Start the background scrape loop"""
            self.app.state.start_time = time.time()
            if self.runner is None:
                logger.info("No target configured, serving ad-hoc validation only", event_type="server_startup")
                return

            logger.info(
                "Starting background scrape loop",
                target=self.runner.loop.target,
                interval=self.config.interval,
                event_type="server_startup"
            )
            self.runner_task = asyncio.create_task(self._run_scrapes())

        @self.app.on_event("shutdown")
        async def shutdown_event():
            """Cleanup on shutdown"""
            logger.info("Shutting down scrape validator", event_type="server_shutdown")

            if self.runner_task:
                self.runner_task.cancel()
                try:
                    await self.runner_task
                except asyncio.CancelledError:
                    pass

    async def _run_scrapes(self):
        """Background scrape loop"""
        try:
            await self.runner.run()
        except Exception as e:
            log_error(logger, e, {"component": "scrape_loop", "target": self.runner.loop.target})

    def get_app(self) -> FastAPI:
        """Get the FastAPI application"""
        return self.app
