"""Configuration management for the scrape validator"""
import re
from pathlib import Path
from typing import Literal, Optional, Union
from urllib.parse import urlparse

from pydantic import Field, validator
from pydantic_settings import BaseSettings


_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ms|s|m|h)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: Union[str, int, float]) -> float:
    """Parse a duration such as "10s", "500ms" or "1m30s" into seconds.

    Plain numbers are taken as seconds.
    """
    if isinstance(value, (int, float)):
        return float(value)
    text = value.strip()
    try:
        return float(text)
    except ValueError:
        pass

    pos = 0
    seconds = 0.0
    while pos < len(text):
        match = _DURATION_PART_RE.match(text, pos)
        if not match:
            raise ValueError(f"invalid duration {value!r}")
        seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if not text:
        raise ValueError("empty duration")
    return seconds


class Config(BaseSettings):
    """Configuration class with Pydantic validation and environment-based settings"""

    # Target settings
    target: str = Field(default="", description="URL of the OpenMetrics endpoint to scrape")
    error_level: Literal["must", "should"] = Field(default="must", description="Rule level to report (must or should)")
    require_type: bool = Field(default=False, description="Reject samples without a # TYPE declaration")

    # Scrape settings
    interval: float = Field(default=10.0, gt=0, description="Scrape interval in seconds")
    scrape_timeout: float = Field(default=5.0, gt=0, description="HTTP timeout per scrape in seconds")
    scrape_count: int = Field(default=0, ge=0, description="Number of scrapes to run, 0 for no limit")
    fail_fast: bool = Field(default=False, description="Stop at the first scrape with violations")

    # Server settings (status endpoints)
    server_host: str = Field(default="0.0.0.0", description="Status server host")
    server_port: int = Field(default=9109, ge=1, le=65535, description="Status server port")
    max_ad_hoc_targets: int = Field(default=100, ge=1, description="Distinct targets /validate keeps state for")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO", description="Log level")
    log_file: Optional[Path] = Field(default=None, description="Log file path")

    # Service settings
    service_name: str = Field(default="scrape-validator", description="Service name")
    service_version: str = Field(default="1.0.0", description="Service version")

    class Config:
        env_prefix = "VALIDATOR_"
        case_sensitive = False

    @validator('target')
    def validate_target(cls, v):
        """Targets are scraped over HTTP, so they must be http(s) URLs"""
        if v:
            parsed = urlparse(v)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise ValueError(f"target must be an http(s) URL, got {v!r}")
        return v

    @validator('error_level', pre=True)
    def normalize_error_level(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @validator('log_level', pre=True)
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @validator('interval', 'scrape_timeout', pre=True)
    def parse_durations(cls, v):
        """Accept Go-style durations as well as plain seconds"""
        if isinstance(v, str):
            return parse_duration(v)
        return v

    @validator('log_file')
    def ensure_log_directory(cls, v):
        """Ensure the parent directory exists for the log file"""
        if isinstance(v, Path):
            v.parent.mkdir(parents=True, exist_ok=True)
        return v

    def is_should_level(self) -> bool:
        """Check if SHOULD rules are reported"""
        return self.error_level == "should"

    def is_bounded(self) -> bool:
        """Check if the runner stops after a fixed number of scrapes"""
        return self.scrape_count > 0
