"""
Harvest Configuration

Loads proxy credentials, search endpoint settings and run limits from the
environment (a .env file is honoured) or from a JSON file, and reads the
newline-delimited input lists.
"""

import os
import json
import logging
from typing import Any, Dict, List, Optional
from pathlib import Path

from dotenv import load_dotenv

from errors import ConfigLoadFailed

load_dotenv()

logger = logging.getLogger(__name__)

# Configuration variables loaded from the .env file
PROXY_GATE = os.getenv("SERP_PROXY_GATE", "")
PROXY_USER = os.getenv("SERP_PROXY_USER", "")
PROXY_PASS = os.getenv("SERP_PROXY_PASS", "")
PROXY_COUNTRY = os.getenv("SERP_PROXY_COUNTRY", "us")

SEARCH_URL = os.getenv("SERP_SEARCH_URL", "https://www.google.com/search")
FILTER_DOMAIN = os.getenv("SERP_FILTER_DOMAIN", "google.com")
# Numeric values stay raw strings until HarvestConfig.from_env converts them
PAGE_SIZE = os.getenv("SERP_PAGE_SIZE", "100")
RESULTS_PER_PAGE = os.getenv("SERP_RESULTS_PER_PAGE", "10000")
MAX_PAGES = os.getenv("SERP_MAX_PAGES", "5")
REQUEST_TIMEOUT = os.getenv("SERP_TIMEOUT", "30")
CONCURRENCY = os.getenv("SERP_CONCURRENCY", "10")

UA_FILE = os.getenv("SERP_UA_FILE", "ua.txt")
KEYWORD_FILE = os.getenv("SERP_KEYWORD_FILE", "keyword.txt")
OUTPUT_FILE = os.getenv("SERP_OUTPUT_FILE", "urls.txt")
DEBUG = os.getenv("SERP_DEBUG", "false").lower() == "true"


def _env_int(name: str, value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigLoadFailed(f"{name} must be an integer, got {value!r}") from e


class HarvestConfig:
    """Run configuration for a harvest"""

    def __init__(
        self,
        proxy_gate: str = "",
        proxy_user: str = "",
        proxy_pass: str = "",
        proxy_country: str = "us",
        search_url: str = "https://www.google.com/search",
        filter_domain: str = "google.com",
        page_size: int = 100,
        results_per_page: int = 10000,
        max_pages: int = 5,
        timeout: int = 30,
        concurrency: int = 10,
        ua_file: str = "ua.txt",
        keyword_file: str = "keyword.txt",
        output_file: str = "urls.txt",
        debug: bool = False,
    ):
        self.proxy_gate = proxy_gate
        self.proxy_user = proxy_user
        self.proxy_pass = proxy_pass
        self.proxy_country = proxy_country
        self.search_url = search_url
        self.filter_domain = filter_domain
        self.page_size = page_size
        self.results_per_page = results_per_page
        self.max_pages = max_pages
        self.timeout = timeout
        self.concurrency = concurrency
        self.ua_file = ua_file
        self.keyword_file = keyword_file
        self.output_file = output_file
        self.debug = debug

    @classmethod
    def from_env(cls) -> "HarvestConfig":
        """Build a configuration from the module-level environment defaults"""
        return cls(
            proxy_gate=PROXY_GATE,
            proxy_user=PROXY_USER,
            proxy_pass=PROXY_PASS,
            proxy_country=PROXY_COUNTRY,
            search_url=SEARCH_URL,
            filter_domain=FILTER_DOMAIN,
            page_size=_env_int("SERP_PAGE_SIZE", PAGE_SIZE),
            results_per_page=_env_int("SERP_RESULTS_PER_PAGE", RESULTS_PER_PAGE),
            max_pages=_env_int("SERP_MAX_PAGES", MAX_PAGES),
            timeout=_env_int("SERP_TIMEOUT", REQUEST_TIMEOUT),
            concurrency=_env_int("SERP_CONCURRENCY", CONCURRENCY),
            ua_file=UA_FILE,
            keyword_file=KEYWORD_FILE,
            output_file=OUTPUT_FILE,
            debug=DEBUG,
        )

    @classmethod
    def from_file(cls, config_path: str) -> "HarvestConfig":
        """
        Load configuration from a JSON file.

        Keys missing from the file keep their environment value. A missing
        file falls back to the environment; an unreadable or malformed one
        raises ConfigLoadFailed.
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning(f"Config file {config_path} not found. Using environment.")
            return cls.from_env()

        try:
            with open(path, "r", encoding="utf-8") as f:
                config_data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            raise ConfigLoadFailed(f"Failed to load config from {config_path}: {e}") from e

        if not isinstance(config_data, dict):
            raise ConfigLoadFailed(f"Config file {config_path} must hold a JSON object")

        settings = cls.from_env().to_dict(mask=False)
        unknown = set(config_data) - set(settings)
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {', '.join(sorted(unknown))}")
        settings.update({k: v for k, v in config_data.items() if k in settings})
        return cls(**settings)

    def validate(self) -> List[str]:
        """Return a list of problems, empty when the configuration is usable"""
        problems = []
        for name in ("page_size", "results_per_page", "max_pages", "timeout", "concurrency"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                problems.append(f"{name} must be a positive integer, got {value!r}")

        if not self.search_url:
            problems.append("search_url must not be empty")

        if not self.proxy_gate:
            problems.append("proxy_gate is not set (SERP_PROXY_GATE)")

        return problems

    def to_dict(self, mask: bool = True) -> Dict[str, Any]:
        """Convert configuration to dictionary"""
        return {
            "proxy_gate": self.proxy_gate,
            "proxy_user": self.proxy_user,
            "proxy_pass": "***" if mask and self.proxy_pass else self.proxy_pass,
            "proxy_country": self.proxy_country,
            "search_url": self.search_url,
            "filter_domain": self.filter_domain,
            "page_size": self.page_size,
            "results_per_page": self.results_per_page,
            "max_pages": self.max_pages,
            "timeout": self.timeout,
            "concurrency": self.concurrency,
            "ua_file": self.ua_file,
            "keyword_file": self.keyword_file,
            "output_file": self.output_file,
            "debug": self.debug,
        }

    def __repr__(self) -> str:
        return (
            f"HarvestConfig(gate={self.proxy_gate!r}, country={self.proxy_country!r}, "
            f"pages={self.max_pages}, concurrency={self.concurrency})"
        )


def load_config(config_path: Optional[str] = None) -> HarvestConfig:
    """
    Load harvest configuration from file or environment variables

    Args:
        config_path: Path to JSON configuration file (optional)

    Returns:
        HarvestConfig instance

    Raises:
        ConfigLoadFailed: if the file is unreadable or the result is invalid
    """
    if config_path:
        config = HarvestConfig.from_file(config_path)
    else:
        config = HarvestConfig.from_env()

    problems = config.validate()
    if problems:
        raise ConfigLoadFailed("Invalid configuration: " + "; ".join(problems))

    if config.debug:
        logger.debug(f"Loaded harvest config: {config.to_dict()}")

    return config


def read_lines(file_path: str) -> List[str]:
    """
    Read a newline-delimited list, skipping blank lines.

    Raises:
        ConfigLoadFailed: if the file is missing or unreadable
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            lines = [line.rstrip("\r\n") for line in f]
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigLoadFailed(f"Failed to read {file_path}: {e}") from e

    entries = [line for line in lines if line.strip()]
    logger.debug(f"Read {len(entries)} entries from {file_path}")
    return entries
