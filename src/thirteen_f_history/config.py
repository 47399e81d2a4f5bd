"""Configuration management for 13F History."""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml

log = logging.getLogger(__name__)


def _get_user_agent() -> str:
    """Get User-Agent for SEC EDGAR. SEC requires contact info."""
    email = os.environ.get("SEC_CONTACT_EMAIL", "")
    if not email:
        raise ValueError(
            "SEC_CONTACT_EMAIL environment variable is required. "
            "SEC EDGAR requires a contact email in the User-Agent header. "
            "Set it with: export SEC_CONTACT_EMAIL=your@email.com"
        )
    return f"13F-History {email}"


@dataclass
class Config:
    """Application configuration."""

    # Paths - __file__ is config.py in src/thirteen_f_history/, so .parent.parent.parent = repo root
    base_dir: Path = field(default_factory=lambda: Path(__file__).parent.parent.parent)
    data_dir: Path = field(init=False)
    cache_dir: Path = field(init=False)
    dataset_dir: Path = field(init=False)
    exports_dir: Path = field(init=False)
    lookups_dir: Path = field(init=False)
    settings_file: Path = field(init=False)

    # SEC EDGAR settings
    user_agent: str = field(default_factory=_get_user_agent)
    base_url: str = "https://www.sec.gov"
    rate_limit_per_second: float = 10.0  # SEC guideline: max 10 requests/second

    # Crawl settings
    max_record_bytes: int = 9_000_000  # per-record ceiling of the dataset sink
    feed_page_size: int = 100
    feed_max_pages: int = 100
    xml_start_year: int = 2014  # first year with XML primary docs and info tables
    index_delimiter: str = "|"

    def __post_init__(self) -> None:
        self.data_dir = self.base_dir / "data"
        self.cache_dir = self.data_dir / "cache"
        self.dataset_dir = self.data_dir / "sec13f"
        self.exports_dir = self.data_dir / "exports"
        self.lookups_dir = self.data_dir / "lookups"
        self.settings_file = self.data_dir / "settings.yaml"

        # Ensure directories exist
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.dataset_dir.mkdir(parents=True, exist_ok=True)

    @property
    def cik_cusip_file(self) -> Path:
        return self.lookups_dir / "cik-cusip-maps.csv"

    @property
    def cik_names_file(self) -> Path:
        return self.lookups_dir / "cik-lookup-data.txt"


# Settings a YAML file may override. Paths are derived from base_dir and stay fixed.
_OVERRIDABLE = (
    "base_url",
    "rate_limit_per_second",
    "max_record_bytes",
    "feed_page_size",
    "feed_max_pages",
    "xml_start_year",
    "index_delimiter",
)


def apply_settings(config: Config, settings: dict) -> Config:
    """Apply scalar overrides from a settings mapping onto a config."""
    known = {f.name: f for f in fields(Config)}
    for key, value in settings.items():
        if key not in _OVERRIDABLE:
            log.warning("Ignoring unknown setting %r", key)
            continue
        current = getattr(config, key)
        # Keep the declared type, e.g. "100" in YAML for an int setting
        setattr(config, key, type(current)(value) if current is not None else value)
        log.debug("Setting %s=%r (default %r)", key, getattr(config, key), known[key].default)
    return config


def load_settings(config: Config) -> Config:
    """Load overrides from the YAML settings file, if it exists."""
    if not config.settings_file.exists():
        return config

    with open(config.settings_file) as f:
        data = yaml.safe_load(f) or {}

    return apply_settings(config, data)


def get_config(base_dir: Path | None = None) -> Config:
    """Get the configuration rooted at base_dir (default: the repo root)."""
    config = Config(base_dir=Path(base_dir)) if base_dir is not None else Config()
    return load_settings(config)
