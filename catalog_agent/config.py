from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path

# Remote catalog listing (rendered client-side)
CATALOG_PAGE_URL = "https://www.tus.si/#s2"
"""The page that lists the currently published catalogs."""
ENTRY_SELECTOR = ".card-catalogue"
"""CSS selector of one catalog entry; also the marker waited for after navigation."""
TITLE_SELECTOR = "h3 a"
"""CSS selector of the entry heading, relative to the entry."""
DATES_SELECTOR = "p"
"""The descriptive paragraph holding the <time datetime=...> validity markers."""
DOCUMENT_EXTENSION = ".pdf"
"""Extension of the linked documents; also the extension of the saved files."""

# Storage layout under the data root
CATALOGS_DIR_NAME = "catalogs"
"""Sub-directory holding one file per downloaded catalog."""
METADATA_FILE_NAME = "catalogs_metadata.json"
"""Snapshot of the last harvest run, overwritten each run."""

# Timeouts (seconds)
NAVIGATION_TIMEOUT = 60.0
"""Upper bound for page navigation to settle (network idle)."""
SELECTOR_TIMEOUT = 60.0
"""Upper bound for the entry marker to appear after navigation."""
DOWNLOAD_TIMEOUT = 120.0
"""Upper bound for one complete document transfer."""
CONNECT_TIMEOUT = 15.0
"""Connect timeout handed to the HTTP client."""

DEFAULT_USER_AGENT = "catalog-agent/0.1 (+https://example.org/contact)"
"""The User-Agent string used for document downloads."""
CHUNK_SIZE = 64 * 1024
"""Bytes per streamed write."""
BROWSER_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]
"""Extra Chromium flags; needed when running as root inside containers."""


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass
class Settings:
    """
    Runtime configuration for one process (API or CLI).
    """
    data_root: Path
    """Root directory for downloaded catalogs, the snapshot, and the log."""
    page_url: str = CATALOG_PAGE_URL
    """The listing page to harvest."""
    navigation_timeout: float = NAVIGATION_TIMEOUT
    selector_timeout: float = SELECTOR_TIMEOUT
    download_timeout: float = DOWNLOAD_TIMEOUT
    max_concurrency: int = 0
    """Cap on in-flight downloads; 0 means one task per record, all at once."""
    headless: bool = True
    debug: bool = False

    @property
    def catalogs_dir(self) -> Path:
        return self.data_root / CATALOGS_DIR_NAME

    @property
    def metadata_path(self) -> Path:
        return self.data_root / METADATA_FILE_NAME


def load_settings() -> Settings:
    """
    Builds Settings from CATALOG_* environment variables, falling back to the defaults above.
    """
    return Settings(
        data_root=Path(os.environ.get("CATALOG_DATA_ROOT", "data")).expanduser().resolve(),
        page_url=os.environ.get("CATALOG_PAGE_URL", "").strip() or CATALOG_PAGE_URL,
        navigation_timeout=_env_float("CATALOG_NAV_TIMEOUT", NAVIGATION_TIMEOUT),
        selector_timeout=_env_float("CATALOG_SELECTOR_TIMEOUT", SELECTOR_TIMEOUT),
        download_timeout=_env_float("CATALOG_DOWNLOAD_TIMEOUT", DOWNLOAD_TIMEOUT),
        max_concurrency=max(0, int(_env_float("CATALOG_MAX_CONCURRENCY", 0))),
        headless=_env_bool("CATALOG_HEADLESS", True),
        debug=_env_bool("CATALOG_AGENT_DEBUG", False),
    )
