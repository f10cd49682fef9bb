"""Failure modes of a harvest run.

Extraction errors (`NavigationError`, `RenderTimeout`) abort a run before any
download starts. `DownloadError` is per record and never leaves the fetch
boundary. `PersistError` is raised after every download has settled.
"""

from __future__ import annotations

from typing import Optional

__all__ = [
    "CatalogAgentError",
    "BrowserStartupError",
    "NavigationError",
    "RenderTimeout",
    "DownloadError",
    "PersistError",
    "DOWNLOAD_ERROR_KINDS",
]

DOWNLOAD_ERROR_KINDS = ("status", "transport", "stream", "timeout", "missing_link")


class CatalogAgentError(RuntimeError):
    """Base exception for harvest failures."""


class BrowserStartupError(CatalogAgentError):
    """Raised when the headless browser cannot be launched."""


class NavigationError(CatalogAgentError):
    """Raised when the listing page cannot be reached."""

    def __init__(self, message: str, *, url: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class RenderTimeout(CatalogAgentError):
    """Raised when navigation or the entry marker does not settle in time."""

    def __init__(self, message: str, *, url: str, phase: str) -> None:
        super().__init__(message)
        self.url = url
        self.phase = phase


class DownloadError(CatalogAgentError):
    """Raised inside the fetcher when one document transfer fails."""

    def __init__(
        self,
        message: str,
        *,
        kind: str,
        url: str,
        status_code: Optional[int] = None,
    ) -> None:
        if kind not in DOWNLOAD_ERROR_KINDS:
            raise ValueError(f"unknown download error kind: {kind!r}")
        super().__init__(message)
        self.kind = kind
        self.url = url
        self.status_code = status_code


class PersistError(CatalogAgentError):
    """Raised when the metadata snapshot cannot be written."""
