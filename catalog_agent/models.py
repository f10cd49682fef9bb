# catalog_agent/models.py
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict

from .errors import DownloadError


@dataclass
class CatalogRecord:
    """
    One published catalog as listed on the source page.
    """
    title: str
    """Human label of the catalog; not guaranteed to be unique."""
    link: str
    """Absolute URL of the PDF document."""
    valid_from: str = ""
    """First day of validity (ISO-8601 date), empty if the page omits it."""
    valid_until: str = ""
    """Last day of validity (ISO-8601 date), empty if the page omits it."""
    local_path: str | None = None
    """Where the PDF was saved; only set after a successful download."""

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialises the record with the snapshot's field names; `localPath` only when set.
        """
        out: Dict[str, Any] = {
            "title": self.title,
            "link": self.link,
            "validFrom": self.valid_from,
            "validUntil": self.valid_until,
        }
        if self.local_path:
            out["localPath"] = self.local_path
        return out

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CatalogRecord":
        return cls(
            title=d.get("title") or "",
            link=d.get("link") or "",
            valid_from=d.get("validFrom") or "",
            valid_until=d.get("validUntil") or "",
            local_path=d.get("localPath") or None,
        )


@dataclass
class FetchResult:
    """
    Outcome of one download: either a saved path or the error that stopped it.
    """
    record: CatalogRecord
    path: str | None = None
    error: DownloadError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.path is not None


@dataclass
class HarvestSummary:
    """Counts for one harvest run."""
    found: int
    downloaded: int
    failed: int
    snapshot: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "found": self.found,
            "downloaded": self.downloaded,
            "failed": self.failed,
            "snapshot": self.snapshot,
        }


class HarvestState(str, Enum):
    IDLE = "idle"
    EXTRACTING = "extracting"
    FETCHING = "fetching"
    FINALIZED = "finalized"
    FAILED = "failed"
