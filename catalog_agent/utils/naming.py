from __future__ import annotations
import re
import threading
import time

from ..config import DOCUMENT_EXTENSION

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_RUNS = re.compile(r"_+")
MAX_PREFIX = 120  # keeps names well under the 255-byte filename limit

_stamp_lock = threading.Lock()
_last_stamp = 0


def normalise_title(title: str | None) -> str:
    """
    Lowercases a title and squeezes everything outside [a-z0-9] into single underscores.

    "Spring Sale!" and "spring_sale" both give "spring_sale".
    """
    if not title:
        return ""
    s = _NON_ALNUM.sub("_", title.lower())
    s = _RUNS.sub("_", s).strip("_")
    return s[:MAX_PREFIX].rstrip("_")


def _unique_millis() -> int:
    """Wall-clock milliseconds, bumped so that no two calls in this process return the same value."""
    global _last_stamp
    with _stamp_lock:
        now = time.time_ns() // 1_000_000
        if now <= _last_stamp:
            now = _last_stamp + 1
        _last_stamp = now
        return now


def derive_file_name(title: str | None) -> str:
    """
    Builds the on-disk file name for a catalog: `<normalised-title>_<millis>.pdf`.

    A title with no usable characters still yields `<millis>.pdf`.
    """
    prefix = normalise_title(title)
    stamp = str(_unique_millis())
    stem = f"{prefix}_{stamp}" if prefix else stamp
    return stem + DOCUMENT_EXTENSION
