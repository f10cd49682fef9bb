from __future__ import annotations
import asyncio, contextlib, json, os
from pathlib import Path
from typing import Any, Dict, List

from ..config import METADATA_FILE_NAME
from ..errors import PersistError
from ..models import CatalogRecord


class StorageAgent:
    """
    Persists the catalog list of a harvest run as `catalogs_metadata.json`.

    Every run overwrites the previous snapshot completely.
    """

    def __init__(self, data_root: Path, logger):
        """
        Initializes the StorageAgent.

        Args:
            data_root (Path): Directory holding the snapshot file.
            logger: The run logger.
        """
        self.data_root = Path(data_root)
        self.logger = logger
        self.metadata_path = self.data_root / METADATA_FILE_NAME

    async def persist(self, records: List[CatalogRecord]) -> Path:
        """
        Writes the records, in the given order, to the snapshot file.

        Args:
            records (List[CatalogRecord]): All records of the run, annotated or not.

        Returns:
            Path: The snapshot path.

        Raises:
            PersistError: The snapshot could not be written.
        """
        data = [r.to_dict() for r in records]
        try:
            await asyncio.to_thread(self._write_json, self.metadata_path, data)
        except (OSError, TypeError, ValueError) as e:
            self.logger.error("snapshot_failed", path=str(self.metadata_path), error=str(e))
            raise PersistError(f"Could not write metadata to {self.metadata_path}: {e}") from e
        self.logger.info("snapshot_written", path=str(self.metadata_path), count=len(data))
        return self.metadata_path

    def load(self) -> List[CatalogRecord]:
        """
        Reads the current snapshot back; an absent snapshot reads as an empty list.
        """
        if not self.metadata_path.exists():
            return []
        with self.metadata_path.open("r", encoding="utf-8") as f:
            rows = json.load(f) or []
        return [CatalogRecord.from_dict(r) for r in rows if isinstance(r, dict)]

    # ---- helpers ----

    def _write_json(self, path: Path, rows: List[Dict[str, Any]]) -> None:
        """
        Writes to a sibling temp file first and swaps it in, so readers never see half a snapshot.
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".tmp")
        try:
            with tmp.open("w", encoding="utf-8") as f:
                json.dump(rows, f, ensure_ascii=False, indent=2)
            os.replace(tmp, path)
        except (OSError, TypeError, ValueError):
            with contextlib.suppress(OSError):
                tmp.unlink(missing_ok=True)
            raise
