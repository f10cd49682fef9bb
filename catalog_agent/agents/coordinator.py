# catalog_agent/agents/coordinator.py
from __future__ import annotations
import asyncio
from typing import List, Tuple

from ..config import Settings, load_settings
from ..errors import DownloadError
from ..models import CatalogRecord, FetchResult, HarvestState, HarvestSummary
from ..utils.logging import RunLogger

from .extract import ExtractAgent
from .fetch import FetchAgent
from .storage import StorageAgent


class CoordinatorAgent:
    """
    Runs one harvest per call: extract → fetch (concurrently) → store.

    Extraction failures abort the run before anything is downloaded or written.
    Download failures only leave the affected record without `local_path`.
    A snapshot write failure (PersistError) surfaces after every download settled.
    """

    def __init__(
        self,
        browser=None,
        settings: Settings | None = None,
        logger: RunLogger | None = None,
        extractor: ExtractAgent | None = None,
        fetcher: FetchAgent | None = None,
        storage: StorageAgent | None = None,
    ):
        """
        Initializes the CoordinatorAgent.

        Args:
            browser: A started BrowserSession; only needed when no `extractor` is given.
            settings: Runtime configuration; defaults to `load_settings()`.
            logger: The run logger; defaults to one writing under the data root.
            extractor: Replaces the default ExtractAgent.
            fetcher: Replaces the default FetchAgent.
            storage: Replaces the default StorageAgent.
        """
        self.settings = settings or load_settings()
        root = self.settings.data_root
        # storage root and catalogs/ exist before the first run
        self.settings.catalogs_dir.mkdir(parents=True, exist_ok=True)
        self.logger = logger or RunLogger(root, debug=self.settings.debug)

        if extractor is None:
            if browser is None:
                raise ValueError("CoordinatorAgent needs a browser or an extractor")
            extractor = ExtractAgent(
                browser,
                self.logger,
                page_url=self.settings.page_url,
                navigation_timeout=self.settings.navigation_timeout,
                selector_timeout=self.settings.selector_timeout,
            )
        self.extractor = extractor
        self.fetcher = fetcher or FetchAgent(
            self.settings.catalogs_dir,
            self.logger,
            download_timeout=self.settings.download_timeout,
        )
        self.storage = storage or StorageAgent(root, self.logger)
        self.state = HarvestState.IDLE
        self._lock = asyncio.Lock()

    async def aclose(self) -> None:
        await self.fetcher.aclose()

    async def __aenter__(self) -> "CoordinatorAgent":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def _enter(self, state: HarvestState) -> None:
        self.state = state
        self.logger.info("state", state=state.value)

    async def run(self) -> List[CatalogRecord]:
        """
        Executes one harvest run.

        Returns:
            List[CatalogRecord]: All extracted records in page order, with `local_path`
            set on those that downloaded.
        """
        records, _ = await self.run_with_summary()
        return records

    async def run_with_summary(self) -> Tuple[List[CatalogRecord], HarvestSummary]:
        """
        Same as `run()`, plus the run's counts. Overlapping calls are queued, not interleaved.
        """
        async with self._lock:
            return await self._run_once()

    async def _run_once(self) -> Tuple[List[CatalogRecord], HarvestSummary]:
        self.logger.info("run_start", url=self.settings.page_url, data_root=str(self.settings.data_root))

        # 1) Extract
        self._enter(HarvestState.EXTRACTING)
        try:
            records = await self.extractor.extract(self.settings.page_url)
        except Exception as e:
            self._enter(HarvestState.FAILED)
            self.logger.error("extract_failed", error=str(e), error_type=type(e).__name__)
            raise
        self.logger.info("catalogs_found", count=len(records))

        # 2) Fetch, one task per record
        self._enter(HarvestState.FETCHING)
        results = await self._fetch_all(records)
        downloaded = sum(1 for r in results if r.ok)

        # 3) Store
        self._enter(HarvestState.FINALIZED)
        try:
            snapshot = await self.storage.persist(records)
        except Exception:
            self._enter(HarvestState.FAILED)
            raise

        summary = HarvestSummary(
            found=len(records),
            downloaded=downloaded,
            failed=len(records) - downloaded,
            snapshot=str(snapshot),
        )
        self.logger.info("run_end", **summary.to_dict())
        return records, summary

    async def _fetch_one(self, record: CatalogRecord) -> FetchResult:
        try:
            return await self.fetcher.fetch(record)
        except Exception as e:
            # the fetcher reports its own failures; anything else still stays with this record
            self.logger.error("download_crashed", title=record.title, url=record.link,
                              error=str(e), error_type=type(e).__name__)
            err = DownloadError(f"Unexpected error downloading {record.link!r}: {e}",
                                kind="transport", url=record.link)
            err.__cause__ = e
            return FetchResult(record=record, error=err)

    async def _fetch_all(self, records: List[CatalogRecord]) -> List[FetchResult]:
        limit = self.settings.max_concurrency
        if limit and limit > 0:
            sem = asyncio.Semaphore(limit)

            async def _bounded(record: CatalogRecord) -> FetchResult:
                async with sem:
                    return await self._fetch_one(record)

            return await asyncio.gather(*(_bounded(r) for r in records))
        return await asyncio.gather(*(self._fetch_one(r) for r in records))
