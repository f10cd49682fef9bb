from __future__ import annotations
import asyncio
from pathlib import Path

import aiofiles
import httpx

from ..config import CHUNK_SIZE, DOWNLOAD_TIMEOUT
from ..errors import DownloadError
from ..models import CatalogRecord, FetchResult
from ..utils.http import build_client
from ..utils.naming import derive_file_name


class FetchAgent:
    """
    Downloads one catalog PDF per call into `<catalogs_dir>/<safe-name>.pdf`.

    A failed download never raises: the partial file is removed, a warning is
    logged, and a FetchResult carrying the DownloadError is returned. Calls are
    independent and meant to run side by side under asyncio.gather.
    """

    def __init__(
        self,
        catalogs_dir: Path,
        logger,
        download_timeout: float = DOWNLOAD_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initializes the FetchAgent.

        Args:
            catalogs_dir (Path): Directory receiving the downloaded files.
            logger: The run logger.
            download_timeout (float): Seconds allowed for one whole transfer; 0 disables the bound.
            client (httpx.AsyncClient | None): Shared client; one is created (and owned) when omitted.
        """
        self.catalogs_dir = Path(catalogs_dir)
        self.logger = logger
        self.download_timeout = download_timeout
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = build_client(self.download_timeout or DOWNLOAD_TIMEOUT)
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "FetchAgent":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def fetch(self, record: CatalogRecord) -> FetchResult:
        """
        Downloads `record.link` and sets `record.local_path` on success.

        Args:
            record (CatalogRecord): The catalog to download; mutated only on success.

        Returns:
            FetchResult: `ok` with the saved path, or the DownloadError that stopped the transfer.
        """
        if not record.link:
            self.logger.warn("download_skipped", title=record.title, reason="no_link")
            err = DownloadError(f"No download link for catalog: {record.title}", kind="missing_link", url="")
            return FetchResult(record=record, error=err)

        path = self.catalogs_dir / derive_file_name(record.title)
        try:
            await asyncio.to_thread(self.catalogs_dir.mkdir, parents=True, exist_ok=True)
            if self.download_timeout and self.download_timeout > 0:
                await asyncio.wait_for(self._transfer(record.link, path), timeout=self.download_timeout)
            else:
                await self._transfer(record.link, path)
        except DownloadError as e:
            err = e
        except asyncio.TimeoutError as e:
            err = DownloadError(
                f"Download exceeded {self.download_timeout:g}s", kind="timeout", url=record.link,
            )
            err.__cause__ = e
        except OSError as e:
            # local filesystem trouble while writing
            err = DownloadError(f"Could not write {path}: {e}", kind="stream", url=record.link)
            err.__cause__ = e
        else:
            record.local_path = str(path)
            self.logger.info("download_ok", title=record.title, path=str(path))
            return FetchResult(record=record, path=str(path))

        await self._cleanup(path)
        self.logger.warn(
            "download_failed",
            title=record.title,
            url=record.link,
            kind=err.kind,
            status_code=err.status_code,
            error=str(err),
        )
        return FetchResult(record=record, error=err)

    async def _transfer(self, url: str, path: Path) -> None:
        """
        Single-attempt streamed GET into `path`. Anything but a 200 is a failure.
        """
        client = self._get_client()
        responded = False
        try:
            async with client.stream("GET", url) as response:
                responded = True
                if response.status_code != 200:
                    raise DownloadError(
                        f"Failed to download {url}: {response.status_code}",
                        kind="status", url=url, status_code=response.status_code,
                    )
                async with aiofiles.open(path, "wb") as f:
                    async for chunk in response.aiter_bytes(CHUNK_SIZE):
                        await f.write(chunk)
        except httpx.TimeoutException as e:
            raise DownloadError(f"Timed out downloading {url}: {e}", kind="timeout", url=url) from e
        except httpx.HTTPError as e:
            kind = "stream" if responded else "transport"
            raise DownloadError(f"Error downloading {url}: {e}", kind=kind, url=url) from e
        except httpx.InvalidURL as e:
            raise DownloadError(f"Cannot request {url!r}: {e}", kind="transport", url=url) from e
        except httpx.StreamError as e:
            raise DownloadError(f"Error reading {url}: {e}", kind="stream", url=url) from e

    async def _cleanup(self, path: Path) -> None:
        """Best-effort removal of a partial file."""
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as e:
            self.logger.debug("cleanup_failed", path=str(path), error=str(e))
