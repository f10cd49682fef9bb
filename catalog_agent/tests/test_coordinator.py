import asyncio
import json
import re

import httpx
import pytest

from catalog_agent.agents.coordinator import CoordinatorAgent
from catalog_agent.agents.fetch import FetchAgent
from catalog_agent.config import Settings
from catalog_agent.errors import NavigationError, PersistError, RenderTimeout
from catalog_agent.models import CatalogRecord, HarvestState
from catalog_agent.utils.http import build_client
from catalog_agent.utils.logging import RunLogger

PDF = b"%PDF-1.4 catalog"


class FakeExtractor:
    """Hands out fresh records per call, or raises."""

    def __init__(self, rows=None, exc=None):
        self.rows = rows or []
        self.exc = exc
        self.calls = 0

    async def extract(self, url=None):
        self.calls += 1
        if self.exc:
            raise self.exc
        return [CatalogRecord(*row) for row in self.rows]


def _handler(delays=None):
    """200 for every URL, except paths containing 'missing' (404)."""
    delays = delays or {}

    async def handler(request):
        await asyncio.sleep(delays.get(request.url.path, 0))
        if "missing" in request.url.path:
            return httpx.Response(404)
        return httpx.Response(200, content=PDF)
    return handler


def _coordinator(tmp_path, extractor, handler=None, **overrides):
    settings = Settings(data_root=tmp_path / "data", **overrides)
    logger = RunLogger(settings.data_root)
    client = build_client(5.0, transport=httpx.MockTransport(handler or _handler()))
    fetcher = FetchAgent(settings.catalogs_dir, logger, client=client)
    coordinator = CoordinatorAgent(settings=settings, logger=logger, extractor=extractor, fetcher=fetcher)
    return coordinator, client


def _run(coordinator, client, times=1):
    async def _go():
        try:
            out = None
            for _ in range(times):
                out = await coordinator.run_with_summary()
            return out
        finally:
            await client.aclose()
    return asyncio.run(_go())


def _snapshot(tmp_path):
    return json.loads((tmp_path / "data" / "catalogs_metadata.json").read_text(encoding="utf-8"))


def _catalog_files(tmp_path):
    return sorted(p.name for p in (tmp_path / "data" / "catalogs").iterdir())


def test_weekly_deals_example(tmp_path):
    """
    One fetchable record: one file, one-element snapshot pointing at it.
    """
    ex = FakeExtractor([("Weekly Deals", "https://x/a.pdf", "2024-01-01", "2024-01-07")])
    coordinator, client = _coordinator(tmp_path, ex)

    records, summary = _run(coordinator, client)

    files = _catalog_files(tmp_path)
    assert len(files) == 1 and re.match(r"^weekly_deals_\d+\.pdf$", files[0])
    rows = _snapshot(tmp_path)
    assert len(rows) == 1
    assert rows[0]["localPath"] == str(tmp_path / "data" / "catalogs" / files[0])
    assert rows[0]["validFrom"] == "2024-01-01" and rows[0]["validUntil"] == "2024-01-07"
    assert records[0].local_path == rows[0]["localPath"]
    assert (summary.found, summary.downloaded, summary.failed) == (1, 1, 0)
    assert coordinator.state is HarvestState.FINALIZED


def test_weekly_deals_not_found(tmp_path):
    ex = FakeExtractor([("Weekly Deals", "https://x/missing/a.pdf", "2024-01-01", "2024-01-07")])
    coordinator, client = _coordinator(tmp_path, ex)

    _, summary = _run(coordinator, client)

    rows = _snapshot(tmp_path)
    assert len(rows) == 1 and "localPath" not in rows[0]
    assert _catalog_files(tmp_path) == []
    assert summary.failed == 1


def test_partial_failures_are_isolated(tmp_path):
    """
    M records, F of them 404: snapshot keeps all M, exactly M - F have localPath.
    """
    rows_in = [
        (f"Catalog {i}", f"https://x/{'missing/' if i % 3 == 0 else ''}{i}.pdf", "", "")
        for i in range(10)
    ]
    failing = sum(1 for i in range(10) if i % 3 == 0)
    coordinator, client = _coordinator(tmp_path, FakeExtractor(rows_in))

    _, summary = _run(coordinator, client)

    rows = _snapshot(tmp_path)
    assert len(rows) == 10
    assert sum(1 for r in rows if "localPath" in r) == 10 - failing
    for i, r in enumerate(rows):
        assert ("localPath" in r) == (i % 3 != 0)
    assert len(_catalog_files(tmp_path)) == 10 - failing
    assert (summary.downloaded, summary.failed) == (10 - failing, failing)


def test_snapshot_keeps_page_order_whatever_finishes_first(tmp_path):
    rows_in = [("First", "https://x/1.pdf", "", ""), ("Second", "https://x/2.pdf", "", ""),
               ("Third", "https://x/3.pdf", "", "")]
    handler = _handler({"/1.pdf": 0.15, "/2.pdf": 0.05, "/3.pdf": 0})
    coordinator, client = _coordinator(tmp_path, FakeExtractor(rows_in), handler)

    _run(coordinator, client)

    assert [r["title"] for r in _snapshot(tmp_path)] == ["First", "Second", "Third"]


def test_extraction_failure_writes_nothing(tmp_path):
    for exc in (NavigationError("down", url="https://x"), RenderTimeout("slow", url="https://x", phase="selector")):
        coordinator, client = _coordinator(tmp_path, FakeExtractor(exc=exc))
        with pytest.raises(type(exc)):
            _run(coordinator, client)
        assert coordinator.state is HarvestState.FAILED
        assert not (tmp_path / "data" / "catalogs_metadata.json").exists()
        assert _catalog_files(tmp_path) == []


def test_back_to_back_runs_overwrite_snapshot(tmp_path):
    class TwoRuns(FakeExtractor):
        async def extract(self, url=None):
            self.calls += 1
            if self.calls == 1:
                return [CatalogRecord("Old A", "https://x/a.pdf"), CatalogRecord("Old B", "https://x/b.pdf")]
            return [CatalogRecord("New C", "https://x/c.pdf")]

    coordinator, client = _coordinator(tmp_path, TwoRuns())
    _run(coordinator, client, times=2)

    assert [r["title"] for r in _snapshot(tmp_path)] == ["New C"]


def test_persist_failure_keeps_downloads(tmp_path):
    ex = FakeExtractor([("Weekly Deals", "https://x/a.pdf", "", "")])
    coordinator, client = _coordinator(tmp_path, ex)
    (tmp_path / "data" / "catalogs_metadata.json").mkdir()

    with pytest.raises(PersistError):
        _run(coordinator, client)
    assert len(_catalog_files(tmp_path)) == 1


def test_concurrency_cap_still_fetches_everything(tmp_path):
    rows_in = [(f"C{i}", f"https://x/{i}.pdf", "", "") for i in range(6)]
    coordinator, client = _coordinator(tmp_path, FakeExtractor(rows_in), max_concurrency=2)

    _, summary = _run(coordinator, client)

    assert summary.downloaded == 6


def test_startup_creates_directories(tmp_path):
    coordinator, client = _coordinator(tmp_path, FakeExtractor())
    assert (tmp_path / "data" / "catalogs").is_dir()
    assert coordinator.state is HarvestState.IDLE
    asyncio.run(client.aclose())


def test_needs_browser_or_extractor(tmp_path):
    with pytest.raises(ValueError):
        CoordinatorAgent(settings=Settings(data_root=tmp_path))


def test_invalid_url_record_does_not_abort_run(tmp_path):
    """
    One record with an unusable URL: the run completes and the snapshot keeps both records.
    """
    ex = FakeExtractor([("Good", "https://x/a.pdf", "", ""), ("Bad", "https://x/b\x7f\x01.pdf", "", "")])
    coordinator, client = _coordinator(tmp_path, ex)

    _, summary = _run(coordinator, client)

    rows = _snapshot(tmp_path)
    assert [r["title"] for r in rows] == ["Good", "Bad"]
    assert "localPath" in rows[0] and "localPath" not in rows[1]
    assert (summary.downloaded, summary.failed) == (1, 1)
    assert coordinator.state is HarvestState.FINALIZED


def test_unexpected_fetch_error_stays_with_its_record(tmp_path):
    class ExplodingFetcher(FetchAgent):
        async def fetch(self, record):
            if record.title == "Boom":
                raise RuntimeError("unexpected")
            return await super().fetch(record)

    settings = Settings(data_root=tmp_path / "data")
    logger = RunLogger(settings.data_root)
    client = build_client(5.0, transport=httpx.MockTransport(_handler()))
    fetcher = ExplodingFetcher(settings.catalogs_dir, logger, client=client)
    ex = FakeExtractor([("Boom", "https://x/1.pdf", "", ""), ("Fine", "https://x/2.pdf", "", "")])
    coordinator = CoordinatorAgent(settings=settings, logger=logger, extractor=ex, fetcher=fetcher)

    _, summary = _run(coordinator, client)

    rows = _snapshot(tmp_path)
    assert [("localPath" in r) for r in rows] == [False, True]
    assert (summary.downloaded, summary.failed) == (1, 1)
