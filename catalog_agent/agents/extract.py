from __future__ import annotations
from typing import List, Tuple
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup, Tag
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..config import (
    CATALOG_PAGE_URL, DATES_SELECTOR, DOCUMENT_EXTENSION, ENTRY_SELECTOR,
    NAVIGATION_TIMEOUT, SELECTOR_TIMEOUT, TITLE_SELECTOR,
)
from ..errors import NavigationError, RenderTimeout
from ..models import CatalogRecord

_HEADINGS = ["h1", "h2", "h3", "h4", "h5", "h6"]


def _clean_text(s: str | None) -> str:
    return " ".join((s or "").split())


def _document_link(item: Tag, base_url: str) -> str:
    """
    Returns the first anchor of the entry whose URL path ends in `.pdf`, made absolute.
    """
    for a in item.select("a[href]"):
        href = (a.get("href") or "").strip()
        if not href:
            continue
        try:
            absolute = urljoin(base_url, href)
            parsed = urlparse(absolute)
        except ValueError:
            # malformed href, e.g. an unclosed IPv6 bracket
            continue
        if parsed.scheme not in ("http", "https"):
            continue
        if parsed.path.lower().endswith(DOCUMENT_EXTENSION):
            return absolute
    return ""


def _title(item: Tag) -> str:
    node = item.select_one(TITLE_SELECTOR) or item.find(_HEADINGS)
    if node is None:
        return ""
    return _clean_text(node.get_text(" ", strip=True))


def _validity(item: Tag) -> Tuple[str, str]:
    """
    Reads the first and last <time datetime> of the entry's descriptive paragraph.
    """
    para = item.select_one(DATES_SELECTOR)
    if para is None:
        return "", ""
    times = para.select("time[datetime]")
    if not times:
        return "", ""
    return (times[0].get("datetime") or "").strip(), (times[-1].get("datetime") or "").strip()


def parse_catalogs(html: str, base_url: str, entry_selector: str = ENTRY_SELECTOR) -> List[CatalogRecord]:
    """
    Turns the rendered listing into records, one per entry that links a PDF, in document order.

    Args:
        html (str): The page HTML after client-side rendering.
        base_url (str): URL the HTML was loaded from; relative links are resolved against it.
        entry_selector (str): CSS selector of one catalog entry.

    Returns:
        List[CatalogRecord]: Records without a local path; entries with no document link are dropped.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    out: List[CatalogRecord] = []
    for item in soup.select(entry_selector):
        link = _document_link(item, base_url)
        if not link:
            continue
        valid_from, valid_until = _validity(item)
        out.append(CatalogRecord(
            title=_title(item),
            link=link,
            valid_from=valid_from,
            valid_until=valid_until,
        ))
    return out


class ExtractAgent:
    """
    Renders the catalog listing in the shared browser and parses it into CatalogRecords.
    """

    def __init__(
        self,
        browser,
        logger,
        page_url: str = CATALOG_PAGE_URL,
        navigation_timeout: float = NAVIGATION_TIMEOUT,
        selector_timeout: float = SELECTOR_TIMEOUT,
        entry_selector: str = ENTRY_SELECTOR,
    ):
        """
        Initializes the ExtractAgent.

        Args:
            browser: A started BrowserSession (anything with an async `new_page()` context manager).
            logger: The run logger.
            page_url (str): Listing page used when `extract()` is called without a URL.
            navigation_timeout (float): Seconds allowed for the page to reach network idle.
            selector_timeout (float): Seconds allowed for the first entry to appear.
            entry_selector (str): CSS selector of one catalog entry.
        """
        self.browser = browser
        self.logger = logger
        self.page_url = page_url
        self.navigation_timeout = navigation_timeout
        self.selector_timeout = selector_timeout
        self.entry_selector = entry_selector

    async def extract(self, url: str | None = None) -> List[CatalogRecord]:
        """
        Loads the listing page and returns its catalogs in page order.

        Raises:
            NavigationError: The page could not be reached.
            RenderTimeout: Navigation or the entry marker did not settle in time.
        """
        target = url or self.page_url
        async with self.browser.new_page() as page:
            await self._navigate(page, target)
            await self._wait_for_entries(page, target)
            html = await page.content()
            base_url = page.url or target
        records = parse_catalogs(html, base_url, self.entry_selector)
        self.logger.info("extract_done", url=target, count=len(records))
        return records

    async def _navigate(self, page, url: str) -> None:
        try:
            response = await page.goto(
                url,
                wait_until="networkidle",
                timeout=self.navigation_timeout * 1000,
            )
        except PlaywrightTimeoutError as e:
            raise RenderTimeout(
                f"Page did not load within {self.navigation_timeout:g}s: {url}",
                url=url, phase="navigation",
            ) from e
        except PlaywrightError as e:
            raise NavigationError(f"Could not reach {url}: {e}", url=url) from e
        if response is not None and response.status >= 400:
            raise NavigationError(
                f"Listing page answered {response.status}: {url}",
                url=url, status_code=response.status,
            )

    async def _wait_for_entries(self, page, url: str) -> None:
        try:
            await page.wait_for_selector(self.entry_selector, timeout=self.selector_timeout * 1000)
        except PlaywrightTimeoutError as e:
            raise RenderTimeout(
                f"No {self.entry_selector!r} entries within {self.selector_timeout:g}s: {url}",
                url=url, phase="selector",
            ) from e
        except PlaywrightError as e:
            raise NavigationError(f"Page failed while waiting for entries: {e}", url=url) from e
