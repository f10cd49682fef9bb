from __future__ import annotations
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from .agents.coordinator import CoordinatorAgent
from .config import Settings, load_settings
from .errors import NavigationError, PersistError, RenderTimeout
from .models import CatalogRecord
from .utils.browser import BrowserSession
from .utils.logging import RunLogger

from dotenv import load_dotenv
ROOT_DIR = Path(__file__).resolve().parents[1]
load_dotenv(dotenv_path=ROOT_DIR / ".env", override=False)

DONE_MESSAGE = "Parsing is complete. Check the data folder for the results."


@asynccontextmanager
async def lifespan(app: FastAPI):
    """One browser and one coordinator for the lifetime of the server."""
    settings: Settings = load_settings()
    logger = RunLogger(settings.data_root, debug=settings.debug)
    async with BrowserSession(headless=settings.headless, logger=logger) as browser:
        async with CoordinatorAgent(browser=browser, settings=settings, logger=logger) as coordinator:
            app.state.coordinator = coordinator
            yield
            app.state.coordinator = None


app = FastAPI(title="Catalog Agent API", version="0.1.0", lifespan=lifespan)

# ---------- helpers & models ----------

class CatalogOut(BaseModel):
    """One catalog as stored in the snapshot."""
    title: str
    link: str
    validFrom: str = ""
    validUntil: str = ""
    localPath: Optional[str] = None

    @classmethod
    def from_record(cls, r: CatalogRecord) -> "CatalogOut":
        return cls(**r.to_dict())


class SummaryOut(BaseModel):
    """Counts of one harvest run."""
    found: int = Field(..., ge=0)
    downloaded: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    snapshot: str


class HarvestResponse(BaseModel):
    """Body returned by POST /harvest."""
    ok: bool = True
    summary: SummaryOut
    catalogs: List[CatalogOut]


def get_coordinator(request: Request) -> CoordinatorAgent:
    """Returns the coordinator created at startup."""
    coordinator = getattr(request.app.state, "coordinator", None)
    if coordinator is None:
        raise HTTPException(503, "Harvester not started.")
    return coordinator


async def _harvest(coordinator: CoordinatorAgent):
    """Runs one harvest, mapping fatal errors onto HTTP statuses."""
    try:
        return await coordinator.run_with_summary()
    except NavigationError as e:
        raise HTTPException(502, f"Catalog page unreachable: {e}")
    except RenderTimeout as e:
        raise HTTPException(504, f"Catalog page did not render in time: {e}")
    except PersistError as e:
        raise HTTPException(500, f"Downloads finished but metadata was not saved: {e}")

# ---------- routes ----------

@app.get("/", include_in_schema=False)
def root():
    """Root endpoint."""
    return {"service": "catalog-agent-api", "docs": "/docs", "health": "/health"}


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok", "time": datetime.now(timezone.utc).isoformat()}


@app.get("/parser", response_class=PlainTextResponse)
async def parse_catalogs(coordinator: CoordinatorAgent = Depends(get_coordinator)):
    """Runs a harvest and answers with a plain completion message."""
    await _harvest(coordinator)
    return DONE_MESSAGE


@app.post("/harvest", response_model=HarvestResponse)
async def harvest(coordinator: CoordinatorAgent = Depends(get_coordinator)):
    """Runs a harvest and returns its catalogs and counts."""
    records, summary = await _harvest(coordinator)
    return HarvestResponse(
        summary=SummaryOut(**summary.to_dict()),
        catalogs=[CatalogOut.from_record(r) for r in records],
    )


@app.get("/catalogs", response_model=List[CatalogOut])
def get_catalogs(coordinator: CoordinatorAgent = Depends(get_coordinator)):
    """Returns the snapshot of the last harvest run."""
    try:
        records = coordinator.storage.load()
    except ValueError as e:
        raise HTTPException(500, f"Snapshot is not valid JSON: {e}")
    return [CatalogOut.from_record(r) for r in records]
