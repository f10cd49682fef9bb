"""
Catalog Agent (catalog-agent)

Harvests the published catalogs of a client-side rendered listing page:
renders the page in headless Chromium, extracts title / PDF link / validity
window per catalog, downloads every PDF concurrently, and writes a JSON
metadata snapshot of the run.

Pipeline: extract → fetch → store, driven by `agents.coordinator.CoordinatorAgent`.
"""
__all__ = ["agents"]
__version__ = "0.1.0"
