"""
Scholarfolio API - FastAPI backend for tenant portfolio sites and sync operations
"""

from dotenv import find_dotenv, load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routes import site, sync_admin
from .site_context import install_site_middleware
from .state import get_resolver, get_scheduler, get_settings
from scholarfolio.utils.logging_config import LogFiles, Logger

# Load local .env so database and catalog settings are available in API mode.
load_dotenv(find_dotenv(usecwd=True), override=False)

app = FastAPI(
    title="Scholarfolio API",
    description="API for researcher portfolio sites and catalog sync",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_site_middleware(app, get_resolver)


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "version": "0.1.0"}


app.include_router(site.router, prefix="/api", tags=["Site"])
app.include_router(sync_admin.router, prefix="/api", tags=["Sync Admin"])


@app.on_event("startup")
async def _startup_scheduler():
    settings = get_settings()
    if not settings.enabled:
        Logger.info("Background sync disabled (SCHOLARFOLIO_SYNC_ENABLED not set)", file=LogFiles.API)
        return
    get_scheduler().start(settings.interval_hours)


@app.on_event("shutdown")
async def _shutdown_scheduler():
    settings = get_settings()
    if not settings.enabled:
        return
    scheduler = get_scheduler()
    scheduler.stop()
    await scheduler.client.close()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
