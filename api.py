"""
api.py - HTTP surface for link validation and health stats.

The FastAPI lifespan owns the shared validator and the periodic sweep, so
on-demand requests and the background loop queue behind the same throttle.
"""

import logging
from contextlib import asynccontextmanager
from typing import List

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from config import Config
from link_health import LinkHealthMonitor
from link_manager import LinkManager
from link_processor import MetadataExtractor
from link_validator import get_default_validator
from schemas import BulkImport, HealthStatsRead, LinkCreate, LinkRead, ValidationSummary

logger = logging.getLogger(__name__)

config = Config()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    # Startup
    validator = get_default_validator()
    app.state.monitor = LinkHealthMonitor(validator)
    app.state.manager = LinkManager(MetadataExtractor(validator))

    periodic = None
    if config.ENABLE_PERIODIC_VALIDATION:
        periodic = app.state.monitor.start_periodic_validation(config.VALIDATION_INTERVAL)
    yield
    # Shutdown
    if periodic is not None:
        periodic.stop()
        await periodic.wait()


def get_monitor(request: Request) -> LinkHealthMonitor:
    return request.app.state.monitor


def get_manager(request: Request) -> LinkManager:
    return request.app.state.manager


router = APIRouter(prefix="/api")


@router.post("/lists/{list_id}/validate", response_model=ValidationSummary, tags=["validation"])
async def validate_list(list_id: str, monitor: LinkHealthMonitor = Depends(get_monitor)):
    """Validates every link in a list now and returns the counts."""
    if not list_id.strip():
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "List ID is required"})

    try:
        return await monitor.validate_collection(list_id)
    except Exception:
        logger.exception("Error validating links for list %s", list_id)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to validate links"},
        )


@router.get("/lists/{list_id}/health", response_model=HealthStatsRead, tags=["validation"])
async def list_health(list_id: str, monitor: LinkHealthMonitor = Depends(get_monitor)):
    stats = await monitor.health_stats(list_id)
    return HealthStatsRead(**stats.to_dict())


@router.get("/health", response_model=HealthStatsRead, tags=["validation"])
async def overall_health(monitor: LinkHealthMonitor = Depends(get_monitor)):
    stats = await monitor.health_stats()
    return HealthStatsRead(**stats.to_dict())


@router.post(
    "/lists/{list_id}/links",
    response_model=LinkRead,
    status_code=status.HTTP_201_CREATED,
    tags=["links"],
)
async def add_link(list_id: str, payload: LinkCreate, manager: LinkManager = Depends(get_manager)):
    link = await manager.add_link(list_id, payload.url.strip())
    return LinkRead.model_validate(link)


@router.post("/lists/{list_id}/import", response_model=List[LinkRead], tags=["links"])
async def bulk_import(list_id: str, payload: BulkImport, manager: LinkManager = Depends(get_manager)):
    links = await manager.bulk_import_urls(list_id, payload.urls)
    return [LinkRead.model_validate(link) for link in links]


@router.post("/links/{link_id}/refresh", response_model=LinkRead, tags=["links"])
async def refresh_link(link_id: str, manager: LinkManager = Depends(get_manager)):
    try:
        link = await manager.refresh_link_metadata(link_id)
    except LookupError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Link not found")
    return LinkRead.model_validate(link)


app = FastAPI(title=config.APP_NAME, lifespan=lifespan)
app.include_router(router)


@app.get("/health", tags=["system"])
async def healthcheck() -> dict:
    return {"status": "ok", "app": config.APP_NAME}
