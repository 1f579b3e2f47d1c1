"""FastAPI application exposing the detection pipeline and project records."""

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path

import duckdb
import httpx
from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse

from helmet_check.api.intake import extract_images
from helmet_check.config import (
    DEFAULT_API_SETTINGS,
    DETECTION_CONCURRENCY,
    DETECTION_TIMEOUT,
    IMAGES_DIR,
)
from helmet_check.manager.repository import (
    delete_project,
    get_images_for_project,
    get_persons_for_image,
    get_project,
    list_projects,
)
from helmet_check.manager.storage import remove_image_files
from helmet_check.pipeline import Detector, NoImagesError, ProjectCreationError, process_batch
from helmet_check.settings import sanitize_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def create_app(
    conn: duckdb.DuckDBPyConnection | None = None,
    detector: Detector | None = None,
    images_dir: Path | None = None,
    concurrency: int = DETECTION_CONCURRENCY,
) -> FastAPI:
    """Build the application.

    Collaborators that are not passed in are created on startup and closed on
    shutdown: the DuckDB connection, and a Gemini detector with its own HTTP
    client.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned_conn = None
        owned_http = None
        if app.state.conn is None:
            from helmet_check.db import get_connection

            owned_conn = app.state.conn = get_connection()
        if app.state.detector is None:
            from helmet_check.detection.gemini_client import GeminiDetector

            owned_http = httpx.AsyncClient(timeout=DETECTION_TIMEOUT)
            app.state.detector = GeminiDetector(http_client=owned_http)
        try:
            yield
        finally:
            if owned_http is not None:
                await owned_http.aclose()
            if owned_conn is not None:
                owned_conn.close()

    app = FastAPI(title="HelmetCheck API", lifespan=lifespan)
    app.state.conn = conn
    app.state.detector = detector
    app.state.images_dir = images_dir or IMAGES_DIR
    app.state.concurrency = concurrency
    app.include_router(router)
    return app


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


@router.post("/detect")
async def detect(request: Request):
    """Create a project from uploaded images and detect helmets in each one."""
    state = request.app.state
    logger.info("Request received, processing...")
    try:
        form = await request.form()
    except Exception:
        logger.exception("Failed to parse multipart request")
        return _error("Failed to parse request", 400)

    try:
        settings = sanitize_settings(form.get("settings"), DEFAULT_API_SETTINGS)
        images = await extract_images(form)
        batch = await process_batch(
            state.conn,
            state.detector,
            settings,
            images,
            state.images_dir,
            concurrency=state.concurrency,
        )
    except NoImagesError:
        return _error("No images provided", 400)
    except ProjectCreationError:
        return _error("Failed to create project", 500)
    except Exception:
        logger.exception("Request processing failed")
        return _error("Failed to process request", 500)
    finally:
        await form.close()

    return batch.to_dict()


@router.get("/projects")
async def get_projects(request: Request):
    projects = list_projects(request.app.state.conn)
    return {"projects": [p.to_dict() for p in projects]}


@router.get("/projects/{project_id}")
async def get_project_detail(project_id: int, request: Request):
    """Return a project with its images and the people found in each image."""
    conn = request.app.state.conn
    project = get_project(conn, project_id)
    if project is None:
        return _error("Project not found", 404)

    images = []
    for img in get_images_for_project(conn, project_id):
        people = get_persons_for_image(conn, img.id)
        images.append({**img.to_dict(), "people": [p.to_dict() for p in people]})
    return {"project": project.to_dict(), "images": images}


@router.delete("/projects/{project_id}")
async def remove_project(project_id: int, request: Request):
    """Delete a project, its images and persons, and the stored files."""
    state = request.app.state
    if get_project(state.conn, project_id) is None:
        return _error("Project not found", 404)

    deleted = delete_project(state.conn, project_id)
    if not deleted.ok:
        return _error("Failed to delete project", 500)

    removed = await asyncio.to_thread(remove_image_files, state.images_dir, deleted.value)
    logger.info("Deleted project %d (%d stored files removed)", project_id, removed)
    return {"success": True, "projectId": project_id, "deletedImages": len(deleted.value)}
