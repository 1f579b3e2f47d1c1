"""CRUD operations for projects, images and persons in DuckDB.

Every write returns a ``WriteResult`` instead of raising, so the pipeline can
decide per image or per person what a failed write means.
"""

import json
import logging

import duckdb

from helmet_check.models import (
    Person,
    Project,
    ProjectImage,
    ProjectSettings,
    ProjectStatus,
    WriteResult,
)

logger = logging.getLogger(__name__)

_PROJECT_COLUMNS = "id, name, settings, status, created_at"
_IMAGE_COLUMNS = (
    "id, project_id, initial_image_date, initial_image_location, "
    "file_name, thumb_file_name, created_at"
)
_PERSON_COLUMNS = (
    "id, image_id, person_id, person_confidence, helmet_confidence, "
    "has_helmet, person_box, helmet_box, created_at"
)


def create_project(
    conn: duckdb.DuckDBPyConnection, name: str, settings: ProjectSettings
) -> WriteResult[Project]:
    """Insert a project in ``pending`` status."""
    try:
        row = conn.execute(
            f"""
            INSERT INTO projects (name, settings, status)
            VALUES (?, ?, ?)
            RETURNING {_PROJECT_COLUMNS}
            """,
            [name, json.dumps(settings.to_dict()), ProjectStatus.PENDING.value],
        ).fetchone()
    except duckdb.Error as exc:
        logger.error("Failed to create project %s: %s", name, exc)
        return WriteResult.failure(str(exc))
    return WriteResult.success(_row_to_project(row))


def update_project_status(
    conn: duckdb.DuckDBPyConnection, project_id: int, status: ProjectStatus
) -> WriteResult[ProjectStatus]:
    """Set the status of an existing project."""
    if get_project(conn, project_id) is None:
        return WriteResult.failure(f"Project {project_id} not found")
    try:
        # No RETURNING: DuckDB rejects it while images still reference the row
        conn.execute(
            "UPDATE projects SET status = ? WHERE id = ?", [status.value, project_id]
        )
    except duckdb.Error as exc:
        logger.error("Failed to update status of project %d: %s", project_id, exc)
        return WriteResult.failure(str(exc))
    return WriteResult.success(status)


def create_image(
    conn: duckdb.DuckDBPyConnection,
    project_id: int,
    capture_date: float | None,
    location: str | None,
    file_name: str,
    thumb_file_name: str,
) -> WriteResult[ProjectImage]:
    """Insert an image record for a stored image/thumbnail pair."""
    try:
        row = conn.execute(
            f"""
            INSERT INTO images (
                project_id, initial_image_date, initial_image_location,
                file_name, thumb_file_name
            ) VALUES (?, ?, ?, ?, ?)
            RETURNING {_IMAGE_COLUMNS}
            """,
            [project_id, capture_date, location, file_name, thumb_file_name],
        ).fetchone()
    except duckdb.Error as exc:
        logger.error("Failed to create image %s: %s", file_name, exc)
        return WriteResult.failure(str(exc))
    return WriteResult.success(_row_to_image(row))


def create_person(
    conn: duckdb.DuckDBPyConnection,
    image_id: int,
    person_id: int,
    person_confidence: float,
    helmet_confidence: float,
    has_helmet: bool,
    person_box: list[float],
    helmet_box: list[float] | None,
) -> WriteResult[Person]:
    """Insert a detected person. A person without a helmet never keeps a helmet box."""
    if not has_helmet:
        helmet_box = None
    person_box = [float(v) for v in person_box]
    if helmet_box is not None:
        helmet_box = [float(v) for v in helmet_box]
    try:
        row = conn.execute(
            f"""
            INSERT INTO persons (
                image_id, person_id, person_confidence, helmet_confidence,
                has_helmet, person_box, helmet_box
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            RETURNING {_PERSON_COLUMNS}
            """,
            [
                image_id,
                person_id,
                person_confidence,
                helmet_confidence,
                has_helmet,
                person_box,
                helmet_box,
            ],
        ).fetchone()
    except duckdb.Error as exc:
        logger.error("Failed to create person %d for image %d: %s", person_id, image_id, exc)
        return WriteResult.failure(str(exc))
    return WriteResult.success(_row_to_person(row))


def delete_project(
    conn: duckdb.DuckDBPyConnection, project_id: int
) -> WriteResult[list[ProjectImage]]:
    """Delete a project together with its images and their persons.

    Returns the deleted images so the caller can remove the stored files.
    """
    if get_project(conn, project_id) is None:
        return WriteResult.failure(f"Project {project_id} not found")

    images = get_images_for_project(conn, project_id)
    try:
        # Children first: DuckDB foreign keys do not cascade
        conn.execute(
            "DELETE FROM persons WHERE image_id IN (SELECT id FROM images WHERE project_id = ?)",
            [project_id],
        )
        conn.execute("DELETE FROM images WHERE project_id = ?", [project_id])
        conn.execute("DELETE FROM projects WHERE id = ?", [project_id])
    except duckdb.Error as exc:
        logger.error("Failed to delete project %d: %s", project_id, exc)
        return WriteResult.failure(str(exc))
    return WriteResult.success(images)


def list_projects(conn: duckdb.DuckDBPyConnection) -> list[Project]:
    """List all projects, newest first."""
    rows = conn.execute(
        f"SELECT {_PROJECT_COLUMNS} FROM projects ORDER BY created_at DESC, id DESC"
    ).fetchall()
    return [_row_to_project(row) for row in rows]


def get_project(conn: duckdb.DuckDBPyConnection, project_id: int) -> Project | None:
    """Look up a single project by ID."""
    row = conn.execute(
        f"SELECT {_PROJECT_COLUMNS} FROM projects WHERE id = ?", [project_id]
    ).fetchone()
    if row is None:
        return None
    return _row_to_project(row)


def project_name_exists(conn: duckdb.DuckDBPyConnection, name: str) -> bool:
    row = conn.execute("SELECT 1 FROM projects WHERE name = ?", [name]).fetchone()
    return row is not None


def get_images_for_project(
    conn: duckdb.DuckDBPyConnection, project_id: int
) -> list[ProjectImage]:
    """Return all images of a project in upload order."""
    rows = conn.execute(
        f"SELECT {_IMAGE_COLUMNS} FROM images WHERE project_id = ? ORDER BY id",
        [project_id],
    ).fetchall()
    return [_row_to_image(row) for row in rows]


def get_persons_for_image(conn: duckdb.DuckDBPyConnection, image_id: int) -> list[Person]:
    """Return all persons detected in an image, ordered by detector index."""
    rows = conn.execute(
        f"SELECT {_PERSON_COLUMNS} FROM persons WHERE image_id = ? ORDER BY person_id, id",
        [image_id],
    ).fetchall()
    return [_row_to_person(row) for row in rows]


def _row_to_project(row: tuple) -> Project:
    """Convert a DB row to a Project. Column order matches _PROJECT_COLUMNS."""
    return Project(
        id=row[0],
        name=row[1],
        settings=ProjectSettings.from_dict(json.loads(row[2])),
        status=ProjectStatus(row[3]),
        created_at=row[4],
    )


def _row_to_image(row: tuple) -> ProjectImage:
    return ProjectImage(
        id=row[0],
        project_id=row[1],
        capture_date=row[2],
        location=row[3],
        file_name=row[4],
        thumb_file_name=row[5],
        created_at=row[6],
    )


def _row_to_person(row: tuple) -> Person:
    return Person(
        id=row[0],
        image_id=row[1],
        person_id=row[2],
        person_confidence=row[3],
        helmet_confidence=row[4],
        has_helmet=row[5],
        person_box=list(row[6]),
        helmet_box=list(row[7]) if row[7] is not None else None,
        created_at=row[8],
    )
