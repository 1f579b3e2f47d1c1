"""DuckDB schema definition."""

import duckdb


def ensure_schema(conn: duckdb.DuckDBPyConnection) -> None:
    """Create tables and indexes if they do not exist."""
    conn.execute("CREATE SEQUENCE IF NOT EXISTS projects_id_seq START 1")
    conn.execute("CREATE SEQUENCE IF NOT EXISTS images_id_seq START 1")
    conn.execute("CREATE SEQUENCE IF NOT EXISTS persons_id_seq START 1")

    conn.execute("""
        CREATE TABLE IF NOT EXISTS projects (
            id          INTEGER PRIMARY KEY DEFAULT nextval('projects_id_seq'),
            name        VARCHAR NOT NULL UNIQUE,
            settings    VARCHAR NOT NULL,
            status      VARCHAR NOT NULL DEFAULT 'pending',
            created_at  TIMESTAMP DEFAULT current_timestamp
        )
    """)

    # images table (N:1 with projects)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS images (
            id                     INTEGER PRIMARY KEY DEFAULT nextval('images_id_seq'),
            project_id             INTEGER NOT NULL,
            initial_image_date     DOUBLE,
            initial_image_location VARCHAR,
            file_name              VARCHAR NOT NULL,
            thumb_file_name        VARCHAR NOT NULL,
            created_at             TIMESTAMP DEFAULT current_timestamp,
            FOREIGN KEY (project_id) REFERENCES projects(id)
        )
    """)
    conn.execute("CREATE INDEX IF NOT EXISTS idx_images_project_id ON images(project_id)")

    # persons table (N:1 with images); person_id is only unique within an image
    conn.execute("""
        CREATE TABLE IF NOT EXISTS persons (
            id                 INTEGER PRIMARY KEY DEFAULT nextval('persons_id_seq'),
            image_id           INTEGER NOT NULL,
            person_id          INTEGER NOT NULL,
            person_confidence  DOUBLE NOT NULL,
            helmet_confidence  DOUBLE NOT NULL,
            has_helmet         BOOLEAN NOT NULL,
            person_box         DOUBLE[] NOT NULL,
            helmet_box         DOUBLE[],
            created_at         TIMESTAMP DEFAULT current_timestamp,
            FOREIGN KEY (image_id) REFERENCES images(id)
        )
    """)
    conn.execute("CREATE INDEX IF NOT EXISTS idx_persons_image_id ON persons(image_id)")
