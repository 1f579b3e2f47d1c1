"""Project management CLI: run detections on local photos and manage DuckDB records."""

import argparse


def main() -> None:
    """CLI entry point for project management."""
    import logging

    from helmet_check.config import LOG_FORMAT, LOG_LEVEL

    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)

    parser = argparse.ArgumentParser(description="HelmetCheck project manager")
    subparsers = parser.add_subparsers(dest="command")

    # init-db
    subparsers.add_parser("init-db", help="Initialize the database schema")

    # list
    subparsers.add_parser("list", help="List projects in DB")

    # show
    show_parser = subparsers.add_parser("show", help="Show images and people of a project")
    show_parser.add_argument("--project-id", type=int, required=True, help="Project ID")

    # delete
    del_parser = subparsers.add_parser(
        "delete", help="Delete a project with its images, people and stored files"
    )
    del_parser.add_argument("--project-id", type=int, required=True, help="Project ID")

    # detect
    det_parser = subparsers.add_parser("detect", help="Create a project from local photos")
    det_parser.add_argument("paths", nargs="+", type=str, help="Photo files to analyze")
    det_parser.add_argument("--tag", help="Project tag (default: API)")
    det_parser.add_argument(
        "--confidence", type=float, help="Helmet confidence threshold 0.05-1 (default: 0.8)"
    )
    det_parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Images processed at the same time (default: DETECTION_CONCURRENCY)",
    )

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        return

    if args.command == "init-db":
        from helmet_check.db import get_connection

        conn = get_connection()
        conn.close()
        print("Database initialized successfully.")

    elif args.command == "list":
        from helmet_check.db import get_connection
        from helmet_check.manager.repository import list_projects

        conn = get_connection()
        projects = list_projects(conn)
        conn.close()
        for project in projects:
            print(f"  {project.id:>5}  {project.status.value:<10} {project.name}")

    elif args.command == "show":
        _cmd_show(args)

    elif args.command == "delete":
        _cmd_delete(args)

    elif args.command == "detect":
        _cmd_detect(args)


def _cmd_show(args: argparse.Namespace) -> None:
    """Print the images of a project and the people found in each."""
    from helmet_check.db import get_connection
    from helmet_check.manager.repository import (
        get_images_for_project,
        get_persons_for_image,
        get_project,
    )

    conn = get_connection()
    project = get_project(conn, args.project_id)
    if project is None:
        print(f"Error: project {args.project_id} not found")
        conn.close()
        return

    print(f"{project.name} [{project.status.value}]")
    for img in get_images_for_project(conn, project.id):
        people = get_persons_for_image(conn, img.id)
        with_helmet = sum(1 for p in people if p.has_helmet)
        print(f"  {img.file_name}: {len(people)} people, {with_helmet} with helmet")
    conn.close()


def _cmd_delete(args: argparse.Namespace) -> None:
    """Delete a project and its stored files."""
    from helmet_check.config import IMAGES_DIR
    from helmet_check.db import get_connection
    from helmet_check.manager.repository import delete_project
    from helmet_check.manager.storage import remove_image_files

    conn = get_connection()
    result = delete_project(conn, args.project_id)
    conn.close()
    if not result.ok:
        print(f"Error: {result.error}")
        return
    removed = remove_image_files(IMAGES_DIR, result.value)
    print(f"Deleted project {args.project_id}: {len(result.value)} images, {removed} files.")


def _cmd_detect(args: argparse.Namespace) -> None:
    """Run the detection pipeline on local photo files."""
    import asyncio
    from pathlib import Path

    import httpx
    from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn

    from helmet_check.config import (
        DEFAULT_API_SETTINGS,
        DETECTION_CONCURRENCY,
        DETECTION_TIMEOUT,
        IMAGES_DIR,
    )
    from helmet_check.db import get_connection
    from helmet_check.detection.gemini_client import GeminiDetector
    from helmet_check.manager.prepare import load_local_image
    from helmet_check.pipeline import NoImagesError, ProjectCreationError, process_batch
    from helmet_check.settings import sanitize_settings

    overrides = {"projectTag": args.tag, "confidence": args.confidence}
    settings = sanitize_settings(
        {k: v for k, v in overrides.items() if v is not None}, DEFAULT_API_SETTINGS
    )

    paths = [Path(p) for p in args.paths]
    missing = [p for p in paths if not p.is_file()]
    if missing:
        print(f"Error: file not found: {', '.join(str(p) for p in missing)}")
        return
    images = [load_local_image(p, settings) for p in paths]

    async def run(conn):
        async with httpx.AsyncClient(timeout=DETECTION_TIMEOUT) as http_client:
            detector = GeminiDetector(http_client=http_client)
            with Progress(
                SpinnerColumn(),
                TextColumn("[bold blue]{task.description}"),
                BarColumn(),
                TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
                TextColumn("{task.completed}/{task.total}"),
            ) as progress:
                task = progress.add_task("Detecting helmets", total=len(images))
                return await process_batch(
                    conn,
                    detector,
                    settings,
                    images,
                    IMAGES_DIR,
                    concurrency=args.concurrency or DETECTION_CONCURRENCY,
                    on_image_done=lambda _result: progress.advance(task),
                )

    conn = get_connection()
    try:
        batch = asyncio.run(run(conn))
    except (ValueError, NoImagesError, ProjectCreationError) as exc:
        print(f"Error: {exc}")
        return
    finally:
        conn.close()

    print(f"\nProject {batch.project.name} (id {batch.project.id}) [{batch.project.status.value}]")
    for res in batch.results:
        if res.success:
            with_helmet = sum(1 for p in res.people if p.has_helmet)
            print(f"  [{res.index}] {len(res.people)} people, {with_helmet} with helmet")
        else:
            print(f"  [{res.index}] failed: {res.error}")
    print(f"  Images processed: {batch.successful_images}/{len(batch.results)}")
    print(f"  People detected: {batch.total_people_detected}")
