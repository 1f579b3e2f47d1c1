"""Tests for project, image and person CRUD operations."""

from helmet_check.manager.repository import (
    create_image,
    create_person,
    create_project,
    delete_project,
    get_images_for_project,
    get_persons_for_image,
    get_project,
    list_projects,
    project_name_exists,
    update_project_status,
)
from helmet_check.models import ProjectStatus
from helmet_check.settings import sanitize_settings


def _make_project(db_conn, settings, name="241214-153045-API"):
    result = create_project(db_conn, name, settings)
    assert result.ok
    return result.value


def _make_image(db_conn, project_id, index=0):
    result = create_image(
        db_conn, project_id, 1700000000000.0, "Block A", f"p-{index}.webp", f"p-{index}_thumb.webp"
    )
    assert result.ok
    return result.value


def test_create_and_get_project_round_trips_settings(db_conn, settings):
    sanitized = sanitize_settings('{"projectTag": "Gate 4", "confidence": 0.65}', settings)
    project = _make_project(db_conn, sanitized)
    assert project.id is not None
    assert project.status == ProjectStatus.PENDING

    fetched = get_project(db_conn, project.id)
    assert fetched is not None
    assert fetched.name == "241214-153045-API"
    assert fetched.settings == sanitized
    assert fetched.created_at is not None


def test_duplicate_project_name_is_a_failed_write(db_conn, settings):
    _make_project(db_conn, settings)
    result = create_project(db_conn, "241214-153045-API", settings)
    assert not result.ok
    assert result.value is None
    assert result.error


def test_project_name_exists(db_conn, settings):
    assert not project_name_exists(db_conn, "241214-153045-API")
    _make_project(db_conn, settings)
    assert project_name_exists(db_conn, "241214-153045-API")


def test_update_project_status(db_conn, settings):
    project = _make_project(db_conn, settings)
    assert update_project_status(db_conn, project.id, ProjectStatus.READY).ok
    assert get_project(db_conn, project.id).status == ProjectStatus.READY
    assert not update_project_status(db_conn, 999, ProjectStatus.READY).ok


def test_update_status_of_project_with_images(db_conn, settings):
    project = _make_project(db_conn, settings)
    _make_image(db_conn, project.id, 0)
    _make_image(db_conn, project.id, 1)

    result = update_project_status(db_conn, project.id, ProjectStatus.NO_PEOPLE)

    assert result.ok
    assert result.value == ProjectStatus.NO_PEOPLE
    assert get_project(db_conn, project.id).status == ProjectStatus.NO_PEOPLE
    assert len(get_images_for_project(db_conn, project.id)) == 2


def test_create_image(db_conn, settings):
    project = _make_project(db_conn, settings)
    image = _make_image(db_conn, project.id)
    assert image.project_id == project.id
    assert image.capture_date == 1700000000000.0
    assert image.location == "Block A"
    assert get_images_for_project(db_conn, project.id) == [image]


def test_create_image_for_unknown_project_fails(db_conn):
    result = create_image(db_conn, 42, None, None, "x.webp", "x_thumb.webp")
    assert not result.ok


def test_create_person(db_conn, settings):
    project = _make_project(db_conn, settings)
    image = _make_image(db_conn, project.id)
    result = create_person(
        db_conn, image.id, 0, 0.95, 0.9, True, [1.0, 2.0, 3.0, 4.0], [1.0, 2.0, 1.5, 2.5]
    )
    assert result.ok
    person = result.value
    assert person.image_id == image.id
    assert person.person_box == [1.0, 2.0, 3.0, 4.0]
    assert person.helmet_box == [1.0, 2.0, 1.5, 2.5]
    assert get_persons_for_image(db_conn, image.id) == [person]


def test_person_without_helmet_never_stores_helmet_box(db_conn, settings):
    project = _make_project(db_conn, settings)
    image = _make_image(db_conn, project.id)
    result = create_person(db_conn, image.id, 0, 0.9, 0.2, False, [1, 2, 3, 4], [5, 6, 7, 8])
    assert result.ok
    assert result.value.helmet_box is None


def test_create_person_for_unknown_image_fails(db_conn):
    result = create_person(db_conn, 42, 0, 0.9, 0.9, True, [1, 2, 3, 4], None)
    assert not result.ok


def test_list_projects_newest_first(db_conn, settings):
    first = _make_project(db_conn, settings, name="a")
    second = _make_project(db_conn, settings, name="b")
    ids = [p.id for p in list_projects(db_conn)]
    assert ids.index(second.id) < ids.index(first.id)


def test_delete_project_cascades(db_conn, settings):
    project = _make_project(db_conn, settings)
    other = _make_project(db_conn, settings, name="other")
    images = [_make_image(db_conn, project.id, i) for i in range(2)]
    kept = _make_image(db_conn, other.id, 9)
    for img in images + [kept]:
        create_person(db_conn, img.id, 0, 0.9, 0.9, True, [1, 2, 3, 4], [1, 2, 3, 4])

    result = delete_project(db_conn, project.id)
    assert result.ok
    assert [img.id for img in result.value] == [img.id for img in images]

    assert get_project(db_conn, project.id) is None
    assert get_images_for_project(db_conn, project.id) == []
    for img in images:
        assert get_persons_for_image(db_conn, img.id) == []
    assert len(get_persons_for_image(db_conn, kept.id)) == 1


def test_delete_missing_project_fails(db_conn):
    result = delete_project(db_conn, 123)
    assert not result.ok
