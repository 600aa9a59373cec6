"""目录列表与元数据新鲜度：只为缺失或过期的条目排队刷新。"""

from datetime import timedelta

from app.packages.filebrowser.core.enums import PermissionEnum
from app.packages.filebrowser.core.timezone import utc_now
from app.packages.filebrowser.crud.file_metadata import file_metadata_crud
from app.packages.filebrowser.crud.path_registry import home_prefix, path_registry
from app.packages.filebrowser.services.file_service import file_service


def _cache(db, path, virtual, *, indexed_at, parent, size=3):
    file_metadata_crud.upsert(
        db,
        path=str(path),
        name=path.name,
        is_directory=path.is_dir(),
        size=size,
        modified_at=None,
        parent_path=str(parent),
        virtual_path=virtual,
        indexed_at=indexed_at,
    )


def test_listing_queues_only_missing_or_stale_entries(db_session_fixture, make_user, tmp_path):
    user = make_user("listing", permissions=[PermissionEnum.READ])
    home = tmp_path / user.username
    home.mkdir()
    path_registry.set_path(db_session_fixture, user.username, home_prefix(user.username), str(home))
    prefix = home_prefix(user.username)

    for name in ("fresh.txt", "stale.txt", "missing.txt"):
        (home / name).write_bytes(b"abc")
    (home / "docs").mkdir()
    now = utc_now()
    _cache(db_session_fixture, home / "fresh.txt", f"{prefix}/fresh.txt", indexed_at=now, parent=home)
    _cache(db_session_fixture, home / "docs", f"{prefix}/docs", indexed_at=now - timedelta(hours=1), parent=home)
    _cache(
        db_session_fixture,
        home / "stale.txt",
        f"{prefix}/stale.txt",
        indexed_at=now - timedelta(hours=25),
        parent=home,
    )

    queued = []
    result = file_service.list_directory(
        db_session_fixture,
        user,
        path="/",
        on_stale=lambda physical, virtual: queued.append((physical, virtual)),
    )

    assert {item["name"] for item in result["files"]} == {"docs", "fresh.txt", "missing.txt", "stale.txt"}
    assert sorted(queued) == [
        (str(home / "missing.txt"), f"{prefix}/missing.txt"),
        (str(home / "stale.txt"), f"{prefix}/stale.txt"),
    ]


def test_listing_without_callback_still_reports_cached_sizes(db_session_fixture, make_user, tmp_path):
    user = make_user("cached", permissions=[PermissionEnum.READ])
    home = tmp_path / user.username
    (home / "box").mkdir(parents=True)
    path_registry.set_path(db_session_fixture, user.username, home_prefix(user.username), str(home))
    _cache(
        db_session_fixture,
        home / "box",
        f"{home_prefix(user.username)}/box",
        indexed_at=utc_now() - timedelta(days=3),
        parent=home,
        size=42,
    )

    result = file_service.list_directory(db_session_fixture, user, path="/")

    (box,) = result["files"]
    assert box["type"] == "folder"
    assert box["size"] == 42
