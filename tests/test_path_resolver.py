"""路径解析：身份隔离、管理员跨用户访问与按需建目录。"""

import os

import pytest

from app.packages.filebrowser.core.config import get_settings
from app.packages.filebrowser.core.exceptions import AppException, ForbiddenError, NotFoundError
from app.packages.filebrowser.crud.path_registry import home_prefix, path_registry
from app.packages.filebrowser.crud.users import user_crud
from app.packages.filebrowser.services.path_resolver import path_resolver


@pytest.fixture()
def admin(db_session_fixture):
    return user_crud.get_by_username(db_session_fixture, get_settings().default_admin_username)


@pytest.fixture()
def homed_user(db_session_fixture, make_user, tmp_path):
    """创建一个带主目录映射的普通用户。"""
    def _make(prefix: str):
        user = make_user(prefix)
        home = tmp_path / user.username
        home.mkdir()
        path_registry.set_path(db_session_fixture, user.username, home_prefix(user.username), str(home))
        return user, home

    return _make


def test_user_root_resolves_to_home(db_session_fixture, homed_user):
    user, home = homed_user("root")
    resolved = path_resolver.resolve(db_session_fixture, user, "/")
    assert resolved.physical_path == str(home)
    assert resolved.owner == user.username
    assert not resolved.is_virtual_root


def test_admin_root_is_virtual(db_session_fixture, admin):
    for alias in ("/", "/all", "/all/"):
        resolved = path_resolver.resolve(db_session_fixture, admin, alias)
        assert resolved.is_virtual_root
        assert resolved.physical_path is None


def test_user_cannot_enter_other_user_namespace(db_session_fixture, homed_user):
    alice, _ = homed_user("alice")
    bob, _ = homed_user("bob")
    with pytest.raises(ForbiddenError):
        path_resolver.resolve(db_session_fixture, alice, f"/{bob.username}/secret.txt")


def test_admin_reads_other_user_namespace(db_session_fixture, admin, homed_user):
    """管理员按目标用户的映射解析，并创建目录形态的缺失路径。"""
    bob, home = homed_user("bob")
    resolved = path_resolver.resolve(db_session_fixture, admin, f"/{bob.username}/projects/")
    assert resolved.strategy == "cross-user"
    assert resolved.owner == bob.username
    assert resolved.physical_path == str(home / "projects")
    assert (home / "projects").is_dir()


def test_admin_unknown_segment_becomes_home_subdir(db_session_fixture, admin, unique_name):
    folder = unique_name("shared")
    resolved = path_resolver.resolve(db_session_fixture, admin, f"/{folder}/")
    expected = os.path.join(str(get_settings().admin_home_path), folder)
    assert resolved.strategy == "admin-subdir"
    assert resolved.physical_path == expected
    assert os.path.isdir(expected)
    # 与全量索引写入的虚拟路径一致
    assert resolved.virtual_path == f"/admin/{folder}"

    nested = path_resolver.resolve(db_session_fixture, admin, f"/{folder}/notes.txt")
    assert nested.virtual_path == f"/admin/{folder}/notes.txt"
    assert nested.physical_path == os.path.join(expected, "notes.txt")


def test_user_unknown_segment_is_not_found(db_session_fixture, homed_user, unique_name):
    user, _ = homed_user("lost")
    with pytest.raises(NotFoundError):
        path_resolver.resolve(db_session_fixture, user, f"/{unique_name('nobody')}/x")


def test_user_without_mapping_is_not_found(db_session_fixture, make_user):
    user = make_user("bare")
    with pytest.raises(NotFoundError):
        path_resolver.resolve(db_session_fixture, user, "/")


def test_file_shaped_path_creates_parent_only(db_session_fixture, homed_user):
    user, home = homed_user("shape")
    resolved = path_resolver.resolve(db_session_fixture, user, f"/{user.username}/music/song.mp3")
    assert resolved.physical_path == str(home / "music" / "song.mp3")
    assert (home / "music").is_dir()
    assert not (home / "music" / "song.mp3").exists()


def test_create_missing_false_leaves_filesystem_untouched(db_session_fixture, homed_user):
    user, home = homed_user("lazy")
    path_resolver.resolve(db_session_fixture, user, f"/{user.username}/later/", create_missing=False)
    assert not (home / "later").exists()


def test_native_path_passthrough(db_session_fixture, homed_user):
    user, _ = homed_user("native")
    resolved = path_resolver.resolve(db_session_fixture, user, "D:\\Videos\\clip.mp4")
    assert resolved.strategy == "native"
    assert resolved.physical_path == "D:\\Videos\\clip.mp4"


def test_parent_traversal_is_rejected(db_session_fixture, homed_user):
    user, _ = homed_user("dots")
    with pytest.raises(AppException) as excinfo:
        path_resolver.resolve(db_session_fixture, user, f"/{user.username}/../etc/passwd")
    assert excinfo.value.status_code == 400
