"""元数据缓存与索引器：目录大小聚合、增量回填、局部失败与新鲜度判定。"""

import os
from datetime import datetime, timedelta, timezone

from app.packages.filebrowser.crud.file_metadata import file_metadata_crud
from app.packages.filebrowser.crud.path_registry import home_prefix, path_registry
from app.packages.filebrowser.models.file_metadata import FileMetadata
from app.packages.filebrowser.services.indexer import FileIndexer

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _fixed_clock() -> datetime:
    return FIXED_NOW


def _build_tree(root) -> None:
    """root/a.txt (5B) + root/sub/b.txt (7B)。"""
    (root / "sub").mkdir(parents=True)
    (root / "a.txt").write_bytes(b"12345")
    (root / "sub" / "b.txt").write_bytes(b"1234567")


def _size(db, path) -> int:
    db.expire_all()
    return file_metadata_crud.get_by_path(db, str(path)).size


def test_index_directory_aggregates_child_sizes(db_session_fixture, tmp_path):
    root = tmp_path / "tree"
    _build_tree(root)
    indexer = FileIndexer(clock=_fixed_clock)

    total = indexer.index_file_or_directory(db_session_fixture, str(root), "/demo")

    assert total == 12
    assert _size(db_session_fixture, root) == 12
    assert _size(db_session_fixture, root / "sub") == 7
    sub = file_metadata_crud.get_by_path(db_session_fixture, str(root / "sub"))
    assert sub.is_directory
    assert sub.parent_path == str(root)
    assert sub.virtual_path == "/demo/sub"
    leaf = file_metadata_crud.get_by_path(db_session_fixture, str(root / "sub" / "b.txt"))
    assert leaf.parent_path == str(root / "sub")
    assert file_metadata_crud.get_by_path(db_session_fixture, str(root)).parent_path is None


def test_reindex_is_idempotent(db_session_fixture, tmp_path):
    root = tmp_path / "again"
    _build_tree(root)
    indexer = FileIndexer(clock=_fixed_clock)

    first = indexer.index_file_or_directory(db_session_fixture, str(root), "/demo")
    second = indexer.index_file_or_directory(db_session_fixture, str(root), "/demo")

    assert first == second == 12
    rows = db_session_fixture.query(FileMetadata).filter(FileMetadata.path.startswith(str(root))).count()
    assert rows == 4


def test_update_propagates_to_ancestors(db_session_fixture, tmp_path):
    """新增文件后增量更新，祖先目录大小按缓存中的子项重新求和。"""
    root = tmp_path / "grow"
    _build_tree(root)
    indexer = FileIndexer(clock=_fixed_clock)
    indexer.index_file_or_directory(db_session_fixture, str(root), "/demo")

    new_file = root / "sub" / "c.bin"
    new_file.write_bytes(b"x" * 10)
    indexer.update_file_metadata(db_session_fixture, str(new_file), "/demo/sub/c.bin")

    assert _size(db_session_fixture, root / "sub") == 17
    assert _size(db_session_fixture, root) == 22


def test_delete_removes_subtree_and_shrinks_ancestors(db_session_fixture, tmp_path):
    root = tmp_path / "shrink"
    _build_tree(root)
    indexer = FileIndexer(clock=_fixed_clock)
    indexer.index_file_or_directory(db_session_fixture, str(root), "/demo")

    removed = indexer.delete_file_metadata(db_session_fixture, str(root / "sub"))

    assert removed == 2
    assert file_metadata_crud.get_by_path(db_session_fixture, str(root / "sub")) is None
    assert file_metadata_crud.get_by_path(db_session_fixture, str(root / "sub" / "b.txt")) is None
    assert _size(db_session_fixture, root) == 5


def test_delete_subtree_keeps_sibling_with_shared_prefix(db_session_fixture, tmp_path):
    """删除 ``sub`` 不会波及名字以 ``sub`` 开头的兄弟目录 ``subway``。"""
    root = tmp_path / "siblings"
    _build_tree(root)
    (root / "subway").mkdir()
    (root / "subway" / "t.txt").write_bytes(b"abc")
    FileIndexer(clock=_fixed_clock).index_file_or_directory(db_session_fixture, str(root), "/demo")

    file_metadata_crud.delete_subtree(db_session_fixture, str(root / "sub"))

    assert file_metadata_crud.get_by_path(db_session_fixture, str(root / "subway" / "t.txt")) is not None


def test_unreadable_entry_counts_as_zero(db_session_fixture, tmp_path):
    """单个条目读取失败不影响兄弟条目，失败条目不写入缓存。"""
    root = tmp_path / "partial"
    _build_tree(root)
    broken = str(root / "a.txt")

    def flaky_stat(path):
        if path == broken:
            raise PermissionError(13, "Permission denied", path)
        return os.stat(path)

    total = FileIndexer(clock=_fixed_clock, stat=flaky_stat).index_file_or_directory(
        db_session_fixture, str(root), "/demo"
    )

    assert total == 7
    assert file_metadata_crud.get_by_path(db_session_fixture, broken) is None
    assert _size(db_session_fixture, root) == 7


def test_unlistable_directory_is_recorded_empty(db_session_fixture, tmp_path):
    root = tmp_path / "nolist"
    _build_tree(root)
    blocked = str(root / "sub")

    def flaky_listdir(path):
        if path == blocked:
            raise PermissionError(13, "Permission denied", path)
        return os.listdir(path)

    total = FileIndexer(clock=_fixed_clock, listdir=flaky_listdir).index_file_or_directory(
        db_session_fixture, str(root), "/demo"
    )

    assert total == 5
    assert _size(db_session_fixture, root / "sub") == 0


def test_reindex_drops_entries_deleted_outside_api(db_session_fixture, tmp_path):
    """磁盘上已删除的条目在重新索引后不再参与父目录求和。"""
    root = tmp_path / "ghost"
    root.mkdir()
    (root / "a.txt").write_bytes(b"12345")
    (root / "b.txt").write_bytes(b"1234567")
    indexer = FileIndexer(clock=_fixed_clock)
    indexer.index_file_or_directory(db_session_fixture, str(root), "/demo")

    os.remove(root / "b.txt")
    assert indexer.index_file_or_directory(db_session_fixture, str(root), "/demo") == 5
    (root / "a.txt").write_bytes(b"123456")
    indexer.update_file_metadata(db_session_fixture, str(root / "a.txt"), "/demo/a.txt")

    db_session_fixture.expire_all()
    assert file_metadata_crud.get_by_path(db_session_fixture, str(root / "b.txt")) is None
    assert _size(db_session_fixture, root) == 6


def test_reindex_drops_removed_directory_subtree(db_session_fixture, tmp_path):
    root = tmp_path / "ghostdir"
    _build_tree(root)
    indexer = FileIndexer(clock=_fixed_clock)
    indexer.index_file_or_directory(db_session_fixture, str(root), "/demo")

    os.remove(root / "sub" / "b.txt")
    os.rmdir(root / "sub")
    indexer.index_file_or_directory(db_session_fixture, str(root), "/demo")

    db_session_fixture.expire_all()
    assert file_metadata_crud.get_by_path(db_session_fixture, str(root / "sub")) is None
    assert file_metadata_crud.get_by_path(db_session_fixture, str(root / "sub" / "b.txt")) is None
    assert _size(db_session_fixture, root) == 5


def test_update_on_vanished_path_forgets_it(db_session_fixture, tmp_path):
    root = tmp_path / "vanish"
    _build_tree(root)
    indexer = FileIndexer(clock=_fixed_clock)
    indexer.index_file_or_directory(db_session_fixture, str(root), "/demo")

    os.remove(root / "sub" / "b.txt")
    size = indexer.update_file_metadata(db_session_fixture, str(root / "sub" / "b.txt"), "/demo/sub/b.txt")

    assert size == 0
    db_session_fixture.expire_all()
    assert file_metadata_crud.get_by_path(db_session_fixture, str(root / "sub" / "b.txt")) is None
    assert _size(db_session_fixture, root / "sub") == 0
    assert _size(db_session_fixture, root) == 5


def test_staleness_window_boundary():
    indexer = FileIndexer(clock=_fixed_clock, stale_after=timedelta(hours=24))
    at_limit = FileMetadata(path="/x", name="x", last_indexed=FIXED_NOW - timedelta(hours=24))
    past_limit = FileMetadata(path="/y", name="y", last_indexed=FIXED_NOW - timedelta(hours=24, seconds=1))
    naive = FileMetadata(path="/z", name="z", last_indexed=(FIXED_NOW - timedelta(hours=1)).replace(tzinfo=None))

    assert indexer.is_stale(None)
    assert indexer.is_stale(FileMetadata(path="/n", name="n", last_indexed=None))
    assert not indexer.is_stale(at_limit)
    assert indexer.is_stale(past_limit)
    assert not indexer.is_stale(naive)


def test_full_index_skips_nested_roots(db_session_fixture, make_user, tmp_path):
    """映射真实路径嵌套在另一个根目录内时只索引一次，父子关系保持不变。"""
    user = make_user("nest")
    home = tmp_path / "nest_home"
    _build_tree(home)
    path_registry.set_path(db_session_fixture, user.username, home_prefix(user.username), str(home))
    path_registry.set_path(db_session_fixture, user.username, f"/{user.username}/inner", str(home / "sub"))

    summary = FileIndexer(clock=_fixed_clock).index_all_root_paths(db_session_fixture)

    assert summary["roots"] >= 1
    db_session_fixture.expire_all()
    inner = file_metadata_crud.get_by_path(db_session_fixture, str(home / "sub"))
    assert inner.parent_path == str(home)
    assert inner.virtual_path == f"/{user.username}/sub"
    assert _size(db_session_fixture, home) == 12
