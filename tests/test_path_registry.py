"""路径注册表：映射登记与最长前缀解析。"""

import os

from app.packages.filebrowser.crud.path_registry import home_prefix, path_registry


def _register(db, user, mappings: dict[str, str]) -> None:
    for virtual, real in mappings.items():
        assert path_registry.set_path(db, user.username, virtual, real)


def test_longest_prefix_wins_over_home(db_session_fixture, make_user, tmp_path):
    """存在更长的自定义映射时优先命中，其余路径由主目录兜底。"""
    user = make_user("reg")
    home = tmp_path / "home"
    work = tmp_path / "work"
    _register(
        db_session_fixture,
        user,
        {home_prefix(user.username): str(home), f"/{user.username}/work": str(work)},
    )

    found = path_registry.match(db_session_fixture, user, f"/{user.username}/work/report.txt")
    assert found.real_path == os.path.join(str(work), "report.txt")
    assert found.strategy == "prefix"

    fallback = path_registry.match(db_session_fixture, user, f"/{user.username}/docs/a.txt")
    assert fallback.real_path == os.path.join(str(home), "docs", "a.txt")
    assert fallback.strategy == "home"

    exact = path_registry.match(db_session_fixture, user, f"/{user.username}/work/")
    assert exact.real_path == str(work)
    assert exact.strategy == "exact"


def test_segment_aware_prefix_does_not_match_partial_segment(db_session_fixture, make_user, tmp_path):
    """按路径段匹配时 ``/u/database`` 不会命中 ``/u/data``；字符串模式下会。"""
    user = make_user("seg")
    home = tmp_path / "home"
    data = tmp_path / "data"
    _register(
        db_session_fixture,
        user,
        {home_prefix(user.username): str(home), f"/{user.username}/data": str(data)},
    )
    target = f"/{user.username}/database"

    segment = path_registry.match(db_session_fixture, user, target, segment_aware=True)
    assert segment.real_path == os.path.join(str(home), "database")

    loose = path_registry.match(db_session_fixture, user, target, segment_aware=False)
    assert loose.real_path == os.path.join(str(data), "base")


def test_match_returns_none_without_mapping(db_session_fixture, make_user):
    user = make_user("nomap")
    assert path_registry.match(db_session_fixture, user, f"/{user.username}/x") is None
    assert path_registry.get_real_path(db_session_fixture, user.username, "/anything") is None


def test_set_path_unknown_user_returns_false(db_session_fixture, tmp_path):
    assert path_registry.set_path(db_session_fixture, "ghost-user-never-created", "/ghost", str(tmp_path)) is False


def test_set_path_overwrites_existing_prefix(db_session_fixture, make_user, tmp_path):
    """同一用户同一前缀只保留一条映射，再次登记覆盖真实路径。"""
    user = make_user("over")
    prefix = home_prefix(user.username)
    _register(db_session_fixture, user, {prefix: str(tmp_path / "first")})
    _register(db_session_fixture, user, {prefix + "/": str(tmp_path / "second")})

    rows = path_registry.get_by_user_id(db_session_fixture, user.id)
    assert len(rows) == 1
    assert rows[0].virtual_path == prefix
    assert rows[0].real_path == str(tmp_path / "second")
    assert path_registry.home_paths(db_session_fixture)[user.username] == str(tmp_path / "second")


def test_lookup_by_id_or_username(db_session_fixture, make_user, tmp_path):
    user = make_user("byid")
    _register(db_session_fixture, user, {home_prefix(user.username): str(tmp_path)})
    expected = os.path.join(str(tmp_path), "a.txt")
    virtual = f"/{user.username}/a.txt"

    assert path_registry.get_real_path_by_id(db_session_fixture, user.id, virtual).real_path == expected
    assert path_registry.get_real_path_by_id(db_session_fixture, str(user.id), virtual).real_path == expected
    assert path_registry.get_real_path_by_id(db_session_fixture, user.username, virtual).real_path == expected
    assert path_registry.get_real_path_by_id(db_session_fixture, None, virtual) is None


def test_splice_rejects_escape(db_session_fixture, make_user, tmp_path):
    """注册表拼接结果永远位于映射根目录之内。"""
    user = make_user("esc")
    _register(db_session_fixture, user, {home_prefix(user.username): str(tmp_path)})
    found = path_registry.match(db_session_fixture, user, f"/{user.username}/./nested/file.txt")
    assert found.real_path.startswith(str(tmp_path) + os.sep)


def test_is_mapped_root(db_session_fixture, make_user, tmp_path):
    user = make_user("root")
    _register(db_session_fixture, user, {home_prefix(user.username): str(tmp_path)})
    assert path_registry.is_mapped_root(db_session_fixture, str(tmp_path))
    assert not path_registry.is_mapped_root(db_session_fixture, str(tmp_path / "child"))
