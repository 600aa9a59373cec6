"""文件浏览与文件操作接口的集成测试。"""

import io

import pytest
from fastapi.testclient import TestClient

PASSWORD = "secret123"
ALL_FILE_PERMISSIONS = ["read", "write", "rename", "delete", "move"]


@pytest.fixture()
def make_account(client: TestClient, admin_headers, unique_name, tmp_path):
    """通过接口创建用户并登录，返回 ``(username, home, headers)``。"""
    def _make(prefix: str = "files", permissions=ALL_FILE_PERMISSIONS):
        username = unique_name(prefix)
        home = tmp_path / username
        resp = client.post(
            "/api/v1/users",
            json={
                "username": username,
                "password": PASSWORD,
                "customPath": str(home),
                "permissions": list(permissions),
            },
            headers=admin_headers,
        )
        assert resp.status_code == 200, resp.json()
        login = client.post("/api/v1/auth/login", json={"username": username, "password": PASSWORD})
        headers = {"Authorization": f"Bearer {login.json()['data']['access_token']}"}
        return username, home, headers

    return _make


def _upload(client: TestClient, headers, path: str, name: str, content: bytes):
    return client.post(
        "/api/v1/files/upload",
        params={"path": path},
        files=[("files", (name, io.BytesIO(content), "application/octet-stream"))],
        headers=headers,
    )


def test_list_empty_home(client: TestClient, make_account):
    username, _, headers = make_account()

    response = client.get("/api/v1/files", params={"path": "/"}, headers=headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["path"] == f"/{username}"
    assert data["files"] == []
    assert data["pagination"] == {"total": 0, "page": 1, "limit": 100, "totalPages": 0}


def test_mkdir_touch_and_listing_order(client: TestClient, make_account):
    """文件夹排在文件前面；同名创建返回 409。"""
    username, home, headers = make_account()

    mk = client.post("/api/v1/files/mkdir", json={"path": "/", "name": "zeta"}, headers=headers)
    assert mk.status_code == 200
    assert mk.json()["data"]["path"] == f"/{username}/zeta"
    touch = client.post("/api/v1/files/touch", json={"path": f"/{username}", "name": "alpha.txt"}, headers=headers)
    assert touch.status_code == 200
    assert (home / "zeta").is_dir()
    assert (home / "alpha.txt").is_file()

    listing = client.get("/api/v1/files", params={"path": f"/{username}"}, headers=headers).json()["data"]
    assert [f["name"] for f in listing["files"]] == ["zeta", "alpha.txt"]
    assert listing["files"][0]["type"] == "folder"
    assert listing["files"][1]["extension"] == "txt"
    assert listing["files"][1]["path"] == f"/{username}/alpha.txt"

    again = client.post("/api/v1/files/mkdir", json={"path": "/", "name": "zeta"}, headers=headers)
    assert again.status_code == 409
    clash = client.post("/api/v1/files/touch", json={"path": "/", "name": "zeta"}, headers=headers)
    assert clash.status_code == 409


def test_mkdir_in_missing_nested_directory(client: TestClient, make_account):
    username, home, headers = make_account()

    response = client.post(
        "/api/v1/files/mkdir",
        json={"path": f"/{username}/projects/2024", "name": "drafts"},
        headers=headers,
    )

    assert response.status_code == 200
    assert (home / "projects" / "2024" / "drafts").is_dir()


def test_listing_pagination_and_filters(client: TestClient, make_account):
    username, home, headers = make_account()
    for name in ("a.txt", "b.txt", "c.jpg"):
        (home / name).write_bytes(b"x")

    page = client.get(
        "/api/v1/files",
        params={"path": f"/{username}", "limit": 2, "page": 2},
        headers=headers,
    ).json()["data"]
    assert [f["name"] for f in page["files"]] == ["c.jpg"]
    assert page["pagination"]["totalPages"] == 2

    images = client.get(
        "/api/v1/files",
        params={"path": f"/{username}", "type": "image"},
        headers=headers,
    ).json()["data"]
    assert [f["name"] for f in images["files"]] == ["c.jpg"]

    newest_first = client.get(
        "/api/v1/files",
        params={"path": f"/{username}", "sortBy": "name", "sortOrder": "desc", "search": ".TXT"},
        headers=headers,
    ).json()["data"]
    assert [f["name"] for f in newest_first["files"]] == ["b.txt", "a.txt"]


def test_listing_a_file_is_rejected(client: TestClient, make_account):
    username, home, headers = make_account()
    (home / "plain.txt").write_text("x")

    response = client.get("/api/v1/files", params={"path": f"/{username}/plain.txt"}, headers=headers)

    assert response.status_code == 400
    assert response.json()["msg"] == "目标不是文件夹"


def test_upload_download_and_duplicate(client: TestClient, make_account):
    username, home, headers = make_account()

    first = _upload(client, headers, f"/{username}/docs", "report.txt", b"hello world")
    assert first.status_code == 200
    item = first.json()["data"][0]
    assert item["status"] == "success"
    assert item["path"] == f"/{username}/docs/report.txt"
    assert (home / "docs" / "report.txt").read_bytes() == b"hello world"

    duplicate = _upload(client, headers, f"/{username}/docs", "report.txt", b"other")
    assert duplicate.json()["data"][0]["status"] == "failure"
    assert duplicate.json()["data"][0]["message"] == "上传失败：文件名已存在"
    assert (home / "docs" / "report.txt").read_bytes() == b"hello world"

    download = client.post(
        "/api/v1/files/download",
        json={"paths": [f"/{username}/docs/report.txt"]},
        headers=headers,
    )
    assert download.status_code == 200
    assert download.content == b"hello world"

    multiple = client.post(
        "/api/v1/files/download",
        json={"paths": [f"/{username}/docs/report.txt", f"/{username}/docs"]},
        headers=headers,
    )
    assert multiple.status_code == 400


def test_rename_and_conflict(client: TestClient, make_account):
    username, home, headers = make_account()
    (home / "a.txt").write_text("a")
    (home / "taken.txt").write_text("t")

    response = client.post(
        "/api/v1/files/rename",
        json={"filePath": f"/{username}/a.txt", "newName": "b.txt"},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["data"] == {"oldPath": f"/{username}/a.txt", "newPath": f"/{username}/b.txt"}
    assert (home / "b.txt").is_file()
    assert not (home / "a.txt").exists()

    conflict = client.post(
        "/api/v1/files/rename",
        json={"filePath": f"/{username}/b.txt", "newName": "taken.txt"},
        headers=headers,
    )
    assert conflict.status_code == 409

    missing = client.post(
        "/api/v1/files/rename",
        json={"filePath": f"/{username}/nope.txt", "newName": "x.txt"},
        headers=headers,
    )
    assert missing.status_code == 404


def test_move_files_and_reject_self_nesting(client: TestClient, make_account):
    username, home, headers = make_account()
    (home / "docs").mkdir()
    (home / "a.txt").write_text("a")

    response = client.post(
        "/api/v1/files/move",
        json={"filePaths": [f"/{username}/a.txt", f"/{username}/ghost.txt"], "destinationPath": f"/{username}/docs"},
        headers=headers,
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["moved"] == 1
    assert data["results"][0]["newPath"] == f"/{username}/docs/a.txt"
    assert data["results"][1]["status"] == "failure"
    assert data["results"][1]["code"] == 404
    assert (home / "docs" / "a.txt").is_file()

    nested = client.post(
        "/api/v1/files/move",
        json={"filePaths": [f"/{username}/docs"], "destinationPath": f"/{username}/docs/inner"},
        headers=headers,
    )
    assert nested.status_code == 400
    assert (home / "docs").is_dir()


def test_delete_reports_per_item_errors(client: TestClient, make_account):
    username, home, headers = make_account()
    (home / "trash").mkdir()
    (home / "trash" / "x.txt").write_text("x")

    response = client.post(
        "/api/v1/files/delete",
        json={"filePaths": [f"/{username}/trash", f"/{username}/missing.txt"]},
        headers=headers,
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["deleted"] == [f"/{username}/trash"]
    assert data["errors"][0]["path"] == f"/{username}/missing.txt"
    assert data["errors"][0]["code"] == 404
    assert not (home / "trash").exists()


def test_mapped_root_cannot_be_deleted_or_renamed(client: TestClient, make_account):
    username, home, headers = make_account()

    deleted = client.post("/api/v1/files/delete", json={"filePaths": [f"/{username}"]}, headers=headers)
    assert deleted.json()["data"]["errors"][0]["code"] == 403
    assert home.is_dir()

    renamed = client.post(
        "/api/v1/files/rename",
        json={"filePath": f"/{username}", "newName": "elsewhere"},
        headers=headers,
    )
    assert renamed.status_code == 403


def test_permissions_are_enforced(client: TestClient, make_account):
    username, home, headers = make_account("reader", permissions=["read"])
    (home / "keep.txt").write_text("k")

    assert client.get("/api/v1/files", params={"path": "/"}, headers=headers).status_code == 200

    mk = client.post("/api/v1/files/mkdir", json={"path": "/", "name": "new"}, headers=headers)
    assert mk.status_code == 403
    assert mk.json()["msg"] == "没有创建或上传文件的权限"

    rm = client.post("/api/v1/files/delete", json={"filePaths": [f"/{username}/keep.txt"]}, headers=headers)
    assert rm.status_code == 403
    assert (home / "keep.txt").exists()


def test_user_isolation_and_traversal(client: TestClient, make_account):
    alice, _, alice_headers = make_account("alice")
    bob, _, _ = make_account("bob")

    cross = client.get("/api/v1/files", params={"path": f"/{bob}"}, headers=alice_headers)
    assert cross.status_code == 403

    traversal = client.get("/api/v1/files", params={"path": f"/{alice}/../{bob}"}, headers=alice_headers)
    assert traversal.status_code == 400


def test_admin_root_lists_user_folders(client: TestClient, admin_headers, make_account):
    username, home, _ = make_account("visible")
    (home / "shared.txt").write_text("shared")

    root = client.get("/api/v1/files", params={"path": "/", "limit": 1000}, headers=admin_headers).json()["data"]
    assert root["path"] == "/"
    names = [f["name"] for f in root["files"]]
    assert username in names
    assert "admin" in names

    inside = client.get("/api/v1/files", params={"path": f"/{username}"}, headers=admin_headers).json()["data"]
    assert [f["name"] for f in inside["files"]] == ["shared.txt"]

    blocked = client.post("/api/v1/files/mkdir", json={"path": "/", "name": "x"}, headers=admin_headers)
    assert blocked.status_code == 400


def test_mutations_refresh_storage_stats(client: TestClient, admin_headers, make_account):
    """上传后元数据缓存立即更新，用户存储统计随之变化。"""
    username, _, headers = make_account("quota")
    _upload(client, headers, f"/{username}", "blob.bin", b"x" * 2048)

    stats = client.get("/api/v1/stats/user-storage", headers=admin_headers).json()["data"]
    entry = next(item for item in stats if item["username"] == username)
    assert entry["totalSize"] == 2048
    assert entry["formattedSize"] == "2 KB"

    client.post("/api/v1/files/delete", json={"filePaths": [f"/{username}/blob.bin"]}, headers=headers)
    stats = client.get("/api/v1/stats/user-storage", headers=admin_headers).json()["data"]
    entry = next(item for item in stats if item["username"] == username)
    assert entry["totalSize"] == 0


def test_disk_usage_and_index_endpoints(client: TestClient, admin_headers, make_account):
    _, _, user_headers = make_account("nosy")

    disk = client.get("/api/v1/stats/disk-usage", headers=admin_headers)
    assert disk.status_code == 200
    assert disk.json()["data"]["total"] > 0

    rebuild = client.post("/api/v1/index/rebuild", headers=admin_headers)
    assert rebuild.status_code == 200
    assert rebuild.json()["data"]["ran"] is True
    assert rebuild.json()["data"]["runs"] >= 1

    status = client.get("/api/v1/index/status", headers=admin_headers).json()["data"]
    assert status["running"] is False
    assert status["lastFinishedAt"] is not None

    assert client.get("/api/v1/index/status", headers=user_headers).status_code == 403
