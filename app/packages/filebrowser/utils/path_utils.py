"""Path utilities: virtual path normalization, prefix matching and safe splicing.

These helpers centralize the rules shared by the path registry, the resolver and
the indexer:
- Virtual paths are '/'-rooted, use '/' as separator and never contain '..';
- A trailing slash is preserved by ``normalize_virtual_path`` because it marks a
  directory-shaped path for on-demand creation;
- Physical paths are OS-native and compared after ``os.path.normpath``.
"""

from __future__ import annotations

import os
import posixpath
import re
from typing import Optional

from app.packages.filebrowser.core.exceptions import AppException, ForbiddenError

WINDOWS_ABSOLUTE_RE = re.compile(r"^[a-zA-Z]:[\\/]")
USER_SEGMENT_RE = re.compile(r"^/([^/]+)(?:/(.*))?$")

ROOT_BOUNDARIES = frozenset({"", ".", "..", "/"})


def is_native_absolute(path: str) -> bool:
    """判断是否为 Windows 风格的原生绝对路径（如 ``D:\\Videos``）。"""
    return bool(WINDOWS_ABSOLUTE_RE.match(path or ""))


def normalize_virtual_path(path: Optional[str]) -> str:
    s = (path or "/").strip().replace("\\", "/") or "/"
    if not s.startswith("/"):
        s = "/" + s
    trailing = s.endswith("/") and s != "/"
    segments = [seg for seg in s.split("/") if seg and seg != "."]
    if ".." in segments:
        raise AppException("非法路径: 不允许包含 '..'")
    joined = "/" + "/".join(segments)
    if trailing and joined != "/":
        joined += "/"
    return joined


def strip_trailing_slash(path: str) -> str:
    return path.rstrip("/") or "/"


def join_virtual(base: str, name: str) -> str:
    return posixpath.join(strip_trailing_slash(base), name)


def virtual_parent(path: str) -> str:
    return posixpath.dirname(strip_trailing_slash(path)) or "/"


def split_user_segment(path: str) -> Optional[tuple[str, str]]:
    """``/someone/rest`` -> ``("someone", "rest")``；不匹配时返回 ``None``。"""
    match = USER_SEGMENT_RE.match(strip_trailing_slash(path))
    if not match:
        return None
    return match.group(1), match.group(2) or ""


def prefix_matches(prefix: str, path: str, *, segment_aware: bool = True) -> bool:
    """前缀匹配。

    ``segment_aware`` 为假时退化为纯字符串前缀（``/alice2`` 会命中 ``/alice``）。
    """
    if not segment_aware:
        return path.startswith(prefix)
    prefix_key = strip_trailing_slash(prefix)
    path_key = strip_trailing_slash(path)
    if prefix_key == "/":
        return True
    return path_key == prefix_key or path_key.startswith(prefix_key + "/")


def looks_like_directory(virtual_path: str) -> bool:
    """以 '/' 结尾或没有扩展名的虚拟路径视为目录形态。"""
    if virtual_path.endswith("/"):
        return True
    return not posixpath.splitext(strip_trailing_slash(virtual_path))[1]


def splice(real_root: str, remainder: str) -> str:
    """把虚拟路径余下部分拼接到真实根目录下，并拒绝越出根目录的结果。"""
    root = os.path.normpath(real_root)
    parts = [seg for seg in remainder.replace("\\", "/").split("/") if seg and seg != "."]
    if ".." in parts:
        raise ForbiddenError("非法路径: 越权访问")
    candidate = os.path.normpath(os.path.join(root, *parts)) if parts else root
    if candidate != root and not candidate.startswith(root.rstrip(os.sep) + os.sep):
        raise ForbiddenError("非法路径: 越权访问")
    return candidate


def is_root_boundary(path: str) -> bool:
    """向上回溯目录大小时的终止条件：空串、'.'、'..'、文件系统根或盘符根。"""
    if path in ROOT_BOUNDARIES:
        return True
    return os.path.dirname(path) == path


def physical_parent(path: str) -> Optional[str]:
    parent = os.path.dirname(path)
    if parent == path or parent in ROOT_BOUNDARIES:
        return None
    return parent


def extension_of(name: str) -> str:
    return posixpath.splitext(name)[1].lstrip(".").lower()
