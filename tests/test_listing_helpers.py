"""列表筛选、排序与容量格式化的纯函数测试。"""

from datetime import datetime, timedelta, timezone

from app.packages.filebrowser.core.enums import (
    DateRangeEnum,
    FileTypeFilterEnum,
    SizeRangeEnum,
    SortFieldEnum,
    SortOrderEnum,
)
from app.packages.filebrowser.services.file_service import date_range_start, filter_entries, sort_entries
from app.packages.filebrowser.services.stats_service import format_size

NOW = datetime(2024, 3, 31, 15, 30, tzinfo=timezone.utc)


def _entry(name, *, folder=False, size=0, age_days=0):
    ext = None if folder else (name.rsplit(".", 1)[-1].lower() if "." in name else "")
    return {
        "name": name,
        "type": "folder" if folder else "file",
        "extension": ext,
        "size": size,
        "modified": NOW - timedelta(days=age_days),
        "path": f"/u/{name}",
        "last_indexed": None,
    }


ENTRIES = [
    _entry("Photos", folder=True, size=50_000_000, age_days=400),
    _entry("archive", folder=True, size=10, age_days=1),
    _entry("beach.JPG", size=2 * 1024 * 1024, age_days=3),
    _entry("notes.txt", size=512, age_days=0),
    _entry("movie.mkv", size=200 * 1024 * 1024, age_days=40),
    _entry("song.mp3", size=20 * 1024, age_days=10),
]


def _names(entries):
    return [e["name"] for e in entries]


def test_search_is_case_insensitive():
    assert _names(filter_entries(ENTRIES, search="PHO", current=NOW)) == ["Photos"]


def test_type_groups_and_extension():
    assert _names(filter_entries(ENTRIES, file_type=FileTypeFilterEnum.IMAGE, current=NOW)) == ["beach.JPG"]
    assert _names(filter_entries(ENTRIES, file_type=FileTypeFilterEnum.FOLDER, current=NOW)) == ["Photos", "archive"]
    assert _names(filter_entries(ENTRIES, extension=".MP3", current=NOW)) == ["song.mp3"]


def test_size_range_excludes_folders():
    small = filter_entries(ENTRIES, size_range=SizeRangeEnum.TINY, current=NOW)
    assert _names(small) == ["notes.txt"]
    huge = filter_entries(ENTRIES, size_range=SizeRangeEnum.XLARGE, current=NOW)
    assert _names(huge) == ["movie.mkv"]


def test_date_range_filters_by_modified_time():
    week = filter_entries(ENTRIES, date_range=DateRangeEnum.WEEK, current=NOW)
    assert _names(week) == ["archive", "beach.JPG", "notes.txt"]
    today = filter_entries(ENTRIES, date_range=DateRangeEnum.TODAY, current=NOW)
    assert _names(today) == ["notes.txt"]


def test_month_start_clamps_to_month_end():
    assert date_range_start(DateRangeEnum.MONTH, NOW) == datetime(2024, 2, 29, 15, 30, tzinfo=timezone.utc)
    assert date_range_start(DateRangeEnum.YEAR, NOW) == datetime(2023, 3, 31, 15, 30, tzinfo=timezone.utc)
    assert date_range_start(DateRangeEnum.ALL, NOW) is None


def test_folders_always_sort_first():
    by_name = sort_entries(ENTRIES, SortFieldEnum.NAME, SortOrderEnum.ASC)
    assert _names(by_name) == ["archive", "Photos", "beach.JPG", "movie.mkv", "notes.txt", "song.mp3"]

    by_size_desc = sort_entries(ENTRIES, SortFieldEnum.SIZE, SortOrderEnum.DESC)
    assert _names(by_size_desc)[:2] == ["Photos", "archive"]
    assert _names(by_size_desc)[2:] == ["movie.mkv", "beach.JPG", "song.mp3", "notes.txt"]

    by_modified = sort_entries(ENTRIES, SortFieldEnum.MODIFIED, SortOrderEnum.DESC)
    assert _names(by_modified)[2] == "notes.txt"


def test_format_size():
    assert format_size(0) == "0 B"
    assert format_size(512) == "512 B"
    assert format_size(1024) == "1 KB"
    assert format_size(1536) == "1.5 KB"
    assert format_size(5 * 1024**3) == "5 GB"
    assert format_size(1234567) == "1.18 MB"
