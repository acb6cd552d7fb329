"""Unit tests for byte range parsing and file streaming."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from maddox.errors import RangeNotSatisfiableError
from maddox.server.routes import iter_file, parse_range


@pytest.mark.parametrize(
    "header,expected",
    [
        ("bytes=0-99", (0, 99)),
        ("bytes=100-", (100, 999)),
        ("bytes=-200", (800, 999)),
        ("bytes=900-5000", (900, 999)),
        ("bytes=-5000", (0, 999)),
    ],
)
def test_parse_range(header: str, expected: tuple[int, int]) -> None:
    """Test explicit, open-ended and suffix ranges against a 1000 byte file."""
    assert parse_range(header, 1000) == expected


@pytest.mark.parametrize(
    "header", ["bytes=1000-", "bytes=500-100", "bytes=-0", "bytes=-", "items=0-1", "bytes=0-1,5-6"]
)
def test_parse_range_unsatisfiable(header: str) -> None:
    with pytest.raises(RangeNotSatisfiableError) as exc_info:
        parse_range(header, 1000)
    assert exc_info.value.size == 1000


def test_iter_file_yields_inclusive_range(tmp_path: Path) -> None:
    path = tmp_path / "a.mp3"
    path.write_bytes(bytes(range(256)) * 1024)

    data = b"".join(iter_file(path, 10, 70009))

    assert len(data) == 70000
    assert data[:2] == bytes([10, 11])
