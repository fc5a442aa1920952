"""
Pytest configuration and fixtures
"""
import pytest
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.core.errors import FetchError, InsertError, UploadError
from src.crowdsource.reports import ImageFile
from src.ingestion.backend_gateway import BackendGateway


class FakeGateway(BackendGateway):
    """In-memory backend that records every call."""

    def __init__(self, rows=None):
        self.rows = list(rows or [])
        self.calls = []
        self.uploads = {}
        self.upload_error = None
        self.insert_error = None
        self.fetch_error = None
        self.public_url = True
        self._next_id = 1

    async def upload_image(self, data, path, content_type):
        self.calls.append(("upload", path))
        if self.upload_error:
            raise UploadError(self.upload_error)
        self.uploads[path] = (data, content_type)
        if not self.public_url:
            return None
        return f"https://storage.test/public/{path}"

    async def insert_report(self, record):
        self.calls.append(("insert", record))
        if self.insert_error:
            raise InsertError(self.insert_error)
        row = dict(record)
        row["id"] = str(self._next_id)
        row["created_at"] = datetime(2025, 3, 1, 9, 30, tzinfo=timezone.utc).isoformat()
        self._next_id += 1
        self.rows.insert(0, row)

    async def list_reports(self, limit=500):
        self.calls.append(("list", limit))
        if self.fetch_error:
            raise FetchError(self.fetch_error)
        return [dict(r) for r in self.rows[:limit]]

    def call_names(self):
        return [name for name, _ in self.calls]


@pytest.fixture
def gateway():
    """Empty in-memory backend."""
    return FakeGateway()


@pytest.fixture
def sample_rows():
    """Stored report rows as the backend returns them."""
    return [
        {
            "id": "a1",
            "created_at": "2025-02-10T08:15:00+00:00",
            "latitude": 27.7172,
            "longitude": 85.324,
            "pollution_type": "Trash Dump",
            "description": "Pile of plastic near the river bank",
            "image_url": "https://storage.test/public/1700000000000_abc123.jpg",
        },
        {
            "id": "a2",
            "created_at": "2025-02-09T17:40:00Z",
            "latitude": "27.70",
            "longitude": "85.31",
            "pollution_type": "Sewage_Leak",
            "description": "",
            "image_url": None,
        },
        {
            "id": "a3",
            "created_at": "2025-02-08T12:00:00+00:00",
            "latitude": 27.69,
            "longitude": 85.33,
            "pollution_type": "Air Pollution",
            "description": "Brick kiln smoke",
            "image_url": None,
        },
    ]


@pytest.fixture
def bad_rows():
    """Rows with unusable coordinates."""
    return [
        {"id": "b1", "latitude": None, "longitude": 85.3, "pollution_type": "Other"},
        {"id": "b2", "latitude": "abc", "longitude": 85.3, "pollution_type": "Other"},
        {"id": "b3", "latitude": float("nan"), "longitude": 85.3, "pollution_type": "Other"},
        {"id": "b4", "latitude": 95.0, "longitude": 85.3, "pollution_type": "Other"},
        {"id": "b5", "longitude": 85.3, "pollution_type": "Other"},
    ]


@pytest.fixture
def jpeg_image():
    """A small image selection."""
    return ImageFile(filename="river.JPG", content_type="image/jpeg", data=b"\xff\xd8\xff\xe0fake")


@pytest.fixture
def text_file():
    """A non-image selection."""
    return ImageFile(filename="notes.txt", content_type="text/plain", data=b"hello")
