"""
Pytest configuration and shared fixtures for all tests
"""
import base64
import io
import os
import sys
from pathlib import Path

import pytest
from PIL import Image

# Use in-memory SQLite before the app module is imported
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

# Add src to Python path so tests run without an editable install
SRC = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(SRC))

from artifacts_api.filesystem import MemoryFilesystem  # noqa: E402
from artifacts_api.repository import InMemoryArtifactRepository  # noqa: E402
from artifacts_api.service import ArtifactService  # noqa: E402


def make_image_bytes(fmt="JPEG", size=(1, 1), color=(200, 30, 60)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def jpeg_bytes():
    """1x1 pixel JPEG"""
    return make_image_bytes()


@pytest.fixture
def jpeg_b64(jpeg_bytes):
    return base64.b64encode(jpeg_bytes).decode()


@pytest.fixture
def png_b64():
    return base64.b64encode(make_image_bytes("PNG")).decode()


@pytest.fixture
def memory_fs():
    return MemoryFilesystem()


@pytest.fixture
def memory_repo():
    return InMemoryArtifactRepository(page_size=10)


@pytest.fixture
def service(memory_fs, memory_repo):
    return ArtifactService(memory_fs, memory_repo)
