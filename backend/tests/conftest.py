"""
PDF Splitter - Test Configuration and Fixtures
"""
import io
import os
import tempfile
from pathlib import Path
from typing import AsyncGenerator, Dict, List, Optional, Set

import pytest
from httpx import AsyncClient, ASGITransport
from faker import Faker
from pypdf import PdfWriter

# Set testing environment
os.environ['ENVIRONMENT'] = 'testing'
os.environ['STORAGE_ENABLED'] = 'false'
os.environ['JOB_SWEEP_INTERVAL_SECONDS'] = '0'
os.environ['OUTPUT_ROOT'] = tempfile.mkdtemp(prefix='pdf-splitter-test-')

from pdfsplitter.core.config import Settings
from pdfsplitter.core.exceptions import RemoteUploadError
from pdfsplitter.main import create_app

fake = Faker()

# Every page gets its own width so copied pages can be traced back to the source
BASE_PAGE_WIDTH = 100
PAGE_WIDTH_STEP = 10
PAGE_HEIGHT = 200


def page_width(source_index: int) -> float:
    """Width of the page at 0-indexed position source_index in a fixture PDF"""
    return float(BASE_PAGE_WIDTH + PAGE_WIDTH_STEP * source_index)


def make_pdf(page_count: int) -> bytes:
    """Build a PDF of blank pages with distinct widths"""
    writer = PdfWriter()
    for index in range(page_count):
        writer.add_blank_page(width=page_width(index), height=PAGE_HEIGHT)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def submission_id() -> str:
    return fake.unique.bothify(text='sub-####-??')


class FakeClock:
    """Settable epoch clock"""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeObjectStore:
    """In-memory object store, fails uploads for chosen keys"""

    public_url = 'https://files.example.com'

    def __init__(self, fail_keys: Optional[Set[str]] = None, reachable: bool = True):
        self.fail_keys = fail_keys or set()
        self.reachable = reachable
        self.objects: Dict[str, bytes] = {}
        self.content_types: Dict[str, str] = {}

    async def head_bucket(self) -> bool:
        return self.reachable

    async def put(self, key: str, data: bytes, content_type: str = 'application/pdf') -> str:
        if key in self.fail_keys:
            raise RemoteUploadError(key, 'simulated outage')
        self.objects[key] = data
        self.content_types[key] = content_type
        return f'{self.public_url}/{key}'


def job_dirs(settings: Settings) -> List[Path]:
    """Job directories currently on disk"""
    if not settings.OUTPUT_DIR.exists():
        return []
    return [p for p in settings.OUTPUT_DIR.iterdir() if p.is_dir()]


@pytest.fixture
def sample_pdf() -> bytes:
    """Six-page document"""
    return make_pdf(6)


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    return Settings(
        ENVIRONMENT='testing',
        OUTPUT_ROOT=str(tmp_path / 'output'),
        STORAGE_ENABLED=False,
        JOB_SWEEP_INTERVAL_SECONDS=0,
        JOB_RETENTION_MINUTES=60,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def object_store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def app(test_settings: Settings, clock: FakeClock):
    """App without remote storage"""
    return create_app(test_settings, clock=clock)


@pytest.fixture
def storage_app(test_settings: Settings, clock: FakeClock, object_store: FakeObjectStore):
    """App uploading to the fake object store"""
    return create_app(test_settings, object_store=object_store, clock=clock)


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac


@pytest.fixture
async def storage_client(storage_app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=storage_app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac
