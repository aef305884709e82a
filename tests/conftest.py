# tests/conftest.py
import io
import os
import tempfile
from pathlib import Path

_WORKDIR = Path(tempfile.mkdtemp(prefix="image-processor-tests-"))

# Settings are read once at import time, so point them at scratch locations first.
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_WORKDIR / 'test.db'}")
os.environ.setdefault("MEDIA_ROOT", str(_WORKDIR / "media"))
os.environ.setdefault("PUBLIC_BASE_URL", "https://files.test")
os.environ.setdefault("CELERY_ALWAYS_EAGER", "true")
os.environ.pop("WEBHOOK_URL", None)

import pytest
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import Base
from app.errors import FetchError
from app.models.request import ProductRow
from app.services.job_store import SqlJobStore
from app.services.report import ReportGenerator

import app.models.db  # noqa: F401  register tables


class FakeTransformer:
    """Returns a predictable output URL per call and fails on selected inputs or call numbers."""

    def __init__(self, fail_on=(), fail_on_calls=()):
        self.fail_on = set(fail_on)
        self.fail_on_calls = set(fail_on_calls)
        self.calls = []

    def transform(self, url):
        self.calls.append(url)
        if url in self.fail_on or len(self.calls) in self.fail_on_calls:
            raise FetchError(f"Unable to download {url}")
        return f"https://cdn.test/compressed/{len(self.calls)}.jpg"


class RecordingNotifier:
    def __init__(self):
        self.calls = []

    def notify(self, request_id, output_csv_url):
        self.calls.append((request_id, output_csv_url))
        return True


@pytest.fixture
def store():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    yield SqlJobStore(factory)
    engine.dispose()


@pytest.fixture
def reporter(tmp_path):
    return ReportGenerator(root=tmp_path, public_base_url="https://files.test")


@pytest.fixture
def transformer():
    return FakeTransformer()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def make_rows():
    def _make(*specs):
        return [
            ProductRow(serial_number=str(index), product_name=name, input_urls=list(urls))
            for index, (name, urls) in enumerate(specs, start=1)
        ]

    return _make


@pytest.fixture
def png_bytes():
    image = Image.new("RGBA", (32, 24), (200, 40, 40, 128))
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def make_transformer():
    return FakeTransformer
