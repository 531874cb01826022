import asyncio
import os
import tempfile

import httpx
import pytest
import pytest_asyncio

_TEST_DIR = tempfile.mkdtemp(prefix="virtual-tourist-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/test.sqlite3"
os.environ["DATA_DIR"] = _TEST_DIR
os.environ["IMAGES_DIR"] = os.path.join(_TEST_DIR, "images")

SEARCH_URL = "https://api.flickr.test/services/rest/"
IMAGE_HOST = "live.staticflickr.test"


def make_photos(count: int, start: int = 0) -> list[dict]:
    return [
        {
            "id": str(1000 + i),
            "title": f"photo {i}",
            "url_m": f"https://{IMAGE_HOST}/65535/{1000 + i}_abc{i}_m.jpg",
        }
        for i in range(start, start + count)
    ]


class FakeFlickr:
    """Stand-in for the Flickr REST endpoint and image host."""

    def __init__(self, photos: list[dict] | None = None):
        self.photos = photos if photos is not None else make_photos(3)
        self.pages = 3
        self.search_status = 200
        self.search_body: bytes | None = None
        self.fail_search = False
        self.failing_urls: set[str] = set()
        self.search_gate: asyncio.Event | None = None
        self.image_gate: asyncio.Event | None = None
        self.requests: list[httpx.Request] = []

    @property
    def search_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host == "api.flickr.test"]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.url.host == "api.flickr.test":
            if self.search_gate is not None:
                await self.search_gate.wait()
            if self.fail_search:
                raise httpx.ConnectError("connection refused", request=request)
            if self.search_body is not None:
                return httpx.Response(self.search_status, content=self.search_body)
            page = int(request.url.params.get("page", 1))
            return httpx.Response(
                self.search_status,
                json={
                    "photos": {"page": page, "pages": self.pages, "perpage": 24, "photo": self.photos},
                    "stat": "ok",
                },
            )

        if self.image_gate is not None:
            await self.image_gate.wait()
        if str(request.url) in self.failing_urls:
            raise httpx.ConnectError("connection reset", request=request)
        return httpx.Response(200, content=image_bytes(str(request.url)))


def image_bytes(url: str) -> bytes:
    return b"\xff\xd8\xff\xe0" + url.encode()


@pytest.fixture(autouse=True, scope="session")
def setup_test_db():
    # Disable API key auth for tests
    from app.config import settings
    settings.api_key = ""

    from app.database import create_tables

    asyncio.run(create_tables())


@pytest.fixture
def fake_flickr():
    return FakeFlickr()


@pytest_asyncio.fixture
async def flickr_client(fake_flickr):
    from app.services.flickr_client import FlickrClient

    async with httpx.AsyncClient(transport=httpx.MockTransport(fake_flickr.handler)) as http_client:
        yield FlickrClient(http_client, api_key="test-key", base_url=SEARCH_URL)


@pytest.fixture
def image_cache(tmp_path):
    from app.services.image_cache import ImageCache

    return ImageCache(str(tmp_path / "images"))


@pytest_asyncio.fixture
async def pipeline(flickr_client, image_cache):
    from sqlalchemy import delete

    from app.database import async_session
    from app.models.photo import Photo
    from app.models.pin import Pin
    from app.services.photo_pipeline import PhotoPipeline

    async with async_session() as db:
        await db.execute(delete(Photo))
        await db.execute(delete(Pin))
        await db.commit()

    pipeline = PhotoPipeline(flickr_client, image_cache)
    yield pipeline
    await pipeline.shutdown()


@pytest_asyncio.fixture
async def api_client(pipeline):
    from httpx import ASGITransport, AsyncClient

    from app.dependencies import get_pipeline
    from app.main import app

    app.dependency_overrides[get_pipeline] = lambda: pipeline
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


def cached_files(cache) -> list[str]:
    if not os.path.isdir(cache.root):
        return []
    return sorted(os.listdir(cache.root))
