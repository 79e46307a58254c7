import io
import os
import sys
import tempfile
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from PIL import Image

# Configure test environment before the app reads it at import time
TEST_DIR = Path(tempfile.mkdtemp(prefix='promptly-tests-'))
os.environ['DATABASE_URL'] = f"sqlite+aiosqlite:///{TEST_DIR / 'test.db'}"
os.environ['JWT_SECRET'] = 'test-secret'
os.environ['BCRYPT_ROUNDS'] = '4'
os.environ['UPLOAD_DIR'] = str(TEST_DIR / 'storage')
os.environ['STORAGE_BACKEND'] = 'local'
os.environ.pop('REDIS_URL', None)

# Ensure the package root is on sys.path when pytest changes CWD to this tests dir
HERE = Path(__file__).resolve()
PKG_ROOT = HERE.parents[2]
if str(PKG_ROOT) not in sys.path:
    sys.path.insert(0, str(PKG_ROOT))

from promptly import core  # noqa: E402
from promptly.main import app  # noqa: E402
from promptly.mailer import Mailer, get_mailer  # noqa: E402
from promptly.models import Base, engine  # noqa: E402
from promptly.storage import BlobStore, get_blob_store  # noqa: E402
from promptly.vision import VisionClient, get_vision_client  # noqa: E402

try:
    import cairosvg  # noqa: F401
    HAS_CAIRO = True
except (ImportError, OSError):
    # cairocffi raises OSError when libcairo is missing
    HAS_CAIRO = False

requires_cairo = pytest.mark.skipif(not HAS_CAIRO, reason='cairo system library not installed')


class FakeBlobStore(BlobStore):
    def __init__(self):
        self.objects = {}
        self.writes = []

    async def put(self, key, data, content_type):
        url = f"https://cdn.test/{key}"
        self.objects[url] = (data, content_type)
        self.writes.append(url)
        return url

    async def delete(self, url):
        return self.objects.pop(url, None) is not None


class FakeVisionClient(VisionClient):
    def __init__(self, text='a red bicycle'):
        self.text = text
        self.error = None
        self.calls = []
        self.images = []

    async def describe(self, image, mime_type):
        self.calls.append((len(image), mime_type))
        self.images.append(image)
        if self.error:
            raise self.error
        return self.text


class FakeMailer(Mailer):
    def __init__(self):
        self.resets = {}

    async def send_password_reset(self, email, token):
        self.resets[email] = token


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the rate limiter"""

    def __init__(self):
        self.store = {}

    async def get(self, key):
        value = self.store.get(key)
        return None if value is None else str(value).encode()

    async def incr(self, key):
        self.store[key] = int(self.store.get(key, 0)) + 1
        return self.store[key]

    async def expire(self, key, seconds):
        return True

    async def delete(self, key):
        return 1 if self.store.pop(key, None) is not None else 0


def make_image(fmt='JPEG', size=(512, 512), mode='RGB', color='red') -> bytes:
    buf = io.BytesIO()
    Image.new(mode, size, color).save(buf, fmt)
    return buf.getvalue()


@pytest_asyncio.fixture
async def db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    # connections are bound to this test's event loop
    await engine.dispose()


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
def vision_client():
    return FakeVisionClient()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def fake_redis(monkeypatch):
    redis = FakeRedis()
    monkeypatch.setattr(core, 'REDIS', redis)
    return redis


@pytest_asyncio.fixture
async def client(db, blob_store, vision_client, mailer):
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    app.dependency_overrides[get_vision_client] = lambda: vision_client
    app.dependency_overrides[get_mailer] = lambda: mailer
    async with AsyncClient(transport=ASGITransport(app=app), base_url='http://test') as ac:
        yield ac
    app.dependency_overrides.clear()


async def register(ac, name='Alice', email='alice@example.com', password='password123') -> dict:
    res = await ac.post('/register', json={
        'name': name,
        'email': email,
        'password': password,
        'password_confirmation': password,
    })
    assert res.status_code == 201, res.text
    return {'Authorization': f"Bearer {res.json()['access_token']}"}


@pytest_asyncio.fixture
async def alice(client):
    return await register(client)


@pytest_asyncio.fixture
async def bob(client):
    return await register(client, name='Bob', email='bob@example.com')
