import pytest
from sqlalchemy import select, func

from promptly import pipeline as pipeline_module
from promptly import vision as vision_module
from promptly.exceptions import UploadValidationError, VisionError
from promptly.models import AsyncSessionLocal
from promptly.models.users import User
from promptly.models.prompt_generations import PromptGeneration
from promptly.pipeline import PromptGenerationPipeline
from promptly.validation import UploadedImage
from .conftest import FakeBlobStore, FakeVisionClient, make_image


async def make_user(session):
    user = User(name='Carol', email='carol@example.com', hashed_password='x')
    session.add(user)
    await session.commit()
    return user


async def count_records(session):
    return (await session.execute(select(func.count()).select_from(PromptGeneration))).scalar_one()


@pytest.mark.asyncio
async def test_successful_run_persists_record(db):
    store, vision = FakeBlobStore(), FakeVisionClient('a lighthouse at dusk')
    content = make_image('PNG', (300, 200))
    async with AsyncSessionLocal() as session:
        user = await make_user(session)
        record = await PromptGenerationPipeline(session, store, vision).run(
            user.id, UploadedImage(content, 'sea.png', 'image/png'))

        assert record.id is not None
        assert record.generated_prompt == 'a lighthouse at dusk'
        assert record.file_size == len(content)
        assert record.mime_type == 'image/png'
        assert record.original_filename == 'sea.png'
        assert record.image_url in store.objects
        assert record.image_url.endswith('.png')
        assert vision.calls == [(len(content), 'image/png')]


@pytest.mark.asyncio
async def test_invalid_upload_touches_nothing(db):
    store, vision = FakeBlobStore(), FakeVisionClient()
    async with AsyncSessionLocal() as session:
        user = await make_user(session)
        with pytest.raises(UploadValidationError):
            await PromptGenerationPipeline(session, store, vision).run(
                user.id, UploadedImage(make_image('PNG', (50, 50)), 'tiny.png', 'image/png'))
        assert store.writes == []
        assert vision.calls == []
        assert await count_records(session) == 0


@pytest.mark.asyncio
async def test_vision_failure_removes_stored_file(db):
    store, vision = FakeBlobStore(), FakeVisionClient()
    vision.error = VisionError('Vision API request timed out')
    async with AsyncSessionLocal() as session:
        user = await make_user(session)
        with pytest.raises(VisionError):
            await PromptGenerationPipeline(session, store, vision).run(
                user.id, UploadedImage(make_image(), 'a.jpg', 'image/jpeg'))
        assert len(store.writes) == 1
        assert store.objects == {}
        assert await count_records(session) == 0


@pytest.mark.asyncio
async def test_persist_failure_removes_stored_file(db, monkeypatch):
    async def broken_insert(session, **fields):
        raise RuntimeError('database is gone')

    monkeypatch.setattr(pipeline_module, 'create_prompt_generation', broken_insert)
    store, vision = FakeBlobStore(), FakeVisionClient()
    async with AsyncSessionLocal() as session:
        user = await make_user(session)
        with pytest.raises(RuntimeError):
            await PromptGenerationPipeline(session, store, vision).run(
                user.id, UploadedImage(make_image(), 'a.jpg', 'image/jpeg'))
    assert len(vision.calls) == 1
    assert store.objects == {}


@pytest.mark.asyncio
async def test_declared_type_is_canonicalised(db):
    store, vision = FakeBlobStore(), FakeVisionClient()
    content = make_image('JPEG', (200, 200))
    async with AsyncSessionLocal() as session:
        user = await make_user(session)
        record = await PromptGenerationPipeline(session, store, vision).run(
            user.id, UploadedImage(content, 'a.jpg', 'image/pjpeg; charset=binary'))

        assert record.mime_type == 'image/jpeg'
        assert store.objects[record.image_url] == (content, 'image/jpeg')
        assert vision.calls == [(len(content), 'image/jpeg')]


@pytest.mark.asyncio
async def test_svg_render_failure_stores_nothing(db, monkeypatch):
    def broken_render(content, width=None, height=None):
        raise OSError('no library called "cairo" was found')

    monkeypatch.setattr(vision_module, 'rasterize_svg', broken_render)
    store, vision = FakeBlobStore(), FakeVisionClient()
    svg = b'<svg xmlns="http://www.w3.org/2000/svg" width="200" height="200"></svg>'
    async with AsyncSessionLocal() as session:
        user = await make_user(session)
        with pytest.raises(VisionError):
            await PromptGenerationPipeline(session, store, vision).run(
                user.id, UploadedImage(svg, 'logo.svg', 'image/svg+xml'))
        assert store.writes == []
        assert vision.calls == []
        assert await count_records(session) == 0
