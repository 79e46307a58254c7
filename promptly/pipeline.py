"""
Image-to-prompt pipeline: validate, store, describe, persist.
Every collaborator is passed in so routes and tests choose the implementations.
"""
import logging
from sqlalchemy.ext.asyncio import AsyncSession

from .core import GENERATIONS
from .crud import create_prompt_generation
from .exceptions import StorageError, UploadValidationError, VisionError
from .storage import BlobStore, generate_key
from .validation import UploadedImage, validate_image
from .vision import VisionClient, to_vision_input

logger = logging.getLogger(__name__)


class PromptGenerationPipeline:

    def __init__(self, session: AsyncSession, blob_store: BlobStore, vision_client: VisionClient):
        self.session = session
        self.blob_store = blob_store
        self.vision_client = vision_client

    async def _discard(self, url: str):
        # the stored file has no record pointing at it
        try:
            await self.blob_store.delete(url)
        except StorageError as e:
            logger.warning({'msg': 'orphan_cleanup_failed', 'url': url, 'error': str(e)})

    async def run(self, user_id: int, upload: UploadedImage):
        try:
            info = validate_image(upload)
        except UploadValidationError:
            GENERATIONS.labels(outcome='invalid').inc()
            raise

        try:
            image, image_type = await to_vision_input(upload.content, info.mime_type, info.width, info.height)
        except Exception as e:
            logger.exception({'msg': 'rasterize_failed', 'user_id': user_id, 'mime_type': info.mime_type})
            GENERATIONS.labels(outcome='vision_failed').inc()
            raise VisionError('Could not convert the image for the vision API') from e

        try:
            url = await self.blob_store.put(generate_key(info.extension), upload.content, info.mime_type)
        except StorageError:
            GENERATIONS.labels(outcome='storage_failed').inc()
            raise
        logger.info({'msg': 'generation_stored', 'user_id': user_id, 'url': url, 'size': upload.size})

        try:
            text = await self.vision_client.describe(image, image_type)
        except VisionError as e:
            logger.error({'msg': 'vision_failed', 'user_id': user_id, 'error': str(e)})
            GENERATIONS.labels(outcome='vision_failed').inc()
            await self._discard(url)
            raise

        try:
            record = await create_prompt_generation(
                self.session,
                user_id=user_id,
                image_url=url,
                generated_prompt=text,
                original_filename=upload.filename,
                file_size=upload.size,
                mime_type=info.mime_type,
            )
        except Exception:
            logger.exception({'msg': 'generation_persist_failed', 'user_id': user_id, 'url': url})
            GENERATIONS.labels(outcome='persist_failed').inc()
            await self._discard(url)
            raise

        GENERATIONS.labels(outcome='created').inc()
        logger.info({'msg': 'generation_created', 'user_id': user_id, 'id': record.id})
        return record
