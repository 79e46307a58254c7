"""
Blob Storage for Uploaded Images
Local filesystem (served under /storage) or AWS S3, selected by STORAGE_BACKEND
"""

import os
import uuid
import logging
import aiofiles
import aiofiles.os
import aioboto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from fastapi.staticfiles import StaticFiles

from .exceptions import StorageError

logger = logging.getLogger(__name__)

# Configuration
STORAGE_BACKEND = os.getenv('STORAGE_BACKEND', 'local')
UPLOAD_DIR = os.getenv('UPLOAD_DIR', 'storage')
PUBLIC_STORAGE_URL = os.getenv('PUBLIC_STORAGE_URL', '/storage').rstrip('/')

S3_BUCKET = os.getenv('AWS_S3_BUCKET')
S3_REGION = os.getenv('AWS_S3_REGION') or os.getenv('AWS_REGION', 'us-east-1')


def generate_key(extension: str, folder: str = 'images') -> str:
    """Collision-resistant object key; the client filename is never used"""
    return f"{folder}/{uuid.uuid4().hex}.{extension}"


class BlobStore:
    """Write bytes under a key and hand back a public URL"""

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        raise NotImplementedError

    async def delete(self, url: str) -> bool:
        raise NotImplementedError


class LocalBlobStore(BlobStore):
    def __init__(self, root: str = UPLOAD_DIR, public_url: str = PUBLIC_STORAGE_URL):
        self.root = root
        self.public_url = public_url.rstrip('/')

    def get_file_path(self, key: str) -> str:
        return os.path.join(self.root, *key.split('/'))

    def get_public_url(self, key: str) -> str:
        return f"{self.public_url}/{key}"

    def key_from_url(self, url: str) -> str | None:
        prefix = f"{self.public_url}/"
        if not url.startswith(prefix):
            return None
        key = url[len(prefix):]
        if '..' in key.split('/'):
            return None
        return key

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        file_path = self.get_file_path(key)
        try:
            await aiofiles.os.makedirs(os.path.dirname(file_path), exist_ok=True)
            # 'xb' refuses to overwrite an existing object
            async with aiofiles.open(file_path, 'xb') as f:
                await f.write(data)
        except OSError as e:
            raise StorageError(f"Error saving file: {e}") from e
        return self.get_public_url(key)

    async def delete(self, url: str) -> bool:
        key = self.key_from_url(url)
        if key is None:
            return False
        file_path = self.get_file_path(key)
        try:
            await aiofiles.os.remove(file_path)
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Error deleting file: {e}") from e


class UploadedFiles(StaticFiles):
    """Serves LocalBlobStore objects; uploads are untrusted so nothing runs in the API origin"""

    def file_response(self, full_path, stat_result, scope, status_code=200):
        response = super().file_response(full_path, stat_result, scope, status_code)
        response.headers['Content-Security-Policy'] = "default-src 'none'; sandbox"
        response.headers['X-Content-Type-Options'] = 'nosniff'
        if str(full_path).lower().endswith('.svg'):
            response.headers['Content-Disposition'] = 'attachment'
        return response


class S3BlobStore(BlobStore):
    def __init__(self, bucket: str | None = S3_BUCKET, region: str = S3_REGION):
        if not bucket:
            raise ValueError("AWS_S3_BUCKET must be set for the s3 storage backend")
        self.bucket_name = bucket
        self.region = region
        self.session = aioboto3.Session()

    def _client(self):
        return self.session.client(
            's3',
            region_name=self.region,
            aws_access_key_id=os.getenv('AWS_ACCESS_KEY_ID'),
            aws_secret_access_key=os.getenv('AWS_SECRET_ACCESS_KEY'),
            config=Config(signature_version='s3v4'),
        )

    def get_public_url(self, key: str) -> str:
        return f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/{key}"

    def key_from_url(self, url: str) -> str | None:
        prefix = f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/"
        return url[len(prefix):] if url.startswith(prefix) else None

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        try:
            async with self._client() as client:
                await client.put_object(Bucket=self.bucket_name, Key=key, Body=data, ContentType=content_type)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Error uploading to S3: {e}") from e
        return self.get_public_url(key)

    async def delete(self, url: str) -> bool:
        key = self.key_from_url(url)
        if key is None:
            return False
        try:
            async with self._client() as client:
                await client.delete_object(Bucket=self.bucket_name, Key=key)
            return True
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Error deleting from S3: {e}") from e


_blob_store: BlobStore | None = None


def get_blob_store() -> BlobStore:
    """FastAPI dependency; tests override it with an in-memory store"""
    global _blob_store
    if _blob_store is None:
        if STORAGE_BACKEND == 's3':
            _blob_store = S3BlobStore()
        else:
            _blob_store = LocalBlobStore()
        logger.info({'msg': 'blob_store_ready', 'backend': STORAGE_BACKEND})
    return _blob_store
