import os
from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession
from ..schemas.prompt_generations import PromptGenerationOut, PromptGenerationEnvelope, PromptGenerationPage
from ..crud import prompt_generations_for_user
from ..auth import get_current_user
from ..cache import check_rate_limit
from ..exceptions import invalid
from ..models import get_session
from ..models.users import User
from ..models.prompt_generations import PromptGeneration
from ..pagination import paginate, DEFAULT_PER_PAGE, MAX_PER_PAGE
from ..pipeline import PromptGenerationPipeline
from ..storage import BlobStore, get_blob_store
from ..validation import UploadedImage, MAX_FILE_SIZE
from ..vision import VisionClient, get_vision_client

GENERATION_RATE_LIMIT = int(os.getenv('GENERATION_RATE_LIMIT', '10'))

SORTABLE = {
    'created_at': PromptGeneration.created_at,
    'id': PromptGeneration.id,
    'file_size': PromptGeneration.file_size,
    'original_filename': PromptGeneration.original_filename,
    'mime_type': PromptGeneration.mime_type,
}

router = APIRouter()


def parse_sort(sort: str):
    """'-created_at' -> (column, descending=True)"""
    descending = sort.startswith('-')
    key = sort[1:] if descending else sort
    if key not in SORTABLE:
        raise invalid('sort', f"Requested sort(s) `{key}` is not allowed. Allowed sort(s) are `{', '.join(SORTABLE)}`.")
    return SORTABLE[key], descending


@router.get('', response_model=PromptGenerationPage)
async def index(
    request: Request,
    search: str | None = Query(None, max_length=255),
    sort: str = Query('-created_at'),
    page: int = Query(1, ge=1),
    per_page: int = Query(DEFAULT_PER_PAGE, ge=1, le=MAX_PER_PAGE),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    column, descending = parse_sort(sort)
    query = prompt_generations_for_user(user.id, search, column, descending)
    return await paginate(session, query, request, page, per_page, PromptGenerationOut.model_validate)


@router.post('', response_model=PromptGenerationEnvelope, status_code=201)
async def store(
    image: UploadFile = File(...),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    blob_store: BlobStore = Depends(get_blob_store),
    vision_client: VisionClient = Depends(get_vision_client),
):
    if not await check_rate_limit(user.id, 'prompt_generation', limit=GENERATION_RATE_LIMIT, window=60):
        raise HTTPException(429, 'Too many prompt generations. Please slow down.')

    # one byte past the limit is enough to fail the size rule
    content = await image.read(MAX_FILE_SIZE + 1)
    upload = UploadedImage(
        content=content,
        filename=(image.filename or 'upload')[:255],
        content_type=image.content_type or 'application/octet-stream',
    )
    pipeline = PromptGenerationPipeline(session, blob_store, vision_client)
    record = await pipeline.run(user.id, upload)
    return {'data': PromptGenerationOut.model_validate(record)}
