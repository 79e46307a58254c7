from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession
from ..schemas.posts import PostIn, PostUpdateIn, PostOut, PostEnvelope, PostPage
from ..crud import posts_for_user, get_post, create_post, update_post, delete_post
from ..auth import get_current_user
from ..models import get_session
from ..models.users import User
from ..pagination import paginate, DEFAULT_PER_PAGE, MAX_PER_PAGE

router = APIRouter()


async def _authored_post(post_id: int, user: User, session: AsyncSession):
    post = await get_post(session, post_id)
    if not post:
        raise HTTPException(404, 'Post not found.')
    if post.user_id != user.id:
        raise HTTPException(403, 'This action is unauthorized.')
    return post


@router.get('', response_model=PostPage)
async def index(
    request: Request,
    page: int = Query(1, ge=1),
    per_page: int = Query(DEFAULT_PER_PAGE, ge=1, le=MAX_PER_PAGE),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await paginate(session, posts_for_user(user.id), request, page, per_page, PostOut.model_validate)


@router.post('', response_model=PostEnvelope, status_code=201)
async def store(
    payload: PostIn,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    post = await create_post(session, user.id, payload.title, payload.body)
    return {'data': PostOut.model_validate(post)}


@router.get('/{post_id}', response_model=PostEnvelope)
async def show(
    post_id: int,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return {'data': PostOut.model_validate(await _authored_post(post_id, user, session))}


@router.put('/{post_id}', response_model=PostEnvelope)
async def update(
    post_id: int,
    payload: PostUpdateIn,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    post = await _authored_post(post_id, user, session)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if changes:
        post = await update_post(session, post, changes)
    return {'data': PostOut.model_validate(post)}


@router.delete('/{post_id}', status_code=204)
async def destroy(
    post_id: int,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    post = await _authored_post(post_id, user, session)
    await delete_post(session, post)
    return Response(status_code=204)
