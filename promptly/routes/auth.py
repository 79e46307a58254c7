import os
from datetime import timedelta
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession
from ..schemas.users import (
    RegisterIn,
    LoginIn,
    TokenOut,
    UserOut,
    ForgotPasswordIn,
    ResetPasswordIn,
    StatusOut,
)
from ..crud import (
    create_user,
    get_user_by_email,
    issue_access_token,
    revoke_access_token,
    create_password_reset,
    get_password_reset,
    update_password,
)
from ..auth import get_current_user, get_current_token, verify_password, hash_token, utcnow, as_aware
from ..cache import too_many_attempts, hit, clear_rate_limit
from ..exceptions import invalid
from ..mailer import Mailer, get_mailer
from ..models import get_session
from ..models.users import User
from ..models.access_tokens import AccessToken
import logging

logger = logging.getLogger(__name__)

LOGIN_MAX_ATTEMPTS = 5
LOGIN_DECAY_SECONDS = 60
PASSWORD_RESET_EXPIRE_MINUTES = int(os.getenv('PASSWORD_RESET_EXPIRE_MINUTES', '60'))

router = APIRouter()


def _throttle_key(request: Request, email: str) -> str:
    host = request.client.host if request.client else 'unknown'
    return f"{email.lower()}|{host}"


@router.post('/register', response_model=TokenOut, status_code=201)
async def register(payload: RegisterIn, session: AsyncSession = Depends(get_session)):
    if payload.password != payload.password_confirmation:
        raise invalid('password', 'The password field confirmation does not match.')
    if await get_user_by_email(session, payload.email):
        raise invalid('email', 'The email has already been taken.')

    user = await create_user(session, payload)
    token = await issue_access_token(session, user)
    logger.info({'msg': 'user_registered', 'user_id': user.id})
    return {**token, 'user': UserOut.model_validate(user)}


@router.post('/login', response_model=TokenOut)
async def login(payload: LoginIn, request: Request, session: AsyncSession = Depends(get_session)):
    key = _throttle_key(request, payload.email)
    if await too_many_attempts(key, 'login', LOGIN_MAX_ATTEMPTS):
        raise HTTPException(429, 'Too many login attempts. Please try again later.')

    user = await get_user_by_email(session, payload.email)
    if not user or not verify_password(payload.password, user.hashed_password):
        await hit(key, 'login', LOGIN_DECAY_SECONDS)
        raise invalid('email', 'These credentials do not match our records.')

    await clear_rate_limit(key, 'login')
    token = await issue_access_token(session, user)
    logger.info({'msg': 'user_logged_in', 'user_id': user.id})
    return {**token, 'user': UserOut.model_validate(user)}


@router.post('/logout', status_code=204)
async def logout(
    token: AccessToken = Depends(get_current_token),
    session: AsyncSession = Depends(get_session),
):
    await revoke_access_token(session, token)
    logger.info({'msg': 'user_logged_out', 'user_id': token.user_id})
    return Response(status_code=204)


@router.post('/forgot-password', response_model=StatusOut)
async def forgot_password(
    payload: ForgotPasswordIn,
    session: AsyncSession = Depends(get_session),
    mailer: Mailer = Depends(get_mailer),
):
    user = await get_user_by_email(session, payload.email)
    if not user:
        raise invalid('email', "We can't find a user with that email address.")

    token = await create_password_reset(session, user.email)
    await mailer.send_password_reset(user.email, token)
    return {'status': 'We have emailed your password reset link.'}


@router.post('/reset-password', response_model=StatusOut)
async def reset_password(payload: ResetPasswordIn, session: AsyncSession = Depends(get_session)):
    if payload.password != payload.password_confirmation:
        raise invalid('password', 'The password field confirmation does not match.')

    user = await get_user_by_email(session, payload.email)
    if not user:
        raise invalid('email', "We can't find a user with that email address.")

    reset = await get_password_reset(session, user.email)
    expired = reset is not None and as_aware(reset.created_at) + timedelta(minutes=PASSWORD_RESET_EXPIRE_MINUTES) < utcnow()
    if not reset or expired or reset.token_hash != hash_token(payload.token):
        raise invalid('email', 'This password reset token is invalid.')

    await update_password(session, user, payload.password)
    logger.info({'msg': 'password_reset', 'user_id': user.id})
    return {'status': 'Your password has been reset.'}


@router.get('/user', response_model=UserOut)
async def current_user(user: User = Depends(get_current_user)):
    return user
