import os
import secrets
import hashlib
from datetime import datetime, timedelta, timezone
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from .models import get_session
from .models.users import User
from .models.access_tokens import AccessToken

SECRET = os.getenv('JWT_SECRET', 'devsecret')
ALGORITHM = os.getenv('JWT_ALGORITHM', 'HS256')
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv('ACCESS_TOKEN_EXPIRE_MINUTES', str(60 * 24 * 7)))
BCRYPT_ROUNDS = int(os.getenv('BCRYPT_ROUNDS', '12'))

pwd_ctx = CryptContext(schemes=['bcrypt'], deprecated='auto', bcrypt__rounds=BCRYPT_ROUNDS)
bearer = HTTPBearer(auto_error=False)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone=True columns
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def hash_password(password: str) -> str:
    return pwd_ctx.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_ctx.verify(password, hashed)


def generate_token() -> str:
    # 256-bit random token, URL-safe
    return secrets.token_urlsafe(48)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_access_token(data: dict, expires_delta: timedelta = None):
    to_encode = data.copy()
    if expires_delta:
        expire = utcnow() + expires_delta
    else:
        expire = utcnow() + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({'exp': expire})
    return jwt.encode(to_encode, SECRET, algorithm=ALGORITHM)


def decode_token(token: str):
    try:
        return jwt.decode(token, SECRET, algorithms=[ALGORITHM])
    except JWTError:
        return None


async def get_current_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    session: AsyncSession = Depends(get_session),
) -> AccessToken:
    """Resolve the bearer token to its live AccessToken row or raise 401."""
    if credentials is None:
        raise HTTPException(401, 'Unauthenticated.')
    payload = decode_token(credentials.credentials)
    if not payload or 'jti' not in payload or 'sub' not in payload:
        raise HTTPException(401, 'Unauthenticated.')
    q = await session.execute(select(AccessToken).where(
        AccessToken.token_hash == hash_token(payload['jti']),
        AccessToken.user_id == int(payload['sub']),
        AccessToken.revoked_at.is_(None),
    ))
    token = q.scalars().first()
    if not token or as_aware(token.expires_at) <= utcnow():
        raise HTTPException(401, 'Unauthenticated.')
    token.last_used_at = utcnow()
    await session.commit()
    return token


async def get_current_user(
    request: Request,
    token: AccessToken = Depends(get_current_token),
    session: AsyncSession = Depends(get_session),
) -> User:
    user = await session.get(User, token.user_id)
    if not user:
        raise HTTPException(401, 'Unauthenticated.')
    request.state.user_id = user.id
    return user
