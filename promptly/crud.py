from datetime import timedelta
from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from .models.users import User
from .models.access_tokens import AccessToken
from .models.password_reset_tokens import PasswordResetToken
from .models.posts import Post
from .models.prompt_generations import PromptGeneration
from .exceptions import invalid
from .auth import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    create_access_token,
    generate_token,
    hash_password,
    hash_token,
    utcnow,
)

# users

async def get_user_by_email(session: AsyncSession, email: str):
    q = await session.execute(select(User).where(User.email == email.lower()))
    return q.scalars().first()

async def create_user(session: AsyncSession, payload):
    user = User(
        name=payload.name,
        email=payload.email.lower(),
        hashed_password=hash_password(payload.password),
    )
    session.add(user)
    try:
        await session.commit()
    except IntegrityError:
        # a concurrent registration took the address after the route checked it
        await session.rollback()
        raise invalid('email', 'The email has already been taken.')
    await session.refresh(user)
    return user

async def update_password(session: AsyncSession, user: User, password: str):
    user.hashed_password = hash_password(password)
    await session.execute(
        update(AccessToken)
        .where(AccessToken.user_id == user.id, AccessToken.revoked_at.is_(None))
        .values(revoked_at=utcnow())
    )
    # same transaction, so a reset token can never outlive the password it set
    await session.execute(delete(PasswordResetToken).where(PasswordResetToken.email == user.email))
    await session.commit()
    await session.refresh(user)
    return user

# access tokens

async def issue_access_token(session: AsyncSession, user: User, name: str = 'api'):
    expires_at = utcnow() + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    # only the hash of the jti is stored
    jti = generate_token()
    st = AccessToken(user_id=user.id, name=name, token_hash=hash_token(jti), expires_at=expires_at)
    session.add(st)
    await session.commit()
    access = create_access_token({'sub': str(user.id), 'jti': jti}, expires_delta=expires_at - utcnow())
    return {'access_token': access, 'token_type': 'bearer'}

async def revoke_access_token(session: AsyncSession, token: AccessToken):
    token.revoked_at = utcnow()
    await session.commit()

# password resets

async def create_password_reset(session: AsyncSession, email: str) -> str:
    token = generate_token()
    await session.execute(delete(PasswordResetToken).where(PasswordResetToken.email == email))
    session.add(PasswordResetToken(email=email, token_hash=hash_token(token), created_at=utcnow()))
    await session.commit()
    return token

async def get_password_reset(session: AsyncSession, email: str):
    return await session.get(PasswordResetToken, email)

# posts

def posts_for_user(user_id: int):
    return select(Post).where(Post.user_id == user_id).order_by(Post.created_at.desc(), Post.id.desc())

async def get_post(session: AsyncSession, post_id: int):
    return await session.get(Post, post_id)

async def create_post(session: AsyncSession, user_id: int, title: str, body: str):
    post = Post(user_id=user_id, title=title, body=body)
    session.add(post)
    await session.commit()
    await session.refresh(post)
    return post

async def update_post(session: AsyncSession, post: Post, changes: dict):
    for field, value in changes.items():
        setattr(post, field, value)
    await session.commit()
    await session.refresh(post)
    return post

async def delete_post(session: AsyncSession, post: Post):
    await session.delete(post)
    await session.commit()

# prompt generations

def prompt_generations_for_user(user_id: int, search: str | None, sort_column, descending: bool):
    q = select(PromptGeneration).where(PromptGeneration.user_id == user_id)
    if search:
        escaped = search.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
        q = q.where(PromptGeneration.generated_prompt.ilike(f'%{escaped}%', escape='\\'))
    if descending:
        return q.order_by(sort_column.desc(), PromptGeneration.id.desc())
    return q.order_by(sort_column.asc(), PromptGeneration.id.asc())

async def create_prompt_generation(session: AsyncSession, **fields):
    record = PromptGeneration(**fields)
    session.add(record)
    try:
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    await session.refresh(record)
    return record
