from fastapi import APIRouter
from .auth import router as auth_router
from .posts import router as posts_router
from .prompt_generations import router as prompt_generations_router

router = APIRouter()
router.include_router(auth_router, tags=['auth'])
router.include_router(posts_router, prefix='/v1/posts', tags=['posts'])
router.include_router(prompt_generations_router, prefix='/v1/prompt-generations', tags=['prompt-generations'])
