from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from .common import Links, Meta

class PostIn(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    body: str = Field(min_length=1)

class PostUpdateIn(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    body: Optional[str] = Field(default=None, min_length=1)

class PostOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    title: str
    body: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class PostEnvelope(BaseModel):
    data: PostOut

class PostPage(BaseModel):
    data: List[PostOut]
    links: Links
    meta: Meta
