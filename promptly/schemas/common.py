from pydantic import BaseModel, Field
from typing import Optional

class Links(BaseModel):
    first: str
    last: str
    prev: Optional[str] = None
    next: Optional[str] = None

class Meta(BaseModel):
    current_page: int
    from_: Optional[int] = Field(default=None, alias='from')
    to: Optional[int] = None
    last_page: int
    per_page: int
    total: int
    path: str
