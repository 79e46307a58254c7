from datetime import datetime
from pydantic import BaseModel, ConfigDict
from typing import List, Optional
from .common import Links, Meta

class PromptGenerationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    image_url: str
    generated_prompt: str
    original_filename: str
    file_size: int
    mime_type: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class PromptGenerationEnvelope(BaseModel):
    data: PromptGenerationOut

class PromptGenerationPage(BaseModel):
    data: List[PromptGenerationOut]
    links: Links
    meta: Meta
