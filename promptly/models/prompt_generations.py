from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, func
from . import Base

class PromptGeneration(Base):
    __tablename__ = 'prompt_generations'
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), index=True, nullable=False)
    image_url = Column(String(2048), nullable=False)
    generated_prompt = Column(Text, nullable=False)
    original_filename = Column(String(255), nullable=False)
    file_size = Column(Integer, nullable=False)
    mime_type = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
