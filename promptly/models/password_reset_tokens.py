from sqlalchemy import Column, String, DateTime
from . import Base

class PasswordResetToken(Base):
    __tablename__ = 'password_reset_tokens'
    email = Column(String(255), primary_key=True)
    token_hash = Column(String(128), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
