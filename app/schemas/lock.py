"""
Schemas Pydantic para o estado de bloqueio do vídeo.
"""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class LockStatus(BaseModel):
    """Projeção derivada de `first_video_uploaded_at`; nunca é persistida."""
    is_locked: bool
    remaining_days: int = Field(ge=0)
    can_delete: bool
    first_upload_at: Optional[datetime] = None


class LockStatusResponse(LockStatus):
    """Estado de bloqueio com a mensagem para o utilizador."""
    message: str
