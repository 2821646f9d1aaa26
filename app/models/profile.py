"""
Modelo Profile com os campos do vídeo de apresentação.
"""
from sqlalchemy import Column, String, DateTime, Text, JSON, Uuid
import uuid
from datetime import datetime, timezone
from app.core.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Profile(Base):
    """Modelo de perfil (apenas os campos usados pelo pipeline de vídeo)."""
    __tablename__ = "profiles"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    auth_id = Column(String(255), unique=True, nullable=False, index=True)
    intro_video_url = Column(Text)
    video_thumbnail_url = Column(Text)
    # Definido no primeiro save; só é limpo quando a remoção é permitida
    first_video_uploaded_at = Column(DateTime(timezone=True))
    desired_roles = Column(JSON)
    desired_location = Column(String(100))
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True))
