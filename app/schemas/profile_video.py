"""
Schemas Pydantic para publicação do vídeo no perfil.
"""
from pydantic import BaseModel, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime
from app.core.config import settings


class VideoDetailsSchema(BaseModel):
    """Dados obrigatórios para publicar o vídeo."""
    desired_roles: List[str]
    desired_location: str

    @field_validator("desired_roles")
    @classmethod
    def validate_roles(cls, value: List[str]) -> List[str]:
        roles = [role.strip() for role in value]

        if not roles or any(not role for role in roles):
            raise ValueError("Indique pelo menos uma função pretendida")

        if len(roles) > settings.max_desired_roles:
            raise ValueError(f"Máximo de {settings.max_desired_roles} funções pretendidas")

        for role in roles:
            if len(role) > settings.max_role_length:
                raise ValueError(
                    f"A função não pode exceder {settings.max_role_length} caracteres"
                )

        if len(set(roles)) != len(roles):
            raise ValueError("Esta função já foi adicionada")

        return roles

    @field_validator("desired_location")
    @classmethod
    def validate_location(cls, value: str) -> str:
        location = value.strip()
        if not location:
            raise ValueError("A localização pretendida é obrigatória")
        if len(location) > settings.max_location_length:
            raise ValueError(
                f"A localização não pode exceder {settings.max_location_length} caracteres"
            )
        return location


class ProfileVideoSchema(BaseModel):
    """Campos do perfil relativos ao vídeo (resposta)."""
    intro_video_url: Optional[str] = None
    video_thumbnail_url: Optional[str] = None
    first_video_uploaded_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CaptureSnapshotSchema(BaseModel):
    """Estado atual do controlador de captura."""
    state: str
    countdown: Optional[int] = None
    source: Optional[str] = None
    asset: Optional[Dict[str, Any]] = None
    preview_path: Optional[str] = None
    last_error: Optional[str] = None
    saved: Optional[ProfileVideoSchema] = None
