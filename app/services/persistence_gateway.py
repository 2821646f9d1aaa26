"""
Gateway de persistência: object store para os ficheiros e registo do perfil.
"""
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from app.core.database import SessionLocal
from app.core.exceptions import PersistError, UploadError
from app.models.profile import Profile
from app.schemas.media import MIME_EXTENSIONS
from app.utils.storage_manager import StorageManager, storage_manager

logger = logging.getLogger(__name__)

ASSET_BUCKETS = {
    "video": "videos",
    "thumbnail": "thumbnails",
}


@dataclass
class VideoLockState:
    """Dados do perfil necessários para avaliar o bloqueio."""
    first_upload_at: Optional[datetime] = None
    intro_video_url: Optional[str] = None
    video_thumbnail_url: Optional[str] = None


class PersistenceGateway(ABC):
    """Contrato de persistência consumido pelo pipeline."""

    @abstractmethod
    async def upload_asset(self, owner_id: str, kind: str, data: bytes, content_type: str) -> str:
        """Envia um ficheiro ('video' | 'thumbnail') e retorna a URL pública."""

    @abstractmethod
    async def upsert_profile_video(
        self,
        owner_id: str,
        intro_video_url: str,
        video_thumbnail_url: Optional[str],
        first_video_uploaded_at: Optional[datetime] = None,
        desired_roles: Optional[List[str]] = None,
        desired_location: Optional[str] = None
    ) -> None:
        """Cria ou atualiza os campos do vídeo no perfil."""

    @abstractmethod
    async def delete_profile_video(self, owner_id: str) -> None:
        """Remove o vídeo do perfil."""

    @abstractmethod
    async def read_video_lock_state(self, owner_id: str) -> VideoLockState:
        """Lê o estado persistido usado pela política de bloqueio."""

    @abstractmethod
    async def delete_asset(self, url: str) -> None:
        """Remove um ficheiro enviado que não chegou a ficar associado ao perfil."""


class StoragePersistenceGateway(PersistenceGateway):
    """Adapter sobre o StorageManager (ficheiros) e SQLAlchemy (perfil)."""

    def __init__(
        self,
        storage: Optional[StorageManager] = None,
        session_factory: Callable[[], Session] = SessionLocal
    ):
        self.storage = storage or storage_manager
        self.session_factory = session_factory

    @staticmethod
    def _get_profile(db: Session, owner_id: str) -> Optional[Profile]:
        return db.query(Profile).filter(Profile.auth_id == owner_id).first()

    async def upload_asset(self, owner_id: str, kind: str, data: bytes, content_type: str) -> str:
        bucket = ASSET_BUCKETS.get(kind)
        if bucket is None:
            raise UploadError(f"Tipo de ficheiro desconhecido: {kind}")

        if kind == "thumbnail":
            extension = ".jpg"
        else:
            base = content_type.split(";", 1)[0].strip().lower()
            extension = MIME_EXTENSIONS.get(base, ".bin")

        file_name = f"{uuid.uuid4()}{extension}"
        try:
            key = await self.storage.save_object(bucket, owner_id, file_name, data)
        except OSError as e:
            logger.error(f"Erro ao enviar {kind} de {owner_id}: {e}")
            raise UploadError(f"Erro ao enviar o ficheiro: {e}") from e

        return self.storage.public_url(key)

    async def upsert_profile_video(
        self,
        owner_id: str,
        intro_video_url: str,
        video_thumbnail_url: Optional[str],
        first_video_uploaded_at: Optional[datetime] = None,
        desired_roles: Optional[List[str]] = None,
        desired_location: Optional[str] = None
    ) -> None:
        db = self.session_factory()
        superseded = []
        try:
            profile = self._get_profile(db, owner_id)
            if profile is None:
                profile = Profile(auth_id=owner_id)
                db.add(profile)
            else:
                superseded = [
                    url for url in (profile.intro_video_url, profile.video_thumbnail_url)
                    if url and url not in (intro_video_url, video_thumbnail_url)
                ]

            profile.intro_video_url = intro_video_url
            profile.video_thumbnail_url = video_thumbnail_url
            if first_video_uploaded_at is not None:
                profile.first_video_uploaded_at = first_video_uploaded_at
            if desired_roles is not None:
                profile.desired_roles = desired_roles
            if desired_location is not None:
                profile.desired_location = desired_location
            profile.updated_at = datetime.now(timezone.utc)

            db.commit()
            logger.info(f"Vídeo do perfil atualizado: {owner_id}")

        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Erro ao gravar perfil {owner_id}: {e}")
            raise PersistError(f"Erro ao gravar o perfil: {e}") from e
        finally:
            db.close()

        await self._delete_objects(superseded)

    async def delete_profile_video(self, owner_id: str) -> None:
        db = self.session_factory()
        try:
            profile = self._get_profile(db, owner_id)
            if profile is None:
                return

            urls = [profile.intro_video_url, profile.video_thumbnail_url]
            profile.intro_video_url = None
            profile.video_thumbnail_url = None
            profile.first_video_uploaded_at = None
            profile.updated_at = datetime.now(timezone.utc)
            db.commit()
            logger.info(f"Vídeo removido do perfil: {owner_id}")

        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Erro ao remover vídeo do perfil {owner_id}: {e}")
            raise PersistError(f"Erro ao remover o vídeo: {e}") from e
        finally:
            db.close()

        await self._delete_objects(urls)

    async def read_video_lock_state(self, owner_id: str) -> VideoLockState:
        db = self.session_factory()
        try:
            profile = self._get_profile(db, owner_id)
            if profile is None:
                return VideoLockState()
            return VideoLockState(
                first_upload_at=profile.first_video_uploaded_at,
                intro_video_url=profile.intro_video_url,
                video_thumbnail_url=profile.video_thumbnail_url
            )
        except SQLAlchemyError as e:
            logger.error(f"Erro ao ler perfil {owner_id}: {e}")
            raise PersistError(f"Erro ao ler o perfil: {e}") from e
        finally:
            db.close()

    async def delete_asset(self, url: str) -> None:
        await self._delete_objects([url])

    async def _delete_objects(self, urls: List[Optional[str]]) -> None:
        """Remove ficheiros que deixaram de estar referenciados (falhas só são registadas)."""
        for url in urls:
            key = self.storage.key_from_url(url)
            if key:
                await self.storage.delete_object(key)
