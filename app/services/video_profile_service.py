"""
Serviço de vídeo do perfil: publicação, estado de bloqueio e remoção protegida.
"""
import logging
from datetime import datetime, timezone
from typing import Optional
from app.core.config import settings
from app.core.exceptions import LockViolation, PersistError, UploadError
from app.schemas.lock import LockStatus
from app.schemas.media import MediaAsset
from app.schemas.profile_video import ProfileVideoSchema, VideoDetailsSchema
from app.services import lock_policy
from app.services.persistence_gateway import PersistenceGateway

logger = logging.getLogger(__name__)


class VideoProfileService:
    """Convenção de chamada sobre o PersistenceGateway."""

    def __init__(self, gateway: PersistenceGateway, lock_days: Optional[int] = None):
        self.gateway = gateway
        self.lock_days = settings.video_lock_days if lock_days is None else lock_days

    async def get_lock_status(self, owner_id: str, now: Optional[datetime] = None) -> LockStatus:
        """Estado de bloqueio calculado a partir do registo atual."""
        state = await self.gateway.read_video_lock_state(owner_id)

        if not state.intro_video_url or state.first_upload_at is None:
            return LockStatus(is_locked=False, remaining_days=0, can_delete=True)

        return lock_policy.evaluate(state.first_upload_at, now=now, lock_days=self.lock_days)

    async def save_video(
        self,
        owner_id: str,
        asset: MediaAsset,
        details: VideoDetailsSchema,
        now: Optional[datetime] = None
    ) -> ProfileVideoSchema:
        """
        Publica o vídeo no perfil.

        O vídeo tem de ser enviado com sucesso; a thumbnail é opcional e uma
        falha no envio apenas deixa o perfil sem thumbnail. A data do primeiro
        upload só é gravada se o perfil nunca teve vídeo.

        Raises:
            UploadError: Falha no envio do vídeo
            PersistError: Falha ao gravar o perfil (os ficheiros enviados são removidos)
        """
        now = now or datetime.now(timezone.utc)

        video_url = await self.gateway.upload_asset(
            owner_id, "video", asset.file.data, asset.file.mime_type
        )

        thumbnail_url = None
        if asset.thumbnail:
            try:
                thumbnail_url = await self.gateway.upload_asset(
                    owner_id, "thumbnail", asset.thumbnail, "image/jpeg"
                )
            except UploadError as e:
                logger.warning(f"Thumbnail não enviada para {owner_id}, a gravar sem thumbnail: {e}")

        try:
            prior = await self.gateway.read_video_lock_state(owner_id)
            is_first_save = prior.intro_video_url is None and prior.first_upload_at is None
            first_upload_at = now if is_first_save else None

            await self.gateway.upsert_profile_video(
                owner_id,
                intro_video_url=video_url,
                video_thumbnail_url=thumbnail_url,
                first_video_uploaded_at=first_upload_at,
                desired_roles=details.desired_roles,
                desired_location=details.desired_location
            )
        except PersistError:
            # Ficheiros enviados sem registo a apontar para eles
            for url in (video_url, thumbnail_url):
                if url:
                    await self.gateway.delete_asset(url)
            raise

        logger.info(
            f"✓ Vídeo publicado para {owner_id} "
            f"({'primeiro upload' if is_first_save else 'substituição'})"
        )

        return ProfileVideoSchema(
            intro_video_url=video_url,
            video_thumbnail_url=thumbnail_url,
            first_video_uploaded_at=first_upload_at or prior.first_upload_at
        )

    async def delete_video(self, owner_id: str, now: Optional[datetime] = None) -> None:
        """
        Remove o vídeo do perfil se o período de bloqueio já terminou.

        Raises:
            LockViolation: Vídeo ainda bloqueado (nenhuma chamada ao gateway é feita)
        """
        status = await self.get_lock_status(owner_id, now=now)
        if not status.can_delete:
            logger.info(f"Remoção recusada para {owner_id}: {status.remaining_days} dias restantes")
            raise LockViolation(status.remaining_days)

        await self.gateway.delete_profile_video(owner_id)
        logger.info(f"Vídeo removido: {owner_id}")
