"""
Extração da thumbnail JPEG do vídeo.
"""
import asyncio
import logging
from pathlib import Path
from typing import Optional
from app.core.config import settings
from app.core.exceptions import ProcessingError
from app.schemas.media import MediaFile
from app.utils.ffmpeg_wrapper import FFmpegError, FFmpegWrapper, ffmpeg_wrapper
from app.utils.storage_manager import StorageManager, storage_manager

logger = logging.getLogger(__name__)


def seek_position(duration_seconds: float) -> float:
    """1s, ou metade da duração em vídeos com menos de 2s."""
    return min(1.0, duration_seconds / 2)


class ThumbnailExtractor:
    """Captura um frame do vídeo e codifica em JPEG."""

    def __init__(
        self,
        ffmpeg: Optional[FFmpegWrapper] = None,
        storage: Optional[StorageManager] = None,
        width: Optional[int] = None,
        height: Optional[int] = None,
        quality: Optional[int] = None
    ):
        self.ffmpeg = ffmpeg or ffmpeg_wrapper
        self.storage = storage or storage_manager
        self.width = width or settings.thumbnail_width
        self.height = height or settings.thumbnail_height
        self.quality = quality or settings.thumbnail_quality

    async def extract(
        self,
        file: MediaFile,
        duration_seconds: float,
        source_path: Optional[Path] = None
    ) -> bytes:
        """
        Gera a thumbnail.

        Raises:
            ProcessingError: FFmpeg falhou ou não produziu imagem
        """
        output_path = self.storage.new_temp_path(".jpg")
        try:
            if source_path is not None:
                await self._extract_to(source_path, output_path, duration_seconds)
            else:
                async with self.storage.temp_file(file.data, suffix=file.extension) as temp_path:
                    await self._extract_to(temp_path, output_path, duration_seconds)

            if not output_path.exists() or output_path.stat().st_size == 0:
                raise ProcessingError("FFmpeg não produziu a thumbnail", stage="thumbnail")

            data = await self.storage.read_bytes(output_path)
            logger.info(f"Thumbnail gerada para {file.name} ({len(data)} bytes)")
            return data

        except (FFmpegError, asyncio.TimeoutError, OSError) as e:
            logger.warning(f"Erro ao gerar thumbnail de {file.name}: {e}")
            raise ProcessingError(f"Erro ao gerar thumbnail: {e}", stage="thumbnail") from e

        finally:
            await self.storage.delete_file(str(output_path))

    async def _extract_to(self, input_path: Path, output_path: Path, duration_seconds: float) -> None:
        await self.ffmpeg.extract_frame(
            str(input_path),
            str(output_path),
            seek_seconds=seek_position(duration_seconds),
            width=self.width,
            height=self.height,
            quality=self.quality
        )
