"""
Recompressão de vídeos acima do limite de tamanho.
"""
import asyncio
import logging
from pathlib import Path, PurePath
from typing import Optional
from app.core.config import settings
from app.core.exceptions import ProcessingError
from app.schemas.media import MediaFile
from app.utils.ffmpeg_wrapper import FFmpegError, FFmpegWrapper, ffmpeg_wrapper
from app.utils.storage_manager import StorageManager, storage_manager

logger = logging.getLogger(__name__)

_UNSET = object()


class CompressionEngine:
    """Recodifica para WebM (VP9/Opus) com resolução e frame rate limitados."""

    output_mime_type = "video/webm"

    def __init__(
        self,
        ffmpeg: Optional[FFmpegWrapper] = None,
        storage: Optional[StorageManager] = None,
        threshold_bytes: Optional[int] = None,
        max_width: Optional[int] = None,
        max_height: Optional[int] = None,
        fps: Optional[int] = None,
        video_bitrate: Optional[str] = None,
        timeout=_UNSET
    ):
        self.ffmpeg = ffmpeg or ffmpeg_wrapper
        self.storage = storage or storage_manager
        self.threshold_bytes = threshold_bytes or settings.compression_threshold_bytes
        self.max_width = max_width or settings.compression_max_width
        self.max_height = max_height or settings.compression_max_height
        self.fps = fps or settings.compression_fps
        self.video_bitrate = video_bitrate or settings.compression_video_bitrate
        # None desativa o timeout
        self.timeout = settings.compression_timeout_seconds if timeout is _UNSET else timeout

    def should_compress(self, file: MediaFile) -> bool:
        return file.size_bytes > self.threshold_bytes

    async def compress(self, file: MediaFile, source_path: Optional[Path] = None) -> MediaFile:
        """
        Recodifica o ficheiro.

        Raises:
            ProcessingError: Falha ou timeout do FFmpeg
        """
        output_path = self.storage.new_temp_path(".webm")
        try:
            if source_path is not None:
                await self._transcode(source_path, output_path, file.name)
            else:
                async with self.storage.temp_file(file.data, suffix=file.extension) as temp_path:
                    await self._transcode(temp_path, output_path, file.name)

            data = await self.storage.read_bytes(output_path)

        except asyncio.TimeoutError as e:
            logger.warning(f"Compressão de {file.name} excedeu {self.timeout}s")
            raise ProcessingError(
                f"A compressão excedeu o tempo limite de {self.timeout}s", stage="compression"
            ) from e

        except (FFmpegError, OSError) as e:
            logger.warning(f"Erro na compressão de {file.name}: {e}")
            raise ProcessingError(f"Erro na compressão: {e}", stage="compression") from e

        finally:
            await self.storage.delete_file(str(output_path))

        logger.info(
            f"✓ Compressão concluída: {file.name} {file.size_bytes} -> {len(data)} bytes"
        )
        return MediaFile(
            data=data,
            mime_type=self.output_mime_type,
            name=f"{PurePath(file.name).stem}.webm"
        )

    async def _transcode(self, input_path: Path, output_path: Path, name: str) -> None:
        await self.ffmpeg.transcode(
            str(input_path),
            str(output_path),
            max_width=self.max_width,
            max_height=self.max_height,
            fps=self.fps,
            mime_type=self.output_mime_type,
            video_bitrate=self.video_bitrate,
            timeout=self.timeout,
            job_id=f"compress-{PurePath(name).stem}"
        )
