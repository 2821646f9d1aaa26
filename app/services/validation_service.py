"""
Validação de vídeos candidatos: tamanho, formato e duração.
"""
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Tuple
from app.core.config import settings
from app.schemas.media import MediaFile, MediaSource, ValidationResult
from app.utils.storage_manager import StorageManager, storage_manager
from app.utils.stream_probe import StreamProbe, stream_probe

logger = logging.getLogger(__name__)

MB = 1024 * 1024


class DurationEstimator(ABC):
    """Estimativa de duração quando os metadados não a indicam."""

    @abstractmethod
    def estimate(self, file: MediaFile) -> float:
        ...


class SizeBasedDurationEstimator(DurationEstimator):
    """Duração aproximada a partir do tamanho (bytes por segundo calibrado)."""

    def __init__(self, bytes_per_second: Optional[int] = None):
        self.bytes_per_second = bytes_per_second or settings.estimated_bytes_per_second

    def estimate(self, file: MediaFile) -> float:
        return file.size_bytes / self.bytes_per_second


class ValidationPipeline:
    """Valida um ficheiro; a primeira regra violada termina a validação."""

    def __init__(
        self,
        probe: Optional[StreamProbe] = None,
        storage: Optional[StorageManager] = None,
        estimator: Optional[DurationEstimator] = None,
        allowed_formats: Optional[List[str]] = None,
        max_size_bytes: Optional[int] = None,
        min_seconds: Optional[float] = None,
        max_seconds: Optional[float] = None
    ):
        self.probe = probe or stream_probe
        self.storage = storage or storage_manager
        self.estimator = estimator or SizeBasedDurationEstimator()
        self.allowed_formats = allowed_formats or list(settings.allowed_video_formats)
        self.max_size_bytes = max_size_bytes or settings.max_file_size_bytes
        self.min_seconds = settings.min_video_duration if min_seconds is None else min_seconds
        self.max_seconds = max_seconds or settings.max_video_duration

    def check_size(self, file: MediaFile) -> Optional[ValidationResult]:
        if file.size_bytes > self.max_size_bytes:
            return ValidationResult.fail(
                f"O ficheiro deve ter menos de {self.max_size_bytes // MB}MB. "
                f"Tamanho atual: {file.size_bytes / MB:.1f}MB",
                constraint="size"
            )
        if file.size_bytes == 0:
            return ValidationResult.fail("O ficheiro está vazio", constraint="size")
        return None

    def check_format(self, file: MediaFile) -> Optional[ValidationResult]:
        if file.base_mime_type not in self.allowed_formats:
            return ValidationResult.fail(
                "Formato de ficheiro não suportado. Utilize ficheiros MP4, WebM, OGG ou MOV.",
                constraint="format"
            )
        return None

    def check_duration(self, duration: float, source: MediaSource) -> Optional[ValidationResult]:
        """Gravações só respeitam o limite superior; uploads respeitam os dois."""
        if duration > self.max_seconds:
            return ValidationResult.fail(
                f"O vídeo deve ter menos de {self.max_seconds:g} segundos. "
                f"Duração atual: {duration:.1f}s",
                constraint="duration",
                duration_seconds=duration
            )

        if duration < self.min_seconds:
            if source == MediaSource.UPLOADED:
                return ValidationResult.fail(
                    f"O vídeo deve ter pelo menos {self.min_seconds:g} segundos. "
                    f"Duração atual: {duration:.1f}s",
                    constraint="duration",
                    duration_seconds=duration
                )
            logger.info(f"Gravação curta aceite ({duration:.1f}s < {self.min_seconds:g}s)")

        return None

    async def read_duration(self, file: MediaFile, path: Optional[Path] = None) -> Tuple[float, bool]:
        """
        Duração dos metadados ou, se não for finita, estimada pelo tamanho.

        Returns:
            (duração em segundos, True se estimada)
        """
        if path is not None:
            info = await self.probe.probe(str(path))
        else:
            async with self.storage.temp_file(file.data, suffix=file.extension) as temp_path:
                info = await self.probe.probe(str(temp_path))

        if info is not None and info.has_finite_duration:
            return info.duration, False

        estimated = self.estimator.estimate(file)
        estimated = min(max(estimated, 1.0), self.max_seconds)
        logger.warning(f"Duração indisponível em {file.name}, estimada em {estimated:.1f}s")
        return estimated, True

    async def validate(
        self,
        file: MediaFile,
        source: MediaSource = MediaSource.UPLOADED,
        path: Optional[Path] = None
    ) -> ValidationResult:
        """
        Valida tamanho, formato e duração, por esta ordem.

        Args:
            file: Ficheiro candidato
            source: Origem (gravado ou enviado)
            path: Cópia do ficheiro em disco, se já existir
        """
        for check in (self.check_size, self.check_format):
            failure = check(file)
            if failure:
                logger.info(f"Ficheiro rejeitado ({failure.constraint}): {failure.reason}")
                return failure

        duration, estimated = await self.read_duration(file, path)

        failure = self.check_duration(duration, source)
        if failure:
            failure.duration_estimated = estimated
            logger.info(f"Ficheiro rejeitado (duration): {failure.reason}")
            return failure

        return ValidationResult(valid=True, duration_seconds=duration, duration_estimated=estimated)
