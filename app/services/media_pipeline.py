"""
Pipeline de processamento: validação -> thumbnail -> compressão (condicional).

Cada etapa devolve um resultado etiquetado: Ok, Degraded (continua com um
resultado inferior) ou Fatal (interrompe o pipeline).
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union
from app.core.exceptions import ProcessingError, ValidationError
from app.schemas.media import MediaAsset, MediaFile, MediaSource, ValidationResult
from app.services.compression_service import CompressionEngine
from app.services.thumbnail_service import ThumbnailExtractor
from app.services.validation_service import ValidationPipeline
from app.utils.storage_manager import StorageManager, storage_manager
from app.utils.stream_probe import StreamProbe, stream_probe

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ok:
    value: Any


@dataclass(frozen=True)
class Degraded:
    fallback: Any
    reason: str


@dataclass(frozen=True)
class Fatal:
    reason: str
    constraint: Optional[str] = None


StageResult = Union[Ok, Degraded, Fatal]


class MediaPipeline:
    """Transforma um ficheiro candidato num MediaAsset."""

    def __init__(
        self,
        validator: Optional[ValidationPipeline] = None,
        thumbnailer: Optional[ThumbnailExtractor] = None,
        compressor: Optional[CompressionEngine] = None,
        probe: Optional[StreamProbe] = None,
        storage: Optional[StorageManager] = None,
        duration_tolerance: float = 1.0
    ):
        self.storage = storage or storage_manager
        self.probe = probe or stream_probe
        self.validator = validator or ValidationPipeline(probe=self.probe, storage=self.storage)
        self.thumbnailer = thumbnailer or ThumbnailExtractor(storage=self.storage)
        self.compressor = compressor or CompressionEngine(storage=self.storage)
        self.duration_tolerance = duration_tolerance

    async def run_validation(self, file: MediaFile, source: MediaSource, path: Path) -> StageResult:
        result: ValidationResult = await self.validator.validate(file, source=source, path=path)
        if not result.valid:
            return Fatal(result.reason, result.constraint)
        return Ok(result)

    async def run_thumbnail(self, file: MediaFile, duration: float, path: Path) -> StageResult:
        try:
            return Ok(await self.thumbnailer.extract(file, duration, source_path=path))
        except ProcessingError as e:
            return Degraded(None, str(e))

    async def run_compression(
        self,
        file: MediaFile,
        duration: float,
        source: MediaSource,
        path: Path
    ) -> StageResult:
        """
        Ok((ficheiro, duração)) com o ficheiro comprimido, ou Degraded com o original.
        """
        original = (file, duration)

        try:
            compressed = await self.compressor.compress(file, source_path=path)
        except ProcessingError as e:
            return Degraded(original, str(e))

        if compressed.size_bytes == 0:
            return Degraded(original, "A compressão produziu um ficheiro vazio")

        if compressed.size_bytes >= file.size_bytes:
            return Degraded(
                original,
                f"A compressão não reduziu o tamanho ({compressed.size_bytes} >= {file.size_bytes} bytes)"
            )

        async with self.storage.temp_file(compressed.data, suffix=compressed.extension) as compressed_path:
            info = await self.probe.probe(str(compressed_path))

        if info is None or not info.has_finite_duration:
            return Degraded(original, "Não foi possível ler a duração do ficheiro comprimido")

        if abs(info.duration - duration) > self.duration_tolerance:
            return Degraded(
                original,
                f"A compressão alterou a duração ({duration:.1f}s -> {info.duration:.1f}s)"
            )

        if self.validator.check_duration(info.duration, source) is not None:
            return Degraded(original, "A duração do ficheiro comprimido está fora dos limites")

        return Ok((compressed, info.duration))

    async def process(self, file: MediaFile, source: MediaSource) -> MediaAsset:
        """
        Executa o pipeline completo.

        Raises:
            ValidationError: O ficheiro não cumpre formato, tamanho ou duração
        """
        warnings = []

        async with self.storage.temp_file(file.data, suffix=file.extension) as path:
            validation = await self.run_validation(file, source, path)
            if isinstance(validation, Fatal):
                raise ValidationError(validation.reason, constraint=validation.constraint)

            duration = validation.value.duration_seconds
            estimated = validation.value.duration_estimated

            thumbnail_stage = await self.run_thumbnail(file, duration, path)
            if isinstance(thumbnail_stage, Degraded):
                logger.warning(f"Thumbnail ignorada: {thumbnail_stage.reason}")
                warnings.append(thumbnail_stage.reason)
                thumbnail = None
            else:
                thumbnail = thumbnail_stage.value

            final_file, final_duration, compressed = file, duration, False
            if self.compressor.should_compress(file):
                compression_stage = await self.run_compression(file, duration, source, path)
                if isinstance(compression_stage, Degraded):
                    logger.warning(f"Compressão ignorada, a usar o original: {compression_stage.reason}")
                    warnings.append(compression_stage.reason)
                else:
                    final_file, final_duration = compression_stage.value
                    compressed = True
                    estimated = False

        asset = MediaAsset(
            file=final_file,
            duration_seconds=final_duration,
            size_bytes=final_file.size_bytes,
            thumbnail=thumbnail,
            source=source,
            compressed=compressed,
            duration_estimated=estimated,
            warnings=warnings
        )
        logger.info(f"✓ Pipeline concluído: {asset.summary()}")
        return asset

    def raw_asset(self, file: MediaFile, duration_seconds: float, source: MediaSource, reason: str) -> MediaAsset:
        """Ficheiro sem processamento, usado quando o pipeline falha numa gravação."""
        return MediaAsset(
            file=file,
            duration_seconds=max(duration_seconds, 0.1),
            size_bytes=file.size_bytes,
            source=source,
            duration_estimated=True,
            warnings=[reason]
        )
