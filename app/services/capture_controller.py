"""
Controlador de captura: máquina de estados da gravação do vídeo de apresentação.

idle -> requesting -> previewing -> recording -> processing -> ready_for_review
     -> finalizing -> saved

Cada sessão tem um número de geração; resultados que chegam depois de um
cancelamento ou retake pertencem a uma geração antiga e são descartados.
"""
import asyncio
import enum
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set
from app.core.config import settings
from app.core.exceptions import (
    CaptureError,
    DeviceError,
    InvalidStateTransition,
    PersistError,
    UploadError,
    ValidationError
)
from app.schemas.media import MIME_EXTENSIONS, MediaAsset, MediaFile, MediaSource
from app.schemas.profile_video import CaptureSnapshotSchema, ProfileVideoSchema, VideoDetailsSchema
from app.services.capture_device import CaptureConstraints, MediaStream, Recorder
from app.services.media_pipeline import MediaPipeline
from app.services.stream_resource_manager import StreamResourceManager
from app.services.video_profile_service import VideoProfileService
from app.utils.storage_manager import StorageManager, storage_manager

logger = logging.getLogger(__name__)


class CaptureState(str, enum.Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    PREVIEWING = "previewing"
    RECORDING = "recording"
    PROCESSING = "processing"
    READY_FOR_REVIEW = "ready_for_review"
    FINALIZING = "finalizing"
    SAVED = "saved"


TRANSITIONS: Dict[CaptureState, Set[CaptureState]] = {
    CaptureState.IDLE: {CaptureState.REQUESTING, CaptureState.PROCESSING},
    CaptureState.REQUESTING: {CaptureState.PREVIEWING, CaptureState.IDLE},
    CaptureState.PREVIEWING: {CaptureState.RECORDING, CaptureState.IDLE},
    CaptureState.RECORDING: {CaptureState.PROCESSING, CaptureState.IDLE},
    CaptureState.PROCESSING: {CaptureState.READY_FOR_REVIEW, CaptureState.IDLE},
    CaptureState.READY_FOR_REVIEW: {CaptureState.RECORDING, CaptureState.FINALIZING, CaptureState.IDLE},
    CaptureState.FINALIZING: {CaptureState.SAVED, CaptureState.READY_FOR_REVIEW, CaptureState.IDLE},
    CaptureState.SAVED: {CaptureState.IDLE},
}


@dataclass
class RecordingSession:
    """Gravação em curso. Nunca é persistida."""
    stream: MediaStream
    recorder: Recorder
    mime_type: str
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    chunks: List[bytes] = field(default_factory=list)

    def elapsed_seconds(self) -> float:
        return (datetime.now(timezone.utc) - self.started_at).total_seconds()


class CaptureController:
    """Único dono do stream e do estado da captura."""

    def __init__(
        self,
        streams: StreamResourceManager,
        pipeline: MediaPipeline,
        profiles: VideoProfileService,
        storage: Optional[StorageManager] = None,
        countdown_seconds: Optional[int] = None,
        constraints: Optional[CaptureConstraints] = None,
        on_countdown: Optional[Callable[[int], None]] = None
    ):
        self.streams = streams
        self.pipeline = pipeline
        self.profiles = profiles
        self.storage = storage or storage_manager
        self.countdown_seconds = settings.countdown_seconds if countdown_seconds is None else countdown_seconds
        self.constraints = constraints or CaptureConstraints.from_settings()
        self.on_countdown = on_countdown

        self._state = CaptureState.IDLE
        self._changed = asyncio.Event()
        self._generation = 0
        self._session: Optional[RecordingSession] = None
        self._mime_type: Optional[str] = None
        self._countdown: Optional[int] = None
        self._countdown_task: Optional[asyncio.Task] = None
        self._auto_stop_task: Optional[asyncio.Task] = None
        self._asset: Optional[MediaAsset] = None
        self._preview_path: Optional[Path] = None
        self._saved: Optional[ProfileVideoSchema] = None
        self._last_error: Optional[str] = None

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def asset(self) -> Optional[MediaAsset]:
        return self._asset

    @property
    def preview_path(self) -> Optional[Path]:
        return self._preview_path

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    def _transition(self, new_state: CaptureState) -> None:
        if new_state not in TRANSITIONS[self._state]:
            raise InvalidStateTransition(self._state.value, new_state.value)
        self._set_state(new_state)

    def _set_state(self, new_state: CaptureState) -> None:
        logger.info(f"Captura: {self._state.value} -> {new_state.value}")
        self._state = new_state
        self._changed.set()
        self._changed = asyncio.Event()

    def _ensure_state(self, requested: CaptureState, *allowed: CaptureState) -> None:
        if self._state not in allowed:
            raise InvalidStateTransition(self._state.value, requested.value)

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    async def wait_for_state(self, state: CaptureState, timeout: Optional[float] = None) -> None:
        """Aguarda até o controlador chegar a `state`."""
        async def _wait():
            while self._state != state:
                await self._changed.wait()

        await asyncio.wait_for(_wait(), timeout=timeout)

    # Captura

    async def start_capture(self, max_seconds: Optional[float] = None) -> None:
        """
        Pede a câmara e inicia a contagem decrescente; a gravação começa quando chega a zero.

        Raises:
            DeviceError: Câmara indisponível (o controlador volta a idle)
        """
        self._transition(CaptureState.REQUESTING)
        self._generation += 1
        generation = self._generation
        self._last_error = None

        try:
            stream = await self.streams.acquire(self.constraints)
            self._mime_type = self.streams.select_mime_type()
        except DeviceError as e:
            self.streams.release()
            if self._is_current(generation):
                self._last_error = e.cause
                await self._to_idle()
            raise

        if not self._is_current(generation):
            self.streams.release(stream)
            return

        self._transition(CaptureState.PREVIEWING)
        if max_seconds is None:
            max_seconds = settings.max_recording_seconds
        self._countdown_task = asyncio.create_task(self._run_countdown(generation, max_seconds))

    async def _run_countdown(self, generation: int, max_seconds: Optional[float]) -> None:
        self._countdown = self.countdown_seconds
        while self._countdown > 0:
            if self.on_countdown:
                self.on_countdown(self._countdown)
            await asyncio.sleep(1)
            if not self._is_current(generation):
                return
            self._countdown -= 1
        self._countdown = None

        try:
            await self._begin_recording(generation, max_seconds)
        except CaptureError as e:
            logger.error(f"Erro ao iniciar a gravação: {e}")
            if self._is_current(generation):
                self._last_error = str(e)
                await self._to_idle()

    async def _begin_recording(self, generation: int, max_seconds: Optional[float]) -> None:
        if not self._is_current(generation):
            return

        recorder = self.streams.create_recorder(self._mime_type)
        session = RecordingSession(stream=self.streams.stream, recorder=recorder, mime_type=self._mime_type)
        self._session = session
        self._transition(CaptureState.RECORDING)

        await recorder.start(session.chunks.append)

        if max_seconds:
            self._auto_stop_task = asyncio.create_task(self._auto_stop(generation, max_seconds))

    async def _auto_stop(self, generation: int, max_seconds: float) -> None:
        await asyncio.sleep(max_seconds)
        if not self._is_current(generation) or self._state != CaptureState.RECORDING:
            return

        logger.info(f"Limite de gravação atingido ({max_seconds}s)")
        try:
            await self.stop_recording()
        except CaptureError as e:
            logger.error(f"Erro ao parar a gravação automaticamente: {e}")

    async def stop_recording(self) -> Optional[MediaAsset]:
        """
        Para a gravação e processa o resultado.

        Returns:
            MediaAsset, ou None se a sessão foi cancelada entretanto

        Raises:
            ValidationError: Gravação vazia ou acima do tamanho máximo (volta a idle)
            DeviceError: O gravador falhou ao parar (volta a idle)
        """
        self._ensure_state(CaptureState.PROCESSING, CaptureState.RECORDING)
        self._cancel_task(self._auto_stop_task)
        self._auto_stop_task = None

        generation = self._generation
        session = self._session
        self._transition(CaptureState.PROCESSING)

        try:
            await session.recorder.stop()
        except Exception as e:
            logger.error(f"Erro ao parar o gravador: {e}")
            self._session = None
            session.chunks.clear()
            if self._is_current(generation):
                self._last_error = f"Erro ao terminar a gravação: {e}"
                await self._to_idle()
            raise DeviceError(f"Erro ao terminar a gravação: {e}", reason="unavailable") from e
        finally:
            self.streams.release(session.stream)

        data = b"".join(session.chunks)
        session.chunks.clear()
        elapsed = session.elapsed_seconds()
        self._session = None

        if not self._is_current(generation):
            return None

        base_mime = session.mime_type.split(";", 1)[0].strip().lower()
        file = MediaFile(
            data=data,
            mime_type=session.mime_type,
            name=f"intro_video_{uuid.uuid4()}{MIME_EXTENSIONS.get(base_mime, '.webm')}"
        )
        logger.info(f"Gravação terminada: {file.name} ({file.size_bytes} bytes, {elapsed:.1f}s)")

        failure = self.pipeline.validator.check_size(file)
        if failure:
            self._last_error = failure.reason
            await self._to_idle()
            raise ValidationError(failure.reason, constraint=failure.constraint)

        return await self._process(file, MediaSource.RECORDED, generation, fallback_duration=elapsed)

    async def load_upload(self, file: MediaFile) -> Optional[MediaAsset]:
        """
        Processa um ficheiro enviado pelo utilizador.

        Raises:
            ValidationError: Ficheiro rejeitado (volta a idle)
        """
        self._transition(CaptureState.PROCESSING)
        self._generation += 1
        self._last_error = None
        return await self._process(file, MediaSource.UPLOADED, self._generation)

    async def _process(
        self,
        file: MediaFile,
        source: MediaSource,
        generation: int,
        fallback_duration: Optional[float] = None
    ) -> Optional[MediaAsset]:
        try:
            asset = await self.pipeline.process(file, source)
        except ValidationError as e:
            if source == MediaSource.UPLOADED:
                if self._is_current(generation):
                    self._last_error = e.reason
                    await self._to_idle()
                raise
            logger.warning(f"Gravação fora dos limites, a usar o ficheiro original: {e.reason}")
            asset = self.pipeline.raw_asset(file, fallback_duration, source, e.reason)
        except (CaptureError, OSError) as e:
            if source == MediaSource.UPLOADED:
                if self._is_current(generation):
                    self._last_error = str(e)
                    await self._to_idle()
                raise
            logger.warning(f"Processamento falhou, a usar o ficheiro original: {e}")
            asset = self.pipeline.raw_asset(file, fallback_duration, source, str(e))

        if not self._is_current(generation):
            logger.info(f"Resultado descartado (sessão {generation} já não está ativa)")
            return None

        await self._release_preview()
        preview_path = await self.storage.write_temp(asset.file.data, suffix=asset.file.extension)
        if not self._is_current(generation):
            await self.storage.delete_file(str(preview_path))
            return None

        self._preview_path = preview_path
        self._asset = asset
        self._transition(CaptureState.READY_FOR_REVIEW)
        return asset

    # Revisão

    async def retake(self, max_seconds: Optional[float] = None) -> None:
        """Descarta o vídeo em revisão e volta a gravar de imediato."""
        self._ensure_state(CaptureState.RECORDING, CaptureState.READY_FOR_REVIEW)
        self._generation += 1
        generation = self._generation
        self._asset = None
        self._last_error = None
        await self._release_preview()

        try:
            stream = await self.streams.acquire(self.constraints)
            if not self._is_current(generation):
                self.streams.release(stream)
                return
            self._mime_type = self.streams.select_mime_type()
            await self._begin_recording(generation, max_seconds or settings.max_recording_seconds)
        except DeviceError as e:
            self.streams.release()
            if self._is_current(generation):
                self._last_error = e.cause
                await self._to_idle()
            raise

    def accept(self) -> None:
        if self._asset is None:
            raise InvalidStateTransition(self._state.value, CaptureState.FINALIZING.value)
        self._transition(CaptureState.FINALIZING)

    async def finalize(self, owner_id: str, details: VideoDetailsSchema) -> ProfileVideoSchema:
        """
        Publica o vídeo aceite no perfil.

        Raises:
            UploadError / PersistError: Volta a ready_for_review
        """
        self._ensure_state(CaptureState.SAVED, CaptureState.FINALIZING)
        generation = self._generation
        self._last_error = None

        try:
            saved = await self.profiles.save_video(owner_id, self._asset, details)
        except (UploadError, PersistError) as e:
            if self._is_current(generation):
                self._last_error = str(e)
                self._transition(CaptureState.READY_FOR_REVIEW)
            raise

        if self._is_current(generation):
            self._saved = saved
            self._transition(CaptureState.SAVED)
        return saved

    async def cancel(self) -> None:
        """Volta a idle a partir de qualquer estado exceto saved."""
        if self._state == CaptureState.IDLE:
            return
        if self._state == CaptureState.SAVED:
            raise InvalidStateTransition(self._state.value, CaptureState.IDLE.value)
        logger.info(f"Captura cancelada em {self._state.value}")
        await self._to_idle()

    async def reset(self) -> None:
        """Gravar um novo vídeo depois de publicado."""
        self._ensure_state(CaptureState.IDLE, CaptureState.SAVED)
        await self._to_idle()

    async def shutdown(self) -> None:
        """Liberta todos os recursos, em qualquer estado."""
        await self._teardown()
        if self._state != CaptureState.IDLE:
            self._set_state(CaptureState.IDLE)

    # Recursos

    @staticmethod
    def _cancel_task(task: Optional[asyncio.Task]) -> None:
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _release_preview(self) -> None:
        if self._preview_path is not None:
            path, self._preview_path = self._preview_path, None
            await self.storage.delete_file(str(path))

    async def _teardown(self) -> None:
        self._generation += 1
        self._cancel_task(self._countdown_task)
        self._cancel_task(self._auto_stop_task)
        self._countdown_task = None
        self._auto_stop_task = None
        self._countdown = None

        session, self._session = self._session, None
        if session is not None:
            try:
                await session.recorder.stop()
            except Exception as e:
                logger.warning(f"Erro ao parar o gravador: {e}")
            session.chunks.clear()

        self.streams.release()
        self._asset = None
        self._saved = None
        await self._release_preview()

    async def _to_idle(self) -> None:
        if self._state == CaptureState.IDLE:
            return
        await self._teardown()
        self._transition(CaptureState.IDLE)

    def snapshot(self) -> CaptureSnapshotSchema:
        return CaptureSnapshotSchema(
            state=self._state.value,
            countdown=self._countdown,
            source=self._asset.source.value if self._asset else None,
            asset=self._asset.summary() if self._asset else None,
            preview_path=str(self._preview_path) if self._preview_path else None,
            last_error=self._last_error,
            saved=self._saved
        )
