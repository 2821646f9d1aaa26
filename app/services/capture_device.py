"""
API do dispositivo de captura (câmara + microfone) e backend FFmpeg (v4l2 + ALSA).
"""
import asyncio
import logging
import os
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional
from app.core.config import settings
from app.core.exceptions import DeviceError
from app.utils.ffmpeg_wrapper import FFmpegWrapper, FFmpegProcess, OUTPUT_CODECS, ffmpeg_wrapper

logger = logging.getLogger(__name__)

ChunkCallback = Callable[[bytes], None]

# Codecs aceites no parâmetro `codecs=` de cada contentor
SUPPORTED_CODECS = {
    "video/webm": {"vp9", "vp8", "opus"},
    "video/mp4": {"avc1", "h264", "aac", "mp4a"},
}


@dataclass
class CaptureConstraints:
    """Preferências pedidas ao dispositivo."""
    width: int = 1280
    height: int = 720
    fps: int = 30
    facing_mode: str = "user"
    audio: bool = True

    @classmethod
    def from_settings(cls) -> "CaptureConstraints":
        return cls(
            width=settings.capture_width,
            height=settings.capture_height,
            fps=settings.capture_fps
        )


class MediaTrack:
    """Faixa de áudio ou vídeo de um stream."""

    def __init__(self, kind: str, label: str, on_stop: Optional[Callable[[], None]] = None):
        self.kind = kind
        self.label = label
        self._on_stop = on_stop
        self._stopped = False

    @property
    def stopped(self) -> bool:
        return self._stopped

    def stop(self) -> None:
        """Para a faixa. Chamadas repetidas não têm efeito."""
        if self._stopped:
            return
        self._stopped = True
        if self._on_stop:
            self._on_stop()


class MediaStream:
    """Stream combinado de áudio + vídeo aberto no dispositivo."""

    def __init__(self, tracks: List[MediaTrack], stream_id: Optional[str] = None):
        self.id = stream_id or str(uuid.uuid4())
        self._tracks = list(tracks)

    @property
    def active(self) -> bool:
        return any(not track.stopped for track in self._tracks)

    def get_tracks(self) -> List[MediaTrack]:
        return list(self._tracks)


class Recorder(ABC):
    """Gravador: entrega chunks durante a gravação e um único sinal de conclusão."""

    def __init__(self, mime_type: str):
        self.mime_type = mime_type

    @abstractmethod
    async def start(self, on_chunk: ChunkCallback) -> None:
        """Inicia a gravação; cada chunk é entregue a on_chunk."""

    @abstractmethod
    async def stop(self) -> None:
        """Para a gravação e aguarda a entrega do último chunk. Idempotente."""


class CaptureDevice(ABC):
    """Acesso ao dispositivo de captura."""

    @abstractmethod
    async def open_stream(self, constraints: CaptureConstraints) -> MediaStream:
        """Abre um stream combinado áudio/vídeo ou levanta DeviceError."""

    @abstractmethod
    def is_type_supported(self, mime_type: str) -> bool:
        """Indica se o formato de gravação é suportado."""

    @abstractmethod
    def create_recorder(self, stream: MediaStream, mime_type: str) -> Recorder:
        """Cria um gravador para o stream."""


class FFmpegRecorder(Recorder):
    """Gravador que lê o stdout de um processo FFmpeg em chunks."""

    def __init__(
        self,
        ffmpeg: FFmpegWrapper,
        stream: MediaStream,
        mime_type: str,
        constraints: CaptureConstraints,
        video_device: str,
        audio_device: str,
        chunk_size: int
    ):
        super().__init__(mime_type)
        self._ffmpeg = ffmpeg
        self._stream = stream
        self._constraints = constraints
        self._video_device = video_device
        self._audio_device = audio_device
        self._chunk_size = chunk_size
        self._job_id = f"capture-{stream.id}"
        self._process: Optional[FFmpegProcess] = None
        self._reader: Optional[asyncio.Task] = None

    async def start(self, on_chunk: ChunkCallback) -> None:
        if not self._stream.active:
            raise DeviceError("O stream já foi libertado", reason="unavailable")
        if self._process is not None:
            return

        try:
            self._process = await self._ffmpeg.start_capture(
                self._job_id,
                video_device=self._video_device,
                audio_device=self._audio_device if self._constraints.audio else None,
                width=self._constraints.width,
                height=self._constraints.height,
                fps=self._constraints.fps,
                mime_type=self.mime_type
            )
        except FileNotFoundError as e:
            raise DeviceError("FFmpeg não está disponível para captura", reason="unavailable") from e

        self._reader = asyncio.create_task(self._read_chunks(on_chunk))

    async def _read_chunks(self, on_chunk: ChunkCallback) -> None:
        """Lê stdout até EOF (sinal de conclusão)."""
        process = self._process.process
        received = 0

        while True:
            data = await process.stdout.read(self._chunk_size)
            if not data:
                break
            received += len(data)
            on_chunk(data)

        returncode = await self._process.wait()
        stderr = (await process.stderr.read()).decode("utf-8", errors="ignore").strip()
        self._ffmpeg.forget(self._job_id)

        if returncode not in (0, 255) or (received == 0 and stderr):
            logger.error(f"Captura [{self._job_id}] terminou com código {returncode}: {stderr[-500:]}")
        else:
            logger.info(f"Captura [{self._job_id}] concluída ({received} bytes)")

    async def stop(self) -> None:
        if self._process is None or self._reader is None:
            return

        if self._process.is_running and self._process.process.stdin:
            # 'q' fecha o muxer corretamente; terminate fica como fallback
            try:
                self._process.process.stdin.write(b"q")
                await self._process.process.stdin.drain()
            except (BrokenPipeError, ConnectionResetError):
                pass

        try:
            await asyncio.wait_for(asyncio.shield(self._reader), timeout=10)
        except asyncio.TimeoutError:
            logger.warning(f"Captura [{self._job_id}] não terminou, a forçar paragem")
            await self._process.terminate()
            await self._reader


class FFmpegCaptureDevice(CaptureDevice):
    """Câmara v4l2 + microfone ALSA através do FFmpeg."""

    def __init__(
        self,
        ffmpeg: Optional[FFmpegWrapper] = None,
        video_device: Optional[str] = None,
        audio_device: Optional[str] = None,
        chunk_size: Optional[int] = None
    ):
        self._ffmpeg = ffmpeg or ffmpeg_wrapper
        self.video_device = video_device or settings.capture_video_device
        self.audio_device = audio_device or settings.capture_audio_device
        self.chunk_size = chunk_size or settings.capture_chunk_size
        self._constraints: Optional[CaptureConstraints] = None
        self._claimed_by: Optional[str] = None

    async def open_stream(self, constraints: CaptureConstraints) -> MediaStream:
        device = Path(self.video_device)

        if not device.exists():
            raise DeviceError(f"Nenhuma câmara encontrada em {self.video_device}", reason="not_found")

        if not os.access(device, os.R_OK | os.W_OK):
            raise DeviceError(
                "Acesso à câmara negado. Verifique as permissões e tente novamente.",
                reason="permission_denied"
            )

        if self._claimed_by is not None:
            raise DeviceError("A câmara já está a ser utilizada", reason="busy")

        stream_id = str(uuid.uuid4())
        self._claimed_by = stream_id
        self._constraints = constraints

        def _release_claim():
            if self._claimed_by == stream_id and not stream.active:
                self._claimed_by = None

        tracks = [MediaTrack("video", self.video_device, on_stop=_release_claim)]
        if constraints.audio:
            tracks.append(MediaTrack("audio", self.audio_device, on_stop=_release_claim))

        stream = MediaStream(tracks, stream_id=stream_id)
        logger.info(
            f"Stream aberto: {self.video_device} {constraints.width}x{constraints.height}@{constraints.fps}"
        )
        return stream

    def is_type_supported(self, mime_type: str) -> bool:
        base, _, params = mime_type.partition(";")
        base = base.strip().lower()
        if base not in OUTPUT_CODECS:
            return False

        params = params.strip()
        if not params.startswith("codecs="):
            return True

        codecs = params[len("codecs="):].strip('"').split(",")
        return all(codec.strip().split(".")[0] in SUPPORTED_CODECS[base] for codec in codecs)

    def create_recorder(self, stream: MediaStream, mime_type: str) -> Recorder:
        return FFmpegRecorder(
            self._ffmpeg,
            stream,
            mime_type,
            self._constraints or CaptureConstraints.from_settings(),
            self.video_device,
            self.audio_device,
            self.chunk_size
        )
