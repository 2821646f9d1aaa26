"""
Gestão do stream da câmara: no máximo um stream ativo de cada vez.
"""
import logging
from typing import List, Optional
from app.core.config import settings
from app.core.exceptions import DeviceError
from app.services.capture_device import CaptureConstraints, CaptureDevice, MediaStream, Recorder

logger = logging.getLogger(__name__)


class StreamResourceManager:
    """Dono exclusivo do stream do dispositivo."""

    def __init__(self, device: CaptureDevice, preferred_mime_types: Optional[List[str]] = None):
        self.device = device
        self.preferred_mime_types = preferred_mime_types or list(settings.recorder_mime_types)
        self._stream: Optional[MediaStream] = None

    @property
    def stream(self) -> Optional[MediaStream]:
        return self._stream

    @property
    def has_stream(self) -> bool:
        return self._stream is not None and self._stream.active

    async def acquire(self, constraints: Optional[CaptureConstraints] = None) -> MediaStream:
        """
        Abre um stream áudio/vídeo, libertando primeiro o anterior.

        Raises:
            DeviceError: Permissão negada, sem dispositivo ou dispositivo ocupado
        """
        self.release()
        constraints = constraints or CaptureConstraints.from_settings()

        try:
            stream = await self.device.open_stream(constraints)
        except DeviceError as e:
            logger.error(f"Erro ao aceder à câmara ({e.reason}): {e.cause}")
            raise
        except PermissionError as e:
            raise DeviceError(
                "Acesso à câmara negado. Verifique as permissões e tente novamente.",
                reason="permission_denied"
            ) from e
        except OSError as e:
            raise DeviceError(f"Não foi possível aceder à câmara: {e}", reason="unavailable") from e

        self._stream = stream
        logger.info(f"Stream adquirido: {stream.id}")
        return stream

    def release(self, stream: Optional[MediaStream] = None) -> None:
        """Para todas as faixas do stream. Segunda chamada não tem efeito."""
        target = stream or self._stream
        if target is None:
            return

        for track in target.get_tracks():
            try:
                track.stop()
            except Exception as e:
                logger.warning(f"Erro ao parar faixa {track.kind}: {e}")

        if target is self._stream:
            self._stream = None
            logger.info(f"Stream libertado: {target.id}")

    def select_mime_type(self, preferences: Optional[List[str]] = None) -> str:
        """Primeiro formato suportado da lista de preferências."""
        for mime_type in preferences or self.preferred_mime_types:
            if self.device.is_type_supported(mime_type):
                return mime_type

        raise DeviceError("Nenhum formato de gravação suportado", reason="unsupported")

    def create_recorder(self, mime_type: str) -> Recorder:
        if not self.has_stream:
            raise DeviceError("Nenhum stream ativo para gravar", reason="unavailable")
        return self.device.create_recorder(self._stream, mime_type)
