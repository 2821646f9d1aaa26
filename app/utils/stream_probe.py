"""
Stream Probe - Leitura de duração, codecs e resolução de ficheiros de vídeo usando ffprobe.
"""
import asyncio
import json
import logging
import math
from typing import Optional, Dict, Any
from datetime import datetime, timezone
from app.core.config import settings

logger = logging.getLogger(__name__)


def _parse_duration(value: Any) -> Optional[float]:
    """ffprobe devolve "N/A" ou omite a duração em WebM gravado por pipe."""
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class StreamInfo:
    """Informações de um ficheiro de vídeo."""

    def __init__(self, data: Dict[str, Any]):
        self.video_codec: Optional[str] = None
        self.audio_codec: Optional[str] = None
        self.resolution: Optional[str] = None
        self.width: Optional[int] = None
        self.height: Optional[int] = None
        self.fps: Optional[float] = None
        self.bitrate: Optional[int] = None
        self.duration: Optional[float] = None
        self.format_name: Optional[str] = None
        self.probe_time: datetime = datetime.now(timezone.utc)

        self._parse_data(data)

    def _parse_data(self, data: Dict[str, Any]):
        """Parse dos dados retornados pelo ffprobe."""
        try:
            # Format info
            if "format" in data:
                fmt = data["format"]
                self.format_name = fmt.get("format_name")
                try:
                    self.bitrate = int(fmt.get("bit_rate", 0))
                except (TypeError, ValueError):
                    self.bitrate = None
                self.duration = _parse_duration(fmt.get("duration"))

            # Streams info
            if "streams" in data:
                for stream in data["streams"]:
                    codec_type = stream.get("codec_type")

                    if codec_type == "video":
                        self.video_codec = stream.get("codec_name")
                        self.width = stream.get("width")
                        self.height = stream.get("height")

                        if self.width and self.height:
                            self.resolution = f"{self.width}x{self.height}"

                        # FPS (frame rate)
                        r_frame_rate = stream.get("r_frame_rate", "0/0")
                        if "/" in r_frame_rate:
                            num, den = map(int, r_frame_rate.split("/"))
                            if den > 0:
                                self.fps = round(num / den, 2)

                        # Alguns muxers só declaram a duração no stream
                        if self.duration is None:
                            self.duration = _parse_duration(stream.get("duration"))

                    elif codec_type == "audio":
                        self.audio_codec = stream.get("codec_name")

        except Exception as e:
            logger.error(f"Erro ao parsear dados do ffprobe: {e}")

    @property
    def has_finite_duration(self) -> bool:
        """Duração utilizável (finita e positiva)."""
        return self.duration is not None and math.isfinite(self.duration) and self.duration > 0

    def to_dict(self) -> Dict[str, Any]:
        """Converte para dicionário."""
        return {
            "video_codec": self.video_codec,
            "audio_codec": self.audio_codec,
            "resolution": self.resolution,
            "fps": self.fps,
            "bitrate_kbps": self.bitrate // 1000 if self.bitrate else None,
            "format": self.format_name,
            "duration_seconds": self.duration,
            "probed_at": self.probe_time.isoformat()
        }

    def is_valid(self) -> bool:
        """Verifica se o ficheiro tem informações válidas."""
        return self.video_codec is not None or self.audio_codec is not None


class StreamProbe:
    """Utilitário para probe de ficheiros usando ffprobe."""

    def __init__(self, ffprobe_path: Optional[str] = None):
        self.ffprobe_path = ffprobe_path or settings.ffprobe_path

    async def probe(
        self,
        file_path: str,
        timeout: Optional[int] = None
    ) -> Optional[StreamInfo]:
        """
        Executa probe num ficheiro.

        Args:
            file_path: Caminho do ficheiro
            timeout: Timeout em segundos

        Returns:
            StreamInfo ou None se falhar
        """
        timeout = timeout or settings.probe_timeout_seconds
        cmd = [
            self.ffprobe_path,
            "-v", "quiet",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            file_path
        ]

        logger.info(f"Probing ficheiro: {file_path}")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE
            )

            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=timeout
            )

            if process.returncode != 0:
                error = stderr.decode('utf-8', errors='ignore')
                logger.error(f"ffprobe erro: {error}")
                return None

            # Parse JSON
            data = json.loads(stdout.decode('utf-8'))
            stream_info = StreamInfo(data)

            if stream_info.is_valid():
                logger.info(f"Probe sucesso: {stream_info.to_dict()}")
                return stream_info
            else:
                logger.warning("Probe retornou dados inválidos")
                return None

        except asyncio.TimeoutError:
            logger.error(f"Probe timeout após {timeout}s")
            return None

        except json.JSONDecodeError as e:
            logger.error(f"Erro ao parsear JSON do ffprobe: {e}")
            return None

        except Exception as e:
            logger.error(f"Erro ao executar probe: {e}")
            return None


# Instância global
stream_probe = StreamProbe()
