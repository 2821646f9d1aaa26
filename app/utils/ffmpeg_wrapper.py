"""
Wrapper para FFmpeg - captura do dispositivo, extração de frames e recompressão.
"""
import asyncio
import subprocess
import logging
import sys
import uuid
from typing import Optional, Dict, List
from pathlib import Path
from app.core.config import settings

logger = logging.getLogger(__name__)

# Codecs de saída por mime type base
OUTPUT_CODECS = {
    "video/webm": {"video": "libvpx-vp9", "audio": "libopus", "format": "webm"},
    "video/mp4": {"video": "libx264", "audio": "aac", "format": "mp4"},
}


class FFmpegError(Exception):
    """Processo FFmpeg terminou com erro."""

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class FFmpegProcess:
    """Representa um processo FFmpeg ativo."""

    def __init__(self, process: asyncio.subprocess.Process, command: str):
        self.process = process
        self.command = command
        self.is_running = True
        self.error_message: Optional[str] = None

    async def terminate(self):
        """Termina o processo de forma graciosa."""
        if self.process and self.is_running:
            try:
                self.process.terminate()

                await asyncio.wait_for(self.process.wait(), timeout=5.0)
                self.is_running = False
                logger.info("Processo FFmpeg terminado graciosamente")
            except ProcessLookupError:
                self.is_running = False
            except asyncio.TimeoutError:
                self.process.kill()
                await self.process.wait()
                self.is_running = False
                logger.warning("Processo FFmpeg forçado a terminar (SIGKILL)")

    async def wait(self) -> int:
        """Aguarda o término do processo."""
        code = await self.process.wait()
        self.is_running = False
        return code


class FFmpegWrapper:
    """Wrapper para operações FFmpeg."""

    def __init__(self, ffmpeg_path: Optional[str] = None):
        self.ffmpeg_path = ffmpeg_path or settings.ffmpeg_path
        self.active_processes: Dict[str, FFmpegProcess] = {}
        self._validate_executables()

    def _validate_executables(self):
        """Valida que o FFmpeg está acessível."""
        if not Path(self.ffmpeg_path).exists():
            logger.warning(f"FFmpeg não encontrado em: {self.ffmpeg_path}")
        else:
            logger.info(f"FFmpeg encontrado: {self.ffmpeg_path}")

    @staticmethod
    def _build_scale_filter(max_width: int, max_height: int) -> str:
        """Reduz para caber em max_width x max_height sem ampliar nem distorcer."""
        return (
            f"scale='min({max_width},iw)':'min({max_height},ih)'"
            f":force_original_aspect_ratio=decrease,"
            f"scale=trunc(iw/2)*2:trunc(ih/2)*2"
        )

    @staticmethod
    def _build_codec_args(mime_type: str, video_bitrate: Optional[str] = None) -> list:
        """Constrói argumentos de codec para o mime type pedido."""
        base = mime_type.split(";", 1)[0].strip().lower()
        codecs = OUTPUT_CODECS.get(base, OUTPUT_CODECS["video/webm"])

        args = ["-c:v", codecs["video"]]
        if video_bitrate:
            args.extend(["-b:v", video_bitrate])
        if codecs["video"] == "libvpx-vp9":
            # Encoding em tempo real: sem isto o VP9 não acompanha a câmara
            args.extend(["-deadline", "realtime", "-cpu-used", "8"])
        args.extend(["-c:a", codecs["audio"], "-f", codecs["format"]])
        return args

    async def run(self, args: List[str], timeout: Optional[float] = None, job_id: Optional[str] = None) -> str:
        """
        Executa o FFmpeg até terminar.

        Args:
            args: Argumentos (sem o executável)
            timeout: Timeout em segundos (None = sem limite)
            job_id: Identificador do processo em active_processes

        Returns:
            stderr do processo

        Raises:
            FFmpegError: Código de saída diferente de zero
            asyncio.TimeoutError: Timeout excedido (processo é terminado)
        """
        job_id = job_id or f"job-{uuid.uuid4()}"
        cmd = [self.ffmpeg_path, "-y", "-hide_banner", "-loglevel", "error", *args]
        safe_cmd = " ".join(cmd)
        logger.debug(f"Comando FFmpeg [{job_id}]: {safe_cmd}")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                creationflags=subprocess.CREATE_NO_WINDOW if sys.platform == "win32" else 0
            )
        except FileNotFoundError as e:
            raise FFmpegError(f"FFmpeg não encontrado em: {self.ffmpeg_path}") from e

        ffmpeg_proc = FFmpegProcess(process, safe_cmd)
        self.active_processes[job_id] = ffmpeg_proc

        try:
            _, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.error(f"FFmpeg [{job_id}] timeout após {timeout}s")
            await ffmpeg_proc.terminate()
            raise
        except asyncio.CancelledError:
            await ffmpeg_proc.terminate()
            raise
        finally:
            self.active_processes.pop(job_id, None)

        ffmpeg_proc.is_running = False
        stderr_str = stderr.decode("utf-8", errors="ignore").strip()

        if process.returncode != 0:
            logger.error(f"FFmpeg [{job_id}] falhou (código {process.returncode}): {stderr_str[-500:]}")
            raise FFmpegError(
                f"FFmpeg terminou com código {process.returncode}",
                returncode=process.returncode,
                stderr=stderr_str
            )

        return stderr_str

    async def extract_frame(
        self,
        input_path: str,
        output_path: str,
        seek_seconds: float,
        width: int,
        height: int,
        quality: int = 4,
        timeout: Optional[float] = 30
    ) -> None:
        """
        Captura um frame do vídeo para JPEG.

        Args:
            input_path: Vídeo de origem
            output_path: Caminho de saída do JPEG
            seek_seconds: Posição do frame
            width: Largura do raster
            height: Altura do raster
            quality: qscale do mjpeg
        """
        args = [
            "-ss", f"{seek_seconds:.3f}",
            "-i", input_path,
            "-frames:v", "1",
            "-vf", f"scale={width}:{height}",
            "-q:v", str(quality),
            "-f", "image2",
            output_path
        ]
        await self.run(args, timeout=timeout)

    async def transcode(
        self,
        input_path: str,
        output_path: str,
        max_width: int,
        max_height: int,
        fps: int,
        mime_type: str = "video/webm",
        video_bitrate: Optional[str] = None,
        timeout: Optional[float] = None,
        job_id: Optional[str] = None
    ) -> None:
        """Recodifica frame a frame com resolução limitada e frame rate fixo."""
        args = [
            "-i", input_path,
            "-vf", self._build_scale_filter(max_width, max_height),
            "-r", str(fps),
            *self._build_codec_args(mime_type, video_bitrate),
            output_path
        ]
        logger.info(f"🚀 Recompressão iniciada: {Path(input_path).name} -> {Path(output_path).name}")
        await self.run(args, timeout=timeout, job_id=job_id)

    @staticmethod
    def _build_capture_inputs(
        video_device: str,
        audio_device: Optional[str],
        width: int,
        height: int,
        fps: int
    ) -> List[str]:
        """Entradas v4l2 (+ ALSA quando há microfone)."""
        inputs = [
            "-f", "v4l2",
            "-framerate", str(fps),
            "-video_size", f"{width}x{height}",
            "-i", video_device,
        ]
        if audio_device:
            inputs.extend(["-f", "alsa", "-i", audio_device])
        return inputs

    async def start_capture(
        self,
        job_id: str,
        video_device: str,
        audio_device: Optional[str],
        width: int,
        height: int,
        fps: int,
        mime_type: str
    ) -> FFmpegProcess:
        """
        Inicia a captura da câmara (+ microfone), com saída contínua em stdout.

        Args:
            job_id: ID único da captura
            video_device: Dispositivo v4l2 (ex: /dev/video0)
            audio_device: Dispositivo ALSA (ex: default); None grava sem áudio
            width/height/fps: Preferência de resolução e frame rate
            mime_type: Formato de gravação selecionado
        """
        cmd = [
            self.ffmpeg_path, "-hide_banner", "-loglevel", "error",
            *self._build_capture_inputs(video_device, audio_device, width, height, fps),
            *self._build_codec_args(mime_type),
            "pipe:1"
        ]
        safe_cmd = " ".join(cmd)
        logger.info(f"🚀 Captura FFmpeg [{job_id}]:\n{safe_cmd}")

        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            creationflags=subprocess.CREATE_NO_WINDOW if sys.platform == "win32" else 0
        )

        ffmpeg_proc = FFmpegProcess(process, safe_cmd)
        self.active_processes[job_id] = ffmpeg_proc
        logger.info(f"✓ Processo de captura iniciado (PID: {process.pid})")
        return ffmpeg_proc

    async def stop_process(self, job_id: str) -> bool:
        """Para um processo ativo."""
        if job_id in self.active_processes:
            ffmpeg_proc = self.active_processes[job_id]
            await ffmpeg_proc.terminate()
            del self.active_processes[job_id]
            logger.info(f"⏹️ Processo parado: {job_id}")
            return True
        return False

    def forget(self, job_id: str) -> None:
        """Remove um processo já terminado do registo."""
        self.active_processes.pop(job_id, None)

    async def shutdown_all(self):
        """Para todos os processos FFmpeg ativos."""
        logger.info(f"⏹️ Parando {len(self.active_processes)} processos FFmpeg")

        tasks = [
            self.stop_process(job_id)
            for job_id in list(self.active_processes.keys())
        ]

        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("✓ Todos os processos FFmpeg parados")


# Instância global
ffmpeg_wrapper = FFmpegWrapper()
