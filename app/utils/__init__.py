"""
Módulo utils com utilitários para FFmpeg, storage e probing de ficheiros.
"""
from app.utils.ffmpeg_wrapper import FFmpegWrapper, FFmpegError
from app.utils.stream_probe import StreamProbe, StreamInfo
from app.utils.storage_manager import StorageManager

__all__ = [
    "FFmpegWrapper",
    "FFmpegError",
    "StreamProbe",
    "StreamInfo",
    "StorageManager"
]
