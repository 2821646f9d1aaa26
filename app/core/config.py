"""
Configurações da aplicação de captura de vídeos de apresentação.
"""
from pydantic_settings import BaseSettings
from typing import List, Optional
import os


class Settings(BaseSettings):
    """Configurações gerais da aplicação."""

    # Banco de dados
    database_url: str = os.getenv(
        "DATABASE_URL",
        "sqlite:///./intro_videos.db"
    )

    # JWT
    secret_key: str = os.getenv("SECRET_KEY", "your-secret-key-change-in-production")
    algorithm: str = os.getenv("ALGORITHM", "HS256")
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))

    # API
    api_title: str = os.getenv("API_TITLE", "Intro Video Capture API")
    api_version: str = os.getenv("API_VERSION", "1.0.0")
    api_description: str = os.getenv(
        "API_DESCRIPTION",
        "API FastAPI para captura, validação e publicação de vídeos de apresentação"
    )
    debug: bool = os.getenv("DEBUG", "False").lower() == "true"

    # CORS
    allowed_origins: List[str] = [
        "http://localhost:3000",
        "http://localhost:8000"
    ]

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # FFmpeg
    ffmpeg_path: str = os.getenv("FFMPEG_PATH", "/usr/bin/ffmpeg")
    ffprobe_path: str = os.getenv("FFPROBE_PATH", "/usr/bin/ffprobe")

    # Storage
    storage_base_path: str = os.getenv("STORAGE_BASE_PATH", "./storage")
    public_base_url: str = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000/media")
    temp_retention_hours: int = 24
    temp_cleanup_interval_minutes: int = 60

    # Dispositivo de captura (câmara + microfone)
    capture_video_device: str = os.getenv("CAPTURE_VIDEO_DEVICE", "/dev/video0")
    capture_audio_device: str = os.getenv("CAPTURE_AUDIO_DEVICE", "default")
    capture_width: int = 1280
    capture_height: int = 720
    capture_fps: int = 30
    capture_chunk_size: int = 64 * 1024
    countdown_seconds: int = 3
    max_recording_seconds: Optional[float] = None
    recorder_mime_types: List[str] = [
        "video/webm;codecs=vp9",
        "video/webm",
        "video/mp4"
    ]

    # Validação
    min_video_duration: float = 10.0
    max_video_duration: float = 60.0
    max_file_size_bytes: int = 50 * 1024 * 1024
    allowed_video_formats: List[str] = [
        "video/mp4",
        "video/webm",
        "video/ogg",
        "video/quicktime"
    ]
    estimated_bytes_per_second: int = 1024 * 1024
    probe_timeout_seconds: int = 10

    # Thumbnail
    thumbnail_width: int = 320
    thumbnail_height: int = 180
    thumbnail_quality: int = 4  # qscale do mjpeg (2 = melhor, 31 = pior)

    # Compressão
    compression_threshold_bytes: int = 10 * 1024 * 1024
    compression_max_width: int = 1280
    compression_max_height: int = 720
    compression_fps: int = 30
    compression_video_bitrate: str = "1M"
    compression_timeout_seconds: Optional[float] = 300.0

    # Bloqueio de remoção
    video_lock_days: int = 20

    # Detalhes do perfil
    max_desired_roles: int = 7
    max_role_length: int = 50
    max_location_length: int = 100

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
