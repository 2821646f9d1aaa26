"""
Módulo services com a lógica de captura, processamento e publicação.
"""
from app.services.capture_controller import CaptureController, CaptureState
from app.services.capture_device import CaptureConstraints, CaptureDevice, FFmpegCaptureDevice
from app.services.compression_service import CompressionEngine
from app.services.media_pipeline import MediaPipeline
from app.services.persistence_gateway import PersistenceGateway, StoragePersistenceGateway
from app.services.stream_resource_manager import StreamResourceManager
from app.services.thumbnail_service import ThumbnailExtractor
from app.services.validation_service import ValidationPipeline
from app.services.video_profile_service import VideoProfileService

__all__ = [
    "CaptureController",
    "CaptureState",
    "CaptureConstraints",
    "CaptureDevice",
    "FFmpegCaptureDevice",
    "CompressionEngine",
    "MediaPipeline",
    "PersistenceGateway",
    "StoragePersistenceGateway",
    "StreamResourceManager",
    "ThumbnailExtractor",
    "ValidationPipeline",
    "VideoProfileService"
]
