"""
Módulo schemas com os schemas Pydantic para validação de dados.
"""
from app.schemas.media import MediaSource, MediaFile, MediaAsset, ValidationResult
from app.schemas.lock import LockStatus, LockStatusResponse
from app.schemas.profile_video import VideoDetailsSchema, ProfileVideoSchema, CaptureSnapshotSchema

__all__ = [
    "MediaSource",
    "MediaFile",
    "MediaAsset",
    "ValidationResult",
    "LockStatus",
    "LockStatusResponse",
    "VideoDetailsSchema",
    "ProfileVideoSchema",
    "CaptureSnapshotSchema"
]
