"""
Módulo core com configurações, banco de dados, segurança e exceções.
"""
from app.core.config import settings
from app.core.database import Base, SessionLocal, engine
from app.core.security import (
    create_access_token,
    decode_token,
    get_current_user
)
from app.core.exceptions import (
    CaptureError,
    DeviceError,
    ValidationError,
    ProcessingError,
    UploadError,
    PersistError,
    LockViolation,
    InvalidStateTransition
)

__all__ = [
    "settings",
    "Base",
    "engine",
    "SessionLocal",
    "create_access_token",
    "decode_token",
    "get_current_user",
    "CaptureError",
    "DeviceError",
    "ValidationError",
    "ProcessingError",
    "UploadError",
    "PersistError",
    "LockViolation",
    "InvalidStateTransition"
]
