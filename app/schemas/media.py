"""
Schemas Pydantic para ficheiros de mídia e resultados do pipeline.
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from pathlib import PurePath
import enum


MIME_EXTENSIONS = {
    "video/webm": ".webm",
    "video/mp4": ".mp4",
    "video/ogg": ".ogv",
    "video/quicktime": ".mov",
}


class MediaSource(str, enum.Enum):
    """Origem do vídeo."""
    RECORDED = "recorded"
    UPLOADED = "uploaded"


class MediaFile(BaseModel):
    """Payload binário com o mime type declarado."""
    data: bytes = Field(repr=False)
    mime_type: str
    name: str

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    @property
    def base_mime_type(self) -> str:
        """Mime type sem parâmetros (`video/webm;codecs=vp9` -> `video/webm`)."""
        return self.mime_type.split(";", 1)[0].strip().lower()

    @property
    def extension(self) -> str:
        suffix = PurePath(self.name).suffix
        if suffix:
            return suffix.lower()
        return MIME_EXTENSIONS.get(self.base_mime_type, ".bin")


class MediaAsset(BaseModel):
    """Vídeo final processado, pronto para publicação."""
    file: MediaFile
    duration_seconds: float = Field(gt=0)
    size_bytes: int = Field(gt=0)
    thumbnail: Optional[bytes] = Field(default=None, repr=False)
    source: MediaSource
    compressed: bool = False
    duration_estimated: bool = False
    warnings: List[str] = Field(default_factory=list)

    def summary(self) -> Dict[str, Any]:
        """Resumo serializável (sem os bytes)."""
        return {
            "file_name": self.file.name,
            "mime_type": self.file.mime_type,
            "duration_seconds": round(self.duration_seconds, 2),
            "size_bytes": self.size_bytes,
            "has_thumbnail": self.thumbnail is not None,
            "source": self.source.value,
            "compressed": self.compressed,
            "duration_estimated": self.duration_estimated,
            "warnings": list(self.warnings)
        }


class ValidationResult(BaseModel):
    """Resultado da validação de um ficheiro candidato."""
    valid: bool
    reason: Optional[str] = None
    constraint: Optional[str] = None
    duration_seconds: Optional[float] = None
    duration_estimated: bool = False

    @classmethod
    def fail(cls, reason: str, constraint: str, duration_seconds: Optional[float] = None) -> "ValidationResult":
        return cls(valid=False, reason=reason, constraint=constraint, duration_seconds=duration_seconds)
