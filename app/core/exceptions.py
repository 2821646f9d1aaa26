"""
Exceções do pipeline de captura e publicação de vídeos.
"""
from typing import Optional


class CaptureError(Exception):
    """Erro base do pipeline de captura."""


class DeviceError(CaptureError):
    """
    Câmara ou microfone indisponível.

    Reasons: permission_denied, not_found, busy, unsupported, unavailable
    """

    def __init__(self, cause: str, reason: str = "unavailable"):
        super().__init__(cause)
        self.cause = cause
        self.reason = reason


class ValidationError(CaptureError):
    """Ficheiro rejeitado por formato, tamanho ou duração."""

    def __init__(self, reason: str, constraint: Optional[str] = None):
        super().__init__(reason)
        self.reason = reason
        self.constraint = constraint


class ProcessingError(CaptureError):
    """Falha de thumbnail ou compressão (não fatal no pipeline)."""

    def __init__(self, message: str, stage: str):
        super().__init__(message)
        self.stage = stage


class UploadError(CaptureError):
    """Falha ao enviar um ficheiro para o object store."""


class PersistError(CaptureError):
    """Falha ao gravar ou remover o registo do perfil."""


class LockViolation(CaptureError):
    """Tentativa de remover um vídeo ainda dentro do período de bloqueio."""

    def __init__(self, remaining_days: int):
        unit = "dia" if remaining_days == 1 else "dias"
        super().__init__(
            f"O vídeo não pode ser removido durante mais {remaining_days} {unit}. "
            f"Pode substituí-lo por um novo vídeo."
        )
        self.remaining_days = remaining_days


class InvalidStateTransition(CaptureError):
    """Operação não permitida no estado atual do controlador."""

    def __init__(self, current: str, requested: str):
        super().__init__(f"Transição inválida: {current} -> {requested}")
        self.current = current
        self.requested = requested
