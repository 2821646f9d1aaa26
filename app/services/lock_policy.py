"""
Política de bloqueio do vídeo: durante N dias após o primeiro upload o vídeo
não pode ser removido (apenas substituído).
"""
import math
from datetime import datetime, timedelta, timezone
from typing import Optional
from app.core.config import settings
from app.schemas.lock import LockStatus


def _as_utc(value: datetime) -> datetime:
    # SQLite devolve datetimes sem timezone; são sempre gravados em UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def evaluate(
    first_upload_at: Optional[datetime],
    now: Optional[datetime] = None,
    lock_days: Optional[int] = None
) -> LockStatus:
    """
    Calcula o estado de bloqueio. Função pura: não lê relógio se `now` for dado.

    remaining_days = max(0, lock_days - dias completos decorridos)
    """
    lock_days = settings.video_lock_days if lock_days is None else lock_days

    if first_upload_at is None:
        return LockStatus(is_locked=False, remaining_days=0, can_delete=True)

    first_upload_at = _as_utc(first_upload_at)
    now = _as_utc(now) if now is not None else datetime.now(timezone.utc)

    elapsed_days = math.floor((now - first_upload_at) / timedelta(days=1))
    remaining = max(0, lock_days - elapsed_days)
    # Relógio atrasado em relação ao registo: nunca mais do que lock_days
    remaining = min(remaining, lock_days)

    return LockStatus(
        is_locked=remaining > 0,
        remaining_days=remaining,
        can_delete=remaining == 0,
        first_upload_at=first_upload_at
    )


def format_remaining_days(remaining_days: int) -> str:
    if remaining_days <= 0:
        return "Sem período de bloqueio"
    if remaining_days == 1:
        return "1 dia restante"
    return f"{remaining_days} dias restantes"


def lock_message(status: LockStatus) -> str:
    """Mensagem para o utilizador."""
    if not status.is_locked:
        return "O vídeo pode ser removido."
    unit = "dia" if status.remaining_days == 1 else "dias"
    return (
        f"O vídeo está bloqueado durante mais {status.remaining_days} {unit}. "
        f"Pode substituí-lo por um novo vídeo."
    )
