"""
Rotas do vídeo publicado no perfil: estado de bloqueio e remoção.
"""
from fastapi import APIRouter, Depends, HTTPException, Request, status
from app.core.exceptions import LockViolation, PersistError
from app.core.security import get_current_user
from app.schemas.lock import LockStatusResponse
from app.services import lock_policy
from app.services.video_profile_service import VideoProfileService

router = APIRouter(prefix="/videos", tags=["videos"])


def get_video_profile_service(request: Request) -> VideoProfileService:
    return request.app.state.video_profile_service


@router.get("/lock", response_model=LockStatusResponse)
async def get_lock_status(
    current_user: dict = Depends(get_current_user),
    service: VideoProfileService = Depends(get_video_profile_service)
):
    """Estado de bloqueio do vídeo do utilizador."""
    try:
        lock_status = await service.get_lock_status(current_user["user_id"])
    except PersistError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    return LockStatusResponse(
        **lock_status.model_dump(),
        message=lock_policy.lock_message(lock_status)
    )


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def delete_video(
    current_user: dict = Depends(get_current_user),
    service: VideoProfileService = Depends(get_video_profile_service)
):
    """Remove o vídeo do perfil, se já não estiver bloqueado."""
    try:
        await service.delete_video(current_user["user_id"])
    except LockViolation as e:
        raise HTTPException(
            status_code=status.HTTP_423_LOCKED,
            detail={"remaining_days": e.remaining_days, "message": str(e)}
        )
    except PersistError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
