"""
Rotas do controlador de captura.
"""
from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile, status
from app.core.config import settings
from app.core.exceptions import (
    DeviceError,
    InvalidStateTransition,
    PersistError,
    UploadError,
    ValidationError
)
from app.core.security import get_current_user
from app.schemas.media import MediaFile
from app.schemas.profile_video import CaptureSnapshotSchema, ProfileVideoSchema, VideoDetailsSchema
from app.services.capture_controller import CaptureController

router = APIRouter(prefix="/capture", tags=["capture"])


def get_capture_controller(request: Request) -> CaptureController:
    """Controlador da estação de captura (criado no startup)."""
    return request.app.state.capture_controller


def _conflict(e: InvalidStateTransition) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


def _unavailable(e: DeviceError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail={"reason": e.reason, "message": e.cause}
    )


async def _read_limited(file: UploadFile, max_bytes: int) -> bytes:
    """Lê o upload em blocos, parando assim que passa do tamanho máximo."""
    buffer = bytearray()
    while True:
        chunk = await file.read(settings.capture_chunk_size)
        if not chunk:
            return bytes(buffer)
        buffer.extend(chunk)
        if len(buffer) > max_bytes:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail={
                    "constraint": "size",
                    "message": f"O ficheiro deve ter menos de {max_bytes // (1024 * 1024)}MB"
                }
            )


@router.get("", response_model=CaptureSnapshotSchema)
async def get_capture_state(
    current_user: dict = Depends(get_current_user),
    controller: CaptureController = Depends(get_capture_controller)
):
    """Estado atual da captura."""
    return controller.snapshot()


@router.post("/start", response_model=CaptureSnapshotSchema)
async def start_capture(
    max_seconds: float = Query(None, gt=0, description="Paragem automática após N segundos"),
    current_user: dict = Depends(get_current_user),
    controller: CaptureController = Depends(get_capture_controller)
):
    """Pede acesso à câmara e inicia a contagem decrescente."""
    try:
        await controller.start_capture(max_seconds=max_seconds)
    except InvalidStateTransition as e:
        raise _conflict(e)
    except DeviceError as e:
        raise _unavailable(e)
    return controller.snapshot()


@router.post("/stop", response_model=CaptureSnapshotSchema)
async def stop_recording(
    current_user: dict = Depends(get_current_user),
    controller: CaptureController = Depends(get_capture_controller)
):
    """Para a gravação e processa o vídeo."""
    try:
        await controller.stop_recording()
    except InvalidStateTransition as e:
        raise _conflict(e)
    except DeviceError as e:
        raise _unavailable(e)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"constraint": e.constraint, "message": e.reason}
        )
    return controller.snapshot()


@router.post("/upload", response_model=CaptureSnapshotSchema)
async def upload_video(
    file: UploadFile = File(...),
    current_user: dict = Depends(get_current_user),
    controller: CaptureController = Depends(get_capture_controller)
):
    """Carrega um vídeo existente em vez de gravar."""
    data = await _read_limited(file, controller.pipeline.validator.max_size_bytes)
    media = MediaFile(
        data=data,
        mime_type=file.content_type or "application/octet-stream",
        name=file.filename or "upload"
    )

    try:
        await controller.load_upload(media)
    except InvalidStateTransition as e:
        raise _conflict(e)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"constraint": e.constraint, "message": e.reason}
        )
    return controller.snapshot()


@router.post("/retake", response_model=CaptureSnapshotSchema)
async def retake(
    current_user: dict = Depends(get_current_user),
    controller: CaptureController = Depends(get_capture_controller)
):
    """Descarta o vídeo em revisão e grava de novo."""
    try:
        await controller.retake()
    except InvalidStateTransition as e:
        raise _conflict(e)
    except DeviceError as e:
        raise _unavailable(e)
    return controller.snapshot()


@router.post("/accept", response_model=CaptureSnapshotSchema)
async def accept(
    current_user: dict = Depends(get_current_user),
    controller: CaptureController = Depends(get_capture_controller)
):
    """Aceita o vídeo em revisão."""
    try:
        controller.accept()
    except InvalidStateTransition as e:
        raise _conflict(e)
    return controller.snapshot()


@router.post("/finalize", response_model=ProfileVideoSchema)
async def finalize(
    details: VideoDetailsSchema,
    current_user: dict = Depends(get_current_user),
    controller: CaptureController = Depends(get_capture_controller)
):
    """Publica o vídeo aceite no perfil do utilizador autenticado."""
    try:
        return await controller.finalize(current_user["user_id"], details)
    except InvalidStateTransition as e:
        raise _conflict(e)
    except (UploadError, PersistError) as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))


@router.post("/cancel", response_model=CaptureSnapshotSchema)
async def cancel(
    current_user: dict = Depends(get_current_user),
    controller: CaptureController = Depends(get_capture_controller)
):
    """Cancela a captura e liberta a câmara."""
    try:
        await controller.cancel()
    except InvalidStateTransition as e:
        raise _conflict(e)
    return controller.snapshot()


@router.post("/reset", response_model=CaptureSnapshotSchema)
async def reset(
    current_user: dict = Depends(get_current_user),
    controller: CaptureController = Depends(get_capture_controller)
):
    """Volta a idle depois de publicar, para gravar um novo vídeo."""
    try:
        await controller.reset()
    except InvalidStateTransition as e:
        raise _conflict(e)
    return controller.snapshot()
