"""
Aplicação FastAPI principal para captura e publicação de vídeos de apresentação.
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
import logging
from app.core.config import settings
from app.core.database import Base, engine
from app.core.scheduler import SchedulerManager
from app.routers import capture, videos
from app.services.capture_controller import CaptureController
from app.services.capture_device import FFmpegCaptureDevice
from app.services.media_pipeline import MediaPipeline
from app.services.persistence_gateway import StoragePersistenceGateway
from app.services.stream_resource_manager import StreamResourceManager
from app.services.video_profile_service import VideoProfileService
from app.utils.ffmpeg_wrapper import ffmpeg_wrapper
from app.utils.storage_manager import storage_manager

# Configurar logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Gerencia o ciclo de vida da aplicação.
    Cria o controlador de captura no startup e liberta a câmara no shutdown.
    """
    # Startup
    logger.info("Iniciando aplicação...")

    # Criar tabelas no banco de dados
    Base.metadata.create_all(bind=engine)
    logger.info("Tabelas do banco de dados criadas/verificadas")

    storage_manager.ensure_structure()

    # Limpeza periódica de capturas e previews temporários
    SchedulerManager.schedule_temp_cleanup(storage_manager)
    SchedulerManager.start()

    profiles = VideoProfileService(StoragePersistenceGateway(storage_manager))
    controller = CaptureController(
        streams=StreamResourceManager(FFmpegCaptureDevice(ffmpeg_wrapper)),
        pipeline=MediaPipeline(storage=storage_manager),
        profiles=profiles,
        storage=storage_manager
    )
    app.state.video_profile_service = profiles
    app.state.capture_controller = controller

    logger.info("Controlador de captura pronto")

    yield

    # Shutdown
    logger.info("Parando aplicação...")

    await controller.shutdown()

    # Parar todos os processos FFmpeg
    await ffmpeg_wrapper.shutdown_all()

    # Parar scheduler
    SchedulerManager.shutdown()

    logger.info("Aplicação parada")


# Criar aplicação FastAPI
app = FastAPI(
    title=settings.api_title,
    description=settings.api_description,
    version=settings.api_version,
    debug=settings.debug,
    lifespan=lifespan
)

# Configurar CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Incluir rotas
app.include_router(capture.router)
app.include_router(videos.router)

# Ficheiros publicados (URLs públicas do object store local)
app.mount(
    "/media/videos",
    StaticFiles(directory=f"{settings.storage_base_path}/videos", check_dir=False),
    name="videos"
)
app.mount(
    "/media/thumbnails",
    StaticFiles(directory=f"{settings.storage_base_path}/thumbnails", check_dir=False),
    name="thumbnails"
)


@app.get("/")
async def root():
    """Endpoint raiz da API."""
    return {
        "message": "Bem-vindo à Intro Video Capture API",
        "version": settings.api_version,
        "docs": "/docs",
        "openapi": "/openapi.json"
    }


@app.get("/health")
async def health_check():
    """Health check da API."""
    controller = getattr(app.state, "capture_controller", None)
    return {
        "status": "ok",
        "capture_state": controller.state.value if controller else None,
        "ffmpeg_processes": len(ffmpeg_wrapper.active_processes),
        "storage": storage_manager.get_storage_stats()
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
