"""
Configuração do APScheduler para tarefas em background.
"""
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from typing import Optional
import logging
from app.core.config import settings

logger = logging.getLogger(__name__)

TEMP_CLEANUP_JOB_ID = "temp_cleanup"


class SchedulerManager:
    """Gerenciador central do APScheduler."""

    _instance: Optional[AsyncIOScheduler] = None

    @classmethod
    def get_scheduler(cls) -> AsyncIOScheduler:
        """Retorna a instância singleton do scheduler."""
        if cls._instance is None:
            jobstores = {
                'default': MemoryJobStore()
            }
            job_defaults = {
                'coalesce': True,
                'max_instances': 1,
                'misfire_grace_time': 30
            }

            cls._instance = AsyncIOScheduler(
                jobstores=jobstores,
                job_defaults=job_defaults,
                timezone='UTC'
            )
            logger.info("APScheduler inicializado")

        return cls._instance

    @classmethod
    def schedule_temp_cleanup(cls, storage) -> None:
        """Agenda a limpeza periódica de ficheiros temporários de captura."""
        scheduler = cls.get_scheduler()
        scheduler.add_job(
            storage.cleanup_temp,
            "interval",
            minutes=settings.temp_cleanup_interval_minutes,
            kwargs={"max_age_hours": settings.temp_retention_hours},
            id=TEMP_CLEANUP_JOB_ID,
            replace_existing=True
        )
        logger.info(
            f"Limpeza de temporários agendada a cada {settings.temp_cleanup_interval_minutes} min"
        )

    @classmethod
    def start(cls):
        """Inicia o scheduler."""
        scheduler = cls.get_scheduler()
        if not scheduler.running:
            scheduler.start()
            logger.info("APScheduler iniciado")

    @classmethod
    def shutdown(cls):
        """Para o scheduler."""
        if cls._instance and cls._instance.running:
            cls._instance.shutdown()
            logger.info("APScheduler parado")
