"""
Storage Manager - Gestão de storage local para vídeos, thumbnails e ficheiros temporários de captura.
"""
import time
import uuid
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional, List, AsyncIterator
from datetime import datetime
import aiofiles
import asyncio
from app.core.config import settings

logger = logging.getLogger(__name__)

BUCKETS = ("videos", "thumbnails")


class StorageManager:
    """Gerenciador de storage local."""

    def __init__(self, base_path: Optional[str] = None, public_base_url: Optional[str] = None):
        self.base_path = Path(base_path or settings.storage_base_path)
        self.public_base_url = (public_base_url or settings.public_base_url).rstrip("/")

    def ensure_structure(self):
        """Garante que a estrutura de diretórios existe."""
        directories = [self.base_path / bucket for bucket in BUCKETS]
        directories.append(self.base_path / "temp")

        for directory in directories:
            directory.mkdir(parents=True, exist_ok=True)
            logger.info(f"Diretório garantido: {directory}")

    def get_bucket_path(self, bucket: str, owner_id: str) -> Path:
        """Retorna o caminho de um bucket para um dono."""
        if bucket not in BUCKETS:
            raise ValueError(f"Bucket desconhecido: {bucket}")
        path = self.base_path / bucket / owner_id
        path.mkdir(parents=True, exist_ok=True)
        return path

    def get_temp_path(self) -> Path:
        """Retorna o caminho temporário."""
        path = self.base_path / "temp"
        path.mkdir(parents=True, exist_ok=True)
        return path

    def public_url(self, key: str) -> str:
        """URL pública de um objeto."""
        return f"{self.public_base_url}/{key}"

    def key_from_url(self, url: Optional[str]) -> Optional[str]:
        """Chave do objeto a partir da URL pública (None se não for deste storage)."""
        prefix = f"{self.public_base_url}/"
        if not url or not url.startswith(prefix):
            return None
        return url[len(prefix):]

    async def write_bytes(self, dest_path: Path, data: bytes) -> None:
        """Escreve bytes de forma assíncrona."""
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(dest_path, 'wb') as dst:
            await dst.write(data)

    async def read_bytes(self, path: Path) -> bytes:
        """Lê um ficheiro de forma assíncrona."""
        async with aiofiles.open(path, 'rb') as src:
            return await src.read()

    async def save_object(self, bucket: str, owner_id: str, file_name: str, data: bytes) -> str:
        """
        Guarda um objeto num bucket.

        Returns:
            Chave do objeto (bucket/owner/ficheiro)
        """
        dest = self.get_bucket_path(bucket, owner_id) / file_name
        await self.write_bytes(dest, data)
        key = f"{bucket}/{owner_id}/{file_name}"
        logger.info(f"Objeto guardado: {key} ({len(data)} bytes)")
        return key

    async def delete_object(self, key: str) -> bool:
        """Remove um objeto pela chave."""
        return await self.delete_file(str(self.base_path / key))

    async def write_temp(self, data: bytes, suffix: str = "") -> Path:
        """Escreve um ficheiro temporário e retorna o caminho."""
        path = self.get_temp_path() / f"{uuid.uuid4()}{suffix}"
        await self.write_bytes(path, data)
        return path

    @asynccontextmanager
    async def temp_file(self, data: bytes, suffix: str = "") -> AsyncIterator[Path]:
        """Ficheiro temporário removido à saída do bloco."""
        path = await self.write_temp(data, suffix)
        try:
            yield path
        finally:
            await self.delete_file(str(path))

    def new_temp_path(self, suffix: str = "") -> Path:
        """Reserva um caminho temporário (o ficheiro não é criado)."""
        return self.get_temp_path() / f"{uuid.uuid4()}{suffix}"

    async def delete_file(self, file_path: str) -> bool:
        """
        Remove um ficheiro.

        Args:
            file_path: Caminho do ficheiro

        Returns:
            True se sucesso
        """
        try:
            path = Path(file_path)
            if path.exists():
                await asyncio.to_thread(path.unlink)
                logger.info(f"Ficheiro removido: {file_path}")
                return True
            return False

        except OSError as e:
            logger.error(f"Erro ao remover ficheiro: {e}")
            return False

    def list_files(self, directory: str, pattern: str = "*") -> List[Path]:
        """Lista ficheiros em um diretório."""
        path = Path(directory)
        if path.exists() and path.is_dir():
            return sorted(p for p in path.glob(pattern) if p.is_file())
        return []

    def get_file_info(self, file_path: str) -> Optional[dict]:
        """
        Obtém informações sobre um ficheiro.

        Returns:
            Dict com size, created_at, modified_at ou None
        """
        try:
            path = Path(file_path)
            if path.exists() and path.is_file():
                stat = path.stat()
                return {
                    "size_bytes": stat.st_size,
                    "created_at": datetime.fromtimestamp(stat.st_ctime),
                    "modified_at": datetime.fromtimestamp(stat.st_mtime),
                    "path": str(path)
                }
            return None

        except OSError as e:
            logger.error(f"Erro ao obter info do ficheiro: {e}")
            return None

    async def cleanup_temp(self, max_age_hours: float) -> int:
        """
        Remove ficheiros temporários (capturas e previews) mais antigos que max_age_hours.

        Returns:
            Número de ficheiros removidos
        """
        cutoff = time.time() - max_age_hours * 3600
        removed = 0

        for path in self.list_files(str(self.base_path / "temp")):
            info = self.get_file_info(str(path))
            if info and info["modified_at"].timestamp() < cutoff:
                if await self.delete_file(str(path)):
                    removed += 1

        if removed:
            logger.info(f"Removidos {removed} ficheiros temporários antigos")
        return removed

    def get_directory_size(self, directory: str) -> int:
        """Calcula o tamanho total de um diretório em bytes."""
        path = Path(directory)
        if path.exists() and path.is_dir():
            return sum(f.stat().st_size for f in path.rglob('*') if f.is_file())
        return 0

    def get_storage_stats(self) -> dict:
        """
        Retorna estatísticas de uso de storage.

        Returns:
            Dict com tamanhos por categoria
        """
        return {
            "videos_bytes": self.get_directory_size(str(self.base_path / "videos")),
            "thumbnails_bytes": self.get_directory_size(str(self.base_path / "thumbnails")),
            "temp_bytes": self.get_directory_size(str(self.base_path / "temp")),
            "total_bytes": self.get_directory_size(str(self.base_path))
        }


# Instância global
storage_manager = StorageManager()
