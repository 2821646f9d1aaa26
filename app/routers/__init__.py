"""
Módulo routers com as rotas da API.
"""
from app.routers import capture, videos

__all__ = ["capture", "videos"]
