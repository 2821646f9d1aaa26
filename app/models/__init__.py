"""
Módulo models com os modelos SQLAlchemy.
"""
from app.models.profile import Profile

__all__ = [
    "Profile"
]
