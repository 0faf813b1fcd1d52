"""
Repository implementations for the data access layer.
"""
from .base_repository import BaseRepository, safe_fetch
from .project_repository import ProjectRepository
from .labor_repository import LaborRepository
from .per_diem_repository import PerDiemRepository
from .wbs_repository import WBSRepository

__all__ = [
    'BaseRepository',
    'safe_fetch',
    'ProjectRepository',
    'LaborRepository',
    'PerDiemRepository',
    'WBSRepository',
]
