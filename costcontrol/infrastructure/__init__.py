"""
Infrastructure Layer - Repository implementations over the SQLAlchemy models.
"""

from .repositories import (
    BaseRepository,
    ProjectRepository,
    LaborRepository,
    PerDiemRepository,
    WBSRepository,
)

__all__ = [
    'BaseRepository',
    'ProjectRepository',
    'LaborRepository',
    'PerDiemRepository',
    'WBSRepository',
]
