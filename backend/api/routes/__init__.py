"""API Routes - Domain-based routing"""

from .connection import router as connection_router
from .sequence import router as sequence_router
from .settings import router as settings_router

__all__ = [
    'connection_router',
    'sequence_router',
    'settings_router',
]
