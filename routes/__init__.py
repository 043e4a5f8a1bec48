# Routes package __init__.py - re-exports routers for main.py convenience
from .cards import router as cards_router
from .review import router as review_router
from .settings import router as settings_router
from .backups import router as backups_router

__all__ = ['cards_router', 'review_router', 'settings_router', 'backups_router']
