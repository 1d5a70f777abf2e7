"""API module."""

from .metrics import router as metrics_router
from .actions import router as actions_router

__all__ = ['metrics_router', 'actions_router']
