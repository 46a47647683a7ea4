"""Recommate - API Routers"""
from .auth import router as auth_router
from .requests import router as requests_router
from .student import router as student_router
from .templates import router as templates_router
from .letters import router as letters_router

__all__ = [
    "auth_router",
    "requests_router",
    "student_router",
    "templates_router",
    "letters_router",
]
