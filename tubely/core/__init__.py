"""Core module for configuration and utilities."""

from tubely.core.config import settings
from tubely.core.database import Base, get_db

__all__ = [
    "settings",
    "Base",
    "get_db",
]
