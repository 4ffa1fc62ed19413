"""Database access layer - public API."""

from .base import create_engine, dispose_engine, metadata
from .config import DatabaseConfig, get_config, reset_config
from .engine_manager import EngineManager
from .models import get_table, quickmail_config, quickmail_drafts, quickmail_log, quickmail_signatures
from .repositories import (
    CourseConfigRepository,
    MessageRepository,
    Repository,
    SignatureRepository,
)
from .transaction import TransactionManager

__all__ = [
    "CourseConfigRepository",
    "DatabaseConfig",
    "EngineManager",
    "MessageRepository",
    "Repository",
    "SignatureRepository",
    "TransactionManager",
    "create_engine",
    "dispose_engine",
    "get_config",
    "get_table",
    "metadata",
    "quickmail_config",
    "quickmail_drafts",
    "quickmail_log",
    "quickmail_signatures",
    "reset_config",
]
