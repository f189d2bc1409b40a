"""
Repositories Layer
Data persistence and query operations for the vetting pipeline.
"""
from .connection import db_manager, get_database, DatabaseManager
from .base import BaseRepository
from .conversations import ConversationRepository
from .snapshots import SnapshotRepository
from .domain_cache import DomainCacheRepository
from .prospects import ProspectRepository

__all__ = [
    "db_manager",
    "get_database",
    "DatabaseManager",
    "BaseRepository",
    "ConversationRepository",
    "SnapshotRepository",
    "DomainCacheRepository",
    "ProspectRepository",
]
