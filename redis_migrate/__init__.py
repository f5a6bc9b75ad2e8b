"""
redis-migrate - 在Redis实例之间迁移键

此包按模式把键从源Redis迁移到目标Redis，使用DUMP/RESTORE保持值和TTL，
支持copy/move两种模式以及error/skip/overwrite三种冲突策略。
"""

__version__ = "1.0.0"
__author__ = "redis-migrate Contributors"

from .config import MigrationSpec, MigrationMode, ConflictPolicy, parse_mode, parse_conflict_policy
from .store import KeyEntry, StoreClient
from .redis_store import RedisStoreClient
from .connection_manager import RedisConnectionManager
from .progress import ProgressTracker
from .migrator import Migrator
from .exceptions import MigrationError

__all__ = [
    "MigrationSpec",
    "MigrationMode",
    "ConflictPolicy",
    "parse_mode",
    "parse_conflict_policy",
    "KeyEntry",
    "StoreClient",
    "RedisStoreClient",
    "RedisConnectionManager",
    "ProgressTracker",
    "Migrator",
    "MigrationError"
]
