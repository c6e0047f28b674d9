"""
WORDMAP INFRASTRUCTURE - System-Level Modules

This package contains infrastructure components:
- config: Engine configuration from defaults, TOML and environment
- logger: Mutation event logging for committed mind map edits
- metrics: Polars-based metering of generation usage
- persistence: JSON file storage for mind maps
"""

from infrastructure.config import EngineConfig, load_config, get_config
from infrastructure.logger import MutationLogger, MutationType, MutationEvent, LoggerConfig
from infrastructure.metrics import MeteringCollector, UsageRecord, get_collector
from infrastructure.persistence import JsonFileStore, MindMapStore, PersistenceError

__all__ = [
    "EngineConfig",
    "load_config",
    "get_config",
    "MutationLogger",
    "MutationType",
    "MutationEvent",
    "LoggerConfig",
    "MeteringCollector",
    "UsageRecord",
    "get_collector",
    "JsonFileStore",
    "MindMapStore",
    "PersistenceError",
]
