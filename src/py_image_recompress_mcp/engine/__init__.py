"""重新压缩引擎模块。

包含任务调度、图片集合和导出逻辑。
"""

from .export import (
    ArchiveBuilder,
    ExportCoordinator,
    ExportedArchive,
    ExportedFile,
    ZipArchiveBuilder,
)
from .scheduler import RecompressionJob, RecompressionScheduler
from .store import CollectionStore, EventType, StoreEvent


__all__ = [
    "ArchiveBuilder",
    "CollectionStore",
    "EventType",
    "ExportCoordinator",
    "ExportedArchive",
    "ExportedFile",
    "RecompressionJob",
    "RecompressionScheduler",
    "StoreEvent",
    "ZipArchiveBuilder",
]
