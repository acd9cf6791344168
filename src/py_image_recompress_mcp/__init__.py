"""批量图片重新压缩库。

逐张调整质量和格式、后台重新编码、对比预览并打包导出。
"""

__version__ = "0.1.0"
__description__ = "批量图片重新压缩引擎，基于 Pillow 11"

# 核心功能导出
from .core.resource import LocatorRegistry, ResourceHandle
from .core.view_state import PreviewState, ViewState
from .engine.export import (
    ExportCoordinator,
    ExportedArchive,
    ExportedFile,
    ZipArchiveBuilder,
)
from .engine.store import CollectionStore, EventType, StoreEvent
from .models import EncodeParams, EntrySnapshot, ImageFormat


__all__ = [
    "CollectionStore",
    "EncodeParams",
    "EntrySnapshot",
    "EventType",
    "ExportCoordinator",
    "ExportedArchive",
    "ExportedFile",
    "ImageFormat",
    "LocatorRegistry",
    "PreviewState",
    "ResourceHandle",
    "StoreEvent",
    "ViewState",
    "ZipArchiveBuilder",
    "get_version",
]


def get_version() -> str:
    """获取版本号。"""
    return __version__
