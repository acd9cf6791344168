"""核心模块包。

资源句柄、图片条目、编解码和预览状态。
"""

from .codec import DecodeCache, ImageCodec, get_save_parameters
from .entry import ImageEntry, compute_savings, new_entry_id
from .resource import LocatorRegistry, ResourceHandle
from .view_state import PreviewState, ViewState


__all__ = [
    "DecodeCache",
    "ImageCodec",
    "ImageEntry",
    "LocatorRegistry",
    "PreviewState",
    "ResourceHandle",
    "ViewState",
    "compute_savings",
    "get_save_parameters",
    "new_entry_id",
]
