"""数据模型包。

定义重新压缩相关的数据结构和模型。
"""

from .constants import (
    ImageFormat,
    ImageFormats,
    get_format_alias,
)
from .encode_params import (
    DEFAULT_QUALITY,
    MAX_QUALITY,
    MIN_QUALITY,
    EncodeParams,
    clamp_quality,
)
from .snapshots import (
    CollectionSnapshot,
    EntryFault,
    EntrySnapshot,
    FaultKind,
    JobOutcome,
)


__all__ = [
    "DEFAULT_QUALITY",
    "MAX_QUALITY",
    "MIN_QUALITY",
    "CollectionSnapshot",
    "EncodeParams",
    "EntryFault",
    "EntrySnapshot",
    "FaultKind",
    "ImageFormat",
    "ImageFormats",
    "JobOutcome",
    "clamp_quality",
    "get_format_alias",
]
