"""工具模块包。

提供纯工具函数，不包含业务逻辑。
"""

from .file_helpers import (
    find_image_files,
    is_image_name,
    read_image_files,
)
from .logging_helpers import configure_logging, get_logger
from .message_formatter import MessageFormatter
from .naming_helpers import (
    UniqueNameAllocator,
    export_file_name,
    file_stem,
)


__all__ = [
    "MessageFormatter",
    "UniqueNameAllocator",
    "configure_logging",
    "export_file_name",
    "file_stem",
    "find_image_files",
    "get_logger",
    "is_image_name",
    "read_image_files",
]
