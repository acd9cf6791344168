"""文件命名工具模块。

提供导出文件命名和归档内的重名处理。
"""

import itertools

from ..models.constants import ImageFormat


def file_stem(name: str) -> str:
    """去掉最后一个扩展名的文件名

    没有扩展名或以点开头的隐藏文件保持原样。
    """
    dot = name.rfind(".")
    if dot <= 0:
        return name
    return name[:dot]


def export_file_name(name: str, target_format: str | ImageFormat) -> str:
    """导出文件名：stem + "." + 扩展名"""
    fmt = ImageFormat.parse(target_format)
    return f"{file_stem(name)}.{fmt.extension}"


class UniqueNameAllocator:
    """为同一个归档分配不重复的文件名

    重名时添加数字后缀：photo.jpg → photo_1.jpg → photo_2.jpg
    """

    def __init__(self) -> None:
        self._used: set[str] = set()

    def allocate(self, name: str) -> str:
        if name not in self._used:
            self._used.add(name)
            return name

        stem = file_stem(name)
        suffix = name[len(stem):]
        # 使用 itertools.count 生成无限序列
        for counter in itertools.count(1):
            candidate = f"{stem}_{counter}{suffix}"
            if candidate not in self._used:
                self._used.add(candidate)
                return candidate

        return name  # pragma: no cover
