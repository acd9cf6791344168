"""工具函数模块。

提供图片文件查找与读取的实用工具函数。
"""

from collections.abc import Iterable, Iterator
from pathlib import Path

from ..models.constants import ImageFormats
from .logging_helpers import get_logger
from .message_formatter import MessageFormatter


logger = get_logger()


def is_image_name(name: str | Path) -> bool:
    """按扩展名判断是否为 Pillow 可识别的图片"""
    return ImageFormats.is_image_name(Path(name).name)


def find_image_files(
    directory: str | Path,
    recursive: bool = True,
) -> Iterator[Path]:
    """查找目录中的图像文件。

    Args:
        directory: 搜索目录
        recursive: 是否递归搜索子目录

    Yields:
        Path: 图像文件路径
    """
    directory = Path(directory)

    if not directory.is_dir():
        logger.warning(MessageFormatter.directory_not_found(directory))
        return

    pattern = "**/*" if recursive else "*"
    try:
        for file_path in sorted(directory.glob(pattern)):
            if file_path.is_file() and is_image_name(file_path):
                yield file_path
    except PermissionError:
        logger.error(MessageFormatter.operation_failed("访问目录", directory))


def read_image_files(
    paths: Iterable[str | Path], recursive: bool = True
) -> list[tuple[str, bytes]]:
    """读取文件或目录中的图片，返回 (文件名, 字节) 列表

    不存在的路径和读取失败的文件会记录日志后跳过。
    """
    files: list[tuple[str, bytes]] = []
    for raw_path in paths:
        path = Path(raw_path)
        if path.is_dir():
            candidates: Iterable[Path] = find_image_files(path, recursive=recursive)
        elif path.is_file():
            candidates = [path]
        else:
            logger.warning(MessageFormatter.file_not_found(path))
            continue

        for file_path in candidates:
            try:
                files.append((file_path.name, file_path.read_bytes()))
            except OSError as e:
                logger.error(MessageFormatter.operation_failed("读取文件", file_path, e))
    return files
