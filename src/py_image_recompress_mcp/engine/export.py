"""导出模块。

把集合中已完成的压缩结果打包为归档，或导出单个文件。
"""

import zipfile
from collections.abc import Callable
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Protocol

from ..config import get_config
from ..core.entry import ImageEntry
from ..exceptions import NotFoundError, NotReadyError, ResourceReleasedError
from ..utils.logging_helpers import get_logger
from ..utils.message_formatter import MessageFormatter
from ..utils.naming_helpers import UniqueNameAllocator, export_file_name
from .store import CollectionStore


logger = get_logger()


class ArchiveBuilder(Protocol):
    """归档聚合能力"""

    def add_entry(self, name: str, data: bytes) -> None: ...

    def finalize(self) -> bytes: ...


class ZipArchiveBuilder:
    """基于 zipfile 的内存归档"""

    def __init__(self, compresslevel: int | None = None) -> None:
        if compresslevel is None:
            compresslevel = get_config().export.COMPRESSION_LEVEL
        self._buffer = BytesIO()
        self._zip = zipfile.ZipFile(
            self._buffer, "w", zipfile.ZIP_DEFLATED, compresslevel=compresslevel
        )
        self._finalized = False
        self.names: list[str] = []

    def add_entry(self, name: str, data: bytes) -> None:
        if self._finalized:
            raise RuntimeError("归档已完成，不能继续添加")
        self._zip.writestr(name, data)
        self.names.append(name)

    def finalize(self) -> bytes:
        if not self._finalized:
            self._zip.close()
            self._finalized = True
        return self._buffer.getvalue()


@dataclass(frozen=True)
class ExportedFile:
    """单个导出文件"""

    file_name: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class ExportedArchive:
    """写入磁盘的归档及其包含的文件名"""

    path: Path
    file_names: tuple[str, ...]

    @property
    def file_count(self) -> int:
        return len(self.file_names)


class ExportCoordinator:
    """导出协调器

    只读取导出时刻已经完成的压缩结果，尚未完成的条目会被跳过。
    """

    def __init__(
        self,
        store: CollectionStore,
        archive_factory: Callable[[], ArchiveBuilder] | None = None,
    ):
        self.store = store
        self.archive_factory = archive_factory or ZipArchiveBuilder

    @staticmethod
    def export_name(entry: ImageEntry) -> str:
        """按生成当前输出的格式命名，没有输出时使用当前参数"""
        params = entry.output_params or entry.params
        return export_file_name(entry.name, params.format)

    def _read_entry(self, entry: ImageEntry) -> ExportedFile | None:
        """读取条目当前的输出，没有输出时返回 None"""
        try:
            current = entry.read_output()
        except ResourceReleasedError:
            # 读取期间条目被移除
            return None
        if current is None:
            return None

        data, params = current
        return ExportedFile(
            file_name=export_file_name(entry.name, params.format), data=data
        )

    def collect(self) -> list[ExportedFile]:
        """收集所有已完成条目的导出文件，归档内重名时添加数字后缀"""
        allocator = UniqueNameAllocator()
        files: list[ExportedFile] = []
        skipped = 0
        for entry in self.store.entries:
            exported = self._read_entry(entry)
            if exported is None:
                skipped += 1
                continue
            files.append(
                ExportedFile(
                    file_name=allocator.allocate(exported.file_name),
                    data=exported.data,
                )
            )

        if skipped:
            logger.info(f"导出时跳过 {skipped} 张尚未完成压缩的图片")
        return files

    def _build_archive(self) -> tuple[bytes, list[str]]:
        archive = self.archive_factory()
        files = self.collect()
        for exported in files:
            archive.add_entry(exported.file_name, exported.data)

        logger.debug(f"导出归档，共 {len(files)} 个文件")
        return archive.finalize(), [exported.file_name for exported in files]

    def export_all(self) -> bytes:
        """把所有已完成的压缩结果聚合为一个归档"""
        data, _ = self._build_archive()
        return data

    def export_one(self, entry_id: str) -> ExportedFile:
        """导出单个条目

        Raises:
            NotFoundError: 条目不存在
            NotReadyError: 条目尚无压缩结果
        """
        entry = self.store.get(entry_id)
        if entry is None:
            raise NotFoundError(MessageFormatter.entry_not_found(entry_id), entry_id)

        exported = self._read_entry(entry)
        if exported is None:
            raise NotReadyError(
                MessageFormatter.entry_not_ready(entry_id, entry.name), entry_id
            )
        return exported

    def write_archive(self, destination: str | Path) -> ExportedArchive:
        """把归档写入文件；destination 为目录时使用默认归档名"""
        path = Path(destination)
        if path.is_dir():
            path = path / get_config().export.ARCHIVE_NAME
        path.parent.mkdir(parents=True, exist_ok=True)

        data, names = self._build_archive()
        path.write_bytes(data)
        logger.info(f"归档已写入: {path} ({len(names)} 个文件)")
        return ExportedArchive(path=path, file_names=tuple(names))

    def write_one(self, entry_id: str, output_dir: str | Path) -> Path:
        """把单个条目的压缩结果写入目录"""
        exported = self.export_one(entry_id)
        directory = Path(output_dir)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / exported.file_name
        path.write_bytes(exported.data)
        logger.info(f"文件已写入: {path}")
        return path
