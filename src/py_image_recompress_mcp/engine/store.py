"""图片集合存储模块。

CollectionStore 是界面层观察的唯一状态来源：有序的图片条目、当前选中项
和全局默认格式。所有修改都在持有者线程上同步完成，任务结果通过
drain() / wait_idle() 回到持有者线程后才会写入条目。
"""

import time
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ..config import get_config
from ..core.entry import ImageEntry
from ..core.resource import LocatorRegistry
from ..core.view_state import PreviewState
from ..exceptions import ValidationError
from ..models.constants import ImageFormat, ImageFormats
from ..models.encode_params import EncodeParams
from ..models.snapshots import CollectionSnapshot, EntryFault, JobOutcome
from ..utils.logging_helpers import get_logger
from ..utils.message_formatter import MessageFormatter
from .scheduler import RecompressionJob, RecompressionScheduler


logger = get_logger()


class EventType(str, Enum):
    """集合事件类型"""

    ADDED = "added"
    REMOVED = "removed"
    CLEARED = "cleared"
    SELECTED = "selected"
    PARAMS_CHANGED = "params_changed"
    OUTPUT_UPDATED = "output_updated"
    FAULT = "fault"


@dataclass(frozen=True)
class StoreEvent:
    """集合事件"""

    type: EventType
    entry_id: str | None = None
    fault: EntryFault | None = None


Observer = Callable[[StoreEvent], None]


class CollectionStore:
    """图片集合

    使用示例:
        with CollectionStore() as store:
            entry_id = store.add("photo.png", data)
            store.set_params(entry_id, quality=40, format="WEBP")
            store.wait_idle()
            print(store.snapshot().get_summary())
    """

    def __init__(
        self,
        max_workers: int | None = None,
        codec: Any | None = None,
        registry: LocatorRegistry | None = None,
        global_format: str | ImageFormat | None = None,
        scheduler: RecompressionScheduler | None = None,
    ):
        """初始化集合

        Args:
            max_workers: 任务线程数，默认读取配置
            codec: 编解码器，默认使用 Pillow
            registry: 定位符注册表
            global_format: 全局默认格式，默认读取配置
            scheduler: 自定义调度器（优先于 max_workers / codec）
        """
        app_config = get_config()
        self.default_quality = app_config.recompress.DEFAULT_QUALITY
        self.settle_timeout = app_config.recompress.SETTLE_TIMEOUT

        self.registry = registry or LocatorRegistry()
        self._scheduler = scheduler or RecompressionScheduler(
            max_workers=max_workers or app_config.recompress.MAX_WORKERS,
            codec=codec,
        )
        self._global_format = ImageFormat.parse(
            global_format or app_config.recompress.DEFAULT_FORMAT
        )
        self._entries: dict[str, ImageEntry] = {}
        self._selected_id: str | None = None
        self._observers: list[Observer] = []
        self.preview = PreviewState()

        logger.debug("初始化图片集合")

    # ------------------------------------------------------------------
    # 查询
    # ------------------------------------------------------------------

    @property
    def entries(self) -> list[ImageEntry]:
        """按导入顺序排列的条目"""
        return list(self._entries.values())

    @property
    def selected_id(self) -> str | None:
        return self._selected_id

    @property
    def selected(self) -> ImageEntry | None:
        if self._selected_id is None:
            return None
        return self._entries.get(self._selected_id)

    @property
    def global_format(self) -> ImageFormat:
        return self._global_format

    @property
    def scheduler(self) -> RecompressionScheduler:
        return self._scheduler

    def get(self, entry_id: str) -> ImageEntry | None:
        return self._entries.get(entry_id)

    def find_by_name(self, name: str) -> ImageEntry | None:
        for entry in self._entries.values():
            if entry.name == name:
                return entry
        return None

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._entries

    def __iter__(self) -> Iterator[ImageEntry]:
        return iter(self.entries)

    def snapshot(self) -> CollectionSnapshot:
        return CollectionSnapshot(
            entries=[
                entry.snapshot(selected=entry.id == self._selected_id)
                for entry in self._entries.values()
            ],
            selected_id=self._selected_id,
            global_format=self._global_format.value,
        )

    # ------------------------------------------------------------------
    # 观察者
    # ------------------------------------------------------------------

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """注册观察者，返回取消注册的函数"""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _emit(
        self,
        event_type: EventType,
        entry_id: str | None = None,
        fault: EntryFault | None = None,
    ) -> None:
        event = StoreEvent(type=event_type, entry_id=entry_id, fault=fault)
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception:
                logger.exception(
                    MessageFormatter.operation_failed("通知观察者", event_type.value)
                )

    # ------------------------------------------------------------------
    # 修改
    # ------------------------------------------------------------------

    def add(self, name: str, data: bytes) -> str | None:
        """导入一张图片

        已存在同名图片时静默忽略并返回 None。

        Returns:
            str | None: 新条目的 ID
        """
        if self.find_by_name(name) is not None:
            logger.debug(MessageFormatter.duplicate_name(name))
            return None

        entry = ImageEntry(
            name=name,
            source_bytes=data,
            params=EncodeParams(
                quality=self.default_quality, format=self._global_format
            ),
            registry=self.registry,
        )
        self._entries[entry.id] = entry
        logger.debug(f"导入图片: {name} ({entry.id}, {entry.source_size} bytes)")
        self._emit(EventType.ADDED, entry.id)

        if self._selected_id is None:
            self._set_selection(entry.id)

        self._dispatch(entry)
        return entry.id

    def add_many(self, files: Iterable[tuple[str, bytes]]) -> list[str]:
        """批量导入，跳过非图片文件名和重名文件

        Returns:
            list[str]: 新导入条目的 ID
        """
        added: list[str] = []
        for name, data in files:
            if not ImageFormats.is_image_name(name):
                logger.debug(f"跳过非图片文件: {name}")
                continue
            entry_id = self.add(name, data)
            if entry_id is not None:
                added.append(entry_id)
        return added

    def remove(self, entry_id: str) -> bool:
        """移除条目并释放其资源，不存在时不做任何事"""
        entry = self._entries.pop(entry_id, None)
        if entry is None:
            return False

        self._destroy(entry)
        logger.debug(f"移除图片: {entry.name} ({entry_id})")
        self._emit(EventType.REMOVED, entry_id)

        if self._selected_id == entry_id:
            fallback = next(iter(self._entries), None)
            self._set_selection(fallback)
        return True

    def clear(self) -> None:
        """移除全部条目"""
        entries = list(self._entries.values())
        self._entries.clear()
        for entry in entries:
            self._destroy(entry)

        self._selected_id = None
        self.preview.on_selection_changed()
        logger.debug(f"清空集合，共释放 {len(entries)} 张图片")
        self._emit(EventType.CLEARED)

    def select(self, entry_id: str) -> bool:
        if entry_id not in self._entries:
            return False
        if entry_id != self._selected_id:
            self._set_selection(entry_id)
        return True

    def set_params(
        self,
        entry_id: str,
        params: EncodeParams | dict[str, Any] | None = None,
        *,
        quality: int | None = None,
        format: str | ImageFormat | None = None,
    ) -> bool:
        """修改条目的编码参数并重新派发任务

        质量越界时静默钳制；格式无效时抛出 ValidationError。

        Returns:
            bool: 条目存在并已更新
        """
        entry = self._entries.get(entry_id)
        if entry is None:
            logger.debug(MessageFormatter.entry_not_found(entry_id))
            return False

        if isinstance(params, dict):
            quality = params.get("quality", quality)
            format = params.get("format", format)
        elif isinstance(params, EncodeParams):
            quality, format = params.quality, params.format

        try:
            new_params = entry.params.with_changes(quality=quality, format=format)
        except (PydanticValidationError, ValueError) as e:
            raise ValidationError(
                MessageFormatter.validation_error(
                    "编码参数", {"quality": quality, "format": format}, str(e)
                ),
                entry_id=entry_id,
            ) from e

        entry.params = new_params
        self._emit(EventType.PARAMS_CHANGED, entry_id)
        self._dispatch(entry)
        return True

    def set_global_format(self, target_format: str | ImageFormat) -> None:
        """设置全局格式，并把所有已有条目改为该格式重新压缩"""
        try:
            fmt = ImageFormat.parse(target_format)
        except ValueError as e:
            raise ValidationError(
                MessageFormatter.validation_error("全局格式", target_format, str(e))
            ) from e

        self._global_format = fmt
        logger.debug(f"全局格式设置为 {fmt.value}")
        for entry in list(self._entries.values()):
            entry.params = entry.params.with_changes(format=fmt)
            self._emit(EventType.PARAMS_CHANGED, entry.id)
            self._dispatch(entry)

    def reset_params(self, entry_id: str) -> bool:
        """质量恢复默认值（格式不变），选中该条目并重新压缩"""
        entry = self._entries.get(entry_id)
        if entry is None:
            return False

        entry.params = entry.params.with_changes(quality=self.default_quality)
        self.select(entry_id)
        self._emit(EventType.PARAMS_CHANGED, entry_id)
        self._dispatch(entry)
        return True

    def set_preview_mode(self, show_original: bool) -> None:
        """切换原图 / 压缩图显示，并重置缩放"""
        self.preview.set_mode(show_original)

    # ------------------------------------------------------------------
    # 任务
    # ------------------------------------------------------------------

    def _dispatch(self, entry: ImageEntry) -> None:
        token = entry.next_token()
        job = RecompressionJob(
            entry_id=entry.id,
            token=token,
            source_bytes=entry.source_bytes,
            params=entry.params,
        )
        self._scheduler.submit(job)

    def drain(self) -> int:
        """在当前线程应用所有已完成的任务结果

        Returns:
            int: 实际生效的结果数
        """
        applied = 0
        while (outcome := self._scheduler.next_outcome()) is not None:
            if self._apply(outcome):
                applied += 1
        return applied

    def wait_idle(self, timeout: float | None = None) -> bool:
        """等待所有已派发任务结束并应用结果

        Args:
            timeout: 最长等待秒数，None 表示一直等待

        Returns:
            bool: 是否在超时前全部结束
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            self.drain()
            if self._scheduler.in_flight == 0:
                return True

            wait = 0.05
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                wait = min(wait, remaining)

            outcome = self._scheduler.next_outcome(timeout=wait)
            if outcome is not None:
                self._apply(outcome)

    def settle(self) -> bool:
        """按配置的超时等待所有任务结束"""
        return self.wait_idle(self.settle_timeout)

    def _apply(self, outcome: JobOutcome) -> bool:
        entry = self._entries.get(outcome.entry_id)
        if entry is None:
            logger.debug(f"条目已移除，丢弃任务结果: {outcome.entry_id}")
            return False

        if outcome.fault is not None:
            if entry.record_fault(outcome.fault):
                logger.warning(
                    MessageFormatter.operation_failed(
                        "重新压缩", entry.name, Exception(outcome.fault.message)
                    )
                )
                self._emit(EventType.FAULT, entry.id, outcome.fault)
                return True
            logger.debug(
                MessageFormatter.stale_result(entry.id, outcome.token, entry.job_token)
            )
            return False

        if outcome.data is not None and entry.apply_output(
            outcome.token, outcome.data, outcome.params
        ):
            logger.debug(
                f"更新压缩结果: {entry.name} {outcome.params.format.value} "
                f"q={outcome.params.quality} → {entry.output_size} bytes"
            )
            self._emit(EventType.OUTPUT_UPDATED, entry.id)
            return True

        logger.debug(
            MessageFormatter.stale_result(entry.id, outcome.token, entry.job_token)
        )
        return False

    # ------------------------------------------------------------------
    # 内部
    # ------------------------------------------------------------------

    def _set_selection(self, entry_id: str | None) -> None:
        self._selected_id = entry_id
        self.preview.on_selection_changed()
        self._emit(EventType.SELECTED, entry_id)

    def _destroy(self, entry: ImageEntry) -> None:
        entry.destroy()
        self._scheduler.forget(entry.id)

    def close(self) -> None:
        """释放全部条目并关闭调度器"""
        self.clear()
        self._scheduler.shutdown(wait=True)
        self.drain()

    def __enter__(self) -> "CollectionStore":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        del exc_type, exc_val, exc_tb
        self.close()
