"""图片条目模块。

ImageEntry 表示一张导入的图片：身份、原始字节、当前编码参数、
当前压缩结果以及派生指标。任务代号的比较与结果替换在同一把锁内完成。
"""

import threading
import uuid

from ..models.encode_params import EncodeParams
from ..models.snapshots import EntryFault, EntrySnapshot
from .resource import LocatorRegistry, ResourceHandle


def new_entry_id() -> str:
    """生成条目 ID"""
    return uuid.uuid4().hex[:12]


class ImageEntry:
    """一张用户导入的图片及其重新压缩状态"""

    def __init__(
        self,
        name: str,
        source_bytes: bytes,
        params: EncodeParams,
        registry: LocatorRegistry | None = None,
        entry_id: str | None = None,
    ):
        self._lock = threading.Lock()
        self._registry = registry
        self._id = entry_id or new_entry_id()
        self._name = name
        self._source_bytes = bytes(source_bytes)
        self.source_resource = ResourceHandle(self._source_bytes, registry)

        self.params = params
        self.output: ResourceHandle | None = None
        self.output_params: EncodeParams | None = None
        self.output_size = 0
        self.savings_percent = 0.0
        self.fault: EntryFault | None = None

        self._job_token = 0
        self._destroyed = False

    @property
    def id(self) -> str:
        return self._id

    @property
    def name(self) -> str:
        return self._name

    @property
    def source_bytes(self) -> bytes:
        return self._source_bytes

    @property
    def source_size(self) -> int:
        return len(self._source_bytes)

    @property
    def job_token(self) -> int:
        with self._lock:
            return self._job_token

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def has_output(self) -> bool:
        return self.output is not None

    def next_token(self) -> int:
        """分配新的任务代号，之前派发的任务结果全部作废"""
        with self._lock:
            self._job_token += 1
            return self._job_token

    def is_current(self, token: int) -> bool:
        with self._lock:
            return token == self._job_token and not self._destroyed

    def apply_output(
        self, token: int, data: bytes, params: EncodeParams | None = None
    ) -> bool:
        """比较代号并应用任务结果

        代号过期或条目已销毁时不做任何修改并返回 False。
        输出句柄与派生指标在同一临界区内更新。
        """
        with self._lock:
            if self._destroyed or token != self._job_token:
                return False

            if self.output is None:
                self.output = ResourceHandle(data, self._registry)
            else:
                self.output.replace(data)

            self.output_params = params or self.params
            self.output_size = len(data)
            self.savings_percent = compute_savings(self.source_size, self.output_size)
            self.fault = None
            return True

    def read_output(self) -> tuple[bytes, EncodeParams] | None:
        """原子地读取 (输出字节, 生成该输出的参数)，没有输出时返回 None"""
        with self._lock:
            if self.output is None or self.output_params is None:
                return None
            data, _ = self.output.snapshot()
            return data, self.output_params

    def record_fault(self, fault: EntryFault) -> bool:
        """记录当前任务的故障，保留上一次成功的输出"""
        with self._lock:
            if self._destroyed or fault.token != self._job_token:
                return False
            self.fault = fault
            return True

    def destroy(self) -> None:
        """释放原图与压缩结果资源，只执行一次"""
        with self._lock:
            if self._destroyed:
                return
            self._destroyed = True
            output, self.output = self.output, None

        self.source_resource.release()
        if output is not None:
            output.release()

    def snapshot(self, selected: bool = False) -> EntrySnapshot:
        with self._lock:
            return EntrySnapshot(
                id=self._id,
                name=self._name,
                source_size=self.source_size,
                output_size=self.output_size,
                savings_percent=self.savings_percent,
                params=self.params,
                has_output=self.output is not None,
                source_locator=self.source_resource.locator,
                output_locator=self.output.locator if self.output else None,
                fault=self.fault,
                selected=selected,
            )

    def __repr__(self) -> str:
        return f"ImageEntry(id={self._id!r}, name={self._name!r}, params={self.params!r})"


def compute_savings(source_size: int, output_size: int) -> float:
    """节省百分比：100 × (1 − 输出大小 / 原始大小)，输出更大时为负"""
    if source_size <= 0:
        return 0.0
    return 100.0 * (1.0 - output_size / source_size)
