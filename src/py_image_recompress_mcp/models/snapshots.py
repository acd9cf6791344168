"""状态快照模型。

定义提供给界面层的条目快照、集合快照、任务故障与任务结果。
"""

from enum import Enum

from humanize import naturalsize
from pydantic import BaseModel, Field

from .encode_params import EncodeParams


class FaultKind(str, Enum):
    """任务故障类型"""

    DECODE = "decode"
    ENCODE = "encode"


class EntryFault(BaseModel):
    """按条目标记的任务故障"""

    entry_id: str = Field(description="条目 ID")
    kind: FaultKind = Field(description="故障类型")
    message: str = Field(description="错误信息")
    token: int = Field(0, description="产生故障的任务代号")


class JobOutcome(BaseModel):
    """一次重新压缩任务的结果，data 与 fault 二选一"""

    entry_id: str
    token: int
    params: EncodeParams
    data: bytes | None = None
    fault: EntryFault | None = None


class BaseSnapshot(BaseModel):
    """快照基类"""

    @staticmethod
    def format_size(size_bytes: int) -> str:
        """格式化文件大小为人类可读格式"""
        return naturalsize(size_bytes, binary=True)


class EntrySnapshot(BaseSnapshot):
    """单个条目的只读快照"""

    id: str = Field(description="条目 ID")
    name: str = Field(description="导入时的文件名")
    source_size: int = Field(description="原始大小（字节）")
    output_size: int = Field(0, description="重新压缩后大小（字节）")
    savings_percent: float = Field(0.0, description="节省比例，变大时为负")
    params: EncodeParams = Field(description="当前编码参数")
    has_output: bool = Field(False, description="是否已有压缩结果")
    source_locator: str | None = Field(None, description="原图定位符")
    output_locator: str | None = Field(None, description="压缩结果定位符")
    fault: EntryFault | None = Field(None, description="最近一次故障")
    selected: bool = Field(False, description="是否为当前选中条目")

    @property
    def source_size_human(self) -> str:
        return self.format_size(self.source_size)

    @property
    def output_size_human(self) -> str:
        return self.format_size(self.output_size)

    @property
    def savings_label(self) -> str:
        """列表中显示的节省标签，如 -42.0% 或 +3.5%"""
        if self.savings_percent >= 0:
            return f"-{self.savings_percent:.1f}%"
        return f"+{abs(self.savings_percent):.1f}%"

    @property
    def grew(self) -> bool:
        """压缩后比原图更大"""
        return self.has_output and self.output_size > self.source_size

    def get_summary(self) -> str:
        if not self.has_output:
            return f"{self.name}: {self.source_size_human} → 处理中"
        return (
            f"{self.name}: {self.source_size_human} → {self.output_size_human} "
            f"({self.savings_label})"
        )


class CollectionSnapshot(BaseSnapshot):
    """整个集合的只读快照"""

    entries: list[EntrySnapshot] = Field(default_factory=list)
    selected_id: str | None = Field(None, description="当前选中条目")
    global_format: str = Field(description="全局默认格式")

    def get_total_count(self) -> int:
        return len(self.entries)

    def get_ready_count(self) -> int:
        return sum(1 for e in self.entries if e.has_output)

    def get_total_source_size(self) -> int:
        return sum(e.source_size for e in self.entries)

    def get_total_output_size(self) -> int:
        return sum(e.output_size for e in self.entries if e.has_output)

    def get_summary(self) -> str:
        total = self.get_total_count()
        if total == 0:
            return "没有图片"
        return (
            f"已处理 {self.get_ready_count()}/{total} 张图片, "
            f"{self.format_size(self.get_total_source_size())} → "
            f"{self.format_size(self.get_total_output_size())}"
        )
