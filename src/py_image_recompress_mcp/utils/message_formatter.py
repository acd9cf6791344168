"""消息格式化工具模块。

提供统一的错误消息、状态消息格式化功能。
"""

from pathlib import Path
from typing import Any


class MessageFormatter:
    """统一的消息格式化器"""

    @staticmethod
    def file_not_found(file_path: str | Path) -> str:
        """文件不存在错误消息"""
        return f"文件不存在: {file_path}"

    @staticmethod
    def directory_not_found(directory: str | Path) -> str:
        """目录不存在错误消息"""
        return f"目录不存在: {directory}"

    @staticmethod
    def entry_not_found(entry_id: str) -> str:
        """条目不存在错误消息"""
        return f"图片条目不存在: {entry_id}"

    @staticmethod
    def entry_not_ready(entry_id: str, name: str | None = None) -> str:
        """条目尚无压缩结果"""
        label = f"{name} ({entry_id})" if name else entry_id
        return f"图片尚未完成重新压缩: {label}"

    @staticmethod
    def duplicate_name(name: str) -> str:
        """重名导入被忽略"""
        return f"已存在同名图片，忽略导入: {name}"

    @staticmethod
    def stale_result(entry_id: str, token: int, current: int) -> str:
        """过期任务结果被丢弃"""
        return f"丢弃过期结果: {entry_id} (任务 #{token}, 当前 #{current})"

    @staticmethod
    def operation_failed(
        operation: str, target: str | Path, error: Exception | None = None
    ) -> str:
        """操作失败消息"""
        msg = f"{operation}失败: {target}"
        if error:
            msg += f" - {error}"
        return msg

    @staticmethod
    def validation_error(field: str, value: Any, reason: str | None = None) -> str:
        """参数验证错误消息"""
        msg = f"参数验证失败 - {field}: {value}"
        if reason:
            msg += f" ({reason})"
        return msg

    @staticmethod
    def format_error(operation: str, target: str | Path, error: Exception) -> str:
        """格式化通用错误消息"""
        return f"{operation}失败 [{target}]: {error}"
