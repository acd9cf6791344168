"""重新压缩异常处理模块。

定义统一的异常类和错误处理机制，任务级错误在这里被转换为条目故障。
"""

from collections.abc import Callable
from functools import wraps
from typing import TypeVar

from PIL.Image import DecompressionBombError, UnidentifiedImageError

from .models.snapshots import EntryFault, FaultKind
from .utils.logging_helpers import get_logger
from .utils.message_formatter import MessageFormatter


logger = get_logger()
T = TypeVar("T")


# 统一的异常类型
class RecompressError(Exception):
    """重新压缩相关错误基类"""

    def __init__(self, message: str, entry_id: str | None = None):
        super().__init__(message)
        self.message = message
        self.entry_id = entry_id


class ValidationError(RecompressError):
    """参数验证错误（质量越界会被钳制，不会抛出）"""

    pass


class DecodeError(RecompressError):
    """源图解码失败"""

    pass


class EncodeError(RecompressError):
    """按目标格式编码失败"""

    pass


class NotReadyError(RecompressError):
    """条目还没有完成的压缩结果"""

    pass


class NotFoundError(RecompressError):
    """条目不存在"""

    pass


class ResourceReleasedError(RecompressError):
    """读取已释放的资源"""

    pass


def handle_image_errors(
    error_cls: type[RecompressError], operation_name: str = "图像处理"
):
    """统一的图像处理异常处理装饰器

    把 Pillow / 系统异常转换为指定的领域异常，领域异常原样抛出。

    Args:
        error_cls: 转换后的异常类型（DecodeError 或 EncodeError）
        operation_name: 操作名称，用于日志记录
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            try:
                return func(*args, **kwargs)
            except RecompressError:
                raise
            except UnidentifiedImageError as e:
                logger.debug(f"{operation_name} - 无法识别图像格式: {e}")
                raise error_cls(f"不支持的图像格式: {e}") from e
            except DecompressionBombError as e:
                logger.debug(f"{operation_name} - 图像过大: {e}")
                raise error_cls(f"图像尺寸过大，可能存在安全风险: {e}") from e
            except (OSError, ValueError, TypeError, KeyError, SyntaxError, EOFError) as e:
                # Pillow 对截断或损坏的数据流会抛出 SyntaxError / EOFError
                logger.debug(f"{operation_name} - 处理失败: {e}")
                raise error_cls(f"{operation_name}失败: {e}") from e

        return wrapper

    return decorator


class ErrorHandler:
    """统一错误处理器

    提供标准化的故障记录和日志功能。
    """

    @staticmethod
    def _log_error(
        operation: str, target: str, error: Exception, level: str = "error"
    ) -> None:
        """标准化的错误日志记录

        Args:
            operation: 操作名称
            target: 相关条目
            error: 异常对象
            level: 日志级别 ("error", "warning", "debug")
        """
        log_msg = MessageFormatter.format_error(operation, target, error)
        getattr(logger, level, logger.error)(log_msg)

    @staticmethod
    def fault_from_exception(
        error: Exception, entry_id: str, token: int = 0
    ) -> EntryFault:
        """把任务异常转换为条目故障"""
        match error:
            case DecodeError() as de:
                ErrorHandler._log_error("图像解码", entry_id, de, "warning")
                return EntryFault(
                    entry_id=entry_id,
                    kind=FaultKind.DECODE,
                    message=de.message,
                    token=token,
                )
            case EncodeError() as ee:
                ErrorHandler._log_error("图像编码", entry_id, ee, "warning")
                return EntryFault(
                    entry_id=entry_id,
                    kind=FaultKind.ENCODE,
                    message=ee.message,
                    token=token,
                )
            case _:
                ErrorHandler._log_error("重新压缩任务", entry_id, error, "error")
                return EntryFault(
                    entry_id=entry_id,
                    kind=FaultKind.ENCODE,
                    message=f"处理失败: {error}",
                    token=token,
                )
