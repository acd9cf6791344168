"""批量重新压缩 MCP 服务器。

进程内维护一个图片集合会话，把导入、调参、选择和导出操作暴露为 MCP 工具。
"""

from pathlib import Path
from typing import Any

from fastmcp import FastMCP

from .engine.export import ExportCoordinator
from .engine.store import CollectionStore
from .exceptions import NotFoundError, NotReadyError, ValidationError
from .models.snapshots import CollectionSnapshot
from .utils.file_helpers import read_image_files
from .utils.logging_helpers import configure_logging, get_logger
from .utils.message_formatter import MessageFormatter


# MCP 服务器响应类型定义
MCPResponse = dict[str, Any]


class MCPResponseBuilder:
    """MCP 服务器响应构建器，专门用于构建符合 MCP 协议的响应格式。"""

    @staticmethod
    def error(
        message: str,
        error_type: str = "general",
        details: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """构建错误结果。

        Args:
            message: 错误消息
            error_type: 错误类型
            details: 额外的错误详情

        Returns:
            dict: 标准化的错误响应
        """
        result = {
            "success": False,
            "error": message,
            "error_type": error_type,
        }

        if details:
            result["details"] = details

        return result

    @staticmethod
    def validation_error(message: str, field: str | None = None) -> dict[str, Any]:
        details = {"field": field} if field else None
        return MCPResponseBuilder.error(
            message=message, error_type="validation", details=details
        )

    @staticmethod
    def not_found(message: str, image_id: str | None = None) -> dict[str, Any]:
        details = {"image_id": image_id} if image_id else None
        return MCPResponseBuilder.error(
            message=message, error_type="not_found", details=details
        )

    @staticmethod
    def not_ready(message: str, image_id: str | None = None) -> dict[str, Any]:
        details = {"image_id": image_id} if image_id else None
        return MCPResponseBuilder.error(
            message=message, error_type="not_ready", details=details
        )

    @staticmethod
    def processing_error(message: str, operation: str | None = None) -> dict[str, Any]:
        details = {"operation": operation} if operation else None
        return MCPResponseBuilder.error(
            message=message, error_type="processing", details=details
        )


logger = get_logger(__name__)

# 创建MCP应用
mcp: FastMCP[Any] = FastMCP("批量图片重新压缩服务")

# 全局会话
session = CollectionStore()
exporter = ExportCoordinator(session)


def _format_snapshot(snapshot: CollectionSnapshot, settled: bool) -> MCPResponse:
    """格式化集合快照为MCP响应格式"""
    return {
        "success": True,
        "settled": settled,
        "selected_id": snapshot.selected_id,
        "global_format": snapshot.global_format,
        "summary": snapshot.get_summary(),
        "images": [
            {
                "id": e.id,
                "name": e.name,
                "format": e.params.format.value,
                "quality": e.params.quality,
                "original_size": e.source_size,
                "original_size_human": e.source_size_human,
                "compressed_size": e.output_size if e.has_output else None,
                "compressed_size_human": e.output_size_human if e.has_output else None,
                "savings_percent": round(e.savings_percent, 2) if e.has_output else None,
                "savings_label": e.savings_label if e.has_output else None,
                "selected": e.selected,
                "error": e.fault.message if e.fault else None,
            }
            for e in snapshot.entries
        ],
    }


def _settled_snapshot() -> MCPResponse:
    settled = session.settle()
    if not settled:
        logger.warning("等待重新压缩任务超时，返回当前状态")
    return _format_snapshot(session.snapshot(), settled)


# ============================================================================
# 集合管理工具
# ============================================================================


@mcp.tool()
def import_images(paths: list[str] | str, recursive: bool = True) -> MCPResponse:
    """导入图片文件或目录，使用全局格式和默认质量 75 重新压缩。

    已存在同名图片时忽略该文件。

    Args:
        paths: 文件或目录路径（单个或列表）
        recursive: 目录导入时是否递归子目录

    Returns:
        dict: 导入结果和集合状态
    """
    try:
        path_list = [paths] if isinstance(paths, str) else list(paths)
        files = read_image_files(path_list, recursive=recursive)
        added = session.add_many(files)

        result = _settled_snapshot()
        result["imported"] = added
        result["skipped"] = len(files) - len(added)
        return result

    except Exception as e:
        logger.error(MessageFormatter.operation_failed("导入图片", str(paths), e))
        return MCPResponseBuilder.processing_error(str(e), "导入图片")


@mcp.tool()
def list_images() -> MCPResponse:
    """列出集合中的所有图片及其压缩状态。"""
    session.drain()
    return _format_snapshot(session.snapshot(), session.scheduler.in_flight == 0)


@mcp.tool()
def select_image(image_id: str) -> MCPResponse:
    """选中一张图片（预览缩放会被重置）。"""
    if not session.select(image_id):
        return MCPResponseBuilder.not_found(
            MessageFormatter.entry_not_found(image_id), image_id
        )
    return _format_snapshot(session.snapshot(), session.scheduler.in_flight == 0)


@mcp.tool()
def set_image_params(
    image_id: str,
    quality: int | None = None,
    format: str | None = None,
) -> MCPResponse:
    """修改单张图片的压缩质量和格式并重新压缩。

    Args:
        image_id: 图片 ID
        quality: 压缩质量 1-100（越界时自动钳制）
        format: 目标格式 JPEG / WEBP / PNG

    Returns:
        dict: 更新后的集合状态
    """
    try:
        if not session.set_params(image_id, quality=quality, format=format):
            return MCPResponseBuilder.not_found(
                MessageFormatter.entry_not_found(image_id), image_id
            )
        return _settled_snapshot()

    except ValidationError as e:
        return MCPResponseBuilder.validation_error(e.message, "format")


@mcp.tool()
def reset_image_quality(image_id: str) -> MCPResponse:
    """把图片质量恢复为默认值 75（格式不变）并选中该图片。"""
    if not session.reset_params(image_id):
        return MCPResponseBuilder.not_found(
            MessageFormatter.entry_not_found(image_id), image_id
        )
    return _settled_snapshot()


@mcp.tool()
def set_global_format(format: str) -> MCPResponse:
    """设置全局格式，所有图片改用该格式重新压缩。"""
    try:
        session.set_global_format(format)
        return _settled_snapshot()
    except ValidationError as e:
        return MCPResponseBuilder.validation_error(e.message, "format")


@mcp.tool()
def remove_image(image_id: str) -> MCPResponse:
    """从集合中移除一张图片。"""
    if not session.remove(image_id):
        return MCPResponseBuilder.not_found(
            MessageFormatter.entry_not_found(image_id), image_id
        )
    return _format_snapshot(session.snapshot(), session.scheduler.in_flight == 0)


@mcp.tool()
def clear_images() -> MCPResponse:
    """清空集合。"""
    session.clear()
    return _format_snapshot(session.snapshot(), True)


# ============================================================================
# 导出工具
# ============================================================================


@mcp.tool()
def export_archive(output_path: str) -> MCPResponse:
    """把所有已完成的压缩结果导出为 ZIP 归档。

    Args:
        output_path: 归档文件路径，或目录（使用默认名 images.zip）
    """
    try:
        settled = session.settle()
        archive = exporter.write_archive(output_path)
        return {
            "success": True,
            "settled": settled,
            "archive_path": str(archive.path),
            "archive_size": archive.path.stat().st_size,
            "file_count": archive.file_count,
            "files": list(archive.file_names),
        }
    except Exception as e:
        logger.error(MessageFormatter.operation_failed("导出归档", output_path, e))
        return MCPResponseBuilder.processing_error(str(e), "导出归档")


@mcp.tool()
def export_image(image_id: str, output_dir: str) -> MCPResponse:
    """导出单张图片的压缩结果到目录。"""
    try:
        session.settle()
        path = exporter.write_one(image_id, Path(output_dir))
        return {
            "success": True,
            "output_path": str(path),
            "size": path.stat().st_size,
        }
    except NotFoundError as e:
        return MCPResponseBuilder.not_found(e.message, image_id)
    except NotReadyError as e:
        return MCPResponseBuilder.not_ready(e.message, image_id)
    except OSError as e:
        logger.error(MessageFormatter.operation_failed("导出图片", output_dir, e))
        return MCPResponseBuilder.processing_error(str(e), "导出图片")


# ============================================================================
# 应用入口
# ============================================================================


def main() -> None:
    """启动 MCP 服务器"""
    configure_logging()
    logger.info("启动批量图片重新压缩 MCP 服务器")
    try:
        mcp.run()
    finally:
        session.close()


if __name__ == "__main__":
    main()
