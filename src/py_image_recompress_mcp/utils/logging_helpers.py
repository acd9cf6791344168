"""日志工具模块。

提供统一的日志记录功能，标准化日志格式和配置。
"""

import inspect
import logging
from logging.handlers import RotatingFileHandler
from typing import Any


PACKAGE_LOGGER_NAME = "py_image_recompress_mcp"


def get_logger(name: str | None = None) -> logging.Logger:
    """获取标准化配置的日志记录器。

    Args:
        name: 日志记录器名称，默认使用调用模块的 __name__

    Returns:
        logging.Logger: 配置好的日志记录器
    """
    if name is None:
        # 获取调用者的模块名
        frame = inspect.currentframe()
        if frame and frame.f_back:
            name = frame.f_back.f_globals.get("__name__", "unknown")
        else:
            name = "unknown"

    return logging.getLogger(name)


def configure_logging(app_config: Any | None = None) -> logging.Logger:
    """按 LoggingDefaults 配置包级日志记录器。

    重复调用不会叠加处理器。

    Args:
        app_config: AppConfig 实例，默认使用全局配置

    Returns:
        logging.Logger: 包级日志记录器
    """
    if app_config is None:
        from ..config import get_config

        app_config = get_config()

    log_cfg = app_config.logging
    package_logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    package_logger.setLevel(log_cfg.LOG_LEVEL)

    formatter = logging.Formatter(log_cfg.LOG_FORMAT)

    if not any(
        getattr(h, "_pir_console", False) for h in package_logger.handlers
    ):
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        console._pir_console = True  # type: ignore[attr-defined]
        package_logger.addHandler(console)

    if log_cfg.ENABLE_FILE_LOGGING and not any(
        isinstance(h, RotatingFileHandler) for h in package_logger.handlers
    ):
        file_handler = RotatingFileHandler(
            log_cfg.LOG_FILE_PATH,
            maxBytes=log_cfg.LOG_FILE_MAX_SIZE,
            backupCount=log_cfg.LOG_FILE_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

    return package_logger
