"""统一配置管理模块。

提供应用程序的全局配置管理，包括默认值、环境变量支持等。
"""

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class RecompressDefaults:
    """重新压缩相关的默认配置"""

    # 质量设置
    DEFAULT_QUALITY: int = 75

    # 新导入图片的默认格式
    DEFAULT_FORMAT: str = "JPEG"

    # 并发设置
    MAX_WORKERS: int = 4

    # 等待所有任务结束的超时（秒）
    SETTLE_TIMEOUT: float = 30.0


@dataclass(frozen=True)
class ViewDefaults:
    """预览缩放相关的默认配置"""

    MIN_SCALE: float = 0.1
    MAX_SCALE: float = 10.0

    # 滚轮缩放因子
    WHEEL_ZOOM_IN: float = 1.1
    WHEEL_ZOOM_OUT: float = 0.9


@dataclass(frozen=True)
class ExportDefaults:
    """导出相关的默认配置"""

    ARCHIVE_NAME: str = "images.zip"
    COMPRESSION_LEVEL: int = 6


@dataclass(frozen=True)
class LoggingDefaults:
    """日志相关的默认配置"""

    # 日志级别
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # 文件日志
    ENABLE_FILE_LOGGING: bool = False
    LOG_FILE_PATH: str = "py_image_recompress.log"
    LOG_FILE_MAX_SIZE: int = 10 * 1024 * 1024  # 10MB
    LOG_FILE_BACKUP_COUNT: int = 5


class AppConfig:
    """应用程序配置管理器

    支持环境变量覆盖默认配置
    """

    def __init__(self):
        self.recompress = RecompressDefaults()
        self.view = ViewDefaults()
        self.export = ExportDefaults()
        self.logging = LoggingDefaults()

        # 从环境变量加载配置
        self._load_from_env()

    def _load_from_env(self):
        """从环境变量加载配置"""
        # 重新压缩配置
        if quality := os.getenv("PIR_DEFAULT_QUALITY"):
            object.__setattr__(self.recompress, "DEFAULT_QUALITY", int(quality))

        if default_format := os.getenv("PIR_DEFAULT_FORMAT"):
            object.__setattr__(
                self.recompress, "DEFAULT_FORMAT", default_format.upper()
            )

        if max_workers := os.getenv("PIR_MAX_WORKERS"):
            object.__setattr__(self.recompress, "MAX_WORKERS", int(max_workers))

        if settle_timeout := os.getenv("PIR_SETTLE_TIMEOUT"):
            object.__setattr__(
                self.recompress, "SETTLE_TIMEOUT", float(settle_timeout)
            )

        # 导出配置
        if archive_name := os.getenv("PIR_ARCHIVE_NAME"):
            object.__setattr__(self.export, "ARCHIVE_NAME", archive_name)

        # 日志配置
        if log_level := os.getenv("PIR_LOG_LEVEL"):
            object.__setattr__(self.logging, "LOG_LEVEL", log_level.upper())

        if enable_file_log := os.getenv("PIR_ENABLE_FILE_LOGGING"):
            object.__setattr__(
                self.logging,
                "ENABLE_FILE_LOGGING",
                enable_file_log.lower() in ("true", "1", "yes"),
            )


# 全局配置实例
config = AppConfig()


def get_config() -> AppConfig:
    """获取全局配置实例"""
    return config


def reset_config():
    """重置配置（主要用于测试）"""
    global config
    config = AppConfig()
