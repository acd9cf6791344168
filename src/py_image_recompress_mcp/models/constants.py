"""图像格式相关常量定义。

重新压缩只输出 JPEG / WEBP / PNG 三种格式，导入时的格式识别依赖 Pillow 注册表。
"""

from enum import Enum
from typing import Final

from PIL import Image


class ImageFormat(str, Enum):
    """可选的目标编码格式"""

    JPEG = "JPEG"
    WEBP = "WEBP"
    PNG = "PNG"

    @property
    def extension(self) -> str:
        """导出文件扩展名（不含点）"""
        return ImageFormats.PREFERRED_EXTENSIONS[self.value].lstrip(".")

    @property
    def mime_type(self) -> str:
        return ImageFormats.get_mime_type(self.value)

    @classmethod
    def parse(cls, value: "str | ImageFormat") -> "ImageFormat":
        """解析格式名称，支持别名和大小写

        Raises:
            ValueError: 格式不在 JPEG / WEBP / PNG 之内
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"格式不能为空: {value!r}")

        standard = get_format_alias(value.strip())
        try:
            return cls(standard)
        except ValueError:
            supported = ", ".join(f.value for f in cls)
            raise ValueError(f"不支持的格式: {value}，支持的格式: {supported}") from None


class ImageFormats:
    """基于 Pillow 的图像格式辅助"""

    # 用户友好的别名
    ALIASES: Final[dict[str, str]] = {
        "JPG": "JPEG",
    }

    PREFERRED_EXTENSIONS: Final[dict[str, str]] = {
        "JPEG": ".jpg",  # 而不是 .jpeg
        "WEBP": ".webp",
        "PNG": ".png",
    }

    @classmethod
    def get_supported_extensions(cls) -> set[str]:
        """动态获取 Pillow 能够读取的扩展名

        registered_extensions 也包含只能写出的格式（如 .pdf），需要按 Image.OPEN 过滤。
        """
        return {
            ext
            for ext, format_name in Image.registered_extensions().items()
            if format_name in Image.OPEN
        }

    @classmethod
    def get_mime_type(cls, format_name: str) -> str:
        return f"image/{get_format_alias(format_name).lower()}"

    @classmethod
    def is_image_name(cls, name: str) -> bool:
        """按扩展名判断文件是否为可导入的图片"""
        dot = name.rfind(".")
        if dot < 0:
            return False
        return name[dot:].lower() in cls.get_supported_extensions()


def get_format_alias(format_str: str) -> str:
    """获取格式的标准名称"""
    format_upper = format_str.upper()
    return ImageFormats.ALIASES.get(format_upper, format_upper)
