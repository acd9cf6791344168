"""编码参数模型。

定义单张图片的重新压缩参数（质量 + 目标格式）。
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import ImageFormat


MIN_QUALITY = 1
MAX_QUALITY = 100
DEFAULT_QUALITY = 75


def clamp_quality(value: int) -> int:
    """把质量值限制在 1-100 之间"""
    return max(MIN_QUALITY, min(MAX_QUALITY, value))


class EncodeParams(BaseModel):
    """单张图片的编码参数

    质量超出范围时静默钳制而不是报错，格式只接受 JPEG / WEBP / PNG。
    """

    model_config = ConfigDict(frozen=True)

    quality: int = Field(DEFAULT_QUALITY, description="压缩质量 1-100")
    format: ImageFormat = Field(ImageFormat.JPEG, description="目标格式")

    @field_validator("quality", mode="before")
    @classmethod
    def clamp_out_of_range(cls, v: Any) -> Any:
        if isinstance(v, bool):
            raise ValueError(f"质量值必须是整数，得到: {v!r}")
        if isinstance(v, float):
            v = round(v)
        if isinstance(v, str) and v.strip().lstrip("-").isdigit():
            v = int(v.strip())
        if isinstance(v, int):
            return clamp_quality(v)
        return v

    @field_validator("format", mode="before")
    @classmethod
    def normalize_format(cls, v: Any) -> ImageFormat:
        return ImageFormat.parse(v)

    def with_changes(
        self, quality: int | None = None, format: str | ImageFormat | None = None
    ) -> "EncodeParams":
        """返回修改后的新参数，未指定的字段保持不变"""
        return EncodeParams(
            quality=self.quality if quality is None else quality,
            format=self.format if format is None else format,
        )
