"""编解码模块。

基于 Pillow 的解码 / 编码能力，以及按条目缓存的解码结果。
"""

import threading
from io import BytesIO
from typing import Any

from PIL import Image, ImageOps

from ..exceptions import DecodeError, EncodeError, handle_image_errors
from ..models.constants import ImageFormat
from ..models.encode_params import clamp_quality
from ..utils.logging_helpers import get_logger


logger = get_logger()


class ImageCodec:
    """Pillow 编解码器"""

    @handle_image_errors(DecodeError, "图像解码")
    def decode(self, data: bytes) -> Image.Image:
        """把编码后的字节解码为栅格图像

        Raises:
            DecodeError: 数据损坏或格式不受支持
        """
        if not data:
            raise DecodeError("源数据为空")

        with Image.open(BytesIO(data)) as img:
            img.load()
            # 处理EXIF旋转，与浏览器画布的显示方向一致
            transposed = ImageOps.exif_transpose(img)
            if transposed is img:
                transposed = img.copy()
        return transposed

    @handle_image_errors(EncodeError, "图像编码")
    def encode(self, img: Image.Image, target_format: ImageFormat, quality: int) -> bytes:
        """按格式和质量编码栅格图像

        Raises:
            EncodeError: 无法按目标格式写出
        """
        target_format = ImageFormat.parse(target_format)
        prepared = self.prepare_for_format(img, target_format)
        save_params = get_save_parameters(target_format, quality)

        buffer = BytesIO()
        prepared.save(buffer, format=target_format.value, **save_params)
        return buffer.getvalue()

    def prepare_for_format(
        self, img: Image.Image, target_format: ImageFormat
    ) -> Image.Image:
        """为目标格式准备图片，总是返回新的图像对象"""
        match target_format:
            case ImageFormat.JPEG:
                return self._prepare_for_jpeg(img)
            case ImageFormat.PNG:
                return self._prepare_for_png(img)
            case ImageFormat.WEBP:
                return self._prepare_for_webp(img)
            case _:
                return img.copy()

    def _prepare_for_jpeg(self, img: Image.Image) -> Image.Image:
        """JPEG不支持透明度，在白色背景上合成"""
        if img.mode == "P":
            if "transparency" not in img.info:
                return img.convert("RGB")
            img = img.convert("RGBA")

        if img.mode in ("RGBA", "LA", "PA"):
            rgba = img.convert("RGBA")
            background = Image.new("RGB", rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.split()[-1])
            return background

        if img.mode != "RGB":
            # CMYK、灰度、二值等模式统一转换为RGB
            return img.convert("RGB")

        return img.copy()

    def _prepare_for_png(self, img: Image.Image) -> Image.Image:
        if img.mode == "CMYK":
            return img.convert("RGB")
        if img.mode == "P" and "transparency" in img.info:
            return img.convert("RGBA")
        # 其他模式 PNG 都支持
        return img.copy()

    def _prepare_for_webp(self, img: Image.Image) -> Image.Image:
        """WebP支持RGB和RGBA"""
        if img.mode == "P":
            if "transparency" in img.info:
                return img.convert("RGBA")
            return img.convert("RGB")
        if img.mode in ("LA", "PA"):
            return img.convert("RGBA")
        if img.mode not in ("RGB", "RGBA"):
            return img.convert("RGB")
        return img.copy()


def get_save_parameters(target_format: ImageFormat, quality: int) -> dict[str, Any]:
    """获取保存参数（不含 format，由调用方传入）"""
    quality = clamp_quality(quality)

    match target_format:
        case ImageFormat.JPEG:
            return get_jpeg_params(quality)
        case ImageFormat.WEBP:
            return get_webp_params(quality)
        case ImageFormat.PNG:
            return get_png_params(quality)
    return {}


def get_jpeg_params(quality: int) -> dict[str, Any]:
    """获取JPEG压缩参数

    - optimize: 额外处理以找到最优编码设置
    - subsampling: 色度子采样，高质量时使用 4:2:2
    """
    params: dict[str, Any] = {
        "quality": quality,
        "optimize": True,
    }
    params["subsampling"] = 1 if quality >= 85 else 2
    return params


def get_webp_params(quality: int) -> dict[str, Any]:
    """获取WebP有损压缩参数"""
    params: dict[str, Any] = {
        "quality": quality,
        "method": 4,
    }

    # alpha_quality控制透明通道质量，高质量时保持透明通道无损
    if quality >= 85:
        params["alpha_quality"] = 100
    elif quality >= 70:
        params["alpha_quality"] = min(100, quality + 10)
    else:
        params["alpha_quality"] = quality

    return params


def get_png_params(quality: int) -> dict[str, Any]:
    """获取PNG压缩参数

    PNG 是无损格式，质量值不影响输出。
    """
    logger.debug(f"PNG无损编码，忽略质量值 {quality}")
    return {
        "optimize": True,
    }


class DecodeCache:
    """按条目 ID 缓存解码结果

    源字节不可变，所以同一条目的多次重新编码可以复用解码结果；
    只有条目销毁时才失效。
    """

    def __init__(self, codec: Any):
        self._codec = codec
        self._lock = threading.Lock()
        self._surfaces: dict[str, Any] = {}
        self._retired: set[str] = set()
        self.decode_count = 0

    def get_or_decode(self, entry_id: str, data: bytes) -> Any:
        with self._lock:
            cached = self._surfaces.get(entry_id)
        if cached is not None:
            return cached

        surface = self._codec.decode(data)
        with self._lock:
            self.decode_count += 1
            # 已销毁的条目不再写入缓存
            if entry_id in self._retired:
                return surface
            # 并发解码时保留先写入的结果
            return self._surfaces.setdefault(entry_id, surface)

    def invalidate(self, entry_id: str) -> None:
        with self._lock:
            self._surfaces.pop(entry_id, None)
            self._retired.add(entry_id)

    def release_retired(self, entry_id: str) -> None:
        """该条目已没有运行中的任务，不再需要记录"""
        with self._lock:
            self._retired.discard(entry_id)

    @property
    def retired_count(self) -> int:
        with self._lock:
            return len(self._retired)

    def __contains__(self, entry_id: str) -> bool:
        with self._lock:
            return entry_id in self._surfaces

    def __len__(self) -> int:
        with self._lock:
            return len(self._surfaces)
