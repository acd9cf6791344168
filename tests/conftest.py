"""测试配置文件。

提供测试所需的fixtures和辅助工具。
"""

import threading
import time
from io import BytesIO

import pytest
from PIL import Image, ImageDraw

from py_image_recompress_mcp.config import reset_config
from py_image_recompress_mcp.engine.store import CollectionStore
from py_image_recompress_mcp.exceptions import EncodeError


def make_image_bytes(
    format: str = "PNG",
    size: tuple[int, int] = (160, 120),
    mode: str = "RGB",
) -> bytes:
    """生成带图案的测试图片"""
    background = (0, 0, 0, 0) if mode == "RGBA" else "white"
    img = Image.new(mode, size, color=background)
    draw = ImageDraw.Draw(img)
    width, height = size
    for i in range(30):
        x, y = (i * 13) % width, (i * 7) % height
        fill = (i * 5 % 256, i * 11 % 256, i * 17 % 256)
        if mode == "RGBA":
            fill = (*fill, 100 + (i * 5) % 155)
        draw.rectangle([x, y, x + 20, y + 15], fill=fill)

    buffer = BytesIO()
    img.save(buffer, format=format)
    return buffer.getvalue()


class GatedCodec:
    """可控的假编解码器

    - gate(q): 质量为 q 的编码会阻塞到 gate 被 set
    - fail_qualities: 这些质量的编码会抛出 EncodeError
    - garbage_qualities: 这些质量的编码返回非字节对象
    - 输出长度为 quality * 100 字节，便于断言
    """

    def __init__(self) -> None:
        self._gates: dict[int, threading.Event] = {}
        self.fail_qualities: set[int] = set()
        self.garbage_qualities: set[int] = set()
        self.decode_calls = 0
        self.encoded: list[tuple[str, int]] = []
        self._lock = threading.Lock()

    def gate(self, quality: int) -> threading.Event:
        event = threading.Event()
        self._gates[quality] = event
        return event

    def decode(self, data: bytes) -> bytes:
        with self._lock:
            self.decode_calls += 1
        return data

    def encode(self, surface, target_format, quality: int) -> bytes:
        gate = self._gates.get(quality)
        if gate is not None:
            gate.wait(timeout=5)
        if quality in self.fail_qualities:
            raise EncodeError(f"无法编码 q={quality}")
        if quality in self.garbage_qualities:
            return object()
        with self._lock:
            self.encoded.append((target_format.value, quality))
        return f"{target_format.value}:{quality};".encode().ljust(quality * 100, b".")


def wait_until(store: CollectionStore, predicate, timeout: float = 5.0) -> bool:
    """在持有者线程上应用结果，直到条件满足"""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        store.wait_idle(timeout=0.05)
        if predicate():
            return True
    return predicate()


@pytest.fixture(autouse=True)
def fresh_config():
    """每个测试使用全新的全局配置"""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def png_bytes() -> bytes:
    return make_image_bytes("PNG")


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_image_bytes("JPEG")


@pytest.fixture
def rgba_png_bytes() -> bytes:
    return make_image_bytes("PNG", mode="RGBA")


@pytest.fixture
def store():
    """使用 Pillow 编解码器的集合"""
    with CollectionStore() as collection:
        yield collection


@pytest.fixture
def gated_codec() -> GatedCodec:
    return GatedCodec()


@pytest.fixture
def gated_store(gated_codec):
    """使用假编解码器的集合"""
    collection = CollectionStore(codec=gated_codec)
    yield collection
    # 先放行阻塞的任务，再关闭
    for event in gated_codec._gates.values():
        event.set()
    collection.close()
