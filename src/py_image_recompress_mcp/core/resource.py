"""二进制资源管理模块。

ResourceHandle 持有一块字节缓冲区和一个可撤销的定位符，
保证替换时释放旧资源、销毁时释放当前资源，且每个定位符只撤销一次。
"""

import threading
import uuid
from typing import Any

from ..exceptions import ResourceReleasedError
from ..utils.logging_helpers import get_logger


logger = get_logger()


class LocatorRegistry:
    """可撤销定位符注册表

    供展示层按定位符取回字节数据，类似浏览器的 object URL。
    """

    PREFIX = "blob:recompress/"

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._live: dict[str, bytes] = {}
        self.created_count = 0
        self.revoked_count = 0

    def create(self, data: bytes) -> str:
        """为字节数据创建定位符"""
        locator = f"{self.PREFIX}{uuid.uuid4().hex}"
        with self._lock:
            self._live[locator] = data
            self.created_count += 1
        return locator

    def revoke(self, locator: str) -> bool:
        """撤销定位符，返回是否真的撤销了一个存活的定位符"""
        with self._lock:
            if self._live.pop(locator, None) is None:
                logger.warning(f"撤销未知或已撤销的定位符: {locator}")
                return False
            self.revoked_count += 1
            return True

    def resolve(self, locator: str) -> bytes | None:
        """按定位符取回数据，已撤销时返回 None"""
        with self._lock:
            return self._live.get(locator)

    def is_live(self, locator: str) -> bool:
        with self._lock:
            return locator in self._live

    @property
    def live_count(self) -> int:
        with self._lock:
            return len(self._live)


class ResourceHandle:
    """持有字节缓冲区和可选定位符的资源句柄"""

    def __init__(self, data: bytes, registry: LocatorRegistry | None = None):
        self._lock = threading.Lock()
        self._registry = registry
        self._data: bytes | None = bytes(data)
        self._locator: str | None = registry.create(self._data) if registry else None
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    @property
    def locator(self) -> str | None:
        return self._locator

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._data) if self._data is not None else 0

    def read(self) -> bytes:
        """读取当前缓冲区

        Raises:
            ResourceReleasedError: 资源已释放
        """
        return self.snapshot()[0]

    def snapshot(self) -> tuple[bytes, str | None]:
        """原子地读取 (数据, 定位符)，不会读到替换过程中的中间状态"""
        with self._lock:
            if self._released or self._data is None:
                raise ResourceReleasedError("资源已释放，无法读取")
            return self._data, self._locator

    def replace(self, new_data: bytes) -> None:
        """原子地替换缓冲区，生成新定位符并撤销旧定位符"""
        new_data = bytes(new_data)
        with self._lock:
            if self._released:
                raise ResourceReleasedError("资源已释放，无法替换")
            old_locator = self._locator
            self._locator = (
                self._registry.create(new_data) if self._registry else None
            )
            self._data = new_data
        if old_locator is not None and self._registry is not None:
            self._registry.revoke(old_locator)

    def release(self) -> None:
        """释放缓冲区并撤销定位符，重复调用无副作用"""
        with self._lock:
            if self._released:
                return
            self._released = True
            locator = self._locator
            self._locator = None
            self._data = None
        if locator is not None and self._registry is not None:
            self._registry.revoke(locator)

    def __enter__(self) -> "ResourceHandle":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """上下文管理器退出时释放资源"""
        del exc_type, exc_val, exc_tb  # 明确表示这些参数未使用
        self.release()

    def __repr__(self) -> str:
        state = "released" if self._released else f"{self.size} bytes"
        return f"ResourceHandle({state}, locator={self._locator!r})"
