"""预览缩放与平移状态。"""

from dataclasses import dataclass, field

from ..config import get_config


def _clamp(value: float, low: float, high: float) -> float:
    return min(max(low, value), high)


@dataclass
class ViewState:
    """预览画面的缩放 / 平移变换"""

    scale: float = 1.0
    x: float = 0.0
    y: float = 0.0
    dragging: bool = False
    drag_origin_x: float = 0.0
    drag_origin_y: float = 0.0
    min_scale: float = field(default_factory=lambda: get_config().view.MIN_SCALE)
    max_scale: float = field(default_factory=lambda: get_config().view.MAX_SCALE)

    def zoom_by(self, factor: float) -> float:
        """按比例缩放，结果限制在 [min_scale, max_scale]"""
        if factor <= 0:
            raise ValueError(f"缩放因子必须为正数，得到: {factor}")
        self.scale = _clamp(self.scale * factor, self.min_scale, self.max_scale)
        return self.scale

    def wheel(self, delta_y: float) -> float:
        """滚轮缩放：向下滚动缩小，向上滚动放大"""
        view_cfg = get_config().view
        factor = view_cfg.WHEEL_ZOOM_OUT if delta_y > 0 else view_cfg.WHEEL_ZOOM_IN
        return self.zoom_by(factor)

    def start_drag(self, pointer_x: float, pointer_y: float) -> None:
        self.dragging = True
        self.drag_origin_x = pointer_x - self.x
        self.drag_origin_y = pointer_y - self.y

    def pan_to(self, pointer_x: float, pointer_y: float) -> bool:
        """拖动中更新平移量，未拖动时忽略"""
        if not self.dragging:
            return False
        self.x = pointer_x - self.drag_origin_x
        self.y = pointer_y - self.drag_origin_y
        return True

    def stop_drag(self) -> None:
        self.dragging = False

    def reset(self) -> None:
        """恢复为单位变换"""
        self.scale = 1.0
        self.x = 0.0
        self.y = 0.0
        self.dragging = False
        self.drag_origin_x = 0.0
        self.drag_origin_y = 0.0

    @property
    def is_identity(self) -> bool:
        return self.scale == 1.0 and self.x == 0.0 and self.y == 0.0

    def transform(self) -> tuple[float, float, float]:
        """(x, y, scale)，对应 translate(x, y) scale(s)"""
        return (self.x, self.y, self.scale)


@dataclass
class PreviewState:
    """预览区：原图 / 压缩图切换和缩放状态

    切换选中条目或切换原图 / 压缩图显示时都会重置缩放。
    """

    view: ViewState = field(default_factory=ViewState)
    showing_original: bool = False

    def set_mode(self, show_original: bool) -> None:
        self.showing_original = show_original
        self.view.reset()

    def on_selection_changed(self) -> None:
        self.view.reset()
