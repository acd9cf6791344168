#!/usr/bin/env python3
"""批量重新压缩演示脚本。

展示 py_image_recompress_mcp 库的核心流程：
- 导入一批图片（默认 JPEG / 质量 75）
- 逐张调整质量和格式，观察节省比例
- 切换全局格式
- 打包导出 ZIP
"""

import sys
from io import BytesIO
from pathlib import Path

from PIL import Image, ImageDraw

from py_image_recompress_mcp import CollectionStore, EventType, ExportCoordinator
from py_image_recompress_mcp.utils.file_helpers import read_image_files


def get_output_dir() -> Path:
    """获取输出目录 - 使用项目的 tmp 目录"""
    project_root = Path(__file__).parent.parent
    output_dir = project_root / "tmp" / "examples"
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


def create_sample_images() -> list[tuple[str, bytes]]:
    """生成演示用的图片"""
    samples = []
    for name, mode in [("gradient.png", "RGB"), ("overlay.png", "RGBA")]:
        img = Image.new(mode, (640, 480), "white" if mode == "RGB" else (0, 0, 0, 0))
        draw = ImageDraw.Draw(img)
        for i in range(0, 640, 8):
            color = (i % 256, (i * 2) % 256, 255 - i % 256)
            if mode == "RGBA":
                color = (*color, 180)
            draw.line([(i, 0), (640 - i, 480)], fill=color, width=6)

        buffer = BytesIO()
        img.save(buffer, format="PNG")
        samples.append((name, buffer.getvalue()))
    return samples


def print_snapshot(store: CollectionStore, title: str) -> None:
    snapshot = store.snapshot()
    print(f"\n📋 {title}")
    for entry in snapshot.entries:
        marker = "👉" if entry.selected else "  "
        print(
            f"  {marker} {entry.get_summary()} "
            f"[{entry.params.format.value} q={entry.params.quality}]"
        )
    print(f"  📊 {snapshot.get_summary()}")


def report_fault(event) -> None:
    if event.type == EventType.FAULT:
        print(f"  ❌ {event.entry_id}: {event.fault.message}")


def main():
    """主函数"""
    print("🖼️  批量重新压缩演示")
    print("=" * 50)

    paths = sys.argv[1:]
    files = read_image_files(paths) if paths else create_sample_images()

    with CollectionStore() as store:
        store.subscribe(report_fault)

        store.add_many(files)
        store.settle()
        print_snapshot(store, "导入后")

        first = store.entries[0]
        store.set_params(first.id, quality=30, format="WEBP")
        store.settle()
        print_snapshot(store, f"{first.name} 改为 WEBP q=30")

        store.set_global_format("PNG")
        store.settle()
        print_snapshot(store, "全局格式改为 PNG")

        store.reset_params(first.id)
        store.settle()
        print_snapshot(store, f"{first.name} 恢复默认质量")

        archive = ExportCoordinator(store).write_archive(get_output_dir())
        print(f"\n✅ 已导出 {archive.file_count} 个文件: {archive.path}")


if __name__ == "__main__":
    main()
