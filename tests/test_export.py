"""导出测试。"""

import zipfile
from io import BytesIO

import pytest

from py_image_recompress_mcp.engine.export import ExportCoordinator, ZipArchiveBuilder
from py_image_recompress_mcp.exceptions import NotFoundError, NotReadyError


def read_zip(data: bytes) -> dict[str, bytes]:
    with zipfile.ZipFile(BytesIO(data)) as zf:
        return {name: zf.read(name) for name in zf.namelist()}


class TestExportAll:
    """归档导出测试"""

    def test_archive_contains_finished_outputs(self, gated_store, png_bytes):
        a = gated_store.add("photo.png", png_bytes)
        b = gated_store.add("scan.jpeg", png_bytes)
        gated_store.set_params(a, quality=40, format="WEBP")
        assert gated_store.wait_idle(5)

        files = read_zip(ExportCoordinator(gated_store).export_all())

        assert sorted(files) == ["photo.webp", "scan.jpg"]
        assert files["photo.webp"].startswith(b"WEBP:40;")
        assert files["scan.jpg"] == gated_store.get(b).output.read()

    def test_unfinished_entries_are_skipped(self, gated_store, gated_codec, png_bytes):
        gate = gated_codec.gate(75)
        gated_store.add("a.png", png_bytes)

        files = read_zip(ExportCoordinator(gated_store).export_all())
        assert files == {}
        gate.set()

    def test_empty_collection_gives_empty_archive(self, gated_store):
        files = read_zip(ExportCoordinator(gated_store).export_all())
        assert files == {}

    def test_colliding_names_get_suffixes(self, gated_store, png_bytes):
        gated_store.add("photo.png", png_bytes)
        gated_store.add("photo.webp", png_bytes)
        gated_store.add("photo.jpg", png_bytes)
        assert gated_store.wait_idle(5)

        files = read_zip(ExportCoordinator(gated_store).export_all())
        assert sorted(files) == ["photo.jpg", "photo_1.jpg", "photo_2.jpg"]

    def test_name_follows_output_format(self, gated_store, gated_codec, png_bytes):
        entry_id = gated_store.add("photo.png", png_bytes)
        assert gated_store.wait_idle(5)

        # 新格式的任务还没完成时，仍按已有输出的格式命名
        gate = gated_codec.gate(50)
        gated_store.set_params(entry_id, quality=50, format="PNG")
        exported = ExportCoordinator(gated_store).export_one(entry_id)
        assert exported.file_name == "photo.jpg"
        assert exported.data.startswith(b"JPEG:75;")
        gate.set()

    def test_custom_archive_factory(self, gated_store, png_bytes):
        builders = []

        def factory():
            builder = ZipArchiveBuilder(compresslevel=1)
            builders.append(builder)
            return builder

        gated_store.add("a.png", png_bytes)
        gated_store.wait_idle(5)
        ExportCoordinator(gated_store, archive_factory=factory).export_all()

        assert len(builders) == 1
        assert builders[0].names == ["a.jpg"]


class TestExportOne:
    """单个文件导出测试"""

    def test_not_found(self, gated_store):
        with pytest.raises(NotFoundError):
            ExportCoordinator(gated_store).export_one("missing")

    def test_not_ready(self, gated_store, gated_codec, png_bytes):
        gate = gated_codec.gate(75)
        entry_id = gated_store.add("a.png", png_bytes)
        with pytest.raises(NotReadyError):
            ExportCoordinator(gated_store).export_one(entry_id)
        gate.set()

    def test_write_one(self, gated_store, png_bytes, tmp_path):
        entry_id = gated_store.add("photo.png", png_bytes)
        gated_store.wait_idle(5)

        path = ExportCoordinator(gated_store).write_one(entry_id, tmp_path / "out")
        assert path.name == "photo.jpg"
        assert path.read_bytes().startswith(b"JPEG:75;")


class TestWriteArchive:
    """归档写入测试"""

    def test_directory_gets_default_name(self, gated_store, png_bytes, tmp_path):
        gated_store.add("a.png", png_bytes)
        gated_store.wait_idle(5)

        archive = ExportCoordinator(gated_store).write_archive(tmp_path)
        assert archive.path == tmp_path / "images.zip"
        assert list(read_zip(archive.path.read_bytes())) == ["a.jpg"]

    def test_explicit_file_path(self, gated_store, png_bytes, tmp_path):
        gated_store.add("a.png", png_bytes)
        gated_store.wait_idle(5)

        target = tmp_path / "nested" / "batch.zip"
        archive = ExportCoordinator(gated_store).write_archive(target)
        assert archive.path == target
        assert zipfile.is_zipfile(archive.path)

    def test_reported_names_match_archive(self, gated_store, gated_codec, png_bytes, tmp_path):
        gated_store.add("done.png", png_bytes)
        gated_store.wait_idle(5)
        gate = gated_codec.gate(75)
        gated_store.add("pending.png", png_bytes)

        archive = ExportCoordinator(gated_store).write_archive(tmp_path)

        # 归档写完后才完成的任务不影响报告的文件数
        gate.set()
        assert gated_store.wait_idle(5)
        assert archive.file_names == ("done.jpg",)
        assert archive.file_count == 1
        assert list(read_zip(archive.path.read_bytes())) == ["done.jpg"]

    def test_real_images_round_trip(self, store, png_bytes, jpeg_bytes):
        store.add("one.png", png_bytes)
        b = store.add("two.jpg", jpeg_bytes)
        store.set_params(b, format="PNG")
        assert store.wait_idle(10)

        files = read_zip(ExportCoordinator(store).export_all())
        assert sorted(files) == ["one.jpg", "two.png"]
        assert files["one.jpg"][:2] == b"\xff\xd8"
        assert files["two.png"][:8] == b"\x89PNG\r\n\x1a\n"
