"""图片集合测试。

覆盖导入、选择、调参、最后一次请求生效、故障处理和资源释放。
"""

import pytest

from conftest import GatedCodec, wait_until
from py_image_recompress_mcp.core.resource import LocatorRegistry
from py_image_recompress_mcp.engine.scheduler import RecompressionJob, RecompressionScheduler
from py_image_recompress_mcp.engine.store import CollectionStore, EventType
from py_image_recompress_mcp.exceptions import ValidationError
from py_image_recompress_mcp.models import EncodeParams, ImageFormat
from py_image_recompress_mcp.models.snapshots import FaultKind


class TestCollectionBasics:
    """导入与选择测试"""

    def test_add_selects_first_entry(self, gated_store, png_bytes):
        first = gated_store.add("a.png", png_bytes)
        second = gated_store.add("b.png", png_bytes)

        assert gated_store.selected_id == first
        assert [e.id for e in gated_store.entries] == [first, second]

        entry = gated_store.get(first)
        assert entry.params.quality == 75
        assert entry.params.format == ImageFormat.JPEG

    def test_duplicate_name_is_ignored(self, gated_store, png_bytes):
        assert gated_store.add("a.png", png_bytes) is not None
        assert gated_store.add("a.png", b"other bytes") is None
        assert len(gated_store) == 1

    def test_add_uses_global_format(self, gated_store, png_bytes):
        gated_store.set_global_format("webp")
        entry_id = gated_store.add("a.png", png_bytes)
        assert gated_store.get(entry_id).params.format == ImageFormat.WEBP

    def test_add_many_filters_names(self, gated_store, png_bytes):
        added = gated_store.add_many(
            [
                ("a.png", png_bytes),
                ("notes.txt", b"hello"),
                ("b.JPG", png_bytes),
                ("a.png", png_bytes),
            ]
        )
        assert len(added) == 2
        assert [e.name for e in gated_store.entries] == ["a.png", "b.JPG"]

    def test_remove_selected_falls_back_to_first(self, gated_store, png_bytes):
        a = gated_store.add("a.png", png_bytes)
        b = gated_store.add("b.png", png_bytes)
        c = gated_store.add("c.png", png_bytes)

        gated_store.select(c)
        assert gated_store.remove(c)
        assert gated_store.selected_id == a

        assert gated_store.remove(a)
        assert gated_store.selected_id == b

        assert gated_store.remove(b)
        assert gated_store.selected_id is None

    def test_remove_unselected_keeps_selection(self, gated_store, png_bytes):
        a = gated_store.add("a.png", png_bytes)
        b = gated_store.add("b.png", png_bytes)
        gated_store.remove(b)
        assert gated_store.selected_id == a

    def test_absent_ids_are_noops(self, gated_store, png_bytes):
        gated_store.add("a.png", png_bytes)
        assert not gated_store.remove("missing")
        assert not gated_store.select("missing")
        assert not gated_store.set_params("missing", quality=10)
        assert not gated_store.reset_params("missing")
        assert len(gated_store) == 1

    def test_selection_change_resets_view(self, gated_store, png_bytes):
        gated_store.add("a.png", png_bytes)
        b = gated_store.add("b.png", png_bytes)

        gated_store.preview.view.zoom_by(3)
        gated_store.select(b)
        assert gated_store.preview.view.is_identity

    def test_preview_mode_resets_view(self, gated_store):
        gated_store.preview.view.zoom_by(2)
        gated_store.set_preview_mode(show_original=True)
        assert gated_store.preview.showing_original
        assert gated_store.preview.view.is_identity


class TestParams:
    """调参测试"""

    def test_quality_is_clamped(self, gated_store, png_bytes):
        entry_id = gated_store.add("a.png", png_bytes)
        gated_store.set_params(entry_id, quality=0)
        assert gated_store.get(entry_id).params.quality == 1
        gated_store.set_params(entry_id, quality=101)
        assert gated_store.get(entry_id).params.quality == 100

    def test_invalid_format_raises(self, gated_store, png_bytes):
        entry_id = gated_store.add("a.png", png_bytes)
        with pytest.raises(ValidationError):
            gated_store.set_params(entry_id, format="BMP")
        with pytest.raises(ValidationError):
            gated_store.set_global_format("GIF")
        assert gated_store.get(entry_id).params.format == ImageFormat.JPEG

    def test_set_params_accepts_dict(self, gated_store, png_bytes):
        entry_id = gated_store.add("a.png", png_bytes)
        gated_store.set_params(entry_id, {"quality": 20, "format": "png"})
        params = gated_store.get(entry_id).params
        assert (params.quality, params.format) == (20, ImageFormat.PNG)

    def test_global_format_rewrites_every_entry(self, gated_store, png_bytes):
        a = gated_store.add("a.png", png_bytes)
        b = gated_store.add("b.png", png_bytes)
        gated_store.set_params(a, quality=30)

        gated_store.set_global_format(ImageFormat.PNG)
        assert gated_store.wait_idle(5)

        for entry_id, quality in ((a, 30), (b, 75)):
            data, params = gated_store.get(entry_id).read_output()
            assert params.format == ImageFormat.PNG
            assert params.quality == quality
            assert data.startswith(f"PNG:{quality};".encode())

    def test_reset_restores_default_quality_and_selects(self, gated_store, png_bytes):
        a = gated_store.add("a.png", png_bytes)
        b = gated_store.add("b.png", png_bytes)
        gated_store.set_params(b, quality=20, format="WEBP")

        assert gated_store.reset_params(b)
        assert gated_store.selected_id == b
        params = gated_store.get(b).params
        assert (params.quality, params.format) == (75, ImageFormat.WEBP)
        assert gated_store.get(a).params.quality == 75


class TestRecompression:
    """后台重新压缩测试"""

    def test_round_trip_with_pillow(self, store, png_bytes):
        entry_id = store.add("photo.png", png_bytes)
        assert store.wait_idle(10)

        entry = store.get(entry_id)
        first_locator = entry.output.locator
        assert entry.has_output
        assert entry.output_params.format == ImageFormat.JPEG

        store.set_params(entry_id, quality=40, format="WEBP")
        assert store.wait_idle(10)

        assert entry.output_params.quality == 40
        assert entry.output_params.format == ImageFormat.WEBP
        assert entry.output.read()[8:12] == b"WEBP"
        assert entry.output.locator != first_locator
        assert not store.registry.is_live(first_locator)

    def test_last_request_wins(self, gated_store, gated_codec, png_bytes):
        gate = gated_codec.gate(10)
        entry_id = gated_store.add("a.png", png_bytes)
        entry = gated_store.get(entry_id)

        gated_store.set_params(entry_id, quality=10)
        gated_store.set_params(entry_id, quality=60)

        assert wait_until(
            gated_store,
            lambda: entry.output_params is not None
            and entry.output_params.quality == 60,
        )

        # 较早派发的任务最后完成，结果被丢弃
        gate.set()
        assert gated_store.wait_idle(5)

        data, params = entry.read_output()
        assert params.quality == 60
        assert data.startswith(b"JPEG:60;")
        assert ("JPEG", 10) in gated_codec.encoded

    def test_results_apply_only_on_owner_thread(self, gated_store, png_bytes):
        entry_id = gated_store.add("a.png", png_bytes)
        entry = gated_store.get(entry_id)

        # 未调用 drain / wait_idle 之前不会写入条目
        assert not entry.has_output
        assert gated_store.wait_idle(5)
        assert entry.has_output

    def test_decode_runs_once_per_entry(self, gated_store, gated_codec, png_bytes):
        entry_id = gated_store.add("a.png", png_bytes)
        gated_store.wait_idle(5)
        for quality in (20, 40, 60):
            gated_store.set_params(entry_id, quality=quality)
            gated_store.wait_idle(5)

        assert gated_codec.decode_calls == 1

    def test_negative_savings(self, gated_store):
        entry_id = gated_store.add("tiny.png", b"x" * 500)
        gated_store.set_params(entry_id, quality=100)
        assert gated_store.wait_idle(5)

        snapshot = gated_store.get(entry_id).snapshot()
        assert snapshot.output_size == 10000
        assert snapshot.savings_percent < 0
        assert snapshot.savings_label.startswith("+")
        assert snapshot.grew


class TestFaults:
    """故障处理测试"""

    def test_encode_failure_keeps_last_output(self, gated_store, gated_codec, png_bytes):
        events = []
        gated_store.subscribe(events.append)
        gated_codec.fail_qualities.add(30)

        entry_id = gated_store.add("a.png", png_bytes)
        assert gated_store.wait_idle(5)
        entry = gated_store.get(entry_id)
        previous_locator = entry.output.locator

        gated_store.set_params(entry_id, quality=30)
        assert gated_store.wait_idle(5)

        data, params = entry.read_output()
        assert params.quality == 75
        assert data.startswith(b"JPEG:75;")
        assert entry.output.locator == previous_locator
        assert entry.fault is not None
        assert entry.fault.kind == FaultKind.ENCODE

        faults = [e for e in events if e.type == EventType.FAULT]
        assert len(faults) == 1
        assert faults[0].entry_id == entry_id

    def test_success_clears_fault(self, gated_store, gated_codec, png_bytes):
        gated_codec.fail_qualities.add(30)
        entry_id = gated_store.add("a.png", png_bytes)
        gated_store.set_params(entry_id, quality=30)
        gated_store.wait_idle(5)
        assert gated_store.get(entry_id).fault is not None

        gated_store.set_params(entry_id, quality=50)
        gated_store.wait_idle(5)
        assert gated_store.get(entry_id).fault is None

    def test_invalid_encode_result_becomes_fault(self, gated_store, gated_codec, png_bytes):
        events = []
        gated_store.subscribe(events.append)
        gated_codec.garbage_qualities.add(30)

        entry_id = gated_store.add("a.png", png_bytes)
        assert gated_store.wait_idle(5)
        gated_store.set_params(entry_id, quality=30)

        assert gated_store.wait_idle(5)
        assert gated_store.scheduler.in_flight == 0
        entry = gated_store.get(entry_id)
        assert entry.fault.kind == FaultKind.ENCODE
        assert entry.read_output()[1].quality == 75
        assert [e.entry_id for e in events if e.type == EventType.FAULT] == [entry_id]

        # 之后的任务照常生效，集合仍能进入空闲状态
        gated_store.set_params(entry_id, quality=50)
        assert gated_store.wait_idle(5)
        assert entry.read_output()[1].quality == 50
        assert entry.fault is None

    def test_superseded_fault_is_dropped(self, gated_store, gated_codec, png_bytes):
        gated_codec.fail_qualities.add(30)
        gate = gated_codec.gate(30)
        entry_id = gated_store.add("a.png", png_bytes)
        assert gated_store.wait_idle(5)
        entry = gated_store.get(entry_id)

        events = []
        gated_store.subscribe(events.append)
        gated_store.set_params(entry_id, quality=30)
        gated_store.set_params(entry_id, quality=50)
        assert wait_until(gated_store, lambda: entry.output_params.quality == 50)

        # 较早任务的失败在较新的成功之后到达
        gate.set()
        assert gated_store.wait_idle(5)

        assert entry.fault is None
        assert entry.read_output()[1].quality == 50
        assert not [e for e in events if e.type == EventType.FAULT]

    def test_corrupt_source_reports_decode_fault(self, store):
        entry_id = store.add("broken.png", b"this is not an image")
        assert store.wait_idle(10)

        entry = store.get(entry_id)
        assert not entry.has_output
        assert entry.fault.kind == FaultKind.DECODE
        assert store.snapshot().entries[0].fault is not None

    def test_failing_observer_does_not_break_store(self, gated_store, png_bytes):
        def broken(event):
            raise RuntimeError("observer failure")

        gated_store.subscribe(broken)
        assert gated_store.add("a.png", png_bytes) is not None
        assert gated_store.wait_idle(5)


class TestResourceRelease:
    """资源释放测试"""

    def test_clear_revokes_every_locator_once(self, gated_codec, png_bytes):
        registry = LocatorRegistry()
        store = CollectionStore(codec=gated_codec, registry=registry)
        try:
            for name in ("a.png", "b.png", "c.png"):
                entry_id = store.add(name, png_bytes)
                store.set_params(entry_id, quality=30)
                store.set_params(entry_id, quality=50)
            store.wait_idle(5)
            entries = store.entries

            store.clear()

            assert len(store) == 0
            assert store.selected_id is None
            assert registry.live_count == 0
            assert registry.created_count == registry.revoked_count
            assert all(e.destroyed for e in entries)
        finally:
            store.close()

    def test_remove_during_job_discards_result(self, gated_codec, png_bytes):
        registry = LocatorRegistry()
        store = CollectionStore(codec=gated_codec, registry=registry)
        gate = gated_codec.gate(75)
        try:
            entry_id = store.add("a.png", png_bytes)
            entry = store.get(entry_id)
            store.remove(entry_id)

            gate.set()
            assert store.wait_idle(5)

            assert not entry.has_output
            assert registry.live_count == 0
        finally:
            gate.set()
            store.close()

    def test_retired_ids_released_after_jobs_finish(self, gated_store, gated_codec, png_bytes):
        cache = gated_store.scheduler.cache
        gate = gated_codec.gate(75)

        running = gated_store.add("a.png", png_bytes)
        gated_store.remove(running)
        # 任务仍在运行，需要记住该条目已销毁
        assert cache.retired_count == 1

        gate.set()
        assert gated_store.wait_idle(5)
        assert cache.retired_count == 0
        assert len(cache) == 0

        idle = gated_store.add("b.png", png_bytes)
        assert gated_store.wait_idle(5)
        gated_store.remove(idle)
        assert cache.retired_count == 0
        assert len(cache) == 0

    def test_events_follow_mutations(self, gated_store, png_bytes):
        events = []
        unsubscribe = gated_store.subscribe(events.append)

        entry_id = gated_store.add("a.png", png_bytes)
        gated_store.set_params(entry_id, quality=50)
        gated_store.wait_idle(5)
        gated_store.clear()
        unsubscribe()
        gated_store.add("b.png", png_bytes)

        types = [e.type for e in events]
        assert types[:3] == [EventType.ADDED, EventType.SELECTED, EventType.PARAMS_CHANGED]
        assert EventType.OUTPUT_UPDATED in types
        assert types[-1] == EventType.CLEARED


class FailingJob(RecompressionJob):
    """任务体本身抛出异常"""

    def run(self, codec, cache):
        raise RuntimeError("任务体异常")


class TestScheduler:
    """调度器测试"""

    def test_job_exception_still_posts_outcome(self):
        scheduler = RecompressionScheduler(max_workers=1, codec=GatedCodec())
        try:
            scheduler.submit(FailingJob("e1", 1, b"data", EncodeParams()))
            outcome = scheduler.next_outcome(timeout=5)

            assert outcome is not None
            assert outcome.data is None
            assert outcome.fault.kind == FaultKind.ENCODE
            assert outcome.fault.token == 1
            assert scheduler.in_flight == 0
        finally:
            scheduler.shutdown()
