"""重新压缩任务调度模块。

任务体（解码 + 编码）在线程池中运行，结果投递到完成信箱，
由持有 CollectionStore 的线程取出并应用；调度器本身从不修改条目状态。
"""

import queue
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

from ..core.codec import DecodeCache, ImageCodec
from ..exceptions import ErrorHandler
from ..models.encode_params import EncodeParams
from ..models.snapshots import JobOutcome
from ..utils.logging_helpers import get_logger
from ..utils.message_formatter import MessageFormatter


logger = get_logger()


class RecompressionJob:
    """一次解码 + 编码尝试

    派发时捕获 (源字节, 参数, 代号)，之后与条目状态无关。
    """

    def __init__(
        self,
        entry_id: str,
        token: int,
        source_bytes: bytes,
        params: EncodeParams,
    ) -> None:
        self.entry_id = entry_id
        self.token = token
        self.source_bytes = source_bytes
        self.params = params

    def run(self, codec: Any, cache: DecodeCache) -> JobOutcome:
        """执行任务，任何异常都转换为故障结果"""
        try:
            surface = cache.get_or_decode(self.entry_id, self.source_bytes)
            data = codec.encode(surface, self.params.format, self.params.quality)
            return JobOutcome(
                entry_id=self.entry_id,
                token=self.token,
                params=self.params,
                data=data,
            )
        except Exception as e:
            return self.fault_outcome(e)

    def fault_outcome(self, error: Exception) -> JobOutcome:
        fault = ErrorHandler.fault_from_exception(error, self.entry_id, self.token)
        return JobOutcome(
            entry_id=self.entry_id,
            token=self.token,
            params=self.params,
            fault=fault,
        )

    def __repr__(self) -> str:
        return (
            f"RecompressionJob({self.entry_id!r}, #{self.token}, "
            f"{self.params.format.value} q={self.params.quality})"
        )


class RecompressionScheduler:
    """重新压缩任务调度器

    不同条目的任务完全独立运行，不保证跨条目的完成顺序。
    """

    def __init__(
        self,
        max_workers: int = 4,
        codec: Any | None = None,
        cache: DecodeCache | None = None,
    ):
        """初始化调度器

        Args:
            max_workers: 最大并发数
            codec: 提供 decode / encode 的编解码器，默认使用 Pillow
            cache: 解码缓存
        """
        if max_workers <= 0:
            raise ValueError("max_workers 必须大于 0")

        self.max_workers = max_workers
        self.codec = codec or ImageCodec()
        self.cache = cache or DecodeCache(self.codec)
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="recompress"
        )
        self._completions: queue.Queue[JobOutcome] = queue.Queue()
        self._lock = threading.Lock()
        self._in_flight = 0
        # 每个条目仍在运行的任务数
        self._running: dict[str, int] = {}
        self._closed = False

    @property
    def in_flight(self) -> int:
        """已派发但结果尚未被取走的任务数"""
        with self._lock:
            return self._in_flight

    @property
    def closed(self) -> bool:
        return self._closed

    def submit(self, job: RecompressionJob) -> Future:
        """提交任务到线程池"""
        with self._lock:
            if self._closed:
                raise RuntimeError("调度器已关闭")
            self._in_flight += 1
            self._running[job.entry_id] = self._running.get(job.entry_id, 0) + 1

        try:
            future = self._executor.submit(job.run, self.codec, self.cache)
        except Exception:
            with self._lock:
                self._in_flight -= 1
            self._job_finished(job.entry_id)
            raise

        future.add_done_callback(lambda f, j=job: self._on_done(j, f))
        logger.debug(f"派发任务: {job}")
        return future

    def _on_done(self, job: RecompressionJob, future: Future) -> None:
        """任务结束后把结果投递到完成信箱

        任务体自身抛出的异常也转换为故障结果，保证每个任务都有结果可取。
        """
        outcome: JobOutcome | None = None
        try:
            if not future.cancelled():
                error = future.exception()
                if error is None:
                    outcome = future.result()
                else:
                    outcome = job.fault_outcome(error)
        except Exception:
            logger.exception(MessageFormatter.operation_failed("投递任务结果", job.entry_id))
            outcome = None
        finally:
            self._job_finished(job.entry_id)

        if outcome is None:
            with self._lock:
                self._in_flight -= 1
            return
        self._completions.put(outcome)

    def _job_finished(self, entry_id: str) -> None:
        with self._lock:
            remaining = self._running.get(entry_id, 0) - 1
            if remaining > 0:
                self._running[entry_id] = remaining
                return
            self._running.pop(entry_id, None)
        # 没有运行中的任务后，已销毁条目不会再写入缓存
        self.cache.release_retired(entry_id)

    def next_outcome(self, timeout: float | None = None) -> JobOutcome | None:
        """取出一个已完成的结果

        Args:
            timeout: None 表示不等待；否则最多等待 timeout 秒
        """
        try:
            if timeout is None:
                outcome = self._completions.get_nowait()
            else:
                outcome = self._completions.get(timeout=timeout)
        except queue.Empty:
            return None

        with self._lock:
            self._in_flight -= 1
        return outcome

    def forget(self, entry_id: str) -> None:
        """条目销毁后清除其解码缓存"""
        with self._lock:
            self.cache.invalidate(entry_id)
            running = entry_id in self._running
        if not running:
            self.cache.release_retired(entry_id)

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._executor.shutdown(wait=wait, cancel_futures=not wait)
        logger.debug("调度器已关闭")
