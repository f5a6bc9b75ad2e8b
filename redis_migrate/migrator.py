"""
迁移引擎

一个扫描生产者加固定数量的工作线程：生产者把键批次放入有界队列，
工作线程对每批执行 导出 -> 导入 -> (move模式)删除源端，并更新进度。
所有错误经错误队列汇总，运行结束后合并为一个 MigrationError。

引擎不对存储调用设置超时，挂起的存储调用会一直占用对应的工作线程；
需要超时的调用方应在存储客户端一侧包装。
"""

import queue
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, Future
from typing import List, Optional, Type

from .config import MigrationSpec, MigrationMode, ConflictPolicy
from .exceptions import (
    MigrationError, MigrationCancelledError, MigrationStepError,
    ScanError, KeyExportError, KeyImportError, KeyDeleteError
)
from .progress import ProgressTracker
from .store import Key, StoreClient
from .utils import summarize_keys

logger = logging.getLogger(__name__)


def _as_step_error(error: Exception,
                   error_cls: Type[MigrationStepError],
                   message: str,
                   keys: List[Key]) -> MigrationStepError:
    """把存储调用抛出的任意异常归入对应阶段的错误类型。"""
    if isinstance(error, error_cls):
        return error
    wrapped = error_cls(f"{message}: {error}", keys)
    wrapped.__cause__ = error
    return wrapped


class Migrator:
    """在两个存储端点之间迁移匹配模式的键。"""

    def __init__(self,
                 source: StoreClient,
                 destination: StoreClient,
                 spec: MigrationSpec,
                 tracker: Optional[ProgressTracker] = None,
                 cancel_event: Optional[threading.Event] = None,
                 poll_interval: float = 0.05):
        """
        初始化迁移引擎。

        参数:
            source: 源端存储客户端
            destination: 目标端存储客户端
            spec: 已校验的迁移规格
            tracker: 共享的进度跟踪器，不传则新建
            cancel_event: 共享的取消信号，不传则新建
            poll_interval: 等待队列时检查取消信号的间隔（秒）
        """
        self.source = source
        self.destination = destination
        self.spec = spec
        self.tracker = tracker or ProgressTracker()
        self.cancel_event = cancel_event or threading.Event()
        self.poll_interval = poll_interval
        # verbose时每批结果以INFO级别输出
        self._batch_log_level = logging.INFO if spec.verbose else logging.DEBUG

        self._errors: List[Exception] = []
        self._errors_lock = threading.Lock()

    def cancel(self):
        """发出取消信号；生产者停止扫描，等待中的工作线程立即退出。"""
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def _add_error(self, error: Exception):
        with self._errors_lock:
            self._errors.append(error)

    def get_errors(self) -> List[Exception]:
        """返回已记录错误的副本。"""
        with self._errors_lock:
            return list(self._errors)

    def migrate(self):
        """
        执行迁移。

        没有任何失败时正常返回；否则抛出 MigrationError，
        其 errors 属性包含运行期间记录的全部错误。
        """
        spec = self.spec
        logger.info(f"开始迁移，模式: {spec.mode.value}，冲突策略: {spec.conflict.value}，"
                    f"键模式: '{spec.pattern}'，批大小: {spec.batch_size}，并发: {spec.concurrency}")

        try:
            total = self.source.count_keys(spec.pattern, spec.batch_size)
        except Exception as e:
            error = _as_step_error(e, ScanError, "failed to count keys", [])
            logger.error(f"统计键数量失败: {error}")
            self._add_error(error)
            raise MigrationError(self.get_errors()) from e

        self.tracker.set_total(total)
        logger.info(f"找到 {total} 个待迁移的键")

        if total == 0:
            logger.info("没有匹配的键，迁移结束")
            return

        batches: queue.Queue = queue.Queue(maxsize=spec.concurrency * 2)
        errors: queue.Queue = queue.Queue(maxsize=spec.concurrency)
        scan_done = threading.Event()

        with ThreadPoolExecutor(max_workers=spec.concurrency + 1,
                                thread_name_prefix="redis-migrate") as executor:
            futures = [executor.submit(self._produce, batches, errors, scan_done)]
            futures.extend(
                executor.submit(self._worker, batches, errors, scan_done)
                for _ in range(spec.concurrency)
            )
            self._drain(errors, futures)

        for future in futures:
            future.result()

        if self.cancelled:
            self._add_error(MigrationCancelledError(
                f"migration cancelled after {self.tracker.processed} of {total} keys"
            ))

        snapshot = self.tracker.snapshot()
        logger.info(f"迁移结束。已处理: {snapshot['processed']}，成功: {snapshot['succeeded']}，"
                    f"覆盖: {snapshot['overwritten']}，失败: {snapshot['failed']}")

        recorded = self.get_errors()
        if recorded:
            raise MigrationError(recorded)

    def _drain(self, errors: queue.Queue, futures: List[Future]):
        """把错误队列中的错误收集到累加器，直到所有线程退出且队列为空。"""
        while True:
            try:
                error = errors.get(timeout=self.poll_interval)
            except queue.Empty:
                if all(f.done() for f in futures) and errors.empty():
                    return
                continue
            logger.error(f"迁移错误: {error}")
            self._add_error(error)

    def _produce(self, batches: queue.Queue, errors: queue.Queue, scan_done: threading.Event):
        """扫描源端，把键批次放入队列。"""
        spec = self.spec
        try:
            for keys in self.source.stream_keys(spec.pattern, spec.batch_size, self.cancel_event):
                if not self._put_batch(batches, keys):
                    logger.info("扫描在取消后停止")
                    break
        except MigrationCancelledError:
            logger.info("扫描在取消后停止")
        except Exception as e:
            errors.put(_as_step_error(e, ScanError, "failed to scan keys", []))
        finally:
            scan_done.set()

    def _put_batch(self, batches: queue.Queue, keys: List[Key]) -> bool:
        while not self.cancelled:
            try:
                batches.put(keys, timeout=self.poll_interval)
                return True
            except queue.Full:
                continue
        return False

    def _worker(self, batches: queue.Queue, errors: queue.Queue, scan_done: threading.Event):
        while not self.cancelled:
            try:
                keys = batches.get(timeout=self.poll_interval)
            except queue.Empty:
                if scan_done.is_set() and batches.empty():
                    return
                continue

            if self.cancelled:
                return

            self._process_batch(keys, errors)

    def _process_batch(self, keys: List[Key], errors: queue.Queue):
        """导出、导入一批键，更新计数，move模式下删除源端已迁移的键。"""
        tracker = self.tracker

        try:
            entries = self.source.export_keys(keys)
        except Exception as e:
            errors.put(_as_step_error(e, KeyExportError, "failed to dump keys", keys))
            tracker.add_processed(len(keys))
            tracker.add_failed(len(keys))
            return

        if not entries:
            logger.debug(f"批次 {summarize_keys(keys)} 的键已全部不存在")
            return

        try:
            succeeded = self.destination.import_keys(entries, self.spec.conflict)
        except Exception as e:
            errors.put(_as_step_error(e, KeyImportError, "failed to restore keys",
                                      [entry.key for entry in entries]))
            tracker.add_processed(len(entries))
            tracker.add_failed(len(entries))
            return

        self._record_batch(len(entries), len(succeeded))
        logger.log(self._batch_log_level,
                   f"批次完成: 导出 {len(entries)}，写入 {len(succeeded)} {summarize_keys(keys)}")

        if self.spec.mode == MigrationMode.MOVE and succeeded:
            try:
                self.source.delete_keys(succeeded)
            except Exception as e:
                # 目标端副本保留，计数不回滚
                errors.put(_as_step_error(e, KeyDeleteError,
                                          "failed to delete keys from source", succeeded))

    def _record_batch(self, exported: int, succeeded: int):
        # skip策略下被跳过的键计入 failed 而不是 skipped
        self.tracker.add_processed(exported)

        if self.spec.conflict == ConflictPolicy.OVERWRITE:
            self.tracker.add_overwritten(succeeded)
        else:
            self.tracker.add_succeeded(succeeded)

        failed = exported - succeeded
        if failed > 0:
            self.tracker.add_failed(failed)
