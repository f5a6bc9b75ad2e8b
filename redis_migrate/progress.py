"""
迁移进度跟踪

线程安全的计数器集合以及由其派生的进度指标。
生产者和所有工作线程共享同一个实例，展示层持续轮询读取。
"""

import time
import threading
from typing import Callable, Dict, Any


class ProgressTracker:
    """Track progress of a running migration."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._total = 0
        self._processed = 0
        self._succeeded = 0
        self._failed = 0
        self._skipped = 0
        self._overwritten = 0
        self._start_time = clock()

    def set_total(self, total: int):
        """设置预期总键数；引擎在工作线程启动前调用一次。"""
        with self._lock:
            self._total = total

    def add_processed(self, count: int):
        self._add('_processed', count)

    def add_succeeded(self, count: int):
        self._add('_succeeded', count)

    def add_failed(self, count: int):
        self._add('_failed', count)

    def add_skipped(self, count: int):
        self._add('_skipped', count)

    def add_overwritten(self, count: int):
        self._add('_overwritten', count)

    def _add(self, name: str, count: int):
        if count < 0:
            raise ValueError(f"counter increment must be non-negative, got {count}")
        with self._lock:
            setattr(self, name, getattr(self, name) + count)

    @property
    def total(self) -> int:
        with self._lock:
            return self._total

    @property
    def processed(self) -> int:
        with self._lock:
            return self._processed

    @property
    def succeeded(self) -> int:
        with self._lock:
            return self._succeeded

    @property
    def failed(self) -> int:
        with self._lock:
            return self._failed

    @property
    def skipped(self) -> int:
        with self._lock:
            return self._skipped

    @property
    def overwritten(self) -> int:
        with self._lock:
            return self._overwritten

    @property
    def start_time(self) -> float:
        return self._start_time

    def set_start_time(self, start_time: float):
        self._start_time = start_time

    def elapsed(self) -> float:
        """自创建以来经过的秒数。"""
        return max(self._clock() - self._start_time, 0.0)

    def progress(self) -> float:
        """完成比例 processed / total；total 为 0 时返回 0，超过 1.0 时不截断。"""
        with self._lock:
            total, processed = self._total, self._processed
        if total == 0:
            return 0.0
        return processed / total

    def rate(self) -> float:
        """每秒处理的键数。"""
        elapsed = self.elapsed()
        if elapsed == 0:
            return 0.0
        return self.processed / elapsed

    def eta(self) -> float:
        """预计剩余秒数。"""
        with self._lock:
            total, processed = self._total, self._processed
        rate = self.rate()

        if rate == 0 or total == 0:
            return 0.0

        remaining = total - processed
        if remaining <= 0:
            return 0.0

        return remaining / rate

    def success_rate(self) -> float:
        with self._lock:
            processed, succeeded = self._processed, self._succeeded
        if processed == 0:
            return 0.0
        return succeeded / processed

    def failure_rate(self) -> float:
        with self._lock:
            processed, failed = self._processed, self._failed
        if processed == 0:
            return 0.0
        return failed / processed

    def snapshot(self) -> Dict[str, Any]:
        """返回当前计数器和派生指标的一致快照。"""
        with self._lock:
            counters = {
                'total': self._total,
                'processed': self._processed,
                'succeeded': self._succeeded,
                'failed': self._failed,
                'skipped': self._skipped,
                'overwritten': self._overwritten,
            }
        counters.update({
            'progress': self.progress(),
            'elapsed': self.elapsed(),
            'rate': self.rate(),
            'eta': self.eta(),
        })
        return counters
