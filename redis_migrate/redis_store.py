"""
Redis存储客户端

基于SCAN、DUMP/PTTL、RESTORE和DEL实现存储客户端契约。
所有批量读写都使用无事务Pipeline。
"""

import redis
import logging
import threading
from typing import Iterator, List, Optional, Set

from .config import ConflictPolicy
from .exceptions import (
    ScanError, KeyExportError, KeyImportError, KeyDeleteError, MigrationCancelledError
)
from .store import Key, KeyEntry, StoreClient
from .utils import sanitize_key_for_logging, summarize_keys

logger = logging.getLogger(__name__)

# PTTL 对不存在的键返回 -2，对永不过期的键返回 -1
PTTL_KEY_MISSING = -2
PTTL_NO_EXPIRY = -1


class RedisStoreClient(StoreClient):
    """使用redis-py客户端实现的存储端点。"""

    def __init__(self, client: redis.Redis, name: str = "redis"):
        """
        初始化Redis存储客户端。

        参数:
            client: 已连接的Redis客户端（decode_responses=False）
            name: 端点名称，用于日志
        """
        self.client = client
        self.name = name
        self._closed = False
        self._close_lock = threading.Lock()

    def _scan(self,
              pattern: str,
              batch_size: int,
              cancel_event: Optional[threading.Event] = None) -> Iterator[List[Key]]:
        """逐次执行SCAN，返回每次新出现的键（已去重，保持原始bytes）。"""
        seen: Set[Key] = set()
        cursor = 0
        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise MigrationCancelledError(f"{self.name}: 扫描已取消")

            try:
                cursor, raw_keys = self.client.scan(cursor=cursor, match=pattern, count=batch_size)
            except redis.exceptions.RedisError as e:
                raise ScanError(f"{self.name}: SCAN失败 (cursor={cursor}): {e}")

            fresh = []
            for key in raw_keys:
                if key in seen:
                    continue
                seen.add(key)
                fresh.append(key)

            if fresh:
                yield fresh

            if int(cursor) == 0:
                break

    def stream_keys(self,
                    pattern: str,
                    batch_size: int,
                    cancel_event: Optional[threading.Event] = None) -> Iterator[List[Key]]:
        """
        使用SCAN命令流式返回匹配的键。

        参数:
            pattern: 要匹配的键模式
            batch_size: 每批最多的键数，同时作为SCAN的COUNT参数
            cancel_event: 取消信号

        生成:
            不重叠的键列表，每个最多 batch_size 个
        """
        pending: List[Key] = []
        for keys in self._scan(pattern, batch_size, cancel_event):
            pending.extend(keys)
            while len(pending) >= batch_size:
                batch, pending = pending[:batch_size], pending[batch_size:]
                yield batch

        if pending:
            yield pending

    def count_keys(self, pattern: str, batch_size: int) -> int:
        """统计匹配模式的键数量。"""
        count = sum(len(keys) for keys in self._scan(pattern, batch_size))
        logger.debug(f"{self.name}: 模式 '{pattern}' 匹配 {count} 个键")
        return count

    def export_keys(self, keys: List[Key]) -> List[KeyEntry]:
        """使用DUMP/PTTL批量导出键。"""
        if not keys:
            return []

        try:
            pipe = self.client.pipeline(transaction=False)
            for key in keys:
                pipe.dump(key)
                pipe.pttl(key)
            results = pipe.execute(raise_on_error=False)
        except redis.exceptions.RedisError as e:
            raise KeyExportError(f"{self.name}: DUMP批量处理失败: {e}", keys)

        entries = []
        for i, key in enumerate(keys):
            dump_data = results[i * 2]
            ttl = results[i * 2 + 1]

            if isinstance(dump_data, Exception) or isinstance(ttl, Exception):
                logger.debug(f"{self.name}: 导出键失败 {sanitize_key_for_logging(key)}: "
                             f"{dump_data if isinstance(dump_data, Exception) else ttl}")
                continue

            # 键在SCAN之后被删除或过期；PTTL为0时键即将过期，RESTORE会把0当作永不过期
            if dump_data is None or ttl == PTTL_KEY_MISSING or ttl == 0:
                continue

            entries.append(KeyEntry(
                key=key,
                payload=dump_data,
                ttl_ms=0 if ttl == PTTL_NO_EXPIRY else ttl
            ))

        return entries

    def import_keys(self, entries: List[KeyEntry], policy: ConflictPolicy) -> List[Key]:
        """
        使用RESTORE批量导入键。

        参数:
            entries: 导出的条目
            policy: 冲突策略

        返回:
            写入成功的键名
        """
        if not entries:
            return []

        try:
            if policy == ConflictPolicy.SKIP:
                entries = self._drop_existing(entries)
                if not entries:
                    return []

            pipe = self.client.pipeline(transaction=False)
            for entry in entries:
                pipe.restore(
                    entry.key,
                    entry.ttl_ms,
                    entry.payload,
                    replace=(policy == ConflictPolicy.OVERWRITE)
                )
            results = pipe.execute(raise_on_error=False)
        except redis.exceptions.RedisError as e:
            raise KeyImportError(f"{self.name}: RESTORE批量处理失败: {e}",
                                 [entry.key for entry in entries])

        succeeded = []
        conflicts = []
        for entry, result in zip(entries, results):
            if isinstance(result, Exception):
                if _is_busy_key(result):
                    conflicts.append(entry.key)
                else:
                    logger.debug(f"{self.name}: 恢复键失败 "
                                 f"{sanitize_key_for_logging(entry.key)}: {result}")
                continue
            succeeded.append(entry.key)

        if conflicts and policy == ConflictPolicy.ERROR:
            raise KeyImportError(
                f"{self.name}: {len(conflicts)} 个键在目标端已存在 {summarize_keys(conflicts)}",
                conflicts
            )

        return succeeded

    def _drop_existing(self, entries: List[KeyEntry]) -> List[KeyEntry]:
        """去掉目标端已存在的条目（skip策略）。"""
        pipe = self.client.pipeline(transaction=False)
        for entry in entries:
            pipe.exists(entry.key)
        existing = pipe.execute()

        kept = [entry for entry, count in zip(entries, existing) if not count]
        if len(kept) < len(entries):
            logger.debug(f"{self.name}: 跳过 {len(entries) - len(kept)} 个已存在的键")
        return kept

    def delete_keys(self, keys: List[Key]):
        """删除一批键。"""
        if not keys:
            return

        try:
            self.client.delete(*keys)
        except redis.exceptions.RedisError as e:
            raise KeyDeleteError(f"{self.name}: DEL失败: {e}", keys)

    def close(self):
        """关闭连接，可重复调用。"""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        try:
            self.client.close()
            logger.info(f"已关闭 {self.name} 连接")
        except redis.exceptions.RedisError as e:
            logger.warning(f"关闭 {self.name} 连接失败: {e}")


def _is_busy_key(error: Exception) -> bool:
    return isinstance(error, redis.exceptions.ResponseError) and str(error).startswith("BUSYKEY")
