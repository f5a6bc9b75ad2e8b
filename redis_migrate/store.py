"""
存储客户端契约

迁移引擎只依赖这里定义的六个操作，不依赖任何具体后端的类型。
每个后端（目前为Redis）提供一个实现。
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterator, List, Optional, Union

from .config import ConflictPolicy

# Redis后端使用SCAN返回的原始bytes键，不要求键是合法UTF-8
Key = Union[str, bytes]


@dataclass(frozen=True)
class KeyEntry:
    """导出的单个键：序列化载荷与剩余TTL。"""
    key: Key
    payload: bytes
    ttl_ms: int = 0  # 0 表示不过期


class StoreClient(ABC):
    """源端和目标端各持有一个实例。"""

    @abstractmethod
    def stream_keys(self,
                    pattern: str,
                    batch_size: int,
                    cancel_event: Optional[threading.Event] = None) -> Iterator[List[Key]]:
        """
        按批次流式返回匹配模式的键。

        批次互不重叠，每批最多 batch_size 个键。
        cancel_event 被设置后应尽快停止并抛出 MigrationCancelledError；
        游标无法推进时抛出 ScanError。
        """

    @abstractmethod
    def count_keys(self, pattern: str, batch_size: int) -> int:
        """返回调用时刻匹配模式的键数量。"""

    @abstractmethod
    def export_keys(self, keys: List[Key]) -> List[KeyEntry]:
        """
        导出一批键。

        已不存在或序列化失败的键直接省略，N个键可能得到少于N个条目。
        整批无法执行时抛出 KeyExportError。
        """

    @abstractmethod
    def import_keys(self, entries: List[KeyEntry], policy: ConflictPolicy) -> List[Key]:
        """
        按冲突策略导入条目，返回写入成功的键名。

        单个键写入失败不影响同批其他键；整批失败时抛出 KeyImportError。
        """

    @abstractmethod
    def delete_keys(self, keys: List[Key]):
        """删除给定的键，空列表时不做任何操作。"""

    @abstractmethod
    def close(self):
        """释放连接。"""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
