"""
redis-migrate工具的自定义异常。

为不同错误条件定义特定的异常类型。
"""

from typing import List, Optional, Sequence


class RedisMigrateError(Exception):
    """redis-migrate工具的基础异常。"""
    pass


class ConnectionError(RedisMigrateError):
    """Redis连接建立或验证失败时抛出。"""
    pass


class ConfigurationError(RedisMigrateError):
    """配置无效时抛出。"""
    pass


class ValidationError(ConfigurationError):
    """
    迁移配置校验失败时抛出。

    一次性收集所有违规项，而不是只报告第一个。
    """

    def __init__(self, errors: Sequence[str]):
        self.errors: List[str] = list(errors)
        super().__init__("; ".join(self.errors))


class MigrationStepError(RedisMigrateError):
    """单个迁移阶段（scan、export、import、delete）失败时抛出。"""

    phase = "migrate"

    def __init__(self, message: str, keys: Optional[Sequence[str]] = None):
        self.keys: List[str] = list(keys or [])
        super().__init__(message)

    def __str__(self) -> str:
        return f"{self.phase}: {super().__str__()}"


class ScanError(MigrationStepError):
    """SCAN操作无法推进游标时抛出。"""
    phase = "scan"


class KeyExportError(MigrationStepError):
    """从源端导出（DUMP/PTTL）一批键失败时抛出。"""
    phase = "export"


class KeyImportError(MigrationStepError):
    """向目标端导入（RESTORE）一批键失败时抛出。"""
    phase = "import"


class KeyDeleteError(MigrationStepError):
    """move模式下删除源端键失败时抛出。"""
    phase = "delete"


class MigrationCancelledError(RedisMigrateError):
    """迁移被取消信号中断时记录。"""
    pass


class MigrationError(RedisMigrateError):
    """
    迁移完成后汇总的错误。

    errors 属性按记录顺序保存运行期间遇到的每一个失败。
    """

    def __init__(self, errors: Sequence[BaseException]):
        self.errors: List[BaseException] = list(errors)
        super().__init__("\n".join(str(e) for e in self.errors))

    def __len__(self) -> int:
        return len(self.errors)
