"""
redis-migrate工具的配置管理。

处理迁移模式与冲突策略的解析、迁移规格校验，
以及从文件、环境变量和命令行参数加载配置。
"""

import os
import yaml
import logging
import colorlog
from enum import Enum
from typing import Dict, Any, Optional
from dataclasses import dataclass, asdict, field
from pathlib import Path
from urllib.parse import quote

from .exceptions import ConfigurationError, ValidationError

logger = logging.getLogger(__name__)


class MigrationMode(Enum):
    """迁移模式。"""
    COPY = "copy"  # 复制，保留源端键
    MOVE = "move"  # 移动，导入成功后删除源端键


class ConflictPolicy(Enum):
    """目标端键已存在时的处理策略。"""
    ERROR = "error"
    SKIP = "skip"
    OVERWRITE = "overwrite"


def parse_mode(value: str) -> MigrationMode:
    """
    将字符串解析为迁移模式。

    参数:
        value: "copy" 或 "move"（忽略大小写）

    返回:
        MigrationMode
    """
    try:
        return MigrationMode(value.strip().lower())
    except (ValueError, AttributeError):
        raise ConfigurationError(f"invalid mode: {value} (must be 'copy' or 'move')")


def parse_conflict_policy(value: str) -> ConflictPolicy:
    """
    将字符串解析为冲突策略。

    参数:
        value: "error"、"skip" 或 "overwrite"（忽略大小写）

    返回:
        ConflictPolicy
    """
    try:
        return ConflictPolicy(value.strip().lower())
    except (ValueError, AttributeError):
        raise ConfigurationError(
            f"invalid conflict behavior: {value} (must be 'error', 'skip', or 'overwrite')"
        )


@dataclass(frozen=True)
class MigrationSpec:
    """一次迁移运行的不可变规格。"""
    source_url: str
    dest_url: str
    pattern: str = "*"
    mode: MigrationMode = MigrationMode.COPY
    conflict: ConflictPolicy = ConflictPolicy.ERROR
    batch_size: int = 100
    concurrency: int = 4
    verbose: bool = False

    def validate(self):
        """
        校验迁移规格。

        收集全部违规项后一次性抛出 ValidationError。
        """
        errors = []

        if not self.source_url:
            errors.append("no source URL provided")

        if not self.dest_url:
            errors.append("no destination URL provided")

        if not isinstance(self.mode, MigrationMode):
            errors.append(f"invalid mode: {self.mode!r} (must be 'copy' or 'move')")

        if not isinstance(self.conflict, ConflictPolicy):
            errors.append(
                f"invalid conflict behavior: {self.conflict!r} "
                f"(must be 'error', 'skip', or 'overwrite')"
            )

        if not _is_positive_int(self.batch_size):
            errors.append(f"invalid batch size: {self.batch_size!r} (must be greater than 0)")

        if not _is_positive_int(self.concurrency):
            errors.append(f"invalid concurrency: {self.concurrency!r} (must be greater than 0)")

        if errors:
            raise ValidationError(errors)


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


@dataclass
class EndpointConfig:
    """Redis端点连接配置。"""
    url: Optional[str] = None
    host: str = "localhost"
    port: int = 6379
    password: Optional[str] = None
    db: int = 0
    ssl: bool = False

    def to_url(self) -> str:
        """返回连接字符串；未显式配置URL时由主机参数拼出。"""
        if self.url:
            return self.url
        scheme = "rediss" if self.ssl else "redis"
        auth = f":{quote(self.password, safe='')}@" if self.password else ""
        return f"{scheme}://{auth}{self.host}:{self.port}/{self.db}"


@dataclass
class MigrationSettings:
    """迁移操作设置。"""
    pattern: str = "*"
    mode: str = "copy"
    conflict: str = "error"
    batch_size: int = 100
    concurrency: int = 4
    refresh_interval: float = 0.1


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[str] = None
    console: bool = True
    colored: bool = True


@dataclass
class Config:
    """Main configuration class."""
    source: EndpointConfig = field(default_factory=EndpointConfig)
    destination: EndpointConfig = field(default_factory=lambda: EndpointConfig(port=6380))
    migration: MigrationSettings = field(default_factory=MigrationSettings)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """Create Config from dictionary."""
        data = data or {}
        try:
            return cls(
                source=EndpointConfig(**(data.get('source') or {})),
                destination=EndpointConfig(**(data.get('destination') or {})),
                migration=MigrationSettings(**(data.get('migration') or {})),
                logging=LoggingConfig(**(data.get('logging') or {}))
            )
        except TypeError as e:
            raise ConfigurationError(f"Unknown configuration field: {e}")

    @classmethod
    def from_file(cls, config_path: str) -> 'Config':
        """Load configuration from YAML file."""
        try:
            with open(config_path, 'r') as f:
                data = yaml.safe_load(f)
            return cls.from_dict(data)
        except Exception as e:
            logger.error(f"Failed to load config from {config_path}: {e}")
            raise

    @classmethod
    def from_env(cls) -> 'Config':
        """Load configuration from environment variables."""
        source_config = EndpointConfig(url=os.getenv('REDISMIGRATE_SOURCE_URL'))
        destination_config = EndpointConfig(url=os.getenv('REDISMIGRATE_DEST_URL'), port=6380)

        migration_config = MigrationSettings(
            pattern=os.getenv('REDISMIGRATE_PATTERN', '*'),
            mode=os.getenv('REDISMIGRATE_MODE', 'copy'),
            conflict=os.getenv('REDISMIGRATE_CONFLICT', 'error'),
            batch_size=int(os.getenv('REDISMIGRATE_BATCH_SIZE', '100')),
            concurrency=int(os.getenv('REDISMIGRATE_CONCURRENCY', '4'))
        )

        logging_config = LoggingConfig(
            level=os.getenv('REDISMIGRATE_LOG_LEVEL', 'INFO'),
            file=os.getenv('REDISMIGRATE_LOG_FILE')
        )

        return cls(
            source=source_config,
            destination=destination_config,
            migration=migration_config,
            logging=logging_config
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            'source': asdict(self.source),
            'destination': asdict(self.destination),
            'migration': asdict(self.migration),
            'logging': asdict(self.logging)
        }

    def save_to_file(self, config_path: str):
        """Save configuration to YAML file."""
        try:
            config_dir = Path(config_path).parent
            config_dir.mkdir(parents=True, exist_ok=True)

            with open(config_path, 'w') as f:
                yaml.dump(self.to_dict(), f, default_flow_style=False, indent=2)

            logger.info(f"Configuration saved to {config_path}")
        except Exception as e:
            logger.error(f"Failed to save config to {config_path}: {e}")
            raise

    def to_spec(self, verbose: bool = False) -> MigrationSpec:
        """
        将配置转换为迁移规格。

        模式和冲突策略字符串在这里解析，无法识别时抛出 ConfigurationError。
        """
        return MigrationSpec(
            source_url=self.source.to_url(),
            dest_url=self.destination.to_url(),
            pattern=self.migration.pattern,
            mode=parse_mode(self.migration.mode),
            conflict=parse_conflict_policy(self.migration.conflict),
            batch_size=self.migration.batch_size,
            concurrency=self.migration.concurrency,
            verbose=verbose
        )


def setup_logging(config: LoggingConfig):
    """Setup logging based on configuration."""
    level = getattr(logging, config.level.upper(), logging.INFO)

    if config.colored and config.console:
        console_formatter = colorlog.ColoredFormatter(
            '%(log_color)s%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S',
            log_colors={
                'DEBUG': 'cyan',
                'INFO': 'green',
                'WARNING': 'yellow',
                'ERROR': 'red',
                'CRITICAL': 'red,bg_white',
            }
        )
    else:
        console_formatter = logging.Formatter(config.format)

    file_formatter = logging.Formatter(config.format)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if config.console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(console_formatter)
        root_logger.addHandler(console_handler)

    if config.file:
        try:
            log_dir = Path(config.file).parent
            log_dir.mkdir(parents=True, exist_ok=True)

            file_handler = logging.FileHandler(config.file)
            file_handler.setLevel(level)
            file_handler.setFormatter(file_formatter)
            root_logger.addHandler(file_handler)
        except OSError as e:
            logger.error(f"Failed to setup file logging: {e}")

    logging.getLogger('redis').setLevel(logging.WARNING)


def create_sample_config() -> str:
    """Create a sample configuration file content."""
    sample_config = {
        'source': {
            'url': 'redis://localhost:6379/0',
        },
        'destination': {
            'url': 'redis://localhost:6380/0',
        },
        'migration': {
            'pattern': '*',
            'mode': 'copy',
            'conflict': 'error',
            'batch_size': 100,
            'concurrency': 4,
            'refresh_interval': 0.1
        },
        'logging': {
            'level': 'INFO',
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            'file': None,
            'console': True,
            'colored': True
        }
    }

    return yaml.dump(sample_config, default_flow_style=False, indent=2, sort_keys=False)


def load_config(config_path: Optional[str] = None,
                use_env: bool = True,
                create_default: bool = False) -> Config:
    """
    Load configuration from various sources.

    Args:
        config_path: Path to configuration file
        use_env: Whether to use environment variables as fallback
        create_default: Whether to create default config if none found

    Returns:
        Configuration object
    """
    if config_path and os.path.exists(config_path):
        return Config.from_file(config_path)

    if use_env:
        try:
            return Config.from_env()
        except ValueError as e:
            logger.warning(f"Failed to load config from environment: {e}")

    if create_default:
        logger.info("Using default configuration")
        return Config()

    raise ConfigurationError("No valid configuration found")
