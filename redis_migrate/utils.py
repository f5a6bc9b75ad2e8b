"""
redis-migrate工具的实用函数。

提供计数、速率、时长的格式化以及日志和展示用的脱敏工具。
"""

from typing import List, Union
from urllib.parse import urlsplit, urlunsplit


def format_count(count: int) -> str:
    """格式化计数值。"""
    return f"{count:d}"


def format_rate(rate: float) -> str:
    """格式化处理速率。"""
    return f"{rate:.1f} keys/sec"


def format_duration(seconds: float) -> str:
    """
    格式化持续时间为可读格式。

    参数:
        seconds: 持续时间（秒）

    返回:
        格式化的字符串（例如："1小时30分45秒"）
    """
    if seconds < 60:
        return f"{seconds:.1f}秒"

    minutes = int(seconds // 60)
    seconds = seconds % 60

    if minutes < 60:
        return f"{minutes}分{seconds:.1f}秒"

    hours = minutes // 60
    minutes = minutes % 60

    if hours < 24:
        return f"{hours}小时{minutes}分{seconds:.0f}秒"

    days = hours // 24
    hours = hours % 24

    return f"{days}天{hours}小时{minutes}分"


def sanitize_key_for_logging(key: Union[str, bytes], max_length: int = 100) -> str:
    """
    Sanitize Redis key for safe logging.

    Args:
        key: Redis key, raw bytes keys may be non-UTF-8
        max_length: Maximum length for logged key

    Returns:
        Sanitized key string
    """
    if not key:
        return "<empty>"

    if isinstance(key, bytes):
        key = key.decode('utf-8', errors='backslashreplace')

    sanitized = ''.join(c if c.isprintable() else f'\\x{ord(c):02x}' for c in key)

    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length - 3] + "..."

    return sanitized


def summarize_keys(keys: List[Union[str, bytes]], limit: int = 3) -> str:
    """把一批键压缩成适合日志的一行文本。"""
    shown = ", ".join(sanitize_key_for_logging(k, 40) for k in keys[:limit])
    if len(keys) > limit:
        shown += f", ... (+{len(keys) - limit})"
    return f"[{shown}]"


def mask_url(url: str) -> str:
    """隐藏连接字符串中的密码。"""
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    if not parts.password:
        return url

    user = parts.username or ""
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    netloc = f"{user}:****@{host}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))
