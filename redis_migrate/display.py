"""
迁移进度展示

在前台按固定间隔轮询进度跟踪器并用tqdm渲染进度条，
迁移结束后输出汇总信息或错误面板。
"""

import threading
from typing import Callable, Optional, Sequence

import click
from tqdm import tqdm

from .config import MigrationSpec, ConflictPolicy
from .exceptions import MigrationError
from .progress import ProgressTracker
from .utils import format_count, format_rate, format_duration, mask_url

MAX_ERRORS_SHOWN = 20


class ProgressDisplay:
    """轮询 ProgressTracker 并刷新tqdm进度条。"""

    def __init__(self,
                 tracker: ProgressTracker,
                 spec: MigrationSpec,
                 refresh_interval: float = 0.1,
                 disable: bool = False):
        self.tracker = tracker
        self.spec = spec
        self.refresh_interval = refresh_interval
        self.disable = disable

    def run(self, is_running: Callable[[], bool], wait: Optional[Callable[[float], None]] = None):
        """
        刷新进度条直到 is_running() 返回False。

        参数:
            is_running: 迁移是否仍在进行
            wait: 两次刷新之间的等待函数，默认 threading.Event().wait
        """
        wait = wait or threading.Event().wait
        with tqdm(total=0, desc="Migrating keys", unit="keys", disable=self.disable) as pbar:
            while is_running():
                self.update(pbar)
                wait(self.refresh_interval)
            self.update(pbar)

    def update(self, pbar: tqdm):
        snapshot = self.tracker.snapshot()
        if pbar.total != snapshot['total']:
            pbar.total = snapshot['total']
        pbar.n = snapshot['processed']
        pbar.set_postfix(self._postfix(snapshot), refresh=False)
        pbar.refresh()

    def _postfix(self, snapshot) -> dict:
        postfix = {
            'ok': snapshot['succeeded'],
            'failed': snapshot['failed'],
        }
        if self.spec.conflict == ConflictPolicy.SKIP:
            postfix['skipped'] = snapshot['skipped']
        elif self.spec.conflict == ConflictPolicy.OVERWRITE:
            postfix['overwritten'] = snapshot['overwritten']
        postfix['eta'] = format_duration(snapshot['eta'])
        return postfix


def format_summary(tracker: ProgressTracker, spec: MigrationSpec) -> str:
    """格式化迁移汇总：配置信息加计数器和速率。"""
    lines = [
        click.style("=== Migration Summary ===", bold=True),
        f"Mode: {click.style(spec.mode.value, fg='cyan')}"
        f" | Pattern: {click.style(spec.pattern, fg='cyan')}"
        f" | Conflict: {click.style(spec.conflict.value, fg='cyan')}",
        f"Source: {click.style(mask_url(spec.source_url), fg='magenta')}",
        f"Destination: {click.style(mask_url(spec.dest_url), fg='magenta')}",
    ]

    counters = (
        f"Total: {click.style(format_count(tracker.total), fg='blue')}"
        f" | Processed: {click.style(format_count(tracker.processed), fg='blue')}"
        f" | Success: {click.style(format_count(tracker.succeeded), fg='green')}"
        f" | Failed: {click.style(format_count(tracker.failed), fg='red')}"
    )
    if spec.conflict == ConflictPolicy.SKIP:
        counters += f" | Skipped: {click.style(format_count(tracker.skipped), fg='blue')}"
    elif spec.conflict == ConflictPolicy.OVERWRITE:
        counters += f" | Overwritten: {click.style(format_count(tracker.overwritten), fg='blue')}"
    lines.append(counters)

    lines.append(
        f"Rate: {click.style(format_rate(tracker.rate()), fg='blue')}"
        f" | Elapsed: {click.style(format_duration(tracker.elapsed()), fg='blue')}"
    )
    return "\n".join(lines)


def format_error(error: BaseException) -> str:
    """格式化错误面板；MigrationError 会逐条列出其中的错误。"""
    messages: Sequence[BaseException]
    if isinstance(error, MigrationError):
        messages = error.errors
    else:
        messages = [error]

    lines = [click.style(" ERROR ", fg='white', bg='red', bold=True), ""]
    for item in messages[:MAX_ERRORS_SHOWN]:
        lines.append(click.style(f"- {item}", fg='red'))
    if len(messages) > MAX_ERRORS_SHOWN:
        lines.append(click.style(f"... and {len(messages) - MAX_ERRORS_SHOWN} more", fg='red'))
    lines.append("")
    lines.append(f"Try {click.style('--help', fg='cyan')} for usage.")
    return "\n".join(lines)
