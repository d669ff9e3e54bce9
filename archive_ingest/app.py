"""Typer CLI entrypoint for archive-ingest."""

from __future__ import annotations

from contextlib import closing
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import typer
from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository, IngestConfig, RecordIdStrategy
from .engine import DeduplicationStore, RunStatistics, StoreStatus
from .errors import StoreError, StoreUnavailable
from .infra import IdempotencyStore, open_store
from .logging_conf import available_logs, configure_logging, tail_log
from .orchestrator import IngestOrchestrator

app = typer.Typer(
    help="archive-ingest 命令行工具：下载远程压缩包、去重并写入队列",
    no_args_is_help=True,
    rich_markup_mode=None,
)
log_app = typer.Typer(
    name="log",
    help="日志查看命令",
    no_args_is_help=True,
    rich_markup_mode=None,
)
app.add_typer(log_app, name="log")

console = Console()

_STAT_LABELS = {
    "total": "候选总数",
    "skipped": "已完成跳过",
    "downloaded": "下载成功",
    "download_failures": "下载失败",
    "unzipped": "解压完成",
    "extraction_failures": "解压/入库失败",
    "members_seen": "记录总数",
    "ingested": "新入队",
    "duplicates": "重复记录",
}


@dataclass
class AppState:
    repository: ConfigRepository
    verbose: bool = False


def build_state(verbose: bool) -> AppState:
    repository = ConfigRepository()
    repository.locator.ensure_directories()
    configure_logging(verbose=verbose, log_dir=repository.locator.logs_dir)
    return AppState(repository=repository, verbose=verbose)


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _load_config(
    state: AppState, config_path: Optional[Path], overrides: dict[str, Any]
) -> IngestConfig:
    try:
        return state.repository.load(config_path=config_path, overrides=overrides)
    except (FileNotFoundError, ValueError, ValidationError) as exc:
        console.print(f"配置无效：{exc}", style="red")
        raise typer.Exit(code=2) from exc


def _connect_store(state: AppState, config: IngestConfig) -> IdempotencyStore:
    try:
        return open_store(config.store, state.repository.locator.project_root)
    except StoreUnavailable as exc:
        console.print(f"存储不可用：{exc}", style="bold red")
        raise typer.Exit(code=1) from exc


def _store_overrides(
    store: Optional[str], redis_url: Optional[str], sqlite_path: Optional[Path]
) -> dict[str, Any]:
    return {"store": {"backend": store, "redis_url": redis_url, "sqlite_path": sqlite_path}}


def render_statistics(stats: RunStatistics) -> Table:
    table = Table(title="运行统计", box=box.SIMPLE_HEAD)
    table.add_column("指标", style="cyan", no_wrap=True)
    table.add_column("说明", style="dim")
    table.add_column("数量", style="green", justify="right")
    for name, value in stats.snapshot().items():
        table.add_row(name, _STAT_LABELS.get(name, ""), str(value))
    return table


def render_store_status(status: StoreStatus, config: IngestConfig) -> Table:
    table = Table(title="存储状态", box=box.SIMPLE_HEAD)
    table.add_column("集合", style="cyan", no_wrap=True)
    table.add_column("键", style="magenta")
    table.add_column("数量", style="green", justify="right")
    table.add_row("completed-archives", config.store.completed_key, str(status.completed_archives))
    table.add_row("seen-record-ids", config.store.seen_key, str(status.seen_records))
    table.add_row("ingestion-queue", config.store.queue_key, str(status.queued_records))
    return table


@app.callback()
def main(
    ctx: typer.Context, verbose: bool = typer.Option(False, "--verbose", help="开启调试日志")
) -> None:
    ctx.obj = build_state(verbose)


@app.command("run", help="抓取目录列表，下载并解压新压缩包，去重后写入队列。")
def run(
    ctx: typer.Context,
    listing_url: Optional[str] = typer.Option(None, "--listing-url", help="目录列表地址。"),
    download_workers: Optional[int] = typer.Option(None, "--download-workers", min=1, help="下载并发数。"),
    process_workers: Optional[int] = typer.Option(None, "--process-workers", min=1, help="解压并发数。"),
    store: Optional[str] = typer.Option(None, "--store", help="存储后端：redis 或 sqlite。"),
    redis_url: Optional[str] = typer.Option(None, "--redis-url", help="Redis 连接串。"),
    sqlite_path: Optional[Path] = typer.Option(None, "--sqlite-path", help="SQLite 存储文件。"),
    work_dir: Optional[Path] = typer.Option(None, "--work-dir", help="临时文件目录。"),
    id_strategy: Optional[RecordIdStrategy] = typer.Option(
        None, "--id-strategy", help="记录标识来源：name 或 content-hash。"
    ),
    config_path: Optional[Path] = typer.Option(None, "--config", help="YAML/JSON 配置文件。"),
    no_progress: bool = typer.Option(False, "--no-progress", help="关闭进度条。"),
) -> None:
    state = _get_state(ctx)
    overrides: dict[str, Any] = {
        "listing_url": listing_url,
        "download_workers": download_workers,
        "process_workers": process_workers,
        "work_dir": work_dir,
        "record_id_strategy": id_strategy.value if id_strategy else None,
        "enable_progress_bar": False if no_progress else None,
        **_store_overrides(store, redis_url, sqlite_path),
    }
    config = _load_config(state, config_path, overrides)
    with closing(_connect_store(state, config)) as backend:
        dedup = DeduplicationStore.from_config(backend, config.store)
        orchestrator = IngestOrchestrator.from_config(config, dedup)
        try:
            stats = orchestrator.run()
        finally:
            orchestrator.close()
    console.print(render_statistics(stats))


@app.command("list", help="列出目录中的压缩包及其完成状态。")
def list_archives(
    ctx: typer.Context,
    listing_url: Optional[str] = typer.Option(None, "--listing-url", help="目录列表地址。"),
    store: Optional[str] = typer.Option(None, "--store", help="存储后端：redis 或 sqlite。"),
    redis_url: Optional[str] = typer.Option(None, "--redis-url", help="Redis 连接串。"),
    sqlite_path: Optional[Path] = typer.Option(None, "--sqlite-path", help="SQLite 存储文件。"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="YAML/JSON 配置文件。"),
) -> None:
    state = _get_state(ctx)
    overrides = {"listing_url": listing_url, **_store_overrides(store, redis_url, sqlite_path)}
    config = _load_config(state, config_path, overrides)
    with closing(_connect_store(state, config)) as backend:
        dedup = DeduplicationStore.from_config(backend, config.store)
        orchestrator = IngestOrchestrator.from_config(config, dedup)
        try:
            urls = orchestrator.list_candidates()
            table = Table(title=f"目录列表 · 共 {len(urls)} 个", box=box.SIMPLE_HEAD)
            table.add_column("URL", style="cyan", overflow="fold")
            table.add_column("状态", style="green")
            for url in urls:
                done = dedup.is_archive_completed(url)
                table.add_row(url, "已完成" if done else "待处理")
        finally:
            orchestrator.close()
    console.print(table)


@app.command("status", help="查看存储中已完成压缩包、已见记录与队列长度。")
def status(
    ctx: typer.Context,
    store: Optional[str] = typer.Option(None, "--store", help="存储后端：redis 或 sqlite。"),
    redis_url: Optional[str] = typer.Option(None, "--redis-url", help="Redis 连接串。"),
    sqlite_path: Optional[Path] = typer.Option(None, "--sqlite-path", help="SQLite 存储文件。"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="YAML/JSON 配置文件。"),
) -> None:
    state = _get_state(ctx)
    config = _load_config(state, config_path, _store_overrides(store, redis_url, sqlite_path))
    with closing(_connect_store(state, config)) as backend:
        dedup = DeduplicationStore.from_config(backend, config.store)
        try:
            current = dedup.status()
        except StoreError as exc:
            console.print(f"读取存储失败：{exc}", style="red")
            raise typer.Exit(code=1) from exc
    console.print(render_store_status(current, config))


@app.command("reset", help="清除幂等标记，使压缩包/记录在下次运行时重新处理。")
def reset(
    ctx: typer.Context,
    archives: bool = typer.Option(True, "--archives/--no-archives", help="清除已完成压缩包集合。"),
    records: bool = typer.Option(True, "--records/--no-records", help="清除已见记录集合。"),
    yes: bool = typer.Option(False, "--yes", "-y", help="跳过确认。"),
    store: Optional[str] = typer.Option(None, "--store", help="存储后端：redis 或 sqlite。"),
    redis_url: Optional[str] = typer.Option(None, "--redis-url", help="Redis 连接串。"),
    sqlite_path: Optional[Path] = typer.Option(None, "--sqlite-path", help="SQLite 存储文件。"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="YAML/JSON 配置文件。"),
) -> None:
    if not (archives or records):
        console.print("未选择任何集合，无需清除。", style="yellow")
        raise typer.Exit(code=0)
    state = _get_state(ctx)
    config = _load_config(state, config_path, _store_overrides(store, redis_url, sqlite_path))
    if not yes and not typer.confirm("确认清除幂等标记？队列内容不会被删除。"):
        console.print("已取消。", style="yellow")
        raise typer.Exit(code=0)
    with closing(_connect_store(state, config)) as backend:
        dedup = DeduplicationStore.from_config(backend, config.store)
        cleared = dedup.reset(archives=archives, records=records)
    console.print(f"已清除：{', '.join(cleared)}", style="green")


@log_app.command("list", help="列出可用的日志文件。")
def log_list(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    logs = list(available_logs(state.repository.locator.logs_dir))
    if not logs:
        console.print("暂无日志文件。", style="yellow")
        return
    for path in logs:
        console.print(path.name)


@log_app.command("show", help="查看指定日志的最近内容。")
def log_show(
    ctx: typer.Context,
    name: str = typer.Argument("ingest", help="日志名称，例如 ingest 或 error。"),
    lines: int = typer.Option(50, "--lines", "-n", min=1, help="显示的行数。"),
) -> None:
    state = _get_state(ctx)
    filename = name if name.endswith(".log") else f"{name}.log"
    path = state.repository.locator.logs_dir / filename
    if not path.exists():
        console.print(f"日志不存在：{filename}", style="red")
        raise typer.Exit(code=1)
    for line in tail_log(path, lines):
        console.print(line.rstrip("\n"), markup=False, highlight=False)


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
