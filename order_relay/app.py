"""Typer CLI entrypoint for order-relay."""

from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer
import yaml
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigLocator, ConfigRepository, RelayConfig
from .engine import OrderFetcher, SeenItemTracker, StateMerger, build_item_key
from .errors import ConfigurationError, PersistenceError, UpstreamError
from .gateways import Broadcaster, LogBroadcaster, MongoOrderStore, OrderStore, PusherBroadcaster
from .logging_conf import ACTIVITY_LOG, ERROR_LOG, configure_logging, default_log_dir, tail_log
from .reconciler import BackfillReport, CycleReport, Reconciler
from .scheduler import APSchedulerAdapter

app = typer.Typer(
    help="order-relay 订单增量同步工具",
    no_args_is_help=True,
    rich_markup_mode=None,
)
config_app = typer.Typer(name="config", help="配置管理命令", no_args_is_help=True, rich_markup_mode=None)
log_app = typer.Typer(name="log", help="日志查看命令", no_args_is_help=True, rich_markup_mode=None)

console = Console()

_SECRET_FIELDS = {"access_token", "secret"}


@dataclass
class CliOptions:
    verbose: bool = False
    config_path: Path | None = None


@dataclass
class AppState:
    config: RelayConfig
    reconciler: Reconciler
    scheduler: APSchedulerAdapter
    store: OrderStore
    broadcaster: Broadcaster
    fetcher: OrderFetcher

    def close(self) -> None:
        self.fetcher.close()
        self.store.close()
        self.broadcaster.close()


def _repository(options: CliOptions) -> ConfigRepository:
    return ConfigRepository(ConfigLocator(), path=options.config_path)


def build_state(options: CliOptions) -> AppState:
    config = _repository(options).load_validated()
    configure_logging(verbose=options.verbose)

    fetcher = OrderFetcher(config.upstream)
    store = MongoOrderStore.from_config(config.mongo)
    store.ensure_indexes()
    broadcaster: Broadcaster
    if config.pusher.enabled:
        broadcaster = PusherBroadcaster.from_config(config.pusher)
    else:
        broadcaster = LogBroadcaster()
    reconciler = Reconciler(
        fetcher=fetcher,
        store=store,
        broadcaster=broadcaster,
        merger=StateMerger(build_item_key(config.polling.item_key)),
        tracker=SeenItemTracker(),
        window=config.polling.window,
        ignore_items=config.polling.ignore_items,
    )
    return AppState(
        config=config,
        reconciler=reconciler,
        scheduler=APSchedulerAdapter(),
        store=store,
        broadcaster=broadcaster,
        fetcher=fetcher,
    )


def _get_options(ctx: typer.Context) -> CliOptions:
    return ctx.obj if isinstance(ctx.obj, CliOptions) else CliOptions()


def _get_state(ctx: typer.Context) -> AppState:
    try:
        return build_state(_get_options(ctx))
    except ConfigurationError as exc:
        console.print(f"配置错误：{exc}", style="red")
        if exc.missing:
            console.print("请在配置文件或环境变量中补全：" + ", ".join(exc.missing), style="yellow")
        raise typer.Exit(code=1) from exc
    except PersistenceError as exc:
        console.print(f"无法连接数据库：{exc}", style="red")
        raise typer.Exit(code=1) from exc


def _render_cycle_report(report: CycleReport) -> Table:
    table = Table(title=f"同步周期 {report.cycle_id}", box=box.SIMPLE_HEAD)
    table.add_column("指标", style="cyan")
    table.add_column("数量", style="green", justify="right")
    table.add_row("页数", str(report.pages))
    table.add_row("拉取订单", str(report.fetched))
    table.add_row("窗口过滤", str(report.filtered))
    table.add_row("暂缓（无条目）", str(report.deferred))
    table.add_row("已写入", str(report.persisted))
    table.add_row("新建", str(report.created))
    table.add_row("失败", str(report.failed))
    table.add_row("已广播", str(report.broadcasts))
    if report.broadcast_failures:
        table.add_row("广播失败", str(report.broadcast_failures))
    return table


def _render_backfill_report(report: BackfillReport) -> Table:
    table = Table(title="回填结果", box=box.SIMPLE_HEAD)
    table.add_column("指标", style="cyan")
    table.add_column("数量", style="green", justify="right")
    table.add_row("拉取订单", str(report.fetched))
    table.add_row("新建", str(report.created))
    table.add_row("更新", str(report.modified))
    table.add_row("暂缓（无条目）", str(report.deferred))
    table.add_row("失败", str(report.failed))
    return table


def _mask_secrets(payload: dict) -> dict:
    masked: dict = {}
    for key, value in payload.items():
        if isinstance(value, dict):
            masked[key] = _mask_secrets(value)
        elif key in _SECRET_FIELDS and value:
            masked[key] = "******"
        else:
            masked[key] = value
    return masked


app.add_typer(config_app, name="config", help="查看或初始化配置")
app.add_typer(log_app, name="log", help="查看日志文件")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="开启调试日志", is_flag=True),
    config_path: Optional[Path] = typer.Option(None, "--config", help="配置文件路径（默认 data/relay_config.yaml）"),
) -> None:
    ctx.obj = CliOptions(verbose=verbose, config_path=config_path)


@app.command("run", help="启动轮询调度；--once 仅执行一个同步周期。")
def run(
    ctx: typer.Context,
    once: bool = typer.Option(False, "--once", help="只执行一个周期后退出。", is_flag=True),
) -> None:
    state = _get_state(ctx)
    if once:
        try:
            report = state.reconciler.run_cycle()
        finally:
            state.close()
        console.print(_render_cycle_report(report))
        if report.aborted:
            console.print(f"周期中止：{report.error}", style="red")
            raise typer.Exit(code=1)
        return

    polling = state.config.polling
    state.scheduler.schedule_polling(polling, state.reconciler.run_cycle)
    state.scheduler.start()
    console.print(
        f"轮询已启动：每 {polling.interval_seconds:g} 秒一次，时间窗口 {polling.window_hours:g} 小时。按 Ctrl+C 退出。",
        style="green",
    )
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        console.print("正在停止……", style="yellow")
    finally:
        state.scheduler.shutdown()
        state.close()


@app.command("backfill", help="同步最近 N 个订单（不广播）。")
def backfill(
    ctx: typer.Context,
    limit: int = typer.Option(10, "--limit", min=1, help="回填的订单数量。"),
) -> None:
    state = _get_state(ctx)
    try:
        report = state.reconciler.backfill(limit)
    except UpstreamError as exc:
        console.print(f"上游请求失败：{exc}", style="red")
        raise typer.Exit(code=1) from exc
    finally:
        state.close()
    console.print(_render_backfill_report(report))
    console.print(f"{report.changed} / {report.fetched} 个订单被新建或更新。", style="green")


@config_app.command("show", help="显示当前生效的配置（密钥已隐藏）。")
def config_show(ctx: typer.Context) -> None:
    repository = _repository(_get_options(ctx))
    try:
        config = repository.load()
    except ConfigurationError as exc:
        console.print(f"配置错误：{exc}", style="red")
        raise typer.Exit(code=1) from exc
    payload = _mask_secrets(config.model_dump(mode="json"))
    console.print(f"配置文件：{repository.path}", style="dim")
    console.print(yaml.safe_dump(payload, allow_unicode=True, sort_keys=False), markup=False, highlight=False)
    missing = config.missing_settings()
    if missing:
        console.print("缺少必填项：" + ", ".join(missing), style="yellow")


@config_app.command("init", help="生成默认配置文件。")
def config_init(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", help="覆盖已有配置文件。", is_flag=True),
) -> None:
    repository = _repository(_get_options(ctx))
    existed = repository.path.exists()
    path = repository.init_template(overwrite=force)
    if existed and not force:
        console.print(f"配置文件已存在：{path}（使用 --force 覆盖）", style="yellow")
        return
    console.print(f"已写入配置文件：{path}", style="green")


@log_app.command("show", help="查看日志的最近内容。")
def log_show(
    tail: int = typer.Option(100, "--tail", min=1, help="显示最近 N 行内容。"),
    errors: bool = typer.Option(False, "--errors", help="查看错误日志。", is_flag=True),
) -> None:
    path = default_log_dir() / (ERROR_LOG if errors else ACTIVITY_LOG)
    lines = tail_log(path, tail)
    if not lines:
        console.print("暂无日志信息，请稍后再试。", style="dim")
        return
    header = f"{'错误日志' if errors else '运行日志'} · 最近 {len(lines)} 行"
    console.print(header, style="cyan")
    console.print("".join(lines))


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
