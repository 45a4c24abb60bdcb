"""
程序主入口：手动截图与查看截图方式的开发工具。
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from capture import default_strategies
from screenshot_service import ScreenshotService
from settings import CONFIG_PATH, Settings, load_settings
from storage import Mode


def _configure_logging(settings: Settings, verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, settings.logging.level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=settings.logging.format)


async def _capture_many(service: ScreenshotService, times: int, interval_ms: int) -> None:
    interval = max(interval_ms, 0) / 1000.0
    for index in range(times):
        path = await service.capture()
        click.echo(f"[{index + 1}/{times}] 已保存: {path}")
        if index + 1 < times and interval:
            await asyncio.sleep(interval)


@click.group()
@click.option("--config", "-c", "config_path", type=click.Path(dir_okay=False, path_type=Path), default=None, help="配置文件路径")
@click.option("--verbose", "-v", is_flag=True, help="输出调试日志")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], verbose: bool) -> None:
    """程序主入口：截图与截图队列管理工具"""
    try:
        settings = load_settings(config_path or CONFIG_PATH)
    except FileNotFoundError as e:
        click.echo(f"错误: {e}", err=True)
        sys.exit(1)
    _configure_logging(settings, verbose)
    ctx.obj = settings


@cli.command()
@click.option("--mode", "-m", type=click.Choice([m.value for m in Mode]), default=Mode.QUEUE.value, help="截图模式")
@click.option("--times", "-t", default=1, type=click.IntRange(min=1), help="截图次数")
@click.option("--interval-ms", default=500, help="两次截图之间的间隔（毫秒）")
@click.pass_obj
def capture(settings: Settings, mode: str, times: int, interval_ms: int) -> None:
    """截取全屏并加入对应队列"""
    try:
        service = ScreenshotService.from_settings(settings, mode=mode)
        asyncio.run(_capture_many(service, times, interval_ms))
    except KeyboardInterrupt:
        click.echo("\n截图已停止")
        return
    except Exception as e:
        click.echo(f"错误: {e}", err=True)
        sys.exit(1)

    click.echo(f"主队列 ({len(service.list_primary())}):")
    for path in service.list_primary():
        click.echo(f"  {path}")
    click.echo(f"附加队列 ({len(service.list_secondary())}):")
    for path in service.list_secondary():
        click.echo(f"  {path}")


@cli.command()
@click.option("--platform", "-p", default=sys.platform, help="目标平台（默认当前系统）")
@click.pass_obj
def strategies(settings: Settings, platform: str) -> None:
    """按优先级列出当前平台使用的截图方式"""
    for index, strategy in enumerate(default_strategies(settings.capture, platform=platform), start=1):
        click.echo(f"{index}. {strategy.name} (超时 {strategy.timeout:g}s)")


@cli.command()
@click.pass_obj
def purge(settings: Settings) -> None:
    """清空截图目录中遗留的截图"""
    try:
        ScreenshotService.from_settings(settings)
    except Exception as e:
        click.echo(f"错误: {e}", err=True)
        sys.exit(1)
    click.echo(f"已清理: {settings.storage.primary_dir()}")
    click.echo(f"已清理: {settings.storage.secondary_dir()}")


if __name__ == "__main__":
    cli()
