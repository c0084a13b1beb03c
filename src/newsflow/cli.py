"""CLI 入口"""

from __future__ import annotations

import asyncio

import click
from rich.console import Console
from rich.table import Table

from .errors import NewsflowError
from .models import QueueStage

console = Console()


@click.group()
def cli():
    """newsflow RSS → AI 改写 → 发布 → 社交平台 自动化"""
    pass


@cli.command()
@click.option("--dry-run", is_flag=True, help="社交发帖只打印，不实际调用 webhook")
@click.option("--config", default="config.yaml", show_default=True, help="配置文件路径")
def schedule(dry_run: bool, config: str):
    """启动常驻调度器（采集 + 发帖轮询 + 通知清理）"""
    from .scheduler import run_scheduler

    console.print("[bold green]启动 newsflow 调度器...[/]")
    try:
        asyncio.run(run_scheduler(config_path=config, dry_run=dry_run))
    except KeyboardInterrupt:
        console.print("\n[yellow]调度器已停止[/]")


@cli.command()
@click.option("--config", default="config.yaml", show_default=True, help="配置文件路径")
def ingest(config: str):
    """执行一次采集，并等待入队文章完成改写与发布"""
    from .app import build_app
    from .collect.aggregator import ingest_feeds
    from .config import load_config

    async def _run():
        app = build_app(load_config(config), dry_run=True)
        admitted = await ingest_feeds(app.config, app.sources, app.catalog, app.pipeline)
        await app.tasks.drain()
        return admitted, await app.pipeline.get_queue(per_page=50)

    try:
        admitted, page = asyncio.run(_run())
    except Exception as exc:
        console.print(f"[bold red]采集失败:[/] {exc}")
        raise SystemExit(1)

    console.print(_queue_table(
        f"自动化队列（新入队 {admitted} 条，共 {page.meta.total_items} 条）", page.data
    ))


@cli.command("check-ai")
@click.option("--config", default="config.yaml", show_default=True, help="配置文件路径")
@click.option("--title", default="City council approves new budget", show_default=True)
def check_ai(config: str, title: str):
    """调用一次 AI 改写，检查 Provider 配置是否可用"""
    from .config import load_config
    from .rewrite import ArticleRewriter, build_provider

    async def _check():
        rewriter = ArticleRewriter(build_provider(load_config(config)))
        return await rewriter.rewrite(title, "")

    try:
        result = asyncio.run(_check())
    except Exception as exc:
        console.print(f"[red]AI 改写不可用:[/] {exc}")
        raise SystemExit(1)

    console.print(f"[green]标题:[/] {result.rewritten_title}")
    console.print(f"[green]摘要:[/] {result.rewritten_excerpt}")


def _queue_table(title: str, items) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="dim")
    table.add_column("阶段")
    table.add_column("标题")
    table.add_column("计划发帖")
    table.add_column("重试", justify="right")
    table.add_column("错误", style="red")
    for item in items:
        table.add_row(
            item.id,
            item.stage.value,
            (item.ai_rewritten_title or "")[:40],
            item.social_scheduled_at.isoformat()[:19] if item.social_scheduled_at else "",
            str(item.retry_count),
            item.error_message or "",
        )
    return table


@cli.command()
@click.option("--config", default="config.yaml", show_default=True, help="配置文件路径")
@click.option("--stage", type=click.Choice([s.value for s in QueueStage]), default=None, help="按阶段过滤")
@click.option("--page", default=1, show_default=True)
@click.option("--per-page", default=20, show_default=True)
def queue(config: str, stage: str | None, page: int, per_page: int):
    """查看自动化队列"""
    from .app import build_app
    from .config import load_config

    async def _list():
        app = build_app(load_config(config), dry_run=True)
        return await app.pipeline.get_queue(
            stage=QueueStage(stage) if stage else None, page=page, per_page=per_page
        )

    result = asyncio.run(_list())
    meta = result.meta
    console.print(_queue_table(
        f"自动化队列（第 {meta.current_page}/{max(1, meta.total_pages)} 页，共 {meta.total_items} 条）",
        result.data,
    ))


@cli.command()
@click.argument("queue_id")
@click.option("--config", default="config.yaml", show_default=True, help="配置文件路径")
def retry(queue_id: str, config: str):
    """手动重试 FAILED（或卡在 SOCIAL_POSTING）的条目"""
    from .app import build_app
    from .config import load_config

    async def _retry():
        app = build_app(load_config(config), dry_run=True)
        item = await app.pipeline.retry_automation(queue_id)
        await app.tasks.drain()
        return await app.queue.find_by_id(item.id)

    try:
        item = asyncio.run(_retry())
    except NewsflowError as exc:
        console.print(f"[bold red]重试失败:[/] {exc}")
        raise SystemExit(1)

    console.print(f"[green]已重试[/] {item.id} → {item.stage.value}")


@cli.command()
@click.option("--config", default="config.yaml", show_default=True, help="配置文件路径")
@click.option("--unread", is_flag=True, help="只显示未读")
@click.option("--mark-read", is_flag=True, help="显示后全部标记为已读")
def notifications(config: str, unread: bool, mark_read: bool):
    """查看系统通知"""
    from .app import build_app
    from .config import load_config

    async def _list():
        app = build_app(load_config(config), dry_run=True)
        unread_count = await app.notifications.get_unread_count()
        result = await app.notifications.get_notifications(unread_only=unread, per_page=50)
        if mark_read:
            await app.notifications.mark_all_as_read()
        return unread_count, result

    unread_count, result = asyncio.run(_list())
    if not result.data:
        console.print("[yellow]暂无通知[/]")
        return

    table = Table(title=f"系统通知（未读 {unread_count} 条）")
    table.add_column("时间")
    table.add_column("类型")
    table.add_column("标题")
    table.add_column("内容")
    table.add_column("已读", justify="center")
    for n in result.data:
        table.add_row(
            n.created_at.isoformat()[:19],
            n.type,
            n.title,
            n.message[:60],
            "✓" if n.is_read else "",
        )
    console.print(table)


if __name__ == "__main__":
    cli()
