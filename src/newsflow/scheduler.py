"""调度器 — 常驻进程：定时采集、轮询发帖、每日清理通知"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

from .app import App, build_app
from .collect.aggregator import ingest_feeds
from .config import load_config

logger = logging.getLogger("newsflow.scheduler")

# ─── 默认配置 ────────────────────────────────────────────
DEFAULT_POLL_INTERVAL_SECONDS = 60
DEFAULT_INGEST_INTERVAL_MINUTES = 15
DEFAULT_CLEANUP_DAYS = 30


def setup_logging(log_dir: Path) -> None:
    """配置日志输出到文件和控制台"""
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "newsflow.log"

    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setFormatter(formatter)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)

    root_logger = logging.getLogger("newsflow")
    root_logger.setLevel(logging.INFO)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(stream_handler)


def _is_due(last_run: datetime | None, now: datetime, interval: timedelta) -> bool:
    return last_run is None or now - last_run >= interval


async def run_cycle(
    app: App,
    now: datetime,
    last_ingest: datetime | None,
    last_cleanup: datetime | None,
    ingest_interval: timedelta,
    cleanup_days: int,
) -> tuple[datetime | None, datetime | None]:
    """
    执行一轮调度：按需采集、发帖、清理。
    各步骤互相独立，单步失败只记录日志。返回更新后的 (last_ingest, last_cleanup)。
    """
    if _is_due(last_ingest, now, ingest_interval):
        try:
            await ingest_feeds(app.config, app.sources, app.catalog, app.pipeline)
            last_ingest = now
        except Exception as exc:
            logger.error(f"采集失败: {exc}", exc_info=True)

    try:
        await app.dispatcher.dispatch_due()
    except Exception as exc:
        logger.error(f"发帖轮询失败: {exc}", exc_info=True)

    if _is_due(last_cleanup, now, timedelta(days=1)):
        try:
            await app.notifications.cleanup_old_notifications(cleanup_days)
            last_cleanup = now
        except Exception as exc:
            logger.error(f"通知清理失败: {exc}", exc_info=True)

    return last_ingest, last_cleanup


async def run_scheduler(config_path: str = "config.yaml", dry_run: bool = False) -> None:
    """
    调度器主循环 — 永不退出。

    每 poll_interval_seconds 轮询一次到期发帖，按 ingest_interval_minutes 采集 RSS，
    每天清理一次旧通知。单轮失败不影响后续调度。
    """
    config = load_config(config_path)
    schedule_cfg = config.get("schedule", {}) or {}
    output_cfg = config.get("output", {}) or {}

    poll_interval = int(schedule_cfg.get("poll_interval_seconds", DEFAULT_POLL_INTERVAL_SECONDS))
    ingest_interval = timedelta(
        minutes=int(schedule_cfg.get("ingest_interval_minutes", DEFAULT_INGEST_INTERVAL_MINUTES))
    )
    cleanup_days = int(schedule_cfg.get("notification_cleanup_days", DEFAULT_CLEANUP_DAYS))

    setup_logging(Path(output_cfg.get("log_dir", "./data/logs")))
    app = build_app(config, dry_run=dry_run)

    logger.info("═" * 50)
    logger.info("newsflow 调度器启动")
    logger.info(f"  发帖轮询: 每 {poll_interval} 秒")
    logger.info(f"  RSS 采集: 每 {ingest_interval.total_seconds() / 60:.0f} 分钟")
    logger.info(f"  Dry-run:  {dry_run}")
    logger.info("═" * 50)

    last_ingest: datetime | None = None
    last_cleanup: datetime | None = None

    try:
        while True:
            now = datetime.now(timezone.utc)
            last_ingest, last_cleanup = await run_cycle(
                app, now, last_ingest, last_cleanup, ingest_interval, cleanup_days
            )
            await asyncio.sleep(poll_interval)
    finally:
        await app.tasks.drain()
