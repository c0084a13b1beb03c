"""采集入口 — 抓取 RSS，保存新文章并逐条送入自动化管道"""

from __future__ import annotations

import logging

from ..models import Category
from ..pipeline import AutomationPipeline
from ..storage.base import CatalogRepository, SourceArticleRepository
from .rss import fetch_feed_articles

logger = logging.getLogger("newsflow.collect")


async def _load_categories(feeds: list[dict], catalog: CatalogRepository) -> dict[str, Category]:
    result: dict[str, Category] = {}
    for slug in {f.get("category") for f in feeds if f.get("category")}:
        category = await catalog.find_category_by_slug(slug)
        if category is not None:
            result[slug] = category
        else:
            logger.warning(f"[Collect] 未知分类 slug: {slug}")
    return result


async def ingest_feeds(
    config: dict,
    sources: SourceArticleRepository,
    catalog: CatalogRepository,
    pipeline: AutomationPipeline,
) -> int:
    """
    采集所有 feeds，按 URL 去重后写入源文章库，并为每篇新文章启动自动化。

    Returns:
        本次送入管道的文章数
    """
    collect_cfg = config.get("collect", {}) or {}
    feeds = collect_cfg.get("rss_feeds", [])
    max_age_hours = collect_cfg.get("max_age_hours", 48)
    max_per_run = collect_cfg.get("max_per_run", 20)

    categories = await _load_categories(feeds, catalog)
    articles = fetch_feed_articles(feeds, max_age_hours, categories)

    admitted = 0
    seen_urls: set[str] = set()
    for article in articles:
        if admitted >= max_per_run:
            break
        if article.source_url in seen_urls or await sources.exists_by_url(article.source_url):
            continue
        seen_urls.add(article.source_url)

        await sources.save(article)
        await pipeline.start_automation(article.id)
        admitted += 1

    logger.info(f"[Collect] 采集 {len(articles)} 条，新入队 {admitted} 条")
    return admitted
