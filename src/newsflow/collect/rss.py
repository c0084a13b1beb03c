"""RSS Feed 解析器"""

from __future__ import annotations

import hashlib
import html
import logging
import re
from datetime import datetime, timedelta, timezone

import feedparser

from ..models import Category, SourceArticle

logger = logging.getLogger("newsflow.collect")

_TAG_RE = re.compile(r"<[^>]*>")
_IMG_SRC_RE = re.compile(r"<img[^>]+src=[\"']([^\"']+)[\"']", re.IGNORECASE)


def _parse_time(entry) -> datetime:
    """从 feedparser entry 中提取发布时间"""
    for attr in ("published_parsed", "updated_parsed"):
        parsed = getattr(entry, attr, None)
        if parsed:
            return datetime(*parsed[:6], tzinfo=timezone.utc)
    return datetime.now(timezone.utc)


def _is_recent(published_at: datetime, max_age_hours: int) -> bool:
    cutoff = datetime.now(timezone.utc) - timedelta(hours=max_age_hours)
    return published_at >= cutoff


def _make_article_id(url: str) -> str:
    return hashlib.md5(url.encode()).hexdigest()[:12]


def _strip_html(text: str) -> str:
    return html.unescape(_TAG_RE.sub("", text)).strip()


def _extract_image(entry, raw_summary: str) -> str:
    """依次尝试 media:content、enclosure、正文中的 <img>"""
    for media in getattr(entry, "media_content", None) or []:
        if isinstance(media, dict) and media.get("url"):
            return media["url"]
    for enclosure in getattr(entry, "enclosures", None) or []:
        if isinstance(enclosure, dict) and str(enclosure.get("type", "")).startswith("image"):
            return enclosure.get("href") or enclosure.get("url") or ""
    match = _IMG_SRC_RE.search(raw_summary)
    return match.group(1) if match else ""


def fetch_feed_articles(
    feeds: list[dict],
    max_age_hours: int = 48,
    categories: dict[str, Category] | None = None,
) -> tuple[SourceArticle, ...]:
    """
    解析多个 RSS feeds，返回最近 max_age_hours 内的文章。

    Args:
        feeds: list of {"name": str, "url": str, "category": str}，category 为分类 slug
        max_age_hours: 只保留此时间窗口内的文章
        categories: slug -> Category，用于给文章挂上分类

    Returns:
        tuple[SourceArticle, ...] 按发布时间倒序
    """
    categories = categories or {}
    articles: list[SourceArticle] = []

    for feed_config in feeds:
        feed_url = feed_config["url"]
        feed_name = feed_config.get("name", feed_url)
        category = categories.get(feed_config.get("category", ""))

        try:
            parsed = feedparser.parse(feed_url)
        except Exception as exc:
            logger.warning(f"[RSS] 解析失败 {feed_name}: {exc}")
            continue

        for entry in parsed.entries:
            url = getattr(entry, "link", "")
            if not url:
                continue

            published_at = _parse_time(entry)
            if not _is_recent(published_at, max_age_hours):
                continue

            raw_summary = (
                getattr(entry, "summary", "")
                or getattr(entry, "description", "")
            )
            summary = _strip_html(raw_summary)
            if len(summary) > 500:
                summary = summary[:500] + "..."

            content_blocks = getattr(entry, "content", None) or []
            full_content = ""
            if content_blocks and isinstance(content_blocks[0], dict):
                full_content = content_blocks[0].get("value", "")

            articles.append(SourceArticle(
                id=_make_article_id(url),
                title=getattr(entry, "title", "").strip(),
                source_url=url,
                excerpt=summary,
                full_content=full_content,
                image_url=_extract_image(entry, raw_summary),
                category=category,
                source_name=feed_name,
                published_at=published_at,
            ))

    articles.sort(key=lambda a: a.published_at, reverse=True)
    return tuple(articles)
