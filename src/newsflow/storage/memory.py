"""内存存储实现 — 单进程运行与测试使用，进程退出即丢失"""

from __future__ import annotations

import asyncio
import hashlib
import secrets
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Any

from ..errors import NotFoundError
from ..models import (
    ArticleStatus,
    Author,
    Category,
    Notification,
    PublishedArticle,
    QueueItem,
    QueueStage,
    SocialPlatform,
    SocialStatus,
    SourceArticle,
    utcnow,
)


def _new_id() -> str:
    return uuid.uuid4().hex


def _paginate(items: list, page: int, per_page: int) -> list:
    start = (page - 1) * per_page
    return items[start:start + per_page]


class InMemoryQueueRepository:
    def __init__(self) -> None:
        self._items: dict[str, QueueItem] = {}
        self._lock = asyncio.Lock()

    async def find_by_id(self, queue_id: str) -> QueueItem | None:
        return self._items.get(queue_id)

    def _by_source(self, source_article_id: str) -> QueueItem | None:
        for item in self._items.values():
            if item.source_article_id == source_article_id:
                return item
        return None

    async def find_by_source_article_id(self, source_article_id: str) -> QueueItem | None:
        return self._by_source(source_article_id)

    async def create(
        self,
        source_article_id: str,
        initial_stage: QueueStage,
        social_platform: SocialPlatform,
    ) -> QueueItem:
        async with self._lock:
            # 模拟数据库唯一约束
            if self._by_source(source_article_id) is not None:
                raise ValueError(f"Queue item already exists for source article {source_article_id}")
            item = QueueItem(
                id=_new_id(),
                source_article_id=source_article_id,
                stage=initial_stage,
                social_platform=social_platform,
            )
            self._items[item.id] = item
            return item

    async def update(self, queue_id: str, **patch: Any) -> QueueItem:
        async with self._lock:
            item = self._items.get(queue_id)
            if item is None:
                raise NotFoundError("QueueItem", queue_id)
            updated = replace(item, updated_at=utcnow(), **patch)
            self._items[queue_id] = updated
            return updated

    async def find_due_for_social_posting(self, now: datetime, limit: int = 10) -> list[QueueItem]:
        due = [
            item for item in self._items.values()
            if item.stage == QueueStage.SOCIAL_PENDING
            and item.social_status == SocialStatus.PENDING
            and item.social_scheduled_at is not None
            and item.social_scheduled_at <= now
        ]
        return due[:limit]

    async def claim_for_social_posting(
        self, queue_id: str, now: datetime | None = None
    ) -> QueueItem | None:
        async with self._lock:
            item = self._items.get(queue_id)
            if (
                item is None
                or item.stage != QueueStage.SOCIAL_PENDING
                or item.social_status != SocialStatus.PENDING
            ):
                return None
            claimed = replace(
                item,
                stage=QueueStage.SOCIAL_POSTING,
                social_status=SocialStatus.PROCESSING,
                social_claimed_at=now or utcnow(),
                updated_at=utcnow(),
            )
            self._items[queue_id] = claimed
            return claimed

    async def find_stale_social_claims(self, before: datetime, limit: int = 10) -> list[QueueItem]:
        stale = [
            item for item in self._items.values()
            if item.stage == QueueStage.SOCIAL_POSTING
            and (item.social_claimed_at is None or item.social_claimed_at < before)
        ]
        return stale[:limit]

    async def list(
        self,
        stage: QueueStage | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[list[QueueItem], int]:
        items = [i for i in self._items.values() if stage is None or i.stage == stage]
        items.sort(key=lambda i: i.created_at, reverse=True)
        return _paginate(items, page, per_page), len(items)


class InMemoryNotificationRepository:
    def __init__(self) -> None:
        self._items: dict[str, Notification] = {}
        self._lock = asyncio.Lock()

    async def create(
        self,
        type: str,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> Notification:
        notification = Notification(id=_new_id(), type=type, title=title, message=message, data=data)
        async with self._lock:
            self._items[notification.id] = notification
        return notification

    async def add(self, notification: Notification) -> Notification:
        """直接写入完整记录（导入历史数据或测试构造旧通知时使用）"""
        async with self._lock:
            self._items[notification.id] = notification
        return notification

    async def count(self, unread_only: bool = False) -> int:
        return sum(1 for n in self._items.values() if not unread_only or not n.is_read)

    async def list(
        self,
        unread_only: bool = False,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[list[Notification], int]:
        items = [n for n in self._items.values() if not unread_only or not n.is_read]
        items.sort(key=lambda n: n.created_at, reverse=True)
        return _paginate(items, page, per_page), len(items)

    async def update(self, notification_id: str, **patch: Any) -> Notification:
        async with self._lock:
            notification = self._items.get(notification_id)
            if notification is None:
                raise NotFoundError("Notification", notification_id)
            updated = replace(notification, **patch)
            self._items[notification_id] = updated
            return updated

    async def mark_all_read(self) -> int:
        async with self._lock:
            unread = [n for n in self._items.values() if not n.is_read]
            for n in unread:
                self._items[n.id] = replace(n, is_read=True)
            return len(unread)

    async def delete(self, notification_id: str) -> None:
        async with self._lock:
            if self._items.pop(notification_id, None) is None:
                raise NotFoundError("Notification", notification_id)

    async def delete_read_before(self, cutoff: datetime) -> int:
        async with self._lock:
            stale = [n.id for n in self._items.values() if n.is_read and n.created_at < cutoff]
            for notification_id in stale:
                del self._items[notification_id]
            return len(stale)


class InMemorySourceArticleRepository:
    def __init__(self, articles: list[SourceArticle] | None = None) -> None:
        self._items: dict[str, SourceArticle] = {a.id: a for a in articles or []}

    async def find_by_id(self, article_id: str) -> SourceArticle | None:
        return self._items.get(article_id)

    async def exists_by_url(self, url: str) -> bool:
        return any(a.source_url == url for a in self._items.values())

    async def save(self, article: SourceArticle) -> SourceArticle:
        self._items[article.id] = article
        return article


class InMemoryCatalogRepository:
    def __init__(self, categories: list[Category] | None = None) -> None:
        # 保持插入顺序，find_first_category 返回最早加入的分类
        self._categories: list[Category] = list(categories or [])

    def add(self, category: Category) -> None:
        self._categories.append(category)

    async def find_category_by_slug(self, slug: str) -> Category | None:
        for category in self._categories:
            if category.slug == slug:
                return category
        return None

    async def find_first_category(self) -> Category | None:
        return self._categories[0] if self._categories else None


class InMemoryAuthorRepository:
    def __init__(self) -> None:
        self._authors: dict[str, Author] = {}
        self._lock = asyncio.Lock()

    async def find_or_create_system_author(self, email: str, name: str) -> Author:
        async with self._lock:
            author = self._authors.get(email)
            if author is None:
                # 随机密码，仅占位，不会被用于登录
                password_hash = hashlib.sha256(secrets.token_hex(32).encode()).hexdigest()
                author = Author(id=_new_id(), email=email, name=name, password_hash=password_hash)
                self._authors[email] = author
            return author


class InMemoryPublicationService:
    def __init__(self) -> None:
        self._by_slug: dict[str, PublishedArticle] = {}

    @property
    def articles(self) -> tuple[PublishedArticle, ...]:
        return tuple(self._by_slug.values())

    async def find_by_id(self, article_id: str) -> PublishedArticle | None:
        for article in self._by_slug.values():
            if article.id == article_id:
                return article
        return None

    async def create(
        self,
        *,
        title: str,
        slug: str,
        excerpt: str,
        content: str,
        image_url: str,
        category_id: str,
        author_id: str,
        status: ArticleStatus,
        published_at: datetime | None,
    ) -> PublishedArticle:
        existing = self._by_slug.get(slug)
        if existing is not None:
            return existing
        article = PublishedArticle(
            id=_new_id(),
            slug=slug,
            title=title,
            excerpt=excerpt,
            content=content,
            image_url=image_url,
            category_id=category_id,
            author_id=author_id,
            status=status,
            published_at=published_at,
        )
        self._by_slug[slug] = article
        return article
