"""持久化层 Protocol 定义 — 管道只依赖这些接口，不关心具体数据库"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

from ..models import (
    ArticleStatus,
    Author,
    Category,
    Notification,
    PublishedArticle,
    QueueItem,
    QueueStage,
    SocialPlatform,
    SourceArticle,
)


class QueueRepository(Protocol):
    async def find_by_id(self, queue_id: str) -> QueueItem | None: ...

    async def find_by_source_article_id(self, source_article_id: str) -> QueueItem | None: ...

    async def create(
        self,
        source_article_id: str,
        initial_stage: QueueStage,
        social_platform: SocialPlatform,
    ) -> QueueItem:
        """新建条目；同一 source_article_id 只允许一条"""
        ...

    async def update(self, queue_id: str, **patch: Any) -> QueueItem:
        """部分字段更新，id 不存在时抛出 NotFoundError"""
        ...

    async def find_due_for_social_posting(self, now: datetime, limit: int = 10) -> list[QueueItem]: ...

    async def claim_for_social_posting(
        self, queue_id: str, now: datetime | None = None
    ) -> QueueItem | None:
        """
        原子地把 SOCIAL_PENDING/PENDING 的条目置为 SOCIAL_POSTING/PROCESSING，并记录认领时间。
        条目已被其他轮询方认领或不存在时返回 None。
        """
        ...

    async def find_stale_social_claims(self, before: datetime, limit: int = 10) -> list[QueueItem]:
        """认领时间早于 before 仍停在 SOCIAL_POSTING 的条目"""
        ...

    async def list(
        self,
        stage: QueueStage | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[list[QueueItem], int]: ...


class NotificationRepository(Protocol):
    async def create(
        self,
        type: str,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> Notification: ...

    async def count(self, unread_only: bool = False) -> int: ...

    async def list(
        self,
        unread_only: bool = False,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[list[Notification], int]: ...

    async def update(self, notification_id: str, **patch: Any) -> Notification: ...

    async def mark_all_read(self) -> int: ...

    async def delete(self, notification_id: str) -> None: ...

    async def delete_read_before(self, cutoff: datetime) -> int: ...


class SourceArticleRepository(Protocol):
    async def find_by_id(self, article_id: str) -> SourceArticle | None: ...

    async def exists_by_url(self, url: str) -> bool: ...

    async def save(self, article: SourceArticle) -> SourceArticle: ...


class CatalogRepository(Protocol):
    async def find_category_by_slug(self, slug: str) -> Category | None: ...

    async def find_first_category(self) -> Category | None: ...


class AuthorRepository(Protocol):
    async def find_or_create_system_author(self, email: str, name: str) -> Author:
        """按 email 幂等地确保系统账号存在"""
        ...


class PublicationService(Protocol):
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
        """创建已发布文章；slug 唯一，重复 slug 返回已有文章"""
        ...
