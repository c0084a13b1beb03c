"""自动化管道编排 — 串联 AI 改写 → 站内发布 → 社交平台排期"""

from __future__ import annotations

import asyncio
import logging
import math
import re
import secrets
from datetime import datetime, timedelta
from typing import Callable, Protocol

from .config import AutomationSettings
from .errors import InvalidStateError, NoCategoriesError, NotFoundError
from .models import (
    ArticleStatus,
    Category,
    NotificationType,
    Page,
    PageMeta,
    QueueItem,
    QueueStage,
    RewriteResult,
    SocialStatus,
    SourceArticle,
    utcnow,
)
from .notifications import NotificationStore
from .storage.base import (
    AuthorRepository,
    CatalogRepository,
    PublicationService,
    QueueRepository,
    SourceArticleRepository,
)
from .tasks import TaskRunner

logger = logging.getLogger("newsflow.pipeline")

# 分类默认配图，未命中时使用 default
_CATEGORY_IMAGES = {
    "politics": "politics.jpg",
    "economy": "economy.jpg",
    "sports": "sports.jpg",
    "technology": "technology.jpg",
    "tech": "technology.jpg",
    "misc": "misc.jpg",
    "default": "default.jpg",
}

_MAX_PER_PAGE = 50


class Rewriter(Protocol):
    async def rewrite(self, title: str, content: str) -> RewriteResult | None: ...


def _slugify(text: str) -> str:
    """转换为 URL 友好的 slug（保留非拉丁字母）"""
    slug = text.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[\s_]+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def make_unique_slug(title: str) -> str:
    """标题 slug + 6 位随机十六进制后缀，无需查询已有 slug 即可避免冲突"""
    base = _slugify(title) or "article"
    return f"{base}-{secrets.token_hex(3)}"


class AutomationPipeline:
    def __init__(
        self,
        queue: QueueRepository,
        sources: SourceArticleRepository,
        catalog: CatalogRepository,
        authors: AuthorRepository,
        publisher: PublicationService,
        rewriter: Rewriter,
        notifications: NotificationStore,
        tasks: TaskRunner | None = None,
        settings: AutomationSettings | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._queue = queue
        self._sources = sources
        self._catalog = catalog
        self._authors = authors
        self._publisher = publisher
        self._rewriter = rewriter
        self._notifications = notifications
        self._tasks = tasks or TaskRunner()
        self._settings = settings or AutomationSettings()
        self._clock = clock

    @property
    def settings(self) -> AutomationSettings:
        return self._settings

    @property
    def tasks(self) -> TaskRunner:
        return self._tasks

    # ─── 入队 ────────────────────────────────────────────

    async def start_automation(self, source_article_id: str) -> QueueItem | None:
        """
        为审核通过的源文章启动自动化流程。

        已在队列中则直接返回已有条目（幂等，不算错误）。新条目的处理交给
        后台任务，调用方不会等待管道完成。入队本身失败时发出
        automation_error 通知，异常不会抛给调用方。
        """
        logger.info(f"[Automation] 启动管道，源文章: {source_article_id}")
        try:
            existing = await self._queue.find_by_source_article_id(source_article_id)
            if existing is not None:
                logger.info(f"[Automation] 文章已在队列中，阶段: {existing.stage.value}")
                return existing

            item = await self._queue.create(
                source_article_id,
                QueueStage.PENDING,
                self._settings.default_social_platform,
            )
            self._tasks.spawn(self.process_queue(item.id), name=f"process-queue-{item.id}")
            return item
        except Exception as exc:
            logger.error(f"[Automation] 启动失败: {exc}", exc_info=True)
            await self._notifications.create_notification(
                NotificationType.AUTOMATION_ERROR,
                "自动化启动失败",
                f"文章自动化启动失败: {exc}",
                {"source_article_id": source_article_id},
            )
            return None

    async def process_queue(self, queue_id: str) -> None:
        """
        依次执行三个阶段。任一阶段异常则中止后续阶段，条目置为 FAILED
        并记录 error_message；这里不发通知，失败条目在后台队列中可见并可手动重试。
        """
        try:
            await self.process_ai_rewrite(queue_id)
            await self.publish_to_platform(queue_id)
            await self.queue_for_social(queue_id)
            logger.info(f"[Automation] 管道完成: {queue_id}")
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            logger.error(f"[Automation] 管道失败 {queue_id}: {message}")
            await self._queue.update(queue_id, stage=QueueStage.FAILED, error_message=message)

    # ─── 阶段 1: AI 改写 ─────────────────────────────────

    async def process_ai_rewrite(self, queue_id: str) -> QueueItem:
        logger.info(f"[Automation] 阶段 1: AI 改写 {queue_id}")
        item = await self._queue.update(queue_id, stage=QueueStage.AI_PROCESSING)
        article = await self._get_source(item)

        title = article.rewritten_title or article.title
        excerpt = article.rewritten_excerpt or article.excerpt or ""
        content = article.full_content or excerpt

        # AI 失败不影响管道，沿用原文
        try:
            result = await asyncio.wait_for(
                self._rewriter.rewrite(title, content),
                timeout=self._settings.ai_timeout_seconds,
            )
            if result is not None:
                title = result.rewritten_title
                excerpt = result.rewritten_excerpt
                content = self.format_article_content(
                    article.full_content or excerpt, article.source_url
                )
        except Exception as exc:
            logger.warning(f"[Automation] AI 改写失败，使用原文: {str(exc) or type(exc).__name__}")

        return await self._queue.update(
            queue_id,
            stage=QueueStage.AI_COMPLETED,
            ai_rewritten_title=title,
            ai_rewritten_excerpt=excerpt[:self._settings.excerpt_max_length],
            ai_rewritten_content=content,
            ai_processed_at=self._clock(),
        )

    def format_article_content(self, content: str, source_url: str) -> str:
        """正文格式化钩子，默认原样返回，不注入来源署名"""
        return content

    # ─── 阶段 2: 站内发布 ────────────────────────────────

    async def publish_to_platform(self, queue_id: str) -> QueueItem:
        logger.info(f"[Automation] 阶段 2: 发布到站点 {queue_id}")
        item = await self._queue.update(queue_id, stage=QueueStage.PUBLISHING)

        # created_article_id 只写一次
        if item.created_article_id is not None:
            logger.info(f"[Automation] 已发布过文章 {item.created_article_id}，跳过创建")
            return await self._queue.update(queue_id, stage=QueueStage.PUBLISHED)

        article = await self._get_source(item)
        category = article.category

        title = item.ai_rewritten_title or article.title
        slug = make_unique_slug(title)
        image_url = article.image_url or self.default_image_url(
            category.slug if category else "default"
        )
        author = await self._authors.find_or_create_system_author(
            self._settings.system_author_email,
            self._settings.system_author_name,
        )
        if category is None:
            category = await self._get_default_category()

        now = self._clock()
        created = await asyncio.wait_for(
            self._publisher.create(
                title=title,
                slug=slug,
                excerpt=item.ai_rewritten_excerpt or article.excerpt or "",
                content=item.ai_rewritten_content or article.full_content or article.excerpt or "",
                image_url=image_url,
                category_id=category.id,
                author_id=author.id,
                status=ArticleStatus.PUBLISHED,
                published_at=now,
            ),
            timeout=self._settings.publish_timeout_seconds,
        )

        updated = await self._queue.update(
            queue_id,
            stage=QueueStage.PUBLISHED,
            created_article_id=created.id,
            published_at=now,
        )
        logger.info(f"[Automation] 已创建站内文章: {created.slug}")
        return updated

    def default_image_url(self, category_slug: str) -> str:
        image_name = _CATEGORY_IMAGES.get(category_slug, _CATEGORY_IMAGES["default"])
        return f"{self._settings.site_url}/images/categories/{image_name}"

    async def _get_default_category(self) -> Category:
        category = await self._catalog.find_category_by_slug(self._settings.default_category_slug)
        if category is None:
            category = await self._catalog.find_first_category()
        if category is None:
            raise NoCategoriesError()
        return category

    # ─── 阶段 3: 社交排期 ────────────────────────────────

    async def queue_for_social(self, queue_id: str) -> QueueItem:
        logger.info(f"[Automation] 阶段 3: 社交平台排期 {queue_id}")
        scheduled_at = self._clock() + timedelta(minutes=self._settings.social_delay_minutes)
        item = await self._queue.update(
            queue_id,
            stage=QueueStage.SOCIAL_PENDING,
            social_status=SocialStatus.PENDING,
            social_scheduled_at=scheduled_at,
        )
        logger.info(f"[Automation] 计划发帖时间: {scheduled_at.isoformat()}")
        return item

    # ─── 社交发帖回调 ────────────────────────────────────

    async def get_pending_social_posts(self, limit: int | None = None) -> list[QueueItem]:
        """只读：返回已到发帖时间的条目，不修改状态"""
        return await self._queue.find_due_for_social_posting(
            self._clock(), limit or self._settings.poll_limit
        )

    async def claim_social_post(self, queue_id: str) -> QueueItem | None:
        """发帖前认领条目，防止多个轮询方重复发帖；已被认领返回 None"""
        return await self._queue.claim_for_social_posting(queue_id, self._clock())

    async def release_social_claim(self, queue_id: str) -> QueueItem | None:
        """发帖被中断时把认领退回 SOCIAL_PENDING，保持原排期和重试计数"""
        item = await self._queue.find_by_id(queue_id)
        if item is None or item.stage != QueueStage.SOCIAL_POSTING:
            return item
        logger.warning(f"[Automation] 释放发帖认领: {queue_id}")
        return await self._queue.update(
            queue_id,
            stage=QueueStage.SOCIAL_PENDING,
            social_status=SocialStatus.PENDING,
            social_claimed_at=None,
        )

    async def release_stale_social_claims(self) -> int:
        """
        释放认领超过 social_claim_timeout_minutes 仍未回写结果的条目。
        发帖进程被强制终止时条目会停在 SOCIAL_POSTING，由下一轮轮询收回。
        """
        before = self._clock() - timedelta(minutes=self._settings.social_claim_timeout_minutes)
        stale = await self._queue.find_stale_social_claims(before, self._settings.poll_limit)
        for item in stale:
            await self.release_social_claim(item.id)
        return len(stale)

    async def mark_social_posted(self, queue_id: str, post_id: str) -> QueueItem | None:
        item = await self._queue.find_by_id(queue_id)
        if item is None:
            logger.warning(f"[Automation] 发帖成功回调找不到条目: {queue_id}")
            return None
        updated = await self._queue.update(
            queue_id,
            stage=QueueStage.COMPLETED,
            social_status=SocialStatus.POSTED,
            social_posted_at=self._clock(),
            social_post_id=post_id,
        )
        logger.info(f"[Automation] 社交平台发帖成功: {queue_id}")
        return updated

    async def mark_social_failed(self, queue_id: str, error_message: str) -> QueueItem | None:
        """
        记录发帖失败。未达到重试上限时重新排期，达到上限后置为 FAILED
        并发出一次 social_error 通知。条目不存在时静默返回。
        """
        item = await self._queue.find_by_id(queue_id)
        if item is None:
            return None
        if item.stage not in (QueueStage.SOCIAL_PENDING, QueueStage.SOCIAL_POSTING):
            logger.warning(f"[Automation] 忽略失败回调，条目 {queue_id} 处于 {item.stage.value}")
            return item

        retry_count = item.retry_count + 1
        max_retries = self._settings.max_social_retries

        if retry_count < max_retries:
            retry_at = self._clock() + timedelta(minutes=self._settings.social_retry_delay_minutes)
            logger.warning(
                f"[Automation] 发帖失败 ({retry_count}/{max_retries})，{retry_at.isoformat()} 重试: {error_message}"
            )
            return await self._queue.update(
                queue_id,
                stage=QueueStage.SOCIAL_PENDING,
                social_status=SocialStatus.PENDING,
                social_scheduled_at=retry_at,
                error_message=error_message,
                retry_count=retry_count,
            )

        updated = await self._queue.update(
            queue_id,
            stage=QueueStage.FAILED,
            social_status=SocialStatus.FAILED,
            error_message=error_message,
            retry_count=retry_count,
        )
        logger.error(f"[Automation] 发帖重试耗尽: {queue_id}")
        await self._notifications.create_notification(
            NotificationType.SOCIAL_ERROR,
            "社交平台发帖失败",
            f"文章发帖在 {max_retries} 次尝试后仍失败: {error_message}",
            {"queue_id": queue_id},
        )
        return updated

    # ─── 运营操作 ────────────────────────────────────────

    async def retry_automation(self, queue_id: str) -> QueueItem:
        """
        手动重试 FAILED 条目。

        已发布的条目直接回到社交排期（立即可发）；未发布的从头重新执行管道。

        Raises:
            NotFoundError: 条目不存在
            InvalidStateError: 条目不处于 FAILED
        """
        item = await self._queue.find_by_id(queue_id)
        if item is None:
            raise NotFoundError("QueueItem", queue_id)
        if item.stage != QueueStage.FAILED:
            raise InvalidStateError(queue_id, item.stage.value, "retry")

        if item.is_published:
            logger.info(f"[Automation] 重试社交发帖: {queue_id}")
            return await self._queue.update(
                queue_id,
                stage=QueueStage.SOCIAL_PENDING,
                social_status=SocialStatus.PENDING,
                social_scheduled_at=self._clock(),
                error_message=None,
                retry_count=0,
            )

        logger.info(f"[Automation] 从头重试管道: {queue_id}")
        updated = await self._queue.update(
            queue_id,
            stage=QueueStage.PENDING,
            error_message=None,
            retry_count=0,
        )
        self._tasks.spawn(self.process_queue(queue_id), name=f"retry-queue-{queue_id}")
        return updated

    async def get_queue(
        self,
        stage: QueueStage | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> Page[QueueItem]:
        page = max(1, page)
        per_page = min(_MAX_PER_PAGE, max(1, per_page))
        items, total = await self._queue.list(stage=stage, page=page, per_page=per_page)
        return Page(
            data=tuple(items),
            meta=PageMeta(
                current_page=page,
                total_pages=math.ceil(total / per_page),
                total_items=total,
                per_page=per_page,
            ),
        )

    async def _get_source(self, item: QueueItem) -> SourceArticle:
        article = await self._sources.find_by_id(item.source_article_id)
        if article is None:
            raise NotFoundError("SourceArticle", item.source_article_id)
        return article
