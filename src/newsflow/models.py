"""核心数据模型 — 全部使用 frozen dataclass 保证不可变性，更新通过 dataclasses.replace"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QueueStage(str, Enum):
    PENDING = "PENDING"
    AI_PROCESSING = "AI_PROCESSING"
    AI_COMPLETED = "AI_COMPLETED"
    PUBLISHING = "PUBLISHING"
    PUBLISHED = "PUBLISHED"
    SOCIAL_PENDING = "SOCIAL_PENDING"
    SOCIAL_POSTING = "SOCIAL_POSTING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (QueueStage.COMPLETED, QueueStage.FAILED)


class SocialStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    POSTED = "POSTED"
    FAILED = "FAILED"


class SocialPlatform(str, Enum):
    FACEBOOK = "FACEBOOK"
    TWITTER = "TWITTER"
    TELEGRAM = "TELEGRAM"


class ArticleStatus(str, Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"


class NotificationType:
    """常用通知类型（type 字段本身是自由字符串）"""
    AUTOMATION_ERROR = "automation_error"
    SOCIAL_ERROR = "social_error"


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    slug: str


@dataclass(frozen=True)
class Author:
    id: str
    email: str
    name: str
    role: str = "ADMIN"
    password_hash: str = ""


@dataclass(frozen=True)
class SourceArticle:
    """采集到的外部文章（RSS 条目）"""
    id: str
    title: str
    source_url: str
    excerpt: str = ""
    full_content: str = ""
    image_url: str = ""
    rewritten_title: str = ""        # 人工审核时预先改写的标题
    rewritten_excerpt: str = ""
    category: Category | None = None
    source_name: str = ""
    published_at: datetime | None = None


@dataclass(frozen=True)
class RewriteResult:
    """AI 改写结果"""
    rewritten_title: str
    rewritten_excerpt: str


@dataclass(frozen=True)
class PublishedArticle:
    id: str
    slug: str
    title: str
    excerpt: str
    content: str
    image_url: str
    category_id: str
    author_id: str
    status: ArticleStatus
    published_at: datetime | None


@dataclass(frozen=True)
class QueueItem:
    """一篇源文章在自动化管道中的一次运行"""
    id: str
    source_article_id: str
    stage: QueueStage = QueueStage.PENDING
    social_platform: SocialPlatform = SocialPlatform.FACEBOOK
    social_status: SocialStatus | None = None
    ai_rewritten_title: str | None = None
    ai_rewritten_excerpt: str | None = None     # <= 500 字
    ai_rewritten_content: str | None = None
    ai_processed_at: datetime | None = None
    created_article_id: str | None = None       # 设置后不再清空
    published_at: datetime | None = None
    social_scheduled_at: datetime | None = None  # 仅在 SOCIAL_PENDING 时有意义
    social_posted_at: datetime | None = None
    social_post_id: str | None = None
    social_claimed_at: datetime | None = None   # 仅在 SOCIAL_POSTING 时有意义
    error_message: str | None = None
    retry_count: int = 0
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_published(self) -> bool:
        return self.created_article_id is not None


@dataclass(frozen=True)
class Notification:
    """面向运营人员的系统通知"""
    id: str
    type: str
    title: str
    message: str
    data: dict[str, Any] | None = None
    is_read: bool = False
    created_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class SocialPostPayload:
    """交给社交发布方的待发帖内容"""
    queue_id: str
    article_id: str | None
    title: str
    excerpt: str
    image_url: str
    category: str
    category_slug: str
    article_url: str
    platform: SocialPlatform

    def to_dict(self) -> dict[str, Any]:
        return {
            "queueId": self.queue_id,
            "articleId": self.article_id,
            "title": self.title,
            "excerpt": self.excerpt,
            "imageUrl": self.image_url,
            "category": self.category,
            "categorySlug": self.category_slug,
            "articleUrl": self.article_url,
            "platform": self.platform.value,
        }


@dataclass(frozen=True)
class PageMeta:
    current_page: int
    total_pages: int
    total_items: int
    per_page: int


@dataclass(frozen=True)
class Page(Generic[T]):
    """分页结果"""
    data: tuple[T, ...]
    meta: PageMeta
