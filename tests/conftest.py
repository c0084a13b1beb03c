"""共享测试夹具 — 内存存储 + 可控时钟装配出的完整管道"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from newsflow.config import AutomationSettings
from newsflow.models import Category, RewriteResult, SourceArticle
from newsflow.notifications import NotificationStore
from newsflow.pipeline import AutomationPipeline
from newsflow.storage import (
    InMemoryAuthorRepository,
    InMemoryCatalogRepository,
    InMemoryNotificationRepository,
    InMemoryPublicationService,
    InMemoryQueueRepository,
    InMemorySourceArticleRepository,
)
from newsflow.tasks import TaskRunner


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


TECH = Category(id="cat-tech", name="Technology", slug="tech")
MISC = Category(id="cat-misc", name="Misc", slug="misc")


def make_source(article_id: str = "A1", **kwargs) -> SourceArticle:
    defaults = dict(
        id=article_id,
        title="Chipmaker unveils new processor",
        source_url=f"https://example.com/{article_id}",
        excerpt="A short excerpt about the processor.",
        full_content="Full body of the article about the processor.",
        category=TECH,
        source_name="Example Feed",
    )
    defaults.update(kwargs)
    return SourceArticle(**defaults)


@dataclass
class Harness:
    pipeline: AutomationPipeline
    queue: InMemoryQueueRepository
    sources: InMemorySourceArticleRepository
    catalog: InMemoryCatalogRepository
    authors: InMemoryAuthorRepository
    publisher: InMemoryPublicationService
    notification_repo: InMemoryNotificationRepository
    notifications: NotificationStore
    rewriter: AsyncMock
    tasks: TaskRunner
    clock: FakeClock


def build_harness(
    categories: list[Category] | None = None,
    sources: list[SourceArticle] | None = None,
    settings: AutomationSettings | None = None,
) -> Harness:
    clock = FakeClock()
    queue = InMemoryQueueRepository()
    source_repo = InMemorySourceArticleRepository(sources if sources is not None else [make_source()])
    catalog = InMemoryCatalogRepository([MISC, TECH] if categories is None else categories)
    authors = InMemoryAuthorRepository()
    publisher = InMemoryPublicationService()
    notification_repo = InMemoryNotificationRepository()
    notifications = NotificationStore(notification_repo, clock=clock)
    rewriter = AsyncMock()
    rewriter.rewrite = AsyncMock(return_value=RewriteResult(
        rewritten_title="Quantum Chips Arrive Early",
        rewritten_excerpt="The new processor ships months ahead of schedule.",
    ))
    tasks = TaskRunner()
    pipeline = AutomationPipeline(
        queue=queue,
        sources=source_repo,
        catalog=catalog,
        authors=authors,
        publisher=publisher,
        rewriter=rewriter,
        notifications=notifications,
        tasks=tasks,
        settings=settings or AutomationSettings(site_url="https://news.example.com"),
        clock=clock,
    )
    return Harness(
        pipeline=pipeline,
        queue=queue,
        sources=source_repo,
        catalog=catalog,
        authors=authors,
        publisher=publisher,
        notification_repo=notification_repo,
        notifications=notifications,
        rewriter=rewriter,
        tasks=tasks,
        clock=clock,
    )


@pytest.fixture
def harness() -> Harness:
    return build_harness()
