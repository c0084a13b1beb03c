"""应用装配 — 进程启动时构建一次，之后以引用传递"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .config import load_settings
from .errors import ConfigurationError
from .models import Category
from .notifications import NotificationStore
from .pipeline import AutomationPipeline
from .rewrite import ArticleRewriter, build_provider
from .social import SocialDispatcher, WebhookSocialPoster
from .storage import (
    CatalogRepository,
    InMemoryAuthorRepository,
    InMemoryCatalogRepository,
    InMemoryNotificationRepository,
    InMemoryPublicationService,
    InMemoryQueueRepository,
    InMemorySourceArticleRepository,
    PublicationService,
    QueueRepository,
    SourceArticleRepository,
    json_repositories,
)
from .tasks import TaskRunner

DEFAULT_DATA_DIR = "./data/store"


@dataclass
class App:
    config: dict
    pipeline: AutomationPipeline
    dispatcher: SocialDispatcher
    notifications: NotificationStore
    queue: QueueRepository
    sources: SourceArticleRepository
    catalog: CatalogRepository
    publisher: PublicationService
    tasks: TaskRunner


def _load_categories(config: dict) -> list[Category]:
    return [
        Category(id=str(c.get("id", c["slug"])), name=c.get("name", c["slug"]), slug=c["slug"])
        for c in config.get("categories", [])
    ]


def _build_repositories(config: dict) -> dict[str, Any]:
    """storage.backend: json（默认，落盘到 storage.data_dir）或 memory（进程退出即丢失）"""
    storage_cfg = config.get("storage", {}) or {}
    backend = storage_cfg.get("backend", "json")
    if backend == "json":
        return json_repositories(storage_cfg.get("data_dir", DEFAULT_DATA_DIR))
    if backend == "memory":
        return {
            "queue": InMemoryQueueRepository(),
            "sources": InMemorySourceArticleRepository(),
            "authors": InMemoryAuthorRepository(),
            "publisher": InMemoryPublicationService(),
            "notifications": InMemoryNotificationRepository(),
        }
    raise ConfigurationError(f"未知的 storage.backend: {backend}")


def build_app(config: dict, dry_run: bool = False) -> App:
    settings = load_settings(config)
    tasks = TaskRunner()
    repos = _build_repositories(config)

    catalog = InMemoryCatalogRepository(_load_categories(config))
    notifications = NotificationStore(repos["notifications"])

    pipeline = AutomationPipeline(
        queue=repos["queue"],
        sources=repos["sources"],
        catalog=catalog,
        authors=repos["authors"],
        publisher=repos["publisher"],
        rewriter=ArticleRewriter(build_provider(config)),
        notifications=notifications,
        tasks=tasks,
        settings=settings,
    )

    social_cfg = config.get("social", {}) or {}
    poster = WebhookSocialPoster(
        webhook_url=social_cfg.get("webhook_url", "http://localhost:5678/webhook/social"),
        api_key=social_cfg.get("api_key", ""),
        timeout=float(social_cfg.get("timeout", 30.0)),
        dry_run=dry_run or social_cfg.get("dry_run", False),
    )

    return App(
        config=config,
        pipeline=pipeline,
        dispatcher=SocialDispatcher(pipeline, repos["sources"], poster),
        notifications=notifications,
        queue=repos["queue"],
        sources=repos["sources"],
        catalog=catalog,
        publisher=repos["publisher"],
        tasks=tasks,
    )
