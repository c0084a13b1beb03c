"""JSON 文件存储 — 队列、源文章、已发布文章、系统账号与通知落盘，进程重启后保留

每次操作都先从文件重新加载再写回，调度器与 CLI 可以共用同一个数据目录。
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import asdict, fields
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, TypeVar

from ..errors import StorageError
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
)
from .memory import (
    InMemoryAuthorRepository,
    InMemoryNotificationRepository,
    InMemoryPublicationService,
    InMemoryQueueRepository,
    InMemorySourceArticleRepository,
)

R = TypeVar("R")

_ENUM_FIELDS = {
    "stage": QueueStage,
    "social_platform": SocialPlatform,
    "social_status": SocialStatus,
    "status": ArticleStatus,
}
_DATETIME_FIELDS = {
    "created_at",
    "updated_at",
    "ai_processed_at",
    "published_at",
    "social_scheduled_at",
    "social_posted_at",
    "social_claimed_at",
}


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"无法序列化: {type(value).__name__}")


def _decode(cls: type, raw: dict) -> Any:
    names = {f.name for f in fields(cls)}
    kwargs = {}
    for key, value in raw.items():
        if key not in names:
            continue
        if value is not None:
            if key in _DATETIME_FIELDS:
                value = datetime.fromisoformat(value)
            elif key in _ENUM_FIELDS:
                value = _ENUM_FIELDS[key](value)
            elif key == "category":
                value = Category(**value)
        kwargs[key] = value
    return cls(**kwargs)


class JsonTable:
    """一个 JSON 数组文件，元素为某个 dataclass 的记录"""

    def __init__(self, path: Path, record_type: type, key: str) -> None:
        self._path = Path(path)
        self._type = record_type
        self._key = key

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            rows = json.loads(self._path.read_text(encoding="utf-8"))
            records = [_decode(self._type, row) for row in rows]
        except (json.JSONDecodeError, AttributeError, TypeError, ValueError) as exc:
            raise StorageError(f"存储文件损坏: {self._path}: {exc}") from exc
        return {getattr(r, self._key): r for r in records}

    def save(self, records: Iterable[Any]) -> None:
        """先写临时文件再替换，避免中途退出留下半个文件"""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(".tmp")
        payload = [asdict(r) for r in records]
        tmp.write_text(
            json.dumps(payload, ensure_ascii=False, indent=2, default=_encode),
            encoding="utf-8",
        )
        tmp.replace(self._path)


class _JsonBacked:
    """把内存仓库的字典换成文件内容：读操作先加载，写操作加载后写回"""

    _items_attr = "_items"

    def _bind(self, path: Path, record_type: type, key: str) -> None:
        self._table = JsonTable(path, record_type, key)
        self._io_lock = asyncio.Lock()

    def _reload(self) -> None:
        setattr(self, self._items_attr, self._table.load())

    async def _read(self, op: Callable[..., Awaitable[R]], *args: Any, **kwargs: Any) -> R:
        async with self._io_lock:
            self._reload()
            return await op(*args, **kwargs)

    async def _write(self, op: Callable[..., Awaitable[R]], *args: Any, **kwargs: Any) -> R:
        async with self._io_lock:
            self._reload()
            result = await op(*args, **kwargs)
            self._table.save(getattr(self, self._items_attr).values())
            return result


class JsonQueueRepository(_JsonBacked, InMemoryQueueRepository):
    def __init__(self, path: Path) -> None:
        super().__init__()
        self._bind(path, QueueItem, "id")

    async def find_by_id(self, queue_id):
        return await self._read(super().find_by_id, queue_id)

    async def find_by_source_article_id(self, source_article_id):
        return await self._read(super().find_by_source_article_id, source_article_id)

    async def create(self, source_article_id, initial_stage, social_platform):
        return await self._write(super().create, source_article_id, initial_stage, social_platform)

    async def update(self, queue_id, **patch):
        return await self._write(super().update, queue_id, **patch)

    async def find_due_for_social_posting(self, now, limit=10):
        return await self._read(super().find_due_for_social_posting, now, limit)

    async def claim_for_social_posting(self, queue_id, now=None):
        return await self._write(super().claim_for_social_posting, queue_id, now)

    async def find_stale_social_claims(self, before, limit=10):
        return await self._read(super().find_stale_social_claims, before, limit)

    async def list(self, stage=None, page=1, per_page=20):
        return await self._read(super().list, stage, page, per_page)


class JsonNotificationRepository(_JsonBacked, InMemoryNotificationRepository):
    def __init__(self, path: Path) -> None:
        super().__init__()
        self._bind(path, Notification, "id")

    async def create(self, type, title, message, data=None):
        return await self._write(super().create, type, title, message, data)

    async def add(self, notification):
        return await self._write(super().add, notification)

    async def count(self, unread_only=False):
        return await self._read(super().count, unread_only)

    async def list(self, unread_only=False, page=1, per_page=20):
        return await self._read(super().list, unread_only, page, per_page)

    async def update(self, notification_id, **patch):
        return await self._write(super().update, notification_id, **patch)

    async def mark_all_read(self):
        return await self._write(super().mark_all_read)

    async def delete(self, notification_id):
        return await self._write(super().delete, notification_id)

    async def delete_read_before(self, cutoff):
        return await self._write(super().delete_read_before, cutoff)


class JsonSourceArticleRepository(_JsonBacked, InMemorySourceArticleRepository):
    def __init__(self, path: Path) -> None:
        super().__init__()
        self._bind(path, SourceArticle, "id")

    async def find_by_id(self, article_id):
        return await self._read(super().find_by_id, article_id)

    async def exists_by_url(self, url):
        return await self._read(super().exists_by_url, url)

    async def save(self, article):
        return await self._write(super().save, article)


class JsonAuthorRepository(_JsonBacked, InMemoryAuthorRepository):
    _items_attr = "_authors"

    def __init__(self, path: Path) -> None:
        super().__init__()
        self._bind(path, Author, "email")

    async def find_or_create_system_author(self, email, name):
        return await self._write(super().find_or_create_system_author, email, name)


class JsonPublicationService(_JsonBacked, InMemoryPublicationService):
    _items_attr = "_by_slug"

    def __init__(self, path: Path) -> None:
        super().__init__()
        self._bind(path, PublishedArticle, "slug")

    @property
    def articles(self) -> tuple[PublishedArticle, ...]:
        return tuple(self._table.load().values())

    async def find_by_id(self, article_id):
        return await self._read(super().find_by_id, article_id)

    async def create(self, **fields_):
        return await self._write(super().create, **fields_)


def json_repositories(data_dir: str | Path) -> dict[str, Any]:
    """在 data_dir 下构建全部文件仓库，键名与 build_app 的参数一致"""
    root = Path(data_dir)
    return {
        "queue": JsonQueueRepository(root / "queue.json"),
        "sources": JsonSourceArticleRepository(root / "sources.json"),
        "authors": JsonAuthorRepository(root / "authors.json"),
        "publisher": JsonPublicationService(root / "articles.json"),
        "notifications": JsonNotificationRepository(root / "notifications.json"),
    }
