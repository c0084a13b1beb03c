"""系统通知 — 为运营后台记录错误与失败告警"""

from __future__ import annotations

import logging
import math
from datetime import timedelta
from typing import Any, Callable

from .models import Notification, Page, PageMeta, utcnow
from .storage.base import NotificationRepository

logger = logging.getLogger("newsflow.notifications")


class NotificationStore:
    def __init__(
        self,
        repository: NotificationRepository,
        clock: Callable = utcnow,
    ) -> None:
        self._repo = repository
        self._clock = clock

    async def create_notification(
        self,
        type: str,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> Notification | None:
        """
        创建通知。尽力而为：写入失败只记录日志，不向上抛出，
        避免告警本身拖垮触发它的管道。
        """
        try:
            notification = await self._repo.create(type, title, message, data)
        except Exception as exc:
            logger.error(f"[Notification] 创建失败: {exc}")
            return None
        logger.info(f"[Notification] 已创建: {type} - {title}")
        return notification

    async def get_unread_count(self) -> int:
        return await self._repo.count(unread_only=True)

    async def get_notifications(
        self,
        unread_only: bool = False,
        page: int = 1,
        per_page: int = 20,
    ) -> Page[Notification]:
        page = max(1, page)
        per_page = max(1, per_page)
        items, total = await self._repo.list(unread_only=unread_only, page=page, per_page=per_page)
        return Page(
            data=tuple(items),
            meta=PageMeta(
                current_page=page,
                total_pages=math.ceil(total / per_page),
                total_items=total,
                per_page=per_page,
            ),
        )

    async def mark_as_read(self, notification_id: str) -> None:
        await self._repo.update(notification_id, is_read=True)

    async def mark_all_as_read(self) -> None:
        count = await self._repo.mark_all_read()
        logger.debug(f"[Notification] 标记 {count} 条为已读")

    async def delete_notification(self, notification_id: str) -> None:
        await self._repo.delete(notification_id)

    async def cleanup_old_notifications(self, days_old: int = 30) -> int:
        """删除 days_old 天前且已读的通知；未读通知无论多旧都保留"""
        cutoff = self._clock() - timedelta(days=days_old)
        deleted = await self._repo.delete_read_before(cutoff)
        if deleted:
            logger.info(f"[Notification] 清理 {deleted} 条旧通知")
        return deleted
