"""社交发帖调度 — 轮询到期条目，认领后发帖，并把结果回写管道"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from ..models import QueueItem, SocialPostPayload
from ..pipeline import AutomationPipeline
from ..storage.base import SourceArticleRepository
from .base import SocialPoster

logger = logging.getLogger("newsflow.social")

_DEFAULT_CATEGORY_NAME = "News"
_DEFAULT_CATEGORY_SLUG = "news"


@dataclass(frozen=True)
class DispatchSummary:
    posted: int = 0
    failed: int = 0
    skipped: int = 0


class SocialDispatcher:
    def __init__(
        self,
        pipeline: AutomationPipeline,
        sources: SourceArticleRepository,
        poster: SocialPoster,
    ) -> None:
        self._pipeline = pipeline
        self._sources = sources
        self._poster = poster

    async def build_payload(self, item: QueueItem) -> SocialPostPayload:
        article = await self._sources.find_by_id(item.source_article_id)
        category = article.category if article else None
        site_url = self._pipeline.settings.site_url
        return SocialPostPayload(
            queue_id=item.id,
            article_id=item.created_article_id,
            title=item.ai_rewritten_title or (article.title if article else ""),
            excerpt=item.ai_rewritten_excerpt or (article.excerpt if article else ""),
            image_url=article.image_url if article else "",
            category=category.name if category else _DEFAULT_CATEGORY_NAME,
            category_slug=category.slug if category else _DEFAULT_CATEGORY_SLUG,
            article_url=f"{site_url}/article/{item.created_article_id}",
            platform=item.social_platform,
        )

    async def dispatch_due(self) -> DispatchSummary:
        """
        执行一轮发帖。

        单条失败只影响该条目（交给 mark_social_failed 处理重试），不会中断本轮其他条目。
        """
        await self._pipeline.release_stale_social_claims()

        posted = failed = skipped = 0
        for item in await self._pipeline.get_pending_social_posts():
            claimed = await self._pipeline.claim_social_post(item.id)
            if claimed is None:
                skipped += 1
                continue

            try:
                payload = await self.build_payload(claimed)
                post_id = await self._poster.post(payload)
            except asyncio.CancelledError:
                await self._pipeline.release_social_claim(claimed.id)
                raise
            except Exception as exc:
                failed += 1
                await self._pipeline.mark_social_failed(claimed.id, str(exc) or type(exc).__name__)
                continue

            await self._pipeline.mark_social_posted(claimed.id, post_id)
            posted += 1

        if posted or failed or skipped:
            logger.info(f"[Social] 本轮发帖: 成功 {posted}，失败 {failed}，跳过 {skipped}")
        return DispatchSummary(posted=posted, failed=failed, skipped=skipped)
