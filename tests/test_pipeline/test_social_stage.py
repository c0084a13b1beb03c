"""社交发帖回调、重试策略与运营操作测试"""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from newsflow.errors import InvalidStateError, NotFoundError
from newsflow.models import NotificationType, QueueStage, SocialPlatform, SocialStatus


async def _social_pending(h, source_id: str = "A1"):
    """构造一个已发布并等待发帖的条目"""
    item = await h.queue.create(source_id, QueueStage.PENDING, SocialPlatform.FACEBOOK)
    return await h.queue.update(
        item.id,
        stage=QueueStage.SOCIAL_PENDING,
        social_status=SocialStatus.PENDING,
        social_scheduled_at=h.clock.now,
        created_article_id="article-1",
    )


class TestPendingSocialPosts:
    @pytest.mark.asyncio
    async def test_is_read_only(self, harness):
        item = await _social_pending(harness)
        first = await harness.pipeline.get_pending_social_posts()
        second = await harness.pipeline.get_pending_social_posts()
        assert first == second == [item]

    @pytest.mark.asyncio
    async def test_respects_limit(self, harness):
        for i in range(5):
            await _social_pending(harness, f"S{i}")
        assert len(await harness.pipeline.get_pending_social_posts(limit=3)) == 3

    @pytest.mark.asyncio
    async def test_claim_is_exclusive(self, harness):
        item = await _social_pending(harness)
        claimed = await harness.pipeline.claim_social_post(item.id)
        assert claimed.stage == QueueStage.SOCIAL_POSTING
        assert claimed.social_status == SocialStatus.PROCESSING
        assert await harness.pipeline.claim_social_post(item.id) is None
        assert await harness.pipeline.get_pending_social_posts() == []


class TestReleaseSocialClaim:
    @pytest.mark.asyncio
    async def test_returns_claim_to_pending(self, harness):
        item = await _social_pending(harness)
        await harness.queue.update(item.id, retry_count=1)
        await harness.pipeline.claim_social_post(item.id)

        released = await harness.pipeline.release_social_claim(item.id)

        assert released.stage == QueueStage.SOCIAL_PENDING
        assert released.social_status == SocialStatus.PENDING
        assert released.retry_count == 1
        assert released.social_scheduled_at == item.social_scheduled_at
        assert released.social_claimed_at is None

    @pytest.mark.asyncio
    async def test_claim_records_time(self, harness):
        item = await _social_pending(harness)
        claimed = await harness.pipeline.claim_social_post(item.id)
        assert claimed.social_claimed_at == harness.clock.now

    @pytest.mark.asyncio
    async def test_stale_claim_is_released_after_timeout(self, harness):
        item = await _social_pending(harness)
        await harness.pipeline.claim_social_post(item.id)

        harness.clock.advance(minutes=5)
        assert await harness.pipeline.release_stale_social_claims() == 0
        assert (await harness.queue.find_by_id(item.id)).stage == QueueStage.SOCIAL_POSTING

        harness.clock.advance(minutes=6)
        assert await harness.pipeline.release_stale_social_claims() == 1
        released = await harness.queue.find_by_id(item.id)
        assert released.stage == QueueStage.SOCIAL_PENDING
        assert [i.id for i in await harness.pipeline.get_pending_social_posts()] == [item.id]

    @pytest.mark.asyncio
    async def test_unclaimed_item_is_untouched(self, harness):
        item = await _social_pending(harness)
        assert await harness.pipeline.release_social_claim(item.id) == item
        assert await harness.pipeline.release_social_claim("missing") is None


class TestMarkSocialPosted:
    @pytest.mark.asyncio
    async def test_completes_item(self, harness):
        item = await _social_pending(harness)
        updated = await harness.pipeline.mark_social_posted(item.id, "fb_123")
        assert updated.stage == QueueStage.COMPLETED
        assert updated.social_status == SocialStatus.POSTED
        assert updated.social_post_id == "fb_123"
        assert updated.social_posted_at == harness.clock.now

    @pytest.mark.asyncio
    async def test_missing_item_is_noop(self, harness):
        assert await harness.pipeline.mark_social_posted("missing", "fb_1") is None


class TestMarkSocialFailed:
    @pytest.mark.asyncio
    async def test_first_failure_reschedules(self, harness):
        item = await _social_pending(harness)

        updated = await harness.pipeline.mark_social_failed(item.id, "rate limited")

        assert updated.stage == QueueStage.SOCIAL_PENDING
        assert updated.social_status == SocialStatus.PENDING
        assert updated.retry_count == 1
        assert updated.error_message == "rate limited"
        assert updated.social_scheduled_at == harness.clock.now + timedelta(minutes=5)
        assert await harness.notifications.get_unread_count() == 0

    @pytest.mark.asyncio
    async def test_failure_after_claim_reschedules(self, harness):
        item = await _social_pending(harness)
        await harness.pipeline.claim_social_post(item.id)
        updated = await harness.pipeline.mark_social_failed(item.id, "timeout")
        assert updated.stage == QueueStage.SOCIAL_PENDING
        assert updated.social_status == SocialStatus.PENDING

    @pytest.mark.asyncio
    async def test_third_failure_is_terminal_with_single_notification(self, harness):
        item = await _social_pending(harness)

        for _ in range(3):
            await harness.pipeline.mark_social_failed(item.id, "token expired")

        final = await harness.queue.find_by_id(item.id)
        assert final.stage == QueueStage.FAILED
        assert final.social_status == SocialStatus.FAILED
        assert final.retry_count == 3

        page = await harness.notifications.get_notifications()
        social_errors = [n for n in page.data if n.type == NotificationType.SOCIAL_ERROR]
        assert len(social_errors) == 1
        assert social_errors[0].data == {"queue_id": item.id}
        assert "token expired" in social_errors[0].message

    @pytest.mark.asyncio
    async def test_failure_on_terminal_item_is_ignored(self, harness):
        item = await _social_pending(harness)
        for _ in range(4):
            await harness.pipeline.mark_social_failed(item.id, "down")

        final = await harness.queue.find_by_id(item.id)
        assert final.retry_count == 3
        assert await harness.notifications.get_unread_count() == 1

    @pytest.mark.asyncio
    async def test_missing_item_is_noop(self, harness):
        assert await harness.pipeline.mark_social_failed("missing", "boom") is None
        assert await harness.notifications.get_unread_count() == 0


class TestRetryAutomation:
    @pytest.mark.asyncio
    async def test_published_item_returns_to_social_queue(self, harness):
        item = await _social_pending(harness)
        await harness.queue.update(
            item.id,
            stage=QueueStage.FAILED,
            social_status=SocialStatus.FAILED,
            error_message="token expired",
            retry_count=3,
        )
        harness.publisher.create = AsyncMock()

        updated = await harness.pipeline.retry_automation(item.id)

        assert updated.stage == QueueStage.SOCIAL_PENDING
        assert updated.social_status == SocialStatus.PENDING
        assert updated.social_scheduled_at == harness.clock.now
        assert updated.error_message is None
        assert updated.retry_count == 0
        assert updated.created_article_id == "article-1"
        assert harness.tasks.pending == 0
        harness.publisher.create.assert_not_called()
        assert await harness.pipeline.get_pending_social_posts() == [updated]

    @pytest.mark.asyncio
    async def test_unpublished_item_restarts_pipeline(self, harness):
        item = await harness.queue.create("A1", QueueStage.PENDING, SocialPlatform.FACEBOOK)
        await harness.queue.update(item.id, stage=QueueStage.FAILED, error_message="cms down")

        updated = await harness.pipeline.retry_automation(item.id)
        assert updated.stage == QueueStage.PENDING
        assert updated.error_message is None

        await harness.tasks.drain()
        final = await harness.queue.find_by_id(item.id)
        assert final.stage == QueueStage.SOCIAL_PENDING
        assert final.created_article_id is not None
        assert len(harness.publisher.articles) == 1

    @pytest.mark.asyncio
    async def test_non_failed_item_is_rejected(self, harness):
        item = await _social_pending(harness)
        with pytest.raises(InvalidStateError):
            await harness.pipeline.retry_automation(item.id)
        unchanged = await harness.queue.find_by_id(item.id)
        assert unchanged.stage == QueueStage.SOCIAL_PENDING

    @pytest.mark.asyncio
    async def test_missing_item_raises(self, harness):
        with pytest.raises(NotFoundError):
            await harness.pipeline.retry_automation("missing")


class TestGetQueue:
    @pytest.mark.asyncio
    async def test_paginates(self, harness):
        for i in range(3):
            await harness.queue.create(f"S{i}", QueueStage.PENDING, SocialPlatform.FACEBOOK)

        page = await harness.pipeline.get_queue(page=1, per_page=2)

        assert len(page.data) == 2
        assert page.meta.current_page == 1
        assert page.meta.total_pages == 2
        assert page.meta.total_items == 3
        assert page.meta.per_page == 2

    @pytest.mark.asyncio
    async def test_filters_by_stage(self, harness):
        await _social_pending(harness, "S1")
        await harness.queue.create("S2", QueueStage.PENDING, SocialPlatform.FACEBOOK)

        page = await harness.pipeline.get_queue(stage=QueueStage.SOCIAL_PENDING)

        assert page.meta.total_items == 1
        assert page.data[0].source_article_id == "S1"

    @pytest.mark.asyncio
    async def test_clamps_page_arguments(self, harness):
        page = await harness.pipeline.get_queue(page=0, per_page=500)
        assert page.meta.current_page == 1
        assert page.meta.per_page == 50
        assert page.meta.total_pages == 0
