"""应用装配测试 — 文件存储下重启不重复发布"""

import json
from unittest.mock import AsyncMock, patch

import pytest

from conftest import make_source
from newsflow.app import build_app
from newsflow.collect.aggregator import ingest_feeds
from newsflow.errors import ConfigurationError
from newsflow.models import QueueStage
from newsflow.storage import InMemoryQueueRepository, JsonQueueRepository

REWRITE = json.dumps({"title": "Quantum Chips Arrive Early", "excerpt": "Ships ahead of schedule."})


def make_config(data_dir) -> dict:
    return {
        "categories": [{"id": "cat-tech", "name": "Technology", "slug": "tech"}],
        "collect": {"rss_feeds": []},
        "storage": {"data_dir": str(data_dir)},
    }


async def run_ingest(config: dict, articles):
    app = build_app(config, dry_run=True)
    with patch("newsflow.collect.aggregator.fetch_feed_articles", return_value=tuple(articles)):
        admitted = await ingest_feeds(app.config, app.sources, app.catalog, app.pipeline)
    await app.tasks.drain()
    return app, admitted


class TestBuildApp:
    def test_defaults_to_file_storage(self, tmp_path):
        app = build_app(make_config(tmp_path))
        assert isinstance(app.queue, JsonQueueRepository)

    def test_memory_backend(self):
        app = build_app({"storage": {"backend": "memory"}})
        assert isinstance(app.queue, InMemoryQueueRepository)

    def test_unknown_backend_raises(self):
        with pytest.raises(ConfigurationError):
            build_app({"storage": {"backend": "postgres"}})


class TestRestart:
    @pytest.mark.asyncio
    async def test_same_article_published_once_across_restart(self, tmp_path):
        config = make_config(tmp_path)
        article = make_source("A1")

        with patch("newsflow.providers.ollama.OllamaProvider.generate", new=AsyncMock(return_value=REWRITE)):
            first, first_admitted = await run_ingest(config, [article])
            second, second_admitted = await run_ingest(config, [article])

        assert first_admitted == 1
        assert second_admitted == 0
        assert len(second.publisher.articles) == 1

        item = await second.queue.find_by_source_article_id("A1")
        assert item.stage == QueueStage.SOCIAL_PENDING
        assert item.ai_rewritten_title == "Quantum Chips Arrive Early"

    @pytest.mark.asyncio
    async def test_dispatch_after_restart_posts_once(self, tmp_path):
        config = make_config(tmp_path)
        with patch("newsflow.providers.ollama.OllamaProvider.generate", new=AsyncMock(return_value=REWRITE)):
            first, _ = await run_ingest(config, [make_source("A1")])
        item = await first.queue.find_by_source_article_id("A1")
        await first.queue.update(item.id, social_scheduled_at=item.created_at)

        restarted = build_app(config, dry_run=True)
        summary = await restarted.dispatcher.dispatch_due()
        again = await build_app(config, dry_run=True).dispatcher.dispatch_due()

        assert summary.posted == 1
        assert again.posted == 0
        final = await restarted.queue.find_by_id(item.id)
        assert final.stage == QueueStage.COMPLETED
        assert final.social_post_id == f"dry-run-{item.id}"
