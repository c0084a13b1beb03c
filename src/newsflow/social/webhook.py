"""Webhook 发帖器 — 把待发内容推送给外部自动化服务（如 n8n），由其完成实际发帖"""

from __future__ import annotations

import logging

import httpx

from ..errors import SocialPostError
from ..models import SocialPostPayload

logger = logging.getLogger("newsflow.social")


class WebhookSocialPoster:
    """
    以 JSON POST 方式调用 webhook：
      请求体: SocialPostPayload.to_dict()
      认证: x-api-key header
      响应: {"success": true, "postId": "..."}
    """

    def __init__(
        self,
        webhook_url: str,
        api_key: str = "",
        timeout: float = 30.0,
        dry_run: bool = False,
    ) -> None:
        self._url = webhook_url
        self._api_key = api_key
        self._timeout = timeout
        self._dry_run = dry_run

    async def post(self, payload: SocialPostPayload) -> str:
        if self._dry_run:
            logger.info(f"[DRY RUN] {payload.platform.value}: {payload.title} -> {payload.article_url}")
            return f"dry-run-{payload.queue_id}"

        headers = {"x-api-key": self._api_key} if self._api_key else {}
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(self._url, headers=headers, json=payload.to_dict())
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as exc:
            raise SocialPostError(f"webhook 请求失败: {str(exc) or type(exc).__name__}") from exc
        except ValueError as exc:
            raise SocialPostError("webhook 返回的不是 JSON") from exc

        if not data.get("success", True):
            raise SocialPostError(data.get("error") or "Unknown error")
        post_id = data.get("postId") or data.get("post_id")
        if not post_id:
            raise SocialPostError(f"webhook 未返回 postId: {data}")
        return str(post_id)
