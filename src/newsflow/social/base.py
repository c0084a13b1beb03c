"""社交发帖 Protocol 定义"""

from typing import Protocol

from ..models import SocialPostPayload


class SocialPoster(Protocol):
    async def post(self, payload: SocialPostPayload) -> str:
        """发帖成功返回平台帖子 ID，失败抛出 SocialPostError"""
        ...
