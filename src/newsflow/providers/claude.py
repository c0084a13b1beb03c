"""Claude Provider — 通过 Anthropic SDK 调用"""

from __future__ import annotations

from anthropic import AsyncAnthropic


class ClaudeProvider:
    def __init__(self, api_key: str, model: str = "claude-haiku-4-5-20251001", max_tokens: int = 1024) -> None:
        self._client = AsyncAnthropic(api_key=api_key)
        self._model = model
        self._max_tokens = max_tokens

    async def generate(self, prompt: str, system: str = "") -> str:
        response = await self._client.messages.create(
            model=self._model,
            max_tokens=self._max_tokens,
            system=system or "You are a professional news editor.",
            messages=[{"role": "user", "content": prompt}],
        )
        for block in response.content:
            if block.type == "text":
                return block.text
        raise ValueError("Claude 未返回 text 内容")
