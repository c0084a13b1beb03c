"""OpenAI 兼容 Provider — chat/completions JSON 模式（DeepSeek、vLLM、LM Studio 等）"""

from __future__ import annotations

import httpx


def _completions_url(base_url: str) -> str:
    base = base_url.rstrip("/")
    return base if base.endswith("/chat/completions") else f"{base}/v1/chat/completions"


class OpenAICompatProvider:
    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str = "https://api.openai.com",
        temperature: float = 0.7,
        max_tokens: int = 800,
        timeout: float = 60.0,
    ) -> None:
        self._url = _completions_url(base_url)
        self._auth = {"Authorization": f"Bearer {api_key}"}
        self._params = {
            "model": model,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "response_format": {"type": "json_object"},
        }
        self._timeout = timeout

    async def generate(self, prompt: str, system: str = "") -> str:
        messages = [{"role": "user", "content": prompt}]
        if system:
            messages.insert(0, {"role": "system", "content": system})

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.post(
                self._url, headers=self._auth, json={**self._params, "messages": messages}
            )
            response.raise_for_status()
            choices = response.json().get("choices") or []

        # 有的兼容服务在内容被过滤时返回空 choices
        if not choices or not choices[0].get("message", {}).get("content"):
            raise ValueError("chat/completions 未返回内容")
        return choices[0]["message"]["content"]
