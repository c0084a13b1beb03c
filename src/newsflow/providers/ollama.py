"""Ollama Provider — 调用本地 Ollama /api/generate（httpx 直接调用）"""

from __future__ import annotations

import httpx


class OllamaProvider:
    """
    Ollama 本地推理接口：
      endpoint: {host}/api/generate
      JSON 模式: format=json, stream=false
    """

    def __init__(
        self,
        host: str = "http://127.0.0.1:11434",
        model: str = "gemma2",
        temperature: float = 0.7,
        top_p: float = 0.9,
        num_predict: int = 500,
        timeout: float = 120.0,
    ) -> None:
        self._url = f"{host.rstrip('/')}/api/generate"
        self._model = model
        self._options = {
            "temperature": temperature,
            "top_p": top_p,
            "num_predict": num_predict,
        }
        self._timeout = timeout

    async def generate(self, prompt: str, system: str = "") -> str:
        body = {
            "model": self._model,
            "prompt": prompt,
            "format": "json",
            "stream": False,
            "options": self._options,
        }
        if system:
            body["system"] = system
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.post(self._url, json=body)
            response.raise_for_status()
            data = response.json()

        text = data.get("response")
        if not isinstance(text, str):
            raise ValueError(f"Ollama 未返回 response 字段: {data}")
        return text
