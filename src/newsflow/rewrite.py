"""AI 改写 — 以新闻编辑口吻重写标题与摘要"""

from __future__ import annotations

import json
import re

from .errors import AIRewriteError, ConfigurationError
from .models import RewriteResult
from .providers.base import AIProvider


_SYSTEM = """You are a professional news editor at an independent news platform.
Rewrite news in a clear, neutral, journalistic style:
- Use the inverted pyramid: the most important facts first.
- Keep headlines short and engaging (no more than 80 characters).
- Preserve every fact, number, date and name exactly as given.
- Never add information that is not in the original text.
- Do not mention the original source or agency ("according to...", "reported by...").
- Avoid copying sentences verbatim; use short, direct sentences.
Your output must be valid JSON with no extra commentary."""

_PROMPT = """Rewrite the following headline and excerpt in an engaging journalistic style.

## Original headline
{title}

## Original excerpt
{excerpt}

## Requirements
1. New headline: engaging and concise (50-80 characters)
2. New excerpt: an appealing summary (100-150 characters)

Return JSON only:
{{
  "title": "new headline",
  "excerpt": "new excerpt"
}}"""

_NO_EXCERPT = "No excerpt available"


def _extract_json(text: str) -> dict:
    """从 LLM 输出中提取第一个 JSON 对象"""
    cleaned = re.sub(r"```(?:json)?\s*", "", text).strip().rstrip("`").strip()
    start = cleaned.find("{")
    end = cleaned.rfind("}") + 1
    if start == -1 or end == 0:
        raise AIRewriteError(f"AI 输出中找不到 JSON: {text[:300]}")
    try:
        data = json.loads(cleaned[start:end])
    except json.JSONDecodeError as exc:
        raise AIRewriteError(f"AI 输出 JSON 解析失败: {exc}") from exc
    if not isinstance(data, dict):
        raise AIRewriteError("AI 输出不是 JSON 对象")
    return data


class ArticleRewriter:
    def __init__(self, provider: AIProvider) -> None:
        self._provider = provider

    async def rewrite(self, title: str, content: str) -> RewriteResult:
        """
        改写标题和摘要。

        Args:
            title: 原标题
            content: 原正文或摘要

        Raises:
            AIRewriteError: 调用失败或返回缺少 title / excerpt
        """
        prompt = _PROMPT.format(title=title, excerpt=content or _NO_EXCERPT)
        try:
            raw = await self._provider.generate(prompt, system=_SYSTEM)
        except AIRewriteError:
            raise
        except Exception as exc:
            raise AIRewriteError(f"AI 调用失败: {exc}") from exc

        data = _extract_json(raw)
        new_title = str(data.get("title") or "").strip()
        new_excerpt = str(data.get("excerpt") or "").strip()
        if not new_title or not new_excerpt:
            raise AIRewriteError("AI 返回缺少 title 或 excerpt 字段")

        return RewriteResult(rewritten_title=new_title, rewritten_excerpt=new_excerpt)


def build_provider(config: dict) -> AIProvider:
    """根据 ai.api_type 构建 Provider（ollama / anthropic / openai）"""
    ai_cfg = config.get("ai", {}) or {}
    api_type = ai_cfg.get("api_type", "ollama")
    timeout = float(ai_cfg.get("timeout", 120.0))

    if api_type == "ollama":
        from .providers import OllamaProvider
        return OllamaProvider(
            host=ai_cfg.get("host", "http://127.0.0.1:11434"),
            model=ai_cfg.get("model", "gemma2"),
            timeout=timeout,
        )
    if api_type == "anthropic":
        from .providers import ClaudeProvider
        return ClaudeProvider(
            api_key=ai_cfg["api_key"],
            model=ai_cfg.get("model", "claude-haiku-4-5-20251001"),
        )
    if api_type == "openai":
        from .providers import OpenAICompatProvider
        return OpenAICompatProvider(
            api_key=ai_cfg["api_key"],
            model=ai_cfg.get("model", "gpt-4o-mini"),
            base_url=ai_cfg.get("base_url", "https://api.openai.com"),
            timeout=timeout,
        )
    raise ConfigurationError(f"未知的 ai.api_type: {api_type}")
