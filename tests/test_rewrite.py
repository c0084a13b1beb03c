"""AI 改写测试"""

import json
from unittest.mock import AsyncMock, patch

import pytest

from newsflow.errors import AIRewriteError, ConfigurationError
from newsflow.providers import ClaudeProvider, OllamaProvider, OpenAICompatProvider
from newsflow.rewrite import ArticleRewriter, _extract_json, build_provider


def make_provider(response: str | Exception) -> AsyncMock:
    provider = AsyncMock()
    if isinstance(response, Exception):
        provider.generate = AsyncMock(side_effect=response)
    else:
        provider.generate = AsyncMock(return_value=response)
    return provider


class TestExtractJson:
    def test_plain_json(self):
        assert _extract_json('{"title": "t", "excerpt": "e"}')["title"] == "t"

    def test_markdown_wrapped(self):
        assert _extract_json('```json\n{"title": "t"}\n```')["title"] == "t"

    def test_surrounding_text(self):
        assert _extract_json('Sure! {"title": "t"} Hope it helps')["title"] == "t"

    def test_no_json_raises(self):
        with pytest.raises(AIRewriteError):
            _extract_json("no braces here")

    def test_invalid_json_raises(self):
        with pytest.raises(AIRewriteError):
            _extract_json("{title: t}")


class TestArticleRewriter:
    @pytest.mark.asyncio
    async def test_rewrites_title_and_excerpt(self):
        provider = make_provider(json.dumps({"title": " New headline ", "excerpt": "New excerpt"}))
        result = await ArticleRewriter(provider).rewrite("Old headline", "Old body")

        assert result.rewritten_title == "New headline"
        assert result.rewritten_excerpt == "New excerpt"
        prompt = provider.generate.call_args.args[0]
        assert "Old headline" in prompt
        assert "Old body" in prompt

    @pytest.mark.asyncio
    async def test_empty_content_uses_placeholder(self):
        provider = make_provider(json.dumps({"title": "t", "excerpt": "e"}))
        await ArticleRewriter(provider).rewrite("Headline", "")
        assert "No excerpt available" in provider.generate.call_args.args[0]

    @pytest.mark.asyncio
    async def test_missing_fields_raise(self):
        provider = make_provider(json.dumps({"title": "only title"}))
        with pytest.raises(AIRewriteError, match="excerpt"):
            await ArticleRewriter(provider).rewrite("t", "c")

    @pytest.mark.asyncio
    async def test_provider_error_is_wrapped(self):
        provider = make_provider(ConnectionError("connection refused"))
        with pytest.raises(AIRewriteError, match="connection refused"):
            await ArticleRewriter(provider).rewrite("t", "c")


class TestBuildProvider:
    def test_defaults_to_ollama(self):
        assert isinstance(build_provider({}), OllamaProvider)

    def test_openai(self):
        provider = build_provider({"ai": {"api_type": "openai", "api_key": "sk-test"}})
        assert isinstance(provider, OpenAICompatProvider)

    def test_anthropic(self):
        provider = build_provider({"ai": {"api_type": "anthropic", "api_key": "sk-ant-test"}})
        assert isinstance(provider, ClaudeProvider)

    def test_unknown_type_raises(self):
        with pytest.raises(ConfigurationError):
            build_provider({"ai": {"api_type": "mystery"}})


class TestOllamaProvider:
    @pytest.mark.asyncio
    async def test_posts_json_mode_request(self):
        import httpx

        response = httpx.Response(
            200,
            json={"response": '{"title": "t", "excerpt": "e"}'},
            request=httpx.Request("POST", "http://127.0.0.1:11434/api/generate"),
        )
        provider = OllamaProvider(model="gemma2")
        with patch("httpx.AsyncClient.post", new=AsyncMock(return_value=response)) as mock_post:
            text = await provider.generate("prompt", system="system")

        assert text == '{"title": "t", "excerpt": "e"}'
        url = mock_post.call_args.args[0]
        body = mock_post.call_args.kwargs["json"]
        assert url == "http://127.0.0.1:11434/api/generate"
        assert body["format"] == "json"
        assert body["stream"] is False
        assert body["system"] == "system"
        assert body["options"]["num_predict"] == 500


class TestOpenAICompatProvider:
    @pytest.mark.asyncio
    async def test_json_mode_chat_completion(self):
        import httpx

        url = "https://api.deepseek.com/v1/chat/completions"
        response = httpx.Response(
            200,
            json={"choices": [{"message": {"content": '{"title": "t"}'}}]},
            request=httpx.Request("POST", url),
        )
        provider = OpenAICompatProvider(api_key="sk-test", base_url="https://api.deepseek.com/")
        with patch("httpx.AsyncClient.post", new=AsyncMock(return_value=response)) as mock_post:
            text = await provider.generate("prompt", system="system")

        assert text == '{"title": "t"}'
        assert mock_post.call_args.args[0] == url
        body = mock_post.call_args.kwargs["json"]
        assert body["response_format"] == {"type": "json_object"}
        assert [m["role"] for m in body["messages"]] == ["system", "user"]

    @pytest.mark.asyncio
    async def test_empty_choices_raise(self):
        import httpx

        response = httpx.Response(200, json={"choices": []}, request=httpx.Request("POST", "http://x"))
        provider = OpenAICompatProvider(api_key="sk-test")
        with patch("httpx.AsyncClient.post", new=AsyncMock(return_value=response)):
            with pytest.raises(ValueError):
                await provider.generate("prompt")
