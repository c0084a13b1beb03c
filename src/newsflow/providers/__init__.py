from .base import AIProvider
from .claude import ClaudeProvider
from .ollama import OllamaProvider
from .openai_compat import OpenAICompatProvider

__all__ = ["AIProvider", "ClaudeProvider", "OllamaProvider", "OpenAICompatProvider"]
