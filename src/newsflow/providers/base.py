"""AI Provider Protocol 定义"""

from typing import Protocol


class AIProvider(Protocol):
    async def generate(self, prompt: str, system: str = "") -> str:
        """返回模型的原始文本输出（改写场景下应为 JSON 字符串）"""
        ...
