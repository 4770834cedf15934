"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 适配器接口 (base)。
- 维护 Provider 与模型表格 (registry)。
- 提供三家厂商的具体实现 (openai_client、anthropic_client、google_client)。
"""

from typing import Optional

from chat_core.config.settings import settings
from chat_core.domain.models import ProviderName
from chat_core.providers.anthropic_client import AnthropicClient
from chat_core.providers.base import ProviderAdapter
from chat_core.providers.google_client import GoogleClient
from chat_core.providers.openai_client import OpenAIClient
from chat_core.providers.registry import parse_provider


def create_provider(name: Optional[str] = None) -> ProviderAdapter:
    """根据名称创建适配器实例，默认取配置中的 provider。"""

    provider = parse_provider((name or getattr(settings, "default_provider", "openai")).lower())
    if provider is ProviderName.OPENAI:
        return OpenAIClient(settings)
    if provider is ProviderName.ANTHROPIC:
        return AnthropicClient(settings)
    return GoogleClient(settings)
