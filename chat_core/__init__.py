"""Chat Core 顶层包。

该包提供多 Provider 聊天网关的核心实现，
包括配置加载、领域模型、Provider 适配、网关路由、
会话存储与客户端对话编排等能力。
"""

from chat_core.domain.models import Message, ProviderName, ProviderRequest, StreamEnvelope, WholeEnvelope

__all__ = ["Message", "ProviderName", "ProviderRequest", "StreamEnvelope", "WholeEnvelope"]
