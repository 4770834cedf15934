"""客户端对话编排：发送消息、消费响应信封、维护会话标题。"""

from chat_core.conversation.controller import FALLBACK_MESSAGE, ConversationController, TurnState
from chat_core.conversation.titles import TitleGenerator

__all__ = ["FALLBACK_MESSAGE", "ConversationController", "TitleGenerator", "TurnState"]
