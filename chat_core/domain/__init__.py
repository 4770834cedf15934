"""领域层模型与协议。

包含：
- models: 统一的 Message / ProviderRequest / 响应信封模型。
- session: 会话模型及 KeyValueStore 抽象。
- exceptions: 业务异常类型定义。
"""
