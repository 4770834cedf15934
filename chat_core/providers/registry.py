"""Provider 与模型配置。

固定的 provider → 模型列表表格：

- models：用户可选择的模型，第一个为切换 Provider 时的默认选择。
- default_model：请求未携带 model 时适配器使用的模型。

会话的 provider/model 组合必须能在这张表里找到。"""

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple

from chat_core.domain.exceptions import InvalidProviderError, ValidationError
from chat_core.domain.models import ProviderName


@dataclass(frozen=True)
class ProviderConfig:
    """某个 Provider 的整体配置。"""

    name: ProviderName
    display_name: str
    error_label: str
    models: Tuple[str, ...]
    default_model: str


OPENAI_CONFIG = ProviderConfig(
    name=ProviderName.OPENAI,
    display_name="OpenAI (GPT-4)",
    error_label="OpenAI",
    models=("gpt-3.5-turbo", "gpt-4o-mini"),
    default_model="gpt-4",
)

ANTHROPIC_CONFIG = ProviderConfig(
    name=ProviderName.ANTHROPIC,
    display_name="Anthropic (Claude)",
    error_label="Anthropic",
    models=("claude-3-opus-20240229", "claude-3-sonnet-20240229"),
    default_model="claude-3-haiku-20240307",
)

GOOGLE_CONFIG = ProviderConfig(
    name=ProviderName.GOOGLE,
    display_name="Google (Gemini)",
    error_label="Google AI",
    models=("gemini-pro",),
    default_model="gemini-pro",
)


PROVIDER_REGISTRY: Mapping[ProviderName, ProviderConfig] = {
    ProviderName.OPENAI: OPENAI_CONFIG,
    ProviderName.ANTHROPIC: ANTHROPIC_CONFIG,
    ProviderName.GOOGLE: GOOGLE_CONFIG,
}


def parse_provider(name: Optional[str]) -> ProviderName:
    """把原始字符串解析为 ProviderName，未知值抛 InvalidProviderError。"""

    try:
        return ProviderName(name)
    except ValueError:
        raise InvalidProviderError(name)


def get_provider_config(name: str) -> ProviderConfig:
    return PROVIDER_REGISTRY[parse_provider(name)]


def first_model(provider: str) -> str:
    return get_provider_config(provider).models[0]


def validate_model(provider: str, model: str) -> None:
    """校验 provider/model 组合是否在固定表格中。"""

    cfg = get_provider_config(provider)
    if model not in cfg.models:
        raise ValidationError(
            code="INVALID_MODEL",
            message=f"Model {model!r} is not available for provider {cfg.name.value!r}",
        )


def provider_table() -> List[Dict[str, object]]:
    """以可序列化形式返回整张表格（供 /api/providers 使用）。"""

    return [
        {
            "id": cfg.name.value,
            "name": cfg.display_name,
            "models": list(cfg.models),
        }
        for cfg in PROVIDER_REGISTRY.values()
    ]
