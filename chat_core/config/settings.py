"""配置管理模块。

支持从 .env、config.yaml 以及环境变量加载配置。
优先级：显式参数 > 环境变量 > .env > config.yaml。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("CHAT_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
        Path(__file__).resolve().parents[1] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class Settings(BaseSettings):
    """网关与客户端的全部配置。"""

    # ---- Provider 选择 ----
    default_provider: str = Field(
        default="openai",
        description="新建会话默认使用的 Provider：openai、anthropic、google",
    )
    default_model: Optional[str] = Field(
        default=None,
        description="新建会话默认模型，为空时取该 Provider 模型列表的第一个",
    )

    # OpenAI
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API 密钥")
    openai_base_url: str = Field(default="https://api.openai.com/v1", description="OpenAI API 基础URL")

    # Anthropic
    anthropic_api_key: Optional[str] = Field(default=None, description="Anthropic API 密钥")
    anthropic_base_url: str = Field(default="https://api.anthropic.com/v1", description="Anthropic API 基础URL")
    anthropic_version: str = Field(default="2023-06-01", description="anthropic-version 请求头")
    anthropic_max_tokens: int = Field(default=1024, ge=1, description="单次回答的最大 token 数")
    anthropic_prompt_separator: str = Field(
        default=" ",
        description="把历史消息拼成单个 prompt 时使用的分隔符",
    )

    # Google
    google_api_key: Optional[str] = Field(default=None, description="Google AI API 密钥")
    google_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Google Generative Language API 基础URL",
    )

    # ---- 通用 ----
    http_timeout: Optional[float] = Field(
        default=None,
        description="上游 HTTP 超时时间（秒），为空表示不设超时",
    )
    storage_root: str = Field(default=".storage", description="存储根目录")
    sessions_file: str = Field(default="sessions.json", description="会话集合的持久化文件名")
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    # ---- 标题生成（旁路调用，固定 provider/model）----
    title_provider: str = Field(default="anthropic", description="生成会话标题所用的 Provider")
    title_model: str = Field(default="claude-3-haiku-20240307", description="生成会话标题所用的模型")

    # ---- 客户端 ----
    gateway_url: str = Field(
        default="http://127.0.0.1:8000/api/chat",
        description="HttpGatewayClient 请求的网关地址",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("openai_api_key", "anthropic_api_key", "google_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = Settings()
