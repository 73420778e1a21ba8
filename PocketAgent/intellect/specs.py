"""
提供者规格表 - LLM 提供者元数据的唯一来源
Provider spec table - the single source of truth for LLM provider metadata.

规格是静态数据而非代码，新增提供者只需追加一条记录。
Specs are static data, not code: adding a provider means appending a record.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ProviderSpec:
    """
    提供者规格
    Provider specification.
    """

    # 配置中的字段名，如 "deepseek"
    name: str
    # 模型名匹配关键字（小写）
    keywords: tuple[str, ...]
    # 环境变量名，如 "DEEPSEEK_API_KEY"
    env_key: str
    display_name: str
    # 默认 API 地址
    default_api_base: str
    # 模型名前缀约定，如 "deepseek" -> "deepseek/deepseek-chat"
    model_prefix: str = ""
    # 模型已带这些前缀时不再加前缀
    skip_prefixes: tuple[str, ...] = ()
    # 网关可以路由任意模型（如 OpenRouter）
    is_gateway: bool = False
    # 通过 api_key 前缀识别
    detect_by_key_prefix: str = ""
    # 通过 api_base 中的关键字识别
    detect_by_base_keyword: str = ""


PROVIDERS: tuple[ProviderSpec, ...] = (
    # === 网关（按 api_key / api_base 识别，不按模型名）===
    ProviderSpec(
        name="openrouter",
        keywords=("openrouter",),
        env_key="OPENROUTER_API_KEY",
        display_name="OpenRouter",
        default_api_base="https://openrouter.ai/api/v1",
        model_prefix="openrouter",
        is_gateway=True,
        detect_by_key_prefix="sk-or-",
        detect_by_base_keyword="openrouter",
    ),
    ProviderSpec(
        name="volcengine",
        keywords=("volcengine", "volces", "ark"),
        env_key="VOLCENGINE_API_KEY",
        display_name="VolcEngine",
        default_api_base="https://ark.cn-beijing.volces.com/api/v3",
        model_prefix="volcengine",
        is_gateway=True,
        detect_by_base_keyword="volces",
    ),
    # === 标准提供者（按模型名关键字匹配）===
    ProviderSpec(
        name="anthropic",
        keywords=("anthropic", "claude"),
        env_key="ANTHROPIC_API_KEY",
        display_name="Anthropic",
        default_api_base="https://api.anthropic.com/v1",
    ),
    ProviderSpec(
        name="openai",
        keywords=("openai", "gpt"),
        env_key="OPENAI_API_KEY",
        display_name="OpenAI",
        default_api_base="https://api.openai.com/v1",
    ),
    ProviderSpec(
        name="deepseek",
        keywords=("deepseek",),
        env_key="DEEPSEEK_API_KEY",
        display_name="DeepSeek",
        default_api_base="https://api.deepseek.com/v1",
        model_prefix="deepseek",
        skip_prefixes=("deepseek/",),
    ),
    ProviderSpec(
        name="gemini",
        keywords=("gemini",),
        env_key="GEMINI_API_KEY",
        display_name="Gemini",
        default_api_base="https://generativelanguage.googleapis.com/v1beta/openai",
        model_prefix="gemini",
        skip_prefixes=("gemini/",),
    ),
    ProviderSpec(
        name="zhipu",
        keywords=("zhipu", "glm", "zai"),
        env_key="ZHIPUAI_API_KEY",
        display_name="Zhipu AI",
        default_api_base="https://open.bigmodel.cn/api/paas/v4",
        model_prefix="zai",
        skip_prefixes=("zhipu/", "zai/"),
    ),
    ProviderSpec(
        name="dashscope",
        keywords=("qwen", "dashscope"),
        env_key="DASHSCOPE_API_KEY",
        display_name="DashScope",
        default_api_base="https://dashscope.aliyuncs.com/compatible-mode/v1",
        model_prefix="dashscope",
        skip_prefixes=("dashscope/",),
    ),
    ProviderSpec(
        name="moonshot",
        keywords=("moonshot", "kimi"),
        env_key="MOONSHOT_API_KEY",
        display_name="Moonshot",
        default_api_base="https://api.moonshot.cn/v1",
        model_prefix="moonshot",
        skip_prefixes=("moonshot/",),
    ),
)

# 默认的 OpenAI 兼容端点
DEFAULT_API_BASE = "https://api.openai.com/v1"
