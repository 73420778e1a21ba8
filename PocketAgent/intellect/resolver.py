"""
提供者解析器 - 由配置推导出规范提供者与完整模型名
Provider resolver - derives the canonical provider and fully-qualified model name.

解析是一组按优先级排列的纯函数规则，第一个给出结果的规则胜出：
1. 显式提供者名（配置指定）
2. 网关识别（api_key 前缀 / api_base 关键字）
3. 模型名关键字匹配
都不匹配时原样返回模型名。
Resolution is an ordered list of pure rules, first match wins:
1. explicit provider name (from config)
2. gateway detection (api_key prefix / api_base keyword)
3. model-name keyword match
Otherwise the model name is returned unchanged.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from PocketAgent.intellect.specs import DEFAULT_API_BASE, PROVIDERS, ProviderSpec

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "anthropic/claude-opus-4-5"


def find_by_name(name: str | None) -> ProviderSpec | None:
    """按名称查找 / Find a spec by its config name."""
    if not name:
        return None
    for spec in PROVIDERS:
        if spec.name == name:
            return spec
    return None


def find_gateway(api_key: str | None = None, api_base: str | None = None) -> ProviderSpec | None:
    """
    通过 api_key 前缀或 api_base 关键字识别网关
    Detect a gateway by api_key prefix or api_base keyword.
    """
    for spec in PROVIDERS:
        if not spec.is_gateway:
            continue
        if spec.detect_by_key_prefix and api_key and api_key.startswith(spec.detect_by_key_prefix):
            return spec
        if spec.detect_by_base_keyword and api_base and spec.detect_by_base_keyword in api_base:
            return spec
    return None


def find_by_model(model: str) -> ProviderSpec | None:
    """
    按模型名查找：先看显式前缀，再按关键字匹配非网关提供者
    Find by model name: explicit ``<name>/`` prefix first, then keyword match
    over non-gateway specs (case-insensitive).
    """
    model_lower = model.lower()
    head, sep, _ = model_lower.partition("/")
    if sep:
        for spec in PROVIDERS:
            if head == spec.name:
                return spec

    for spec in PROVIDERS:
        if spec.is_gateway:
            continue
        if any(kw in model_lower for kw in spec.keywords):
            return spec
    return None


@dataclass(frozen=True)
class ResolutionInput:
    """解析输入 / Inputs to model resolution."""

    model: str
    api_key: str | None = None
    api_base: str | None = None
    provider_name: str | None = None


def _with_prefix(model: str, prefix: str) -> str:
    if model.startswith(f"{prefix}/"):
        return model
    return f"{prefix}/{model}"


def _explicit_provider_rule(inp: ResolutionInput) -> str | None:
    spec = find_by_name(inp.provider_name)
    if spec is None or not spec.model_prefix:
        return None
    # 已带前缀时交给后续规则（例如经网关访问）
    if inp.model.startswith(f"{spec.model_prefix}/"):
        return None
    bare = inp.model.rsplit("/", 1)[-1]
    return f"{spec.model_prefix}/{bare}"


def _gateway_rule(inp: ResolutionInput) -> str | None:
    gateway = find_gateway(inp.api_key, inp.api_base)
    if gateway is None:
        return None
    if not gateway.model_prefix:
        return inp.model
    return _with_prefix(inp.model, gateway.model_prefix)


def _keyword_rule(inp: ResolutionInput) -> str | None:
    spec = find_by_model(inp.model)
    if spec is None or not spec.model_prefix:
        return None
    model_lower = inp.model.lower()
    if any(model_lower.startswith(p) for p in spec.skip_prefixes):
        return inp.model
    return _with_prefix(inp.model, spec.model_prefix)


ResolutionRule = Callable[[ResolutionInput], str | None]

# 顺序即优先级
RESOLUTION_RULES: tuple[ResolutionRule, ...] = (
    _explicit_provider_rule,
    _gateway_rule,
    _keyword_rule,
)


def resolve_model(
    model: str,
    api_key: str | None = None,
    api_base: str | None = None,
    provider_name: str | None = None,
) -> str:
    """
    解析完整模型名（纯函数）
    Resolve the fully-qualified model identifier (pure function).
    """
    inp = ResolutionInput(
        model=model, api_key=api_key, api_base=api_base, provider_name=provider_name
    )
    for rule in RESOLUTION_RULES:
        resolved = rule(inp)
        if resolved is not None:
            return resolved
    return model


def wire_model(resolved: str, spec: ProviderSpec | None) -> str:
    """
    去掉提供者自身的前缀，得到发给 OpenAI 兼容端点的模型名
    Strip the provider's own prefix to get the model name sent to its
    OpenAI-compatible endpoint.

    >>> wire_model("openrouter/anthropic/claude-3.5-sonnet", find_by_name("openrouter"))
    'anthropic/claude-3.5-sonnet'
    """
    if spec is None:
        return resolved
    prefixes = [f"{spec.model_prefix}/"] if spec.model_prefix else []
    prefixes.extend(spec.skip_prefixes)
    for prefix in prefixes:
        if resolved.lower().startswith(prefix):
            return resolved[len(prefix):]
    return resolved


@dataclass
class ProviderSelection:
    """
    客户端构造所需的提供者选择结果
    Provider selection used to construct the chat client.
    """

    # 实际使用其凭据的配置项名
    name: str = ""
    spec: ProviderSpec | None = None
    api_key: str = ""
    api_base: str = DEFAULT_API_BASE
    extra_headers: dict[str, str] = field(default_factory=dict)
    # 原始配置模型名
    model: str = DEFAULT_MODEL
    # 解析后的完整模型名
    resolved_model: str = DEFAULT_MODEL

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key)

    @property
    def display_name(self) -> str:
        if self.spec is not None:
            return self.spec.display_name
        return self.name or "Custom"

    @property
    def request_model(self) -> str:
        """发给端点的模型名 / Model name sent on the wire."""
        return wire_model(self.resolved_model, self.spec)


def provider_credential(name: str, conf: Mapping[str, Any], environ: Mapping[str, str]) -> str:
    """配置中的 api_key，缺省时回退到环境变量 / Config api_key, falling back to the env var."""
    key = (conf.get("api_key") or "").strip()
    if key:
        return key
    spec = find_by_name(name)
    if spec is not None and spec.env_key:
        return environ.get(spec.env_key, "").strip()
    return ""


def select_provider(
    config: Mapping[str, Any],
    environ: Mapping[str, str] | None = None,
) -> ProviderSelection:
    """
    选择提供者：显式配置优先，否则取第一个持有凭据的提供者
    Select a provider: the explicitly configured one wins, otherwise the first
    configured provider holding a non-empty credential.
    """
    env = os.environ if environ is None else environ
    defaults = (config.get("agents") or {}).get("defaults") or {}
    model = defaults.get("model") or DEFAULT_MODEL
    requested = (defaults.get("provider") or "auto").strip()
    providers_conf: Mapping[str, Any] = config.get("providers") or {}

    chosen_name = ""
    chosen_conf: Mapping[str, Any] = {}
    api_key = ""

    if requested != "auto":
        conf = providers_conf.get(requested) or {}
        api_key = provider_credential(requested, conf, env)
        if api_key:
            chosen_name, chosen_conf = requested, conf

    if not api_key:
        for name, conf in providers_conf.items():
            conf = conf or {}
            api_key = provider_credential(name, conf, env)
            if api_key:
                chosen_name, chosen_conf = name, conf
                logger.info("自动检测到提供者: %s", name)
                break

    api_base = (chosen_conf.get("api_base") or "").strip()
    explicit_name = requested if requested != "auto" else None

    spec = find_by_name(chosen_name) or find_gateway(api_key, api_base) or find_by_model(model)
    resolved = resolve_model(model, api_key, api_base, explicit_name)

    return ProviderSelection(
        name=chosen_name,
        spec=spec,
        api_key=api_key,
        api_base=api_base or (spec.default_api_base if spec else DEFAULT_API_BASE),
        extra_headers=dict(chosen_conf.get("extra_headers") or {}),
        model=model,
        resolved_model=resolved,
    )
