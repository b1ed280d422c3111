"""
Persona template and effective configuration.

The effective configuration of a request is the global app_config with the
active user's override laid on top: any non-empty override field wins, and
the API key list falls back to the global list when the user has none.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..config import settings
from ..store.base import AppConfig

AI_NAME_TOKEN = "{{AI_NAME}}"
DEV_NAME_TOKEN = "{{DEV_NAME}}"

DEFAULT_PERSONA = (
    "You are {{AI_NAME}}, a sharp and helpful assistant built by {{DEV_NAME}}. "
    "Answer directly, format code in fenced blocks, and say so when you are unsure. "
    "If asked who made you, answer that you were developed by {{DEV_NAME}}."
)


def default_app_config() -> AppConfig:
    """Used when the app_config row is missing or the store cannot be read"""
    return AppConfig(
        ai_name=settings.default_ai_name,
        ai_persona=DEFAULT_PERSONA,
        dev_name=settings.default_dev_name,
        api_keys=[],
        avatar_url="",
    )


@dataclass
class EffectiveConfig:
    ai_name: str
    ai_persona: str
    dev_name: str
    api_keys: List[str] = field(default_factory=list)
    avatar_url: str = ""


def _pick(override: Dict[str, Any], snake: str, camel: str) -> Any:
    # Overrides written by the browser admin panel use camelCase keys
    value = override.get(snake)
    if value in (None, "", []):
        value = override.get(camel)
    return value


def merge_config(global_config: AppConfig, override: Optional[Dict[str, Any]] = None) -> EffectiveConfig:
    override = override or {}
    user_keys = _pick(override, "api_keys", "apiKeys")
    return EffectiveConfig(
        ai_name=_pick(override, "ai_name", "aiName") or global_config.ai_name,
        ai_persona=_pick(override, "ai_persona", "aiPersona") or global_config.ai_persona or DEFAULT_PERSONA,
        dev_name=_pick(override, "dev_name", "devName") or global_config.dev_name,
        api_keys=list(user_keys) if isinstance(user_keys, list) and user_keys else list(global_config.api_keys),
        avatar_url=_pick(override, "avatar_url", "avatarUrl") or global_config.avatar_url,
    )


def render_persona(template: str, ai_name: str, dev_name: str) -> str:
    if not template:
        return ""
    return template.replace(AI_NAME_TOKEN, ai_name).replace(DEV_NAME_TOKEN, dev_name)


def build_system_instruction(config: EffectiveConfig, username: Optional[str]) -> str:
    persona = render_persona(config.ai_persona, config.ai_name, config.dev_name)
    return f"User: {username or 'Guest'}. {persona}"
