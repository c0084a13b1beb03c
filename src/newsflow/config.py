"""配置加载 — 支持 ${ENV_VAR} 语法替换环境变量"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path

import yaml
from dotenv import load_dotenv

from .errors import ConfigurationError
from .models import SocialPlatform

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)\}")


@dataclass(frozen=True)
class AutomationSettings:
    """自动化管道参数"""
    social_delay_minutes: int = 5
    social_retry_delay_minutes: int = 5
    max_social_retries: int = 3
    excerpt_max_length: int = 500
    poll_limit: int = 10
    social_claim_timeout_minutes: int = 10
    default_social_platform: SocialPlatform = SocialPlatform.FACEBOOK
    default_category_slug: str = "misc"
    system_author_email: str = "system@newsflow.local"
    system_author_name: str = "Automated Desk"
    site_url: str = "https://newsflow.local"
    ai_timeout_seconds: float = 120.0
    publish_timeout_seconds: float = 30.0


def _resolve_env_vars(value: object) -> object:
    """递归替换配置中的 ${ENV_VAR} 占位符"""
    if isinstance(value, str):
        def replace(m: re.Match) -> str:
            var = m.group(1)
            result = os.environ.get(var, "")
            if not result:
                raise ValueError(f"环境变量未设置: {var}")
            return result
        return _ENV_VAR_RE.sub(replace, value)
    if isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve_env_vars(item) for item in value]
    return value


def load_config(config_path: str | Path = "config.yaml") -> dict:
    """加载并返回配置字典（环境变量已替换）"""
    load_dotenv()
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"配置文件不存在: {path}")
    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    return _resolve_env_vars(raw)


def load_settings(config: dict) -> AutomationSettings:
    """从配置字典的 automation 段构建 AutomationSettings，缺省项使用默认值"""
    cfg = config.get("automation", {}) or {}
    defaults = AutomationSettings()

    platform_raw = str(cfg.get("social_platform", defaults.default_social_platform.value)).upper()
    try:
        platform = SocialPlatform(platform_raw)
    except ValueError as exc:
        raise ConfigurationError(f"未知的社交平台: {platform_raw}") from exc

    max_retries = int(cfg.get("max_social_retries", defaults.max_social_retries))
    if max_retries < 1:
        raise ConfigurationError("max_social_retries 必须 >= 1")

    return AutomationSettings(
        social_delay_minutes=int(cfg.get("social_delay_minutes", defaults.social_delay_minutes)),
        social_retry_delay_minutes=int(
            cfg.get("social_retry_delay_minutes", defaults.social_retry_delay_minutes)
        ),
        max_social_retries=max_retries,
        excerpt_max_length=int(cfg.get("excerpt_max_length", defaults.excerpt_max_length)),
        poll_limit=int(cfg.get("poll_limit", defaults.poll_limit)),
        social_claim_timeout_minutes=int(
            cfg.get("social_claim_timeout_minutes", defaults.social_claim_timeout_minutes)
        ),
        default_social_platform=platform,
        default_category_slug=cfg.get("default_category_slug", defaults.default_category_slug),
        system_author_email=cfg.get("system_author_email", defaults.system_author_email),
        system_author_name=cfg.get("system_author_name", defaults.system_author_name),
        site_url=str(cfg.get("site_url", defaults.site_url)).rstrip("/"),
        ai_timeout_seconds=float(cfg.get("ai_timeout_seconds", defaults.ai_timeout_seconds)),
        publish_timeout_seconds=float(
            cfg.get("publish_timeout_seconds", defaults.publish_timeout_seconds)
        ),
    )
