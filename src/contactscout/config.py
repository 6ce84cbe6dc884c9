# src/contactscout/config.py
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

ENV_PREFIX = "CONTACTSCOUT_"
DEFAULT_AI_API_URL = "https://openrouter.ai/api/v1/chat/completions"
DEFAULT_AI_MODEL = "openai/gpt-4o-mini"

ROTATION_STRATEGIES = ("none", "random", "round_robin", "smart")


# ----------------------- ENV utils -----------------------

def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(ENV_PREFIX + name)
    return default if v is None or v.strip() == "" else v.strip()

def _env_bool(name: str, default: bool = False) -> bool:
    v = _env(name, str(default))
    return str(v).strip().lower() in {"1", "true", "yes", "y", "on"}

def _env_int(name: str, default: int) -> int:
    return int(_env(name, str(default)))

def _env_float(name: str, default: float) -> float:
    return float(_env(name, str(default)))


@dataclass
class CrawlOptions:
    """Options for one crawl run. Every default can be overridden from the environment."""

    use_direct_connection: bool = field(default_factory=lambda: _env_bool("DIRECT_CONNECTION", True))
    extract_people: bool = field(default_factory=lambda: _env_bool("EXTRACT_PEOPLE", True))
    extract_social: bool = field(default_factory=lambda: _env_bool("EXTRACT_SOCIAL", True))
    extract_facebook: bool = field(default_factory=lambda: _env_bool("EXTRACT_FACEBOOK", True))
    max_retries: int = field(default_factory=lambda: _env_int("MAX_RETRIES", 3))
    proxy_file: Optional[str] = field(default_factory=lambda: _env("PROXY_FILE"))
    rotation_strategy: str = field(default_factory=lambda: (_env("ROTATION_STRATEGY", "round_robin") or "").lower())
    workers: int = field(default_factory=lambda: _env_int("WORKERS", 5))

    # fetch / politeness (sekunder)
    timeout_s: float = field(default_factory=lambda: _env_float("TIMEOUT_S", 15.0))
    max_body_bytes: int = field(default_factory=lambda: _env_int("MAX_BODY_BYTES", 5 * 1024 * 1024))
    domain_cooldown_s: float = field(default_factory=lambda: _env_float("DOMAIN_COOLDOWN_S", 5.0))
    min_delay_s: float = field(default_factory=lambda: _env_float("MIN_DELAY_S", 1.0))
    retry_min_wait_s: float = field(default_factory=lambda: _env_float("RETRY_MIN_WAIT_S", 1.0))
    retry_max_wait_s: float = field(default_factory=lambda: _env_float("RETRY_MAX_WAIT_S", 3.0))

    # extraction
    default_region: str = field(default_factory=lambda: (_env("DEFAULT_REGION", "US") or "US").upper())
    names_file: Optional[str] = field(default_factory=lambda: _env("NAMES_FILE"))

    # external name/role inference
    ai_enabled: bool = field(default_factory=lambda: _env_bool("AI_ENABLED", True))
    ai_api_key: str = field(default_factory=lambda: _env("AI_API_KEY", "") or "")
    ai_api_url: str = field(default_factory=lambda: _env("AI_API_URL", DEFAULT_AI_API_URL) or DEFAULT_AI_API_URL)
    ai_model: str = field(default_factory=lambda: _env("AI_MODEL", DEFAULT_AI_MODEL) or DEFAULT_AI_MODEL)
    ai_timeout_s: float = field(default_factory=lambda: _env_float("AI_TIMEOUT_S", 30.0))

    @property
    def inference_enabled(self) -> bool:
        return self.ai_enabled and bool(self.ai_api_key)

    @property
    def effective_strategy(self) -> str:
        # Uden proxyfil eller med direkte forbindelse er der intet at rotere
        if self.use_direct_connection or not self.proxy_file:
            return "none"
        return self.rotation_strategy

    def validate(self) -> "CrawlOptions":
        if self.workers < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {self.max_retries}")
        if self.rotation_strategy not in ROTATION_STRATEGIES:
            raise ValueError(
                f"Unknown rotation strategy {self.rotation_strategy!r}; "
                f"expected one of {', '.join(ROTATION_STRATEGIES)}"
            )
        if self.retry_max_wait_s < self.retry_min_wait_s:
            raise ValueError("retry_max_wait_s must be >= retry_min_wait_s")
        return self
