from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class RateLimitConfig:
    enabled: bool = os.getenv("RATE_LIMIT_ENABLED", "true").lower() in ("1", "true", "yes")
    default_per_minute: int = int(os.getenv("RATE_LIMIT_DEFAULT_PER_MINUTE", "240"))
    auth_per_minute: int = int(os.getenv("RATE_LIMIT_AUTH_PER_MINUTE", "30"))
    window_seconds: float = 60.0
    shards: int = 16
    trust_forwarded_for: bool = (
        os.getenv("RATE_LIMIT_TRUST_FORWARDED_FOR", "true").lower() in ("1", "true", "yes")
    )


DEFAULT_RATE_LIMIT_CONFIG = RateLimitConfig()
