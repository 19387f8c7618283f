from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class PreferenceConfig:
    schema_version: int = 2
    weight_min: int = -5
    weight_max: int = 5
    price_penalty_min: int = 0
    price_penalty_max: int = 5
    too_pricey_reason: str = "TOO_PRICEY"
    cas_retries: int = int(os.getenv("PREFERENCE_CAS_RETRIES", "3"))


DEFAULT_PREFERENCE_CONFIG = PreferenceConfig()
