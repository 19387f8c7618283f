from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class DecideConfig:
    schema_version: int = 2
    algorithm: str = "heuristic-score"
    algorithm_version: str = "1"
    min_limit: int = 1
    max_limit: int = 50
    history_default_limit: int = 50
    history_max_limit: int = 200
    default_platforms: tuple[str, ...] = field(default=("swiggy", "zomato"))
    empty_pool_message: str = (
        "No saved items yet. Add a few items first to get decisions."
    )


DEFAULT_DECIDE_CONFIG = DecideConfig()
