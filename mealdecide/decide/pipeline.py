from __future__ import annotations

import logging
import time
import uuid

from ..base import iso, utc_now
from ..items import store as items
from ..preferences.store import PreferenceStore, preference_store
from ..storage.documents import DocumentStore
from .config import DEFAULT_DECIDE_CONFIG, DecideConfig
from .hashing import hash_input, hash_items, hash_preference, snapshot_preference
from .links import deep_links_for
from .models import (
    Candidate,
    DecideInput,
    DecideRequest,
    DecideResponse,
    Decision,
    DecisionMeta,
    ItemSnapshot,
)
from .scoring import rank, score_item, softmax
from .store import decision_store

logger = logging.getLogger(__name__)


def _clamp_limit(limit: int | None, config: DecideConfig) -> int:
    if limit is None:
        return config.max_limit
    return max(config.min_limit, min(config.max_limit, limit))


def decide(
    user_id: str,
    request: DecideRequest | None = None,
    *,
    preferences: PreferenceStore = preference_store,
    decisions: DocumentStore[Decision] = decision_store,
    config: DecideConfig = DEFAULT_DECIDE_CONFIG,
) -> DecideResponse:
    """Rank the user's active items and persist the outcome as a Decision.

    Items and preference are read up front; scoring never touches storage.
    An empty item pool short-circuits with no Decision persisted.
    """
    start_time = time.time()
    request = request or DecideRequest()
    limit = _clamp_limit(request.limit, config)
    now = utc_now()

    preference = preferences.get(user_id)
    pool = items.get_active_items(user_id)

    if not pool:
        return DecideResponse(
            decision_id=None,
            user_id=user_id,
            time=iso(now),
            limit=limit,
            candidates=[],
            message=config.empty_pool_message,
        )

    # --- Scoring ---
    scored = [
        score_item(
            item,
            request.budget,
            request.must_have_tags,
            request.avoid_tags,
            request.query,
            preference,
            preference.profile,
        )
        for item in pool
    ]
    top = rank(scored)[:limit]
    confidences = softmax([s.score for s in top])

    # --- Assemble ---
    candidates = [
        Candidate(
            item=ItemSnapshot(
                id=s.item.id,
                name=s.item.name,
                restaurant_name=s.item.restaurant_name,
                tags=list(s.item.tags),
                price_estimate=s.item.price_estimate,
            ),
            score=s.score,
            confidence=confidence,
            why=s.why,
            deep_links=deep_links_for(s.item),
            breakdown=s.breakdown,
        )
        for s, confidence in zip(top, confidences)
    ]

    meta = DecisionMeta(
        schema_version=config.schema_version,
        algorithm=config.algorithm,
        algorithm_version=config.algorithm_version,
        input_hash=hash_input(request, limit),
        items_hash=hash_items(pool),
        preference_hash=hash_preference(preference),
        preference_snapshot=snapshot_preference(preference),
    )

    decision = decisions.save(Decision(
        id=uuid.uuid4().hex,
        user_id=user_id,
        created_at=now,
        input=DecideInput(
            budget=request.budget,
            must_have_tags=request.must_have_tags,
            avoid_tags=request.avoid_tags,
            query=request.query,
            limit=limit,
        ),
        candidates=candidates,
        meta=meta,
    ))

    elapsed_ms = round((time.time() - start_time) * 1000, 1)
    logger.info(
        "Decision %s for user %s: %d/%d candidates in %.1f ms",
        decision.id, user_id, len(candidates), len(pool), elapsed_ms,
    )

    return DecideResponse(
        decision_id=decision.id,
        user_id=user_id,
        time=iso(now),
        limit=limit,
        candidates=candidates,
        message=None,
    )
