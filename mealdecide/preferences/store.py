"""
Per-user preference storage with optimistic concurrency.

Every write goes through ``compare_and_set`` on the record's ``revision``.
``update`` loads, applies a pure transform, and retries a bounded number of
times when another writer got there first. Two feedback submissions racing for
the same user therefore both land unless the retry budget runs out, in which
case ``Conflict`` is raised and the caller decides whether to drop the update.

The revision check only coordinates writers inside this process; a shared
database would need the same check expressed as a conditional write.
"""
from __future__ import annotations

import logging
import threading
from typing import Callable

from ..base import utc_now
from ..decide.models import Decision, Feedback
from ..errors import Conflict
from .config import DEFAULT_PREFERENCE_CONFIG, PreferenceConfig
from .learning import apply_decision_feedback
from .models import PreferenceProfile, UserPreference

logger = logging.getLogger(__name__)


class PreferenceStore:
    def __init__(self, config: PreferenceConfig = DEFAULT_PREFERENCE_CONFIG) -> None:
        self._config = config
        self._records: dict[str, UserPreference] = {}
        self._lock = threading.Lock()

    def get(self, user_id: str) -> UserPreference:
        """Stored preference, or an empty zeroed record. Never raises."""
        with self._lock:
            record = self._records.get(user_id)
        return record if record is not None else UserPreference.empty(user_id)

    def compare_and_set(self, preference: UserPreference, expected_revision: int) -> UserPreference | None:
        """Write *preference* if the stored revision still equals *expected_revision*.

        Returns the stored record (with its new revision) or ``None`` on conflict.
        """
        with self._lock:
            current = self._records.get(preference.user_id)
            current_revision = current.revision if current is not None else 0
            if current_revision != expected_revision:
                return None
            saved = preference.model_copy(update={"revision": expected_revision + 1})
            self._records[preference.user_id] = saved
            return saved

    def update(
        self,
        user_id: str,
        transform: Callable[[UserPreference], UserPreference],
    ) -> UserPreference:
        attempts = self._config.cas_retries + 1
        for attempt in range(attempts):
            current = self.get(user_id)
            updated = transform(current)
            if updated is current:
                return current
            saved = self.compare_and_set(updated, current.revision)
            if saved is not None:
                return saved
            logger.info(
                "Preference revision conflict for user %s (attempt %d/%d)",
                user_id, attempt + 1, attempts,
            )
        raise Conflict(f"preference update for {user_id} lost {attempts} races")

    def upsert_profile(self, user_id: str, profile: PreferenceProfile) -> UserPreference:
        """Replace the explicit profile wholesale; learned weights carry over."""

        def _replace(current: UserPreference) -> UserPreference:
            return current.model_copy(update={
                "profile": profile,
                "updated_at": utc_now(),
                "schema_version": self._config.schema_version,
            })

        return self.update(user_id, _replace)

    def apply_feedback(self, user_id: str, decision: Decision, feedback: Feedback) -> UserPreference:
        return self.update(
            user_id,
            lambda current: apply_decision_feedback(current, decision, feedback, self._config),
        )

    def clear(self) -> None:
        with self._lock:
            self._records.clear()


preference_store = PreferenceStore()


def clear_preferences() -> None:
    preference_store.clear()
