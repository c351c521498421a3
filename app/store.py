"""Persistence for onboarding state."""

import logging
import sqlite3
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Optional

from .db import get_conn
from .schemas import OnboardingState

logger = logging.getLogger(__name__)


class StateStoreError(Exception):
    """Raised when onboarding state cannot be read or written."""


class StateStore(ABC):

    @abstractmethod
    def load(self, user_id: str) -> Optional[OnboardingState]:
        """Return the stored state, or None for a user who has not started."""

    @abstractmethod
    def save(self, user_id: str, state: OnboardingState) -> None:
        """Persist `state`; raise StateStoreError on failure."""

    @abstractmethod
    def delete(self, user_id: str) -> None:
        ...

    @abstractmethod
    def mark_onboarding_complete(self, user_id: str) -> None:
        """Unlock dashboard access for the user."""

    @abstractmethod
    def is_onboarding_complete(self, user_id: str) -> bool:
        ...


class InMemoryStateStore(StateStore):

    def __init__(self):
        self._states: Dict[str, str] = {}
        self._completed: Dict[str, bool] = {}

    def load(self, user_id: str) -> Optional[OnboardingState]:
        raw = self._states.get(user_id)
        if raw is None:
            return None
        return OnboardingState.model_validate_json(raw)

    def save(self, user_id: str, state: OnboardingState) -> None:
        # stored serialised so callers never share a mutable instance
        self._states[user_id] = state.model_dump_json(by_alias=True)

    def delete(self, user_id: str) -> None:
        self._states.pop(user_id, None)
        self._completed.pop(user_id, None)

    def mark_onboarding_complete(self, user_id: str) -> None:
        self._completed[user_id] = True

    def is_onboarding_complete(self, user_id: str) -> bool:
        return self._completed.get(user_id, False)


class SqliteStateStore(StateStore):

    def load(self, user_id: str) -> Optional[OnboardingState]:
        try:
            with get_conn() as conn:
                row = conn.execute(
                    "SELECT state_json FROM onboarding_states WHERE user_id = ?", (user_id,)
                ).fetchone()
        except sqlite3.Error as e:
            logger.error("Failed to load onboarding state for %s: %s", user_id, e)
            raise StateStoreError(f"Failed to load onboarding state: {e}") from e
        if not row:
            return None
        return OnboardingState.model_validate_json(row[0])

    def save(self, user_id: str, state: OnboardingState) -> None:
        now = datetime.now(timezone.utc).isoformat()
        relocation_type = state.relocation_type.value if state.relocation_type else None
        try:
            with get_conn() as conn:
                conn.execute(
                    """
                    INSERT INTO onboarding_states(user_id, relocation_type, current_step, state_json, updated_at)
                    VALUES(?,?,?,?,?)
                    ON CONFLICT(user_id) DO UPDATE SET
                        relocation_type = excluded.relocation_type,
                        current_step = excluded.current_step,
                        state_json = excluded.state_json,
                        updated_at = excluded.updated_at
                    """,
                    (user_id, relocation_type, state.current_step.value,
                     state.model_dump_json(by_alias=True), now)
                )
        except sqlite3.Error as e:
            logger.error("Failed to save onboarding state for %s: %s", user_id, e)
            raise StateStoreError(f"Database save failed: {e}") from e
        logger.info("Saved onboarding state for %s at step %s", user_id, state.current_step.value)

    def delete(self, user_id: str) -> None:
        try:
            with get_conn() as conn:
                conn.execute("DELETE FROM onboarding_states WHERE user_id = ?", (user_id,))
                conn.execute("DELETE FROM profiles WHERE user_id = ?", (user_id,))
        except sqlite3.Error as e:
            logger.error("Failed to delete onboarding state for %s: %s", user_id, e)
            raise StateStoreError(f"Failed to delete onboarding state: {e}") from e

    def mark_onboarding_complete(self, user_id: str) -> None:
        now = datetime.now(timezone.utc).isoformat()
        try:
            with get_conn() as conn:
                conn.execute(
                    """
                    INSERT INTO profiles(user_id, onboarding_complete, updated_at) VALUES(?,1,?)
                    ON CONFLICT(user_id) DO UPDATE SET onboarding_complete = 1, updated_at = excluded.updated_at
                    """,
                    (user_id, now)
                )
        except sqlite3.Error as e:
            logger.error("Failed to update onboarding_complete for %s: %s", user_id, e)
            raise StateStoreError(f"Failed to update profile: {e}") from e
        logger.info("Profile updated: onboarding_complete = true for %s", user_id)

    def is_onboarding_complete(self, user_id: str) -> bool:
        try:
            with get_conn() as conn:
                row = conn.execute(
                    "SELECT onboarding_complete FROM profiles WHERE user_id = ?", (user_id,)
                ).fetchone()
        except sqlite3.Error as e:
            logger.error("Failed to read profile for %s: %s", user_id, e)
            raise StateStoreError(f"Failed to read profile: {e}") from e
        return bool(row and row[0])
