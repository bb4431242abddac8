"""Daily reading mission, persisted to a local JSON file.

Today's mission is one highlight and one circle share. Each is counted at
most once per dedup key per day, so highlighting the same email three
times still counts once. A separate comment streak tracks consecutive
days with at least one comment.

The file is re-read whenever its mtime changes, so two processes sharing
it see each other's progress; concurrent writes are last-writer-wins.
"""

import json
import os
from collections.abc import Callable
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any

from scaaf.logging import get_logger

logger = get_logger(__name__)


class MissionStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


def compute_status(highlights: int, shares: int) -> MissionStatus:
    if highlights == 0 and shares == 0:
        return MissionStatus.NOT_STARTED
    if highlights >= 1 and shares >= 1:
        return MissionStatus.COMPLETED
    return MissionStatus.IN_PROGRESS


def dedup_key(kind: str, key: str | None, email_id: str | None) -> str:
    """kind:<key>, else kind:email:<email_id>, else kind:global."""
    if key and key.strip():
        return f"{kind}:{key.strip()}"
    if email_id:
        return f"{kind}:email:{email_id}"
    return f"{kind}:global"


def fresh_day(date_key: str) -> dict[str, Any]:
    return {
        "date_key": date_key,
        "today_highlights_count": 0,
        "today_circle_shares_count": 0,
        "status": MissionStatus.NOT_STARTED.value,
        "has_shown_completion_toast": False,
        "highlight_keys": [],
        "share_keys": [],
        "comments_today": 0,
    }


def fresh_streak() -> dict[str, Any]:
    return {"last_comment_date": None, "streak_count": 0}


class DailyMissionStore:
    """Mission counters for the current local day.

    Args:
        path: JSON file holding the state; created on first write.
        today: Clock returning the current local date.
    """

    def __init__(self, path: str | Path, today: Callable[[], date] = date.today):
        self.path = Path(path)
        self.today = today
        self._state: dict[str, Any] | None = None
        self._mtime_ns: int | None = None

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def _file_mtime(self) -> int | None:
        try:
            return self.path.stat().st_mtime_ns
        except FileNotFoundError:
            return None

    def _read(self) -> dict[str, Any]:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (ValueError, OSError) as exc:
            logger.warning("mission_state_unreadable", path=str(self.path), error=str(exc))
            return {}
        return raw if isinstance(raw, dict) else {}

    def _write(self, state: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(f"{self.path.name}.tmp")
        tmp.write_text(json.dumps(state, sort_keys=True), encoding="utf-8")
        os.replace(tmp, self.path)
        self._state = state
        self._mtime_ns = self._file_mtime()

    def _load(self) -> dict[str, Any]:
        """Current state: reloaded on mtime change, reset on day change."""
        mtime = self._file_mtime()
        if self._state is None or mtime != self._mtime_ns:
            self._state = self._normalize(self._read())
            self._mtime_ns = mtime

        date_key = self.today().isoformat()
        if self._state["date_key"] != date_key:
            self._state = {**self._state, **fresh_day(date_key)}
        return self._state

    def _normalize(self, raw: dict[str, Any]) -> dict[str, Any]:
        """Repair a stored state: drop foreign days, recompute the status."""
        state = {**fresh_day(str(raw.get("date_key") or "")), **fresh_streak()}
        for key in ("last_comment_date", "streak_count"):
            if key in raw:
                state[key] = raw[key]

        if raw.get("date_key") == self.today().isoformat():
            for key in ("today_highlights_count", "today_circle_shares_count", "comments_today"):
                state[key] = int(raw.get(key) or 0)
            state["has_shown_completion_toast"] = bool(raw.get("has_shown_completion_toast"))
            for key in ("highlight_keys", "share_keys"):
                values = raw.get(key)
                if isinstance(values, list):
                    state[key] = [v for v in values if isinstance(v, str)]

        state["status"] = compute_status(
            state["today_highlights_count"], state["today_circle_shares_count"]
        ).value
        return state

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @property
    def state(self) -> dict[str, Any]:
        return dict(self._load())

    @property
    def status(self) -> MissionStatus:
        return MissionStatus(self._load()["status"])

    @property
    def streak_count(self) -> int:
        return int(self._load()["streak_count"])

    def should_show_completion_toast(self) -> bool:
        state = self._load()
        return state["status"] == MissionStatus.COMPLETED.value and not state[
            "has_shown_completion_toast"
        ]

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def _record(
        self, kind: str, keys_field: str, count_field: str, key: str | None, email_id: str | None
    ) -> bool:
        state = dict(self._load())
        dedup = dedup_key(kind, key, email_id)
        if dedup in state[keys_field]:
            return False

        state[keys_field] = [dedup, *state[keys_field]]
        state[count_field] += 1
        state["status"] = compute_status(
            state["today_highlights_count"], state["today_circle_shares_count"]
        ).value
        self._write(state)
        return True

    def record_highlight(self, key: str | None = None, email_id: str | None = None) -> bool:
        """Count a highlight once per dedup key per day. Returns True when counted."""
        return self._record(
            "highlight", "highlight_keys", "today_highlights_count", key, email_id
        )

    def record_share(self, key: str | None = None, email_id: str | None = None) -> bool:
        """Count a circle share once per dedup key per day. Returns True when counted."""
        return self._record(
            "share", "share_keys", "today_circle_shares_count", key, email_id
        )

    def mark_completion_toast_shown(self) -> None:
        self._write({**self._load(), "has_shown_completion_toast": True})

    def record_comment(self) -> int:
        """Count a comment and advance the streak; returns the streak length.

        Same day: streak unchanged. Next day: streak extends. Any gap (or
        the first comment ever): streak restarts at 1.
        """
        state = dict(self._load())
        today = self.today()
        last = state.get("last_comment_date")

        if last != today.isoformat():
            try:
                gap = (today - date.fromisoformat(last)).days if last else None
            except (TypeError, ValueError):
                gap = None
            state["streak_count"] = int(state["streak_count"] or 0) + 1 if gap == 1 else 1
            state["last_comment_date"] = today.isoformat()

        state["comments_today"] += 1
        self._write(state)
        return state["streak_count"]

    def reset(self) -> None:
        self._write({**fresh_day(self.today().isoformat()), **fresh_streak()})
