"""
Import session and per-period pipeline state, kept in a small JSON file

The import dialog splits stage 1 into two calls. The session carries the
resolved period and tracking row from the first call to the second.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Any

from dateutil.parser import isoparse

from . import config


class PipelineState(Enum):
    """Progress of one billing period through the two stages."""

    NOT_STARTED = "NotStarted"
    IMPORTED = "Imported"
    STAGED = "Staged"
    CLASSIFIED = "Classified"
    COMPLETED = "Completed"

    @property
    def rank(self) -> int:
        return list(PipelineState).index(self)


@dataclass
class ImportSession:
    """State handed from the import dialog to the import run."""

    label: str
    row: int
    confirmed: bool
    sheet_name: str
    created_at: datetime = field(default_factory=datetime.now)

    def is_expired(self, now: datetime | None = None, ttl_minutes: int | None = None) -> bool:
        ttl: int = config.SESSION_TTL_MINUTES if ttl_minutes is None else ttl_minutes
        current: datetime = now or datetime.now()
        return current - self.created_at > timedelta(minutes=ttl)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ImportSession":
        return cls(
            label=str(data["label"]),
            row=int(data["row"]),
            confirmed=bool(data["confirmed"]),
            sheet_name=str(data["sheet_name"]),
            created_at=isoparse(data["created_at"]),
        )


class StateStore:
    """JSON file holding the current import session and period states."""

    def __init__(self, path: str | Path | None = None) -> None:
        self.path: Path = Path(path or config.STATE_FILE)

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {"session": None, "periods": {}}
        with open(self.path, "r", encoding="utf-8") as f:
            data: dict[str, Any] = json.load(f)
        data.setdefault("session", None)
        data.setdefault("periods", {})
        return data

    def _save(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2, sort_keys=False)

    def save_session(self, session: ImportSession) -> None:
        data: dict[str, Any] = self._load()
        data["session"] = session.to_dict()
        self._save(data)

    def load_session(self, now: datetime | None = None) -> ImportSession | None:
        """Return the stored session, or None if there is none or it expired."""
        raw: dict[str, Any] | None = self._load()["session"]
        if not raw:
            return None

        session: ImportSession = ImportSession.from_dict(raw)
        if session.is_expired(now):
            self.clear_session()
            return None
        return session

    def clear_session(self) -> None:
        data: dict[str, Any] = self._load()
        data["session"] = None
        self._save(data)

    def get_state(self, label: str) -> PipelineState:
        entry: dict[str, Any] | None = self._load()["periods"].get(label)
        if not entry:
            return PipelineState.NOT_STARTED
        return PipelineState(entry["state"])

    def set_state(self, label: str, state: PipelineState) -> None:
        data: dict[str, Any] = self._load()
        data["periods"][label] = {
            "state": state.value,
            "updated_at": datetime.now().isoformat(timespec="seconds"),
        }
        self._save(data)
