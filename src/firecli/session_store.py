"""Persistence of the active browser session (single slot, last write wins)."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from firecli.config import get_session_path


class NoActiveSessionError(Exception):
    """No session id was given and none is stored."""

    def __init__(self) -> None:
        super().__init__(
            "No active browser session. Launch one with: firecli browser launch-session\n"
            "Or specify a session ID with: --session <id>"
        )


@dataclass
class BrowserSession:
    """A remote browser session reachable over CDP."""

    id: str
    cdp_url: str
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"id": self.id, "cdpUrl": self.cdp_url, "createdAt": self.created_at}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BrowserSession":
        """Create from dictionary."""
        return cls(
            id=data["id"],
            cdp_url=data.get("cdpUrl", ""),
            created_at=data.get("createdAt", ""),
        )


class SessionStore:
    """Stores the one browser session later commands target by default."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or get_session_path()

    def save(self, session: BrowserSession) -> None:
        """Write the session record, replacing any previous one."""
        if not self.path.parent.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
        self.path.write_text(json.dumps(session.to_dict(), indent=2), encoding="utf-8")
        os.chmod(self.path, 0o600)

    def load(self) -> BrowserSession | None:
        """Read the stored session.

        Returns:
            The stored session, or None if missing or unreadable
        """
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return BrowserSession.from_dict(data)
        except (OSError, json.JSONDecodeError, KeyError, TypeError):
            return None

    def clear(self) -> None:
        """Remove the stored session if there is one."""
        self.path.unlink(missing_ok=True)

    def resolve_session_id(self, override: str | None = None) -> str:
        """Pick the session id a command should target.

        Args:
            override: Session id passed explicitly with --session

        Returns:
            The override if given, otherwise the stored session id

        Raises:
            NoActiveSessionError: If neither is available
        """
        if override:
            return override

        stored = self.load()
        if stored:
            return stored.id

        raise NoActiveSessionError()
