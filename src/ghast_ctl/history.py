"""Timeline of executed commands."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ghast_ctl.commands import IMAGE_PLACEHOLDER


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


class HistoryEntry(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    timestamp: str = Field(default_factory=_utc_now)
    command: str
    url_before: str
    url_after: str
    result: Any = None
    success: bool


class History:
    """Append-only, insertion-ordered log of every executed command."""

    def __init__(self) -> None:
        self._entries: list[HistoryEntry] = []

    def record(
        self,
        command: str,
        url_before: str,
        url_after: str,
        result: Any,
        success: bool,
        is_image: bool = False,
    ) -> HistoryEntry:
        entry = HistoryEntry(
            command=command,
            url_before=url_before,
            url_after=url_after,
            result=(
                IMAGE_PLACEHOLDER
                if is_image or isinstance(result, bytes)
                else result
            ),
            success=success,
        )
        self._entries.append(entry)
        return entry

    def get_all(self) -> list[HistoryEntry]:
        """Return a snapshot of the log, oldest first."""
        return list(self._entries)

    def to_json(self) -> list[dict[str, Any]]:
        return [entry.model_dump(mode="json", by_alias=True) for entry in self._entries]

    def clear(self) -> int:
        """Empty the log and return how many entries were dropped."""
        count = len(self._entries)
        self._entries = []
        return count

    def __len__(self) -> int:
        return len(self._entries)
