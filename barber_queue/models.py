"""Queue data model shared by the engines, the store and the surfaces.

Timestamps are float epoch seconds (`time.time()`). Every ordering in the
system uses `seq` (the store's insertion counter) as the last tie-breaker so
two entries created in the same instant still sort deterministically.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from typing import Any

WAITING = "waiting"
CALLED = "called"
SERVED = "served"
NO_SHOW = "no_show"

STATUSES = (WAITING, CALLED, SERVED, NO_SHOW)
TERMINAL_STATUSES = frozenset({SERVED, NO_SHOW})

DEFAULT_VISIBLE_COUNT = 10


def normalize_first_name(value: str | None) -> str:
    return (value or "").strip()


def normalize_initial(value: str | None) -> str:
    """Reduce free text to a single upper-case letter ("quinn" -> "Q").

    Returns an empty string when nothing usable is left.
    """
    t = (value or "").strip().upper()[:1]
    return t if t.isalpha() else ""


@dataclass(frozen=True)
class Provider:
    id: str
    name: str
    working: bool = True

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Provider":
        return cls(id=str(data["id"]), name=str(data.get("name", data["id"])), working=bool(data.get("working", True)))


@dataclass(frozen=True)
class ShopConfig:
    providers: tuple[Provider, ...] = ()
    visible_count: int = DEFAULT_VISIBLE_COUNT
    # Roster size assumed when nobody is marked working.
    min_provider_count: int = 1

    def provider_ids(self) -> set[str]:
        return {p.id for p in self.providers}

    def working_providers(self) -> list[Provider]:
        return [p for p in self.providers if p.working]

    def to_dict(self) -> dict[str, Any]:
        return {
            "providers": [p.to_dict() for p in self.providers],
            "visible_count": self.visible_count,
            "min_provider_count": self.min_provider_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ShopConfig":
        return cls(
            providers=tuple(Provider.from_dict(p) for p in data.get("providers", [])),
            visible_count=int(data.get("visible_count", DEFAULT_VISIBLE_COUNT)),
            min_provider_count=int(data.get("min_provider_count", 1)),
        )


@dataclass(frozen=True)
class QueueEntry:
    """One client's visit."""

    id: str
    first_name: str
    last_initial: str
    created_at: float
    preferred_provider_id: str | None = None
    status: str = WAITING
    called_at: float | None = None
    called_by_provider_id: str | None = None
    served_at: float | None = None
    skipped_at: float | None = None
    seq: int = 0

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_initial}."

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_held(self) -> bool:
        """Skipped while waiting for a specific provider."""
        return self.status == WAITING and self.skipped_at is not None and self.preferred_provider_id is not None

    def with_fields(self, fields: dict[str, Any]) -> "QueueEntry":
        return replace(self, **fields)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QueueEntry":
        return cls(**{k: data[k] for k in cls.__dataclass_fields__ if k in data})


@dataclass(frozen=True)
class Snapshot:
    """Everything the engines read for one shop at one store version."""

    entries: tuple[QueueEntry, ...] = ()
    config: ShopConfig = field(default_factory=ShopConfig)
    version: int = 0

    def get(self, entry_id: str) -> QueueEntry | None:
        for e in self.entries:
            if e.id == entry_id:
                return e
        return None

    def waiting(self) -> list[QueueEntry]:
        return [e for e in self.entries if e.status == WAITING]

    def to_message(self) -> dict[str, Any]:
        return {
            "type": "snapshot",
            "version": self.version,
            "entries": [e.to_dict() for e in self.entries if not e.is_terminal],
            "config": self.config.to_dict(),
        }

    @classmethod
    def from_message(cls, msg: dict[str, Any]) -> "Snapshot":
        return cls(
            entries=tuple(QueueEntry.from_dict(e) for e in msg.get("entries", [])),
            config=ShopConfig.from_dict(msg.get("config", {})),
            version=int(msg.get("version", 0)),
        )


def active_call(entries) -> QueueEntry | None:
    """Return the entry currently being called, if any.

    Derived on every read: among `called` entries the one with the latest
    `called_at` wins (ties go to the later insertion).
    """
    called = [e for e in entries if e.status == CALLED]
    if not called:
        return None
    return max(called, key=lambda e: (e.called_at or 0.0, e.seq))
