from __future__ import annotations

# Transition engine.
#
# Every command is a plain function of (snapshot, arguments, now). Nothing here
# reads the clock, touches storage or keeps state between calls, so the
# service can re-run a command against a fresh snapshot after a version
# conflict. A command either raises a QueueError or returns the full list of
# writes the store must apply atomically.

from dataclasses import dataclass, field
from typing import Any, Union

from .errors import AlreadyTerminal, EmptyQueue, InvalidInput, InvalidState, NoActiveCall, NotFound
from .models import (
    CALLED,
    NO_SHOW,
    SERVED,
    WAITING,
    QueueEntry,
    Snapshot,
    active_call,
    normalize_first_name,
    normalize_initial,
)


@dataclass(frozen=True)
class InsertEntry:
    entry: QueueEntry


@dataclass(frozen=True)
class UpdateEntry:
    entry_id: str
    fields: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ConfigWrite:
    fields: dict[str, Any] = field(default_factory=dict)


Write = Union[InsertEntry, UpdateEntry, ConfigWrite]


def _fifo_key(e: QueueEntry) -> tuple[float, int]:
    return (e.created_at, e.seq)


def _require(snapshot: Snapshot, entry_id: str) -> QueueEntry:
    entry = snapshot.get(entry_id)
    if entry is None:
        raise NotFound(entry_id)
    return entry


def _clean_provider(snapshot: Snapshot, provider_id: str | None) -> str | None:
    if not provider_id:
        return None
    if provider_id not in snapshot.config.provider_ids():
        raise InvalidInput(f"Unknown provider '{provider_id}'")
    return provider_id


# -------------------- check-in --------------------


def check_in(
    snapshot: Snapshot,
    first_name: str,
    last_initial: str,
    preferred_provider_id: str | None = None,
    *,
    entry_id: str,
    now: float,
) -> list[Write]:
    first = normalize_first_name(first_name)
    initial = normalize_initial(last_initial)
    if not first:
        raise InvalidInput("First name is required")
    if not initial:
        raise InvalidInput("Last initial must be a single letter")

    entry = QueueEntry(
        id=entry_id,
        first_name=first,
        last_initial=initial,
        created_at=now,
        preferred_provider_id=_clean_provider(snapshot, preferred_provider_id),
    )
    return [InsertEntry(entry)]


# -------------------- calling --------------------


def accept(snapshot: Snapshot, entry_id: str, provider_id: str, *, now: float) -> list[Write]:
    """Call `entry_id` for `provider_id`, serving whoever was called before."""
    target = snapshot.get(entry_id)
    if target is None or target.status != WAITING:
        raise NotFound(entry_id, f"Entry '{entry_id}' is not waiting")

    writes: list[Write] = []
    current = active_call(snapshot.entries)
    if current is not None:
        writes.append(UpdateEntry(current.id, {"status": SERVED, "served_at": now}))

    writes.append(
        UpdateEntry(
            target.id,
            {
                "status": CALLED,
                "called_at": now,
                "called_by_provider_id": provider_id,
                "skipped_at": None,
            },
        )
    )
    return writes


def select_next(snapshot: Snapshot, provider_id: str) -> QueueEntry | None:
    """Pick who `provider_id` should call next.

    Clients waiting for this provider come first, then any-provider clients.
    Held (skipped) clients are never picked here.
    """
    eligible = [e for e in snapshot.entries if e.status == WAITING and e.skipped_at is None]

    mine = [e for e in eligible if e.preferred_provider_id == provider_id]
    if mine:
        return min(mine, key=_fifo_key)

    anyone = [e for e in eligible if e.preferred_provider_id is None]
    if anyone:
        return min(anyone, key=_fifo_key)
    return None


def call_next(snapshot: Snapshot, provider_id: str, *, now: float) -> tuple[str, list[Write]]:
    chosen = select_next(snapshot, provider_id)
    if chosen is None:
        raise EmptyQueue(f"Nobody is waiting for '{provider_id}'")
    return chosen.id, accept(snapshot, chosen.id, provider_id, now=now)


def recall(snapshot: Snapshot, *, now: float) -> tuple[str, list[Write]]:
    current = active_call(snapshot.entries)
    if current is None:
        raise NoActiveCall()
    return current.id, [UpdateEntry(current.id, {"called_at": now})]


# -------------------- holding area --------------------


def skip(snapshot: Snapshot, entry_id: str, *, now: float) -> list[Write]:
    entry = _require(snapshot, entry_id)
    if entry.is_terminal:
        raise AlreadyTerminal(entry_id, entry.status)
    if entry.status != WAITING:
        raise InvalidState(entry_id, entry.status, "skip")
    if entry.skipped_at is not None:
        raise InvalidState(entry_id, entry.status, "skip", "already skipped")
    if entry.preferred_provider_id is None:
        raise InvalidState(entry_id, entry.status, "skip", "only clients waiting for a specific provider can be held")
    return [UpdateEntry(entry_id, {"skipped_at": now})]


def undo_skip(snapshot: Snapshot, entry_id: str) -> list[Write]:
    entry = _require(snapshot, entry_id)
    if entry.is_terminal:
        raise AlreadyTerminal(entry_id, entry.status)
    if entry.status != WAITING or entry.skipped_at is None:
        raise InvalidState(entry_id, entry.status, "undo skip", "not skipped")
    return [UpdateEntry(entry_id, {"skipped_at": None})]


# -------------------- terminal transitions --------------------


def mark_served(snapshot: Snapshot, entry_id: str, *, now: float) -> list[Write]:
    entry = _require(snapshot, entry_id)
    if entry.is_terminal:
        raise AlreadyTerminal(entry_id, entry.status)
    return [UpdateEntry(entry_id, {"status": SERVED, "served_at": now, "skipped_at": None})]


def mark_no_show(snapshot: Snapshot, entry_id: str) -> list[Write]:
    entry = _require(snapshot, entry_id)
    if entry.is_terminal:
        raise AlreadyTerminal(entry_id, entry.status)
    return [UpdateEntry(entry_id, {"status": NO_SHOW, "skipped_at": None})]


# -------------------- preferences --------------------


def assign_preferred_provider(snapshot: Snapshot, entry_id: str, provider_id: str | None) -> list[Write]:
    entry = _require(snapshot, entry_id)
    if entry.status != WAITING:
        raise InvalidState(entry_id, entry.status, "reassign")

    fields: dict[str, Any] = {"preferred_provider_id": _clean_provider(snapshot, provider_id)}
    # A held client without a provider would drop out of every band.
    if fields["preferred_provider_id"] is None and entry.skipped_at is not None:
        fields["skipped_at"] = None
    return [UpdateEntry(entry_id, fields)]
