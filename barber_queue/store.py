from __future__ import annotations

# Snapshot store.
#
# The engines never talk to storage; they get a Snapshot and hand back writes.
# This module is the other side of that seam: it keeps entries + config per
# shop, versions every change and refuses writes computed from a stale
# snapshot (optimistic concurrency instead of a lock held across commands).

import json
import os
import threading
from dataclasses import dataclass, field, replace
from typing import Any, Protocol

from .errors import NotFound, VersionConflict
from .models import Provider, QueueEntry, ShopConfig, Snapshot
from .transitions import ConfigWrite, InsertEntry, UpdateEntry, Write


class SnapshotStore(Protocol):
    def load_snapshot(self, shop_id: str) -> Snapshot: ...

    def apply_writes(self, shop_id: str, expected_version: int, writes: list[Write]) -> int: ...


@dataclass
class ShopState:
    """In-memory state for one shop."""

    config: ShopConfig = field(default_factory=ShopConfig)
    entries: dict[str, QueueEntry] = field(default_factory=dict)  # insertion order
    version: int = 0
    next_seq: int = 1


class InMemoryStore:
    """Versioned per-shop state guarded by a lock."""

    def __init__(self, *, default_config: ShopConfig | None = None) -> None:
        self._lock = threading.Lock()
        self._shops: dict[str, ShopState] = {}
        self._default_config = default_config or ShopConfig()

    def _shop(self, shop_id: str) -> ShopState:
        st = self._shops.get(shop_id)
        if st is None:
            st = ShopState(config=self._default_config)
            self._shops[shop_id] = st
        return st

    def load_snapshot(self, shop_id: str) -> Snapshot:
        with self._lock:
            st = self._shop(shop_id)
            return Snapshot(entries=tuple(st.entries.values()), config=st.config, version=st.version)

    def apply_writes(self, shop_id: str, expected_version: int, writes: list[Write]) -> int:
        """Apply all writes or none; returns the new version."""
        with self._lock:
            st = self._shop(shop_id)
            if st.version != expected_version:
                raise VersionConflict(expected_version, st.version)

            # Stage on copies so a bad write leaves the shop untouched.
            entries = dict(st.entries)
            config = st.config
            next_seq = st.next_seq

            for w in writes:
                if isinstance(w, InsertEntry):
                    entries[w.entry.id] = replace(w.entry, seq=next_seq)
                    next_seq += 1
                elif isinstance(w, UpdateEntry):
                    current = entries.get(w.entry_id)
                    if current is None:
                        raise NotFound(w.entry_id)
                    entries[w.entry_id] = current.with_fields(w.fields)
                elif isinstance(w, ConfigWrite):
                    config = replace(config, **w.fields)
                else:
                    raise TypeError(f"unsupported write: {w!r}")

            staged = ShopState(config=config, entries=entries, version=st.version + 1, next_seq=next_seq)
            self._persist(shop_id, staged)
            self._shops[shop_id] = staged
            return staged.version

    def _persist(self, shop_id: str, staged: ShopState) -> None:
        """Hook for subclasses; called with the lock held, before the change is visible.

        Raising here leaves the shop untouched.
        """

    # -------------------- serialization --------------------

    def _dump(self, shops: dict[str, ShopState] | None = None) -> dict[str, Any]:
        return {
            shop_id: {
                "config": st.config.to_dict(),
                "entries": [e.to_dict() for e in st.entries.values()],
                "version": st.version,
                "next_seq": st.next_seq,
            }
            for shop_id, st in (self._shops if shops is None else shops).items()
        }

    def _load(self, data: dict[str, Any]) -> None:
        for shop_id, raw in data.items():
            entries = [QueueEntry.from_dict(e) for e in raw.get("entries", [])]
            self._shops[shop_id] = ShopState(
                config=ShopConfig.from_dict(raw.get("config", {})),
                entries={e.id: e for e in entries},
                version=int(raw.get("version", 0)),
                next_seq=int(raw.get("next_seq", len(entries) + 1)),
            )


class JsonFileStore(InMemoryStore):
    """InMemoryStore that survives restarts by rewriting a JSON file after every change."""

    def __init__(self, path: str, *, default_config: ShopConfig | None = None) -> None:
        super().__init__(default_config=default_config)
        self.path = path
        if os.path.exists(path):
            with open(path, "r", encoding="utf-8") as fh:
                self._load(json.load(fh))

    def _persist(self, shop_id: str, staged: ShopState) -> None:
        shops = dict(self._shops)
        shops[shop_id] = staged
        tmp = f"{self.path}.tmp"
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(self._dump(shops), fh, separators=(",", ":"))
        os.replace(tmp, self.path)


def parse_provider_arg(value: str) -> Provider:
    """Parse a `--provider` flag: `ID=NAME`, optionally suffixed with `:off`."""
    working = True
    if value.endswith(":off"):
        value = value[: -len(":off")]
        working = False
    pid, sep, name = value.partition("=")
    if not pid.strip():
        raise ValueError(f"bad --provider value: {value!r}")
    return Provider(id=pid.strip(), name=(name if sep else pid).strip(), working=working)
