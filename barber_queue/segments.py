"""Display segmentation.

`compute_display_segments` is the single function every viewing surface
(display board, staff console) runs over the same snapshot, so they can never
disagree about who is "next".

Bands, top to bottom:

- held: clients skipped while waiting for a specific provider, oldest skip first
- highlight: the next `highlight_window_size` clients of the active queue
- overflow: the rest of the active queue, cut so the three bands together
  never exceed `visible_count`

The highlight window is the number of working providers minus the number of
distinct providers that already have a held client waiting for them.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from .models import WAITING, QueueEntry, ShopConfig


@dataclass(frozen=True)
class DisplaySegments:
    held: tuple[QueueEntry, ...]
    highlight: tuple[QueueEntry, ...]
    overflow: tuple[QueueEntry, ...]
    highlight_window_size: int
    visible_count: int
    provider_count: int

    def to_message(self) -> dict[str, Any]:
        def rows(entries: Iterable[QueueEntry]) -> list[dict[str, Any]]:
            return [
                {"id": e.id, "name": e.display_name, "preferred_provider_id": e.preferred_provider_id}
                for e in entries
            ]

        return {
            "type": "segments",
            "held": rows(self.held),
            "highlight": rows(self.highlight),
            "overflow": rows(self.overflow),
            "highlight_window_size": self.highlight_window_size,
            "visible_count": self.visible_count,
            "provider_count": self.provider_count,
        }


def provider_count(config: ShopConfig) -> int:
    n = len(config.working_providers())
    return n if n > 0 else max(0, config.min_provider_count)


def compute_display_segments(entries: Iterable[QueueEntry], config: ShopConfig) -> DisplaySegments:
    waiting = [e for e in entries if e.status == WAITING]
    n = provider_count(config)

    held = sorted(
        (e for e in waiting if e.preferred_provider_id is not None and e.skipped_at is not None),
        key=lambda e: (e.skipped_at, e.created_at, e.seq),
    )
    held_ids = {e.id for e in held}
    active = sorted((e for e in waiting if e.id not in held_ids), key=lambda e: (e.created_at, e.seq))

    occupied = len({e.preferred_provider_id for e in held})
    window = max(0, n - occupied)

    visible = max(0, config.visible_count)
    highlight = active[:window]
    room = max(0, visible - len(held) - len(highlight))
    overflow = active[window : window + room]

    return DisplaySegments(
        held=tuple(held),
        highlight=tuple(highlight),
        overflow=tuple(overflow),
        highlight_window_size=window,
        visible_count=visible,
        provider_count=n,
    )


# -------------------- staff console helpers --------------------


def up_next(entries: Iterable[QueueEntry]) -> QueueEntry | None:
    """First waiting client who is not in the holding area."""
    active = [e for e in entries if e.status == WAITING and e.skipped_at is None]
    return min(active, key=lambda e: (e.created_at, e.seq)) if active else None


def held_by_provider(segments: DisplaySegments) -> dict[str, list[QueueEntry]]:
    grouped: dict[str, list[QueueEntry]] = {}
    for e in segments.held:
        grouped.setdefault(str(e.preferred_provider_id), []).append(e)
    return grouped


def provider_name_map(config: ShopConfig) -> dict[str, str]:
    return {p.id: p.name for p in config.providers}


def provider_label(config: ShopConfig, provider_id: str | None) -> str | None:
    if provider_id is None:
        return None
    return provider_name_map(config).get(provider_id, provider_id)
