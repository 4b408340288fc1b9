from __future__ import annotations

# Shop configuration mutations (provider roster, visible count).
#
# These carry no queue invariant beyond "provider ids are unique", so each
# one validates its input and returns a single ConfigWrite for the store.

from collections.abc import Iterable
from typing import Any

from .errors import InvalidInput
from .models import Provider, Snapshot
from .transitions import ConfigWrite


def replace_providers(snapshot: Snapshot, providers: Iterable[Provider | dict[str, Any]]) -> ConfigWrite:
    roster: list[Provider] = []
    seen: set[str] = set()
    for p in providers:
        if isinstance(p, dict):
            if not isinstance(p.get("name"), str):
                raise InvalidInput(f"Provider needs a name: {p!r}")
            if not isinstance(p.get("working", True), bool):
                raise InvalidInput(f"working must be true or false: {p!r}")
        try:
            provider = p if isinstance(p, Provider) else Provider.from_dict(p)
        except (KeyError, TypeError) as e:
            raise InvalidInput(f"Malformed provider: {p!r}") from e

        pid = provider.id.strip()
        name = provider.name.strip()
        if not pid or not name:
            raise InvalidInput("Providers need an id and a name")
        if pid in seen:
            raise InvalidInput(f"Duplicate provider id '{pid}'")
        seen.add(pid)
        roster.append(Provider(id=pid, name=name, working=provider.working))

    return ConfigWrite({"providers": tuple(roster)})


def set_visible_count(snapshot: Snapshot, visible_count: Any) -> ConfigWrite:
    if isinstance(visible_count, bool) or (isinstance(visible_count, float) and not visible_count.is_integer()):
        raise InvalidInput("visible_count must be an integer")
    try:
        n = int(visible_count)
    except (TypeError, ValueError) as e:
        raise InvalidInput("visible_count must be an integer") from e
    if n < 0:
        raise InvalidInput("visible_count must be >= 0")
    return ConfigWrite({"visible_count": n})
