from __future__ import annotations

# Command service: the one place that wires the pure engines to the
# collaborators.
#
# For every command:
#   1) authorize (before anything is read)
#   2) load the latest snapshot
#   3) run the engine function -> writes
#   4) apply the writes conditional on the snapshot version
#   5) on a version conflict, redo 2-4 once against a fresh snapshot
#   6) notify viewers
#
# Every method returns a CommandResult. QueueErrors never escape, so each
# surface can render a specific message from `error.code`.

import time
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from . import settings, transitions
from .auth import STAFF_ROLES
from .errors import ErrorResponse, QueueError, TransientFailure, Unauthorized, VersionConflict
from .models import Provider, Snapshot
from .notify import Notifier, NullNotifier
from .segments import DisplaySegments, compute_display_segments
from .store import SnapshotStore
from .transitions import Write

# (entry id touched or None, writes)
Step = Callable[[Snapshot], tuple[str | None, list[Write]]]

ENTRIES = "entries"
CONFIG = "config"


@dataclass(frozen=True)
class CommandResult:
    ok: bool
    error: ErrorResponse | None = None
    entry_id: str | None = None
    role: str | None = None
    version: int | None = None

    @classmethod
    def failure(cls, err: QueueError) -> "CommandResult":
        return cls(ok=False, error=err.to_response())

    def to_message(self) -> dict[str, Any]:
        if self.error is not None:
            return self.error.to_message()
        msg: dict[str, Any] = {"type": "ok"}
        if self.entry_id is not None:
            msg["entry_id"] = self.entry_id
        if self.role is not None:
            msg["role"] = self.role
        if self.version is not None:
            msg["version"] = self.version
        return msg


class QueueService:
    """Runs queue commands for one shop."""

    def __init__(
        self,
        *,
        store: SnapshotStore,
        authorizer,
        notifier: Notifier | None = None,
        shop_id: str = "main",
        clock: Callable[[], float] = time.time,
        id_factory: Callable[[], str] = lambda: uuid.uuid4().hex,
    ) -> None:
        self.store = store
        self.authorizer = authorizer
        self.notifier = notifier or NullNotifier()
        self.shop_id = shop_id
        self._clock = clock
        self._id_factory = id_factory

    # -------------------- reads --------------------

    def snapshot(self) -> Snapshot:
        return self.store.load_snapshot(self.shop_id)

    def segments(self) -> DisplaySegments:
        snap = self.snapshot()
        return compute_display_segments(snap.entries, snap.config)

    def login(self, credential: str | None) -> CommandResult:
        role = self.authorizer.resolve_role(credential)
        if role is None:
            return CommandResult.failure(Unauthorized("Wrong PIN"))
        return CommandResult(ok=True, role=role)

    # -------------------- kiosk --------------------

    def check_in(self, first_name: str, last_initial: str, preferred_provider_id: str | None = None) -> CommandResult:
        entry_id = self._id_factory()

        def step(snap: Snapshot):
            now = self._clock()
            return entry_id, transitions.check_in(
                snap, first_name, last_initial, preferred_provider_id, entry_id=entry_id, now=now
            )

        return self._run(None, step, staff_only=False)

    # -------------------- staff --------------------

    def accept(self, entry_id: str, provider_id: str, *, credential: str | None) -> CommandResult:
        return self._run(
            credential,
            lambda snap: (entry_id, transitions.accept(snap, entry_id, provider_id, now=self._clock())),
        )

    def call_next(self, provider_id: str, *, credential: str | None) -> CommandResult:
        return self._run(credential, lambda snap: transitions.call_next(snap, provider_id, now=self._clock()))

    def skip(self, entry_id: str, *, credential: str | None) -> CommandResult:
        return self._run(credential, lambda snap: (entry_id, transitions.skip(snap, entry_id, now=self._clock())))

    def undo_skip(self, entry_id: str, *, credential: str | None) -> CommandResult:
        return self._run(credential, lambda snap: (entry_id, transitions.undo_skip(snap, entry_id)))

    def recall(self, *, credential: str | None) -> CommandResult:
        return self._run(credential, lambda snap: transitions.recall(snap, now=self._clock()))

    def mark_served(self, entry_id: str, *, credential: str | None) -> CommandResult:
        return self._run(
            credential, lambda snap: (entry_id, transitions.mark_served(snap, entry_id, now=self._clock()))
        )

    def mark_no_show(self, entry_id: str, *, credential: str | None) -> CommandResult:
        return self._run(credential, lambda snap: (entry_id, transitions.mark_no_show(snap, entry_id)))

    def assign_preferred_provider(
        self, entry_id: str, provider_id: str | None, *, credential: str | None
    ) -> CommandResult:
        return self._run(
            credential,
            lambda snap: (entry_id, transitions.assign_preferred_provider(snap, entry_id, provider_id)),
        )

    # -------------------- configuration --------------------

    def set_providers(
        self, providers: Iterable[Provider | dict[str, Any]], *, credential: str | None
    ) -> CommandResult:
        roster = list(providers)
        return self._run(credential, lambda snap: (None, [settings.replace_providers(snap, roster)]), kind=CONFIG)

    def set_visible_count(self, visible_count: Any, *, credential: str | None) -> CommandResult:
        return self._run(
            credential, lambda snap: (None, [settings.set_visible_count(snap, visible_count)]), kind=CONFIG
        )

    # -------------------- internals --------------------

    def _run(self, credential: str | None, step: Step, *, staff_only: bool = True, kind: str = ENTRIES) -> CommandResult:
        try:
            if staff_only and self.authorizer.resolve_role(credential) not in STAFF_ROLES:
                raise Unauthorized()

            try:
                entry_id, version = self._attempt(step)
            except VersionConflict:
                # Commands are pure functions of the snapshot; re-running is safe.
                try:
                    entry_id, version = self._attempt(step)
                except VersionConflict as e:
                    raise TransientFailure() from e
        except QueueError as e:
            return CommandResult.failure(e)
        except OSError as e:
            # Nothing was committed; the store stages writes until they are saved.
            print(f"[service] could not save shop {self.shop_id}: {e}")
            return CommandResult.failure(TransientFailure("Could not save the queue, try again"))

        if kind == CONFIG:
            self.notifier.config_changed(self.shop_id, version)
        else:
            self.notifier.entries_changed(self.shop_id, version)
        return CommandResult(ok=True, entry_id=entry_id, version=version)

    def _attempt(self, step: Step) -> tuple[str | None, int]:
        snap = self.store.load_snapshot(self.shop_id)
        entry_id, writes = step(snap)
        version = self.store.apply_writes(self.shop_id, snap.version, writes)
        return entry_id, version
