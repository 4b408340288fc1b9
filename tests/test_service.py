from barber_queue import transitions
from barber_queue.auth import PinAuthorizer
from barber_queue.errors import VersionConflict
from barber_queue.models import CALLED, SERVED, Provider, ShopConfig, active_call
from barber_queue.notify import RecordingNotifier
from barber_queue.service import QueueService
from barber_queue.store import InMemoryStore, JsonFileStore

PIN = "1234"
CONFIG = ShopConfig(providers=(Provider("P1", "Sam"), Provider("P2", "Alex")), visible_count=5)


def _service(store=None):
    ids = iter(f"E{i}" for i in range(1, 100))
    ticks = iter(range(1000, 100000))
    notifier = RecordingNotifier()
    svc = QueueService(
        store=store or InMemoryStore(default_config=CONFIG),
        authorizer=PinAuthorizer(staff_pin=PIN, admin_pin="9999"),
        notifier=notifier,
        shop_id="s",
        clock=lambda: float(next(ticks)),
        id_factory=lambda: next(ids),
    )
    return svc, notifier


class FlakyStore(InMemoryStore):
    """Raises VersionConflict for the first `conflicts` writes."""

    def __init__(self, conflicts: int) -> None:
        super().__init__(default_config=CONFIG)
        self.conflicts = conflicts
        self.attempts = 0

    def apply_writes(self, shop_id, expected_version, writes):
        self.attempts += 1
        if self.conflicts > 0:
            self.conflicts -= 1
            raise VersionConflict(expected_version, expected_version + 1)
        return super().apply_writes(shop_id, expected_version, writes)


def test_check_in_needs_no_pin_and_notifies():
    svc, notifier = _service()
    res = svc.check_in("Sam", "quinn")
    assert res.ok
    assert res.entry_id == "E1"
    assert svc.snapshot().get("E1").last_initial == "Q"
    assert notifier.events == [("entries_changed", "s", 1)]


def test_invalid_check_in_is_a_typed_result():
    svc, notifier = _service()
    assert svc.check_in("", "Q").error.code == "invalid_input"
    assert svc.check_in("Sam", "").error.code == "invalid_input"
    assert notifier.events == []


def test_staff_commands_require_pin():
    svc, _ = _service()
    svc.check_in("Sam", "Q")
    res = svc.call_next("P1", credential=None)
    assert not res.ok
    assert res.error.code == "unauthorized"
    assert svc.call_next("P1", credential="0000").error.code == "unauthorized"
    assert svc.snapshot().get("E1").status == "waiting"


def test_unauthorized_is_checked_before_reading():
    class ExplodingStore(InMemoryStore):
        def load_snapshot(self, shop_id):
            raise AssertionError("snapshot read before authorization")

    svc, _ = _service(ExplodingStore(default_config=CONFIG))
    assert svc.recall(credential="bad").error.code == "unauthorized"


def test_call_flow_with_auto_serve():
    svc, notifier = _service()
    svc.check_in("Ana", "K")
    svc.check_in("Bo", "L")
    svc.check_in("Cy", "M")

    assert svc.accept("E1", "P1", credential=PIN).ok
    res = svc.accept("E3", "P2", credential=PIN)
    assert res.ok

    snap = svc.snapshot()
    assert snap.get("E1").status == SERVED
    assert snap.get("E3").status == CALLED
    assert snap.get("E3").called_by_provider_id == "P2"
    assert notifier.events[-1][0] == "entries_changed"


def test_nothing_to_do_results():
    svc, _ = _service()
    assert svc.call_next("P1", credential=PIN).error.code == "empty_queue"
    assert svc.recall(credential=PIN).error.code == "no_active_call"


def test_admin_pin_works_and_login_reports_role():
    svc, _ = _service()
    assert svc.login("9999").role == "admin"
    assert svc.login(PIN).role == "staff"
    assert svc.login("nope").error.code == "unauthorized"
    svc.check_in("Ana", "K")
    assert svc.call_next("P2", credential="9999").entry_id == "E1"


def test_version_conflict_is_retried_once():
    store = FlakyStore(conflicts=1)
    svc, _ = _service(store)
    res = svc.check_in("Ana", "K")
    assert res.ok
    assert store.attempts == 2
    assert len(svc.snapshot().entries) == 1


def test_second_conflict_is_transient_failure():
    store = FlakyStore(conflicts=2)
    svc, notifier = _service(store)
    res = svc.check_in("Ana", "K")
    assert not res.ok
    assert res.error.code == "transient"
    assert store.attempts == 2
    assert svc.snapshot().entries == ()
    assert notifier.events == []


def test_configuration_commands():
    svc, notifier = _service()
    res = svc.set_providers([{"id": "P1", "name": "Sam"}, {"id": "P3", "name": "Kim", "working": False}], credential=PIN)
    assert res.ok
    assert notifier.events[-1][0] == "config_changed"
    assert [p.id for p in svc.snapshot().config.providers] == ["P1", "P3"]

    dup = svc.set_providers([Provider("P1", "Sam"), Provider("P1", "Again")], credential=PIN)
    assert dup.error.code == "invalid_input"

    assert svc.set_visible_count(3, credential=PIN).ok
    assert svc.snapshot().config.visible_count == 3
    assert svc.set_visible_count(-1, credential=PIN).error.code == "invalid_input"
    assert svc.set_visible_count(2, credential=None).error.code == "unauthorized"


def test_segments_follow_the_queue():
    svc, _ = _service()
    svc.check_in("Ana", "K", "P1")
    svc.check_in("Bo", "L")
    svc.skip("E1", credential=PIN)

    seg = svc.segments()
    assert [e.id for e in seg.held] == ["E1"]
    assert seg.highlight_window_size == 1
    assert [e.id for e in seg.highlight] == ["E2"]


def test_result_messages():
    svc, _ = _service()
    ok = svc.check_in("Ana", "K").to_message()
    assert ok["type"] == "ok"
    assert ok["entry_id"] == "E1"
    err = svc.mark_served("missing", credential=PIN).to_message()
    assert err == {"type": "error", "code": "not_found", "message": "Entry 'missing' not found"}


class RacingStore(InMemoryStore):
    """Commits `competing(snapshot)` just before the next write lands."""

    def __init__(self) -> None:
        super().__init__(default_config=CONFIG)
        self.competing = None
        self.attempts = 0

    def apply_writes(self, shop_id, expected_version, writes):
        self.attempts += 1
        if self.competing is not None:
            competing, self.competing = self.competing, None
            snap = self.load_snapshot(shop_id)
            super().apply_writes(shop_id, snap.version, competing(snap))
        return super().apply_writes(shop_id, expected_version, writes)


def test_retry_revalidates_against_the_competing_write():
    store = RacingStore()
    svc, _ = _service(store)
    svc.check_in("Ana", "K")
    svc.check_in("Bo", "L")

    # Another desk calls Ana while this call_next is in flight.
    store.attempts = 0
    store.competing = lambda snap: transitions.accept(snap, "E1", "P2", now=500.0)
    res = svc.call_next("P1", credential=PIN)

    assert res.ok
    assert res.entry_id == "E2"
    assert store.attempts == 2
    snap = svc.snapshot()
    assert snap.get("E1").status == SERVED
    assert snap.get("E2").status == CALLED
    assert [e.id for e in snap.entries if e.status == CALLED] == ["E2"]
    assert active_call(snap.entries).id == "E2"


def test_non_ascii_pin_is_unauthorized():
    svc, _ = _service()
    svc.check_in("Ana", "K")
    assert svc.recall(credential="pässword").error.code == "unauthorized"
    assert svc.call_next("P1", credential="é").error.code == "unauthorized"
    assert svc.login("é").error.code == "unauthorized"


def test_non_ascii_pin_can_be_configured():
    svc = QueueService(store=InMemoryStore(), authorizer=PinAuthorizer(staff_pin="schlüssel"))
    assert svc.login("schlüssel").role == "staff"
    assert svc.login("schlussel").error.code == "unauthorized"


def test_failed_save_is_transient_and_changes_nothing(tmp_path):
    store = JsonFileStore(str(tmp_path / "missing" / "queue.json"), default_config=CONFIG)
    svc, notifier = _service(store)
    res = svc.check_in("Ana", "K")
    assert res.error.code == "transient"
    snap = svc.snapshot()
    assert snap.entries == ()
    assert snap.version == 0
    assert notifier.events == []


def test_provider_fields_are_checked():
    svc, _ = _service()
    bad_working = svc.set_providers([{"id": "P1", "name": "Sam", "working": "false"}], credential=PIN)
    assert bad_working.error.code == "invalid_input"
    no_name = svc.set_providers([{"id": "P1"}], credential=PIN)
    assert no_name.error.code == "invalid_input"
    null_name = svc.set_providers([{"id": "P1", "name": None}], credential=PIN)
    assert null_name.error.code == "invalid_input"
    assert [p.name for p in svc.snapshot().config.providers] == ["Sam", "Alex"]
