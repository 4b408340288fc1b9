import random

from barber_queue.models import CALLED, QueueEntry, Provider, ShopConfig
from barber_queue.segments import (
    compute_display_segments,
    held_by_provider,
    provider_label,
    up_next,
)


def _entry(eid, created, preferred=None, skipped=None, status="waiting", seq=0):
    return QueueEntry(
        id=eid,
        first_name=eid,
        last_initial="X",
        created_at=created,
        preferred_provider_id=preferred,
        skipped_at=skipped,
        status=status,
        seq=seq,
    )


def _config(working=2, visible=10, off=0):
    providers = [Provider(f"P{i}", f"Barber {i}") for i in range(1, working + 1)]
    providers += [Provider(f"X{i}", f"Off {i}", working=False) for i in range(1, off + 1)]
    return ShopConfig(providers=tuple(providers), visible_count=visible)


def _ids(entries):
    return [e.id for e in entries]


def test_two_providers_no_held():
    entries = [_entry(f"E{i}", float(i)) for i in range(1, 6)]
    seg = compute_display_segments(entries, _config(working=2, visible=4, off=1))

    assert seg.provider_count == 2
    assert seg.highlight_window_size == 2
    assert _ids(seg.highlight) == ["E1", "E2"]
    assert _ids(seg.overflow) == ["E3", "E4"]
    assert seg.held == ()


def test_held_client_shrinks_window():
    entries = [_entry("E1", 1.0, preferred="P1", skipped=10.0)] + [_entry(f"E{i}", float(i)) for i in range(2, 6)]
    seg = compute_display_segments(entries, _config(working=2))

    assert _ids(seg.held) == ["E1"]
    assert seg.highlight_window_size == 1
    assert _ids(seg.highlight) == ["E2"]
    assert _ids(seg.overflow) == ["E3", "E4", "E5"]


def test_window_counts_distinct_providers_and_never_goes_negative():
    entries = [
        _entry("A", 1.0, preferred="P1", skipped=30.0),
        _entry("B", 2.0, preferred="P1", skipped=20.0),
        _entry("C", 3.0, preferred="P2", skipped=40.0),
        _entry("D", 4.0),
    ]
    seg = compute_display_segments(entries, _config(working=2))
    assert _ids(seg.held) == ["B", "A", "C"]
    assert seg.highlight_window_size == 0
    assert seg.highlight == ()
    assert _ids(seg.overflow) == ["D"]

    seg = compute_display_segments(entries, _config(working=1))
    assert seg.highlight_window_size == 0


def test_held_and_highlight_take_priority_over_overflow():
    entries = [
        _entry("H1", 1.0, preferred="P1", skipped=5.0),
        _entry("H2", 2.0, preferred="P2", skipped=6.0),
    ] + [_entry(f"E{i}", 10.0 + i) for i in range(5)]
    seg = compute_display_segments(entries, _config(working=3, visible=3))

    assert len(seg.held) == 2
    assert _ids(seg.highlight) == ["E0"]
    assert seg.overflow == ()

    seg = compute_display_segments(entries, _config(working=3, visible=1))
    assert len(seg.held) + len(seg.highlight) == 3
    assert seg.overflow == ()


def test_specific_provider_clients_not_skipped_stay_in_active_queue():
    entries = [_entry("E1", 1.0, preferred="P1"), _entry("E2", 2.0)]
    seg = compute_display_segments(entries, _config(working=1))
    assert _ids(seg.highlight) == ["E1"]
    assert _ids(seg.overflow) == ["E2"]


def test_only_waiting_entries_are_shown():
    entries = [
        _entry("C", 0.5, status=CALLED),
        _entry("S", 0.6, status="served"),
        _entry("N", 0.7, status="no_show"),
        _entry("W", 1.0),
    ]
    seg = compute_display_segments(entries, _config(working=2))
    assert _ids(seg.highlight) == ["W"]


def test_no_working_providers_falls_back_to_minimum():
    entries = [_entry(f"E{i}", float(i)) for i in range(3)]
    cfg = ShopConfig(providers=(Provider("P1", "Sam", working=False),), min_provider_count=1)
    seg = compute_display_segments(entries, cfg)
    assert seg.provider_count == 1
    assert _ids(seg.highlight) == ["E0"]


def test_output_is_deterministic_and_order_independent():
    entries = [
        _entry("E1", 1.0, preferred="P1", skipped=9.0),
        _entry("E2", 2.0),
        _entry("E3", 2.0, seq=5),
        _entry("E4", 3.0, preferred="P2"),
        _entry("E5", 4.0),
    ]
    cfg = _config(working=3, visible=4)
    first = compute_display_segments(entries, cfg)
    assert compute_display_segments(entries, cfg) == first
    assert compute_display_segments(entries, cfg).to_message() == first.to_message()

    rng = random.Random(7)
    for _ in range(5):
        shuffled = entries[:]
        rng.shuffle(shuffled)
        assert compute_display_segments(shuffled, cfg) == first


def test_window_bounded_by_provider_count():
    for working in range(0, 4):
        for held in range(0, 4):
            entries = [_entry(f"H{i}", float(i), preferred=f"P{i + 1}", skipped=100.0 + i) for i in range(held)]
            entries += [_entry(f"E{i}", 50.0 + i) for i in range(5)]
            seg = compute_display_segments(entries, _config(working=working))
            assert 0 <= seg.highlight_window_size <= seg.provider_count


def test_staff_helpers():
    cfg = _config(working=2)
    entries = [
        _entry("A", 1.0, preferred="P1", skipped=5.0),
        _entry("B", 2.0, preferred="P2", skipped=4.0),
        _entry("C", 3.0, preferred="P1", skipped=6.0),
        _entry("D", 4.0),
    ]
    seg = compute_display_segments(entries, cfg)
    grouped = held_by_provider(seg)
    assert list(grouped) == ["P2", "P1"]
    assert _ids(grouped["P1"]) == ["A", "C"]

    assert up_next(entries).id == "D"
    assert up_next([]) is None
    assert provider_label(cfg, "P1") == "Barber 1"
    assert provider_label(cfg, "gone") == "gone"
    assert provider_label(cfg, None) is None
