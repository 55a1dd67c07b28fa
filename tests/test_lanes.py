import random

import pytest

from planner_layout import (
    ClippedEvent,
    LayoutOptions,
    assign_lanes,
    find_collisions,
    group_overlaps,
    slots_intersect,
)


def make_event(event_id: str, start_slot: int, end_slot: int, column: int = 0) -> ClippedEvent:
    return ClippedEvent(
        event_id=event_id,
        column=column,
        start_slot=start_slot,
        end_slot=end_slot,
    )


def lanes_by_id(events: list[ClippedEvent], **options) -> dict[str, tuple[int, int]]:
    assignments = assign_lanes(events, LayoutOptions(**options))
    return {item.event_id: (item.lane, item.lanes_in_group) for item in assignments}


def test_two_overlapping_events_split_the_column() -> None:
    lanes = lanes_by_id([make_event("A", 4, 8), make_event("B", 6, 10)])
    assert lanes["A"][0] != lanes["B"][0]
    assert lanes["A"] == (0, 2)
    assert lanes["B"] == (1, 2)


def test_back_to_back_events_share_a_lane() -> None:
    lanes = lanes_by_id([make_event("A", 4, 8), make_event("B", 8, 10)])
    assert lanes == {"A": (0, 1), "B": (0, 1)}


def test_longer_event_claims_lane_zero_on_tie() -> None:
    lanes = lanes_by_id([make_event("short", 4, 5), make_event("long", 4, 12)])
    assert lanes["long"] == (0, 2)
    assert lanes["short"] == (1, 2)


def test_shortest_first_tie_break() -> None:
    lanes = lanes_by_id(
        [make_event("short", 4, 5), make_event("long", 4, 12)], tie_break="shortest"
    )
    assert lanes["short"] == (0, 2)
    assert lanes["long"] == (1, 2)


def test_equal_events_ordered_by_id() -> None:
    lanes = lanes_by_id([make_event("b", 2, 4), make_event("a", 2, 4)])
    assert lanes["a"] == (0, 2)
    assert lanes["b"] == (1, 2)


def test_chained_overlap_shares_lane_count() -> None:
    # A and C never touch but both overlap B
    lanes = lanes_by_id(
        [make_event("A", 0, 4), make_event("B", 3, 7), make_event("C", 6, 10)]
    )
    assert lanes["A"][0] != lanes["B"][0]
    assert lanes["B"][0] != lanes["C"][0]
    assert {count for _, count in lanes.values()} == {2}


def test_separate_clusters_size_independently() -> None:
    lanes = lanes_by_id(
        [
            make_event("A", 0, 4),
            make_event("B", 1, 3),
            make_event("C", 2, 4),
            make_event("D", 10, 12),
        ]
    )
    assert lanes["A"][1] == lanes["B"][1] == lanes["C"][1] == 3
    assert lanes["D"] == (0, 1)


def test_columns_are_independent() -> None:
    lanes = lanes_by_id([make_event("mon", 4, 8, column=0), make_event("tue", 4, 8, column=1)])
    assert lanes == {"mon": (0, 1), "tue": (0, 1)}


def test_max_lanes_caps_growth() -> None:
    events = [make_event(str(idx), 0, 10) for idx in range(5)]
    lanes = lanes_by_id(events, max_lanes=3)
    assert {lane for lane, _ in lanes.values()} == {0, 1, 2}
    assert {count for _, count in lanes.values()} == {3}
    assert lanes["3"][0] == 2
    assert lanes["4"][0] == 2


def test_unbounded_lanes() -> None:
    events = [make_event(str(idx), 0, 10) for idx in range(5)]
    lanes = lanes_by_id(events, max_lanes=None)
    assert sorted(lane for lane, _ in lanes.values()) == [0, 1, 2, 3, 4]


def test_invalid_options_rejected() -> None:
    with pytest.raises(ValueError):
        assign_lanes([make_event("A", 0, 1)], LayoutOptions(max_lanes=0))
    with pytest.raises(ValueError):
        assign_lanes([make_event("A", 0, 1)], LayoutOptions(tie_break="random"))


def test_output_follows_input_order() -> None:
    events = [make_event("late", 10, 12), make_event("early", 0, 2)]
    assert [item.event_id for item in assign_lanes(events)] == ["late", "early"]


def test_duplicate_ids_are_kept_apart() -> None:
    assignments = assign_lanes([make_event("dup", 0, 4), make_event("dup", 2, 6)])
    assert [item.lane for item in assignments] == [0, 1]


def test_group_overlaps_returns_clusters() -> None:
    events = [make_event("A", 0, 4), make_event("B", 4, 6), make_event("C", 5, 8)]
    assert group_overlaps(events) == [[0], [1, 2]]


def test_find_collisions_reports_capped_overflow() -> None:
    events = [make_event(str(idx), 0, 10) for idx in range(4)]
    assignments = assign_lanes(events, LayoutOptions(max_lanes=3))
    assert find_collisions(events, assignments) == [("2", "3")]


def random_events(rng: random.Random, count: int) -> list[ClippedEvent]:
    events = []
    for idx in range(count):
        start = rng.randrange(0, 34)
        end = rng.randrange(start + 1, min(36, start + 8) + 1)
        events.append(make_event(f"e{idx}", start, end, column=rng.randrange(0, 3)))
    return events


@pytest.mark.parametrize("seed", range(25))
def test_overlapping_events_never_share_a_lane(seed: int) -> None:
    rng = random.Random(seed)
    events = random_events(rng, rng.randrange(1, 40))
    assignments = assign_lanes(events, LayoutOptions(max_lanes=None))
    assert find_collisions(events, assignments) == []
    for event, lane in zip(events, assignments):
        assert 0 <= lane.lane < lane.lanes_in_group


@pytest.mark.parametrize("seed", range(25))
def test_lanes_in_group_constant_within_cluster(seed: int) -> None:
    rng = random.Random(seed)
    events = random_events(rng, rng.randrange(1, 40))
    assignments = assign_lanes(events)
    for column in {event.column for event in events}:
        column_idx = [idx for idx, event in enumerate(events) if event.column == column]
        column_events = [events[idx] for idx in column_idx]
        for group in group_overlaps(column_events):
            counts = {assignments[column_idx[i]].lanes_in_group for i in group}
            assert len(counts) == 1
            lanes = [assignments[column_idx[i]].lane for i in group]
            assert counts == {max(lanes) + 1}


@pytest.mark.parametrize("seed", range(10))
def test_lane_assignment_is_deterministic(seed: int) -> None:
    rng = random.Random(seed)
    events = random_events(rng, 30)
    assert assign_lanes(events) == assign_lanes(list(events))


def test_slots_intersect_is_half_open() -> None:
    assert slots_intersect(make_event("A", 0, 4), make_event("B", 3, 5))
    assert not slots_intersect(make_event("A", 0, 4), make_event("B", 4, 5))
