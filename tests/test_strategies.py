from conflict_advisor.strategies import (
    default_strategies, first_come_first_served, priority_based, minimum_system_delay,
)
from conflict_advisor.conflict_detector import detect_conflicts
from conflict_advisor.models import Conflict


def test_fcfs_holds_later_arrival(crossing_pair):
    conflict = detect_conflicts(crossing_pair, [], [])[0]

    [rec] = first_come_first_served(conflict, crossing_pair)

    assert rec.target_train == "Y"
    assert rec.confidence == 0.7
    assert rec.estimated_impact.delay_reduction == 1.25


def test_priority_based_holds_lower_priority(crossing_pair):
    conflict = detect_conflicts(crossing_pair, [], [])[0]

    [rec] = priority_based(conflict, crossing_pair)

    assert rec.target_train == "Y"
    assert rec.confidence == 0.85
    assert rec.estimated_impact.delay_reduction == 1.75


def test_minimum_system_delay_offers_every_train(crossing_pair):
    conflict = detect_conflicts(crossing_pair, [], [])[0]

    recs = minimum_system_delay(conflict, crossing_pair)

    # holding Y (3) spares X (9): 9 - 2 * 3 = 3; holding X scores nothing
    assert [r.target_train for r in recs] == ["Y", "X"]
    assert [r.estimated_impact.delay_reduction for r in recs] == [3, 0]


def test_strategies_need_two_trains(express_x):
    conflict = Conflict(id="c1", type="crossing", trains=["X", "GONE"], severity="high", estimated_delay=2)
    assert first_come_first_served(conflict, [express_x]) == []
    assert priority_based(conflict, [express_x]) == []
    assert minimum_system_delay(conflict, [express_x]) == []


def test_default_strategies_cover_conflict_types():
    strategies = default_strategies()
    signal = Conflict(id="c1", type="signal", trains=["A", "B"], severity="high")

    assert set(strategies) == {"fcfs", "priority", "min_delay"}
    assert [k for k, s in strategies.items() if s.applies_to(signal)] == ["min_delay"]
