import pytest
from conflict_advisor.simulator import (
    ResolutionSimulator, simulate_recommendation, apply_recommendation, extract_hold_minutes,
)
from conflict_advisor.conflict_detector import detect_conflicts
from conflict_advisor.recommendations import generate_recommendations
from conflict_advisor.config import ResolutionOptions
from conflict_advisor.models import Recommendation
from conftest import make_train


def top_recommendation(trains):
    conflict = detect_conflicts(trains, [], [])[0]
    return generate_recommendations(conflict, trains)[0]


@pytest.mark.parametrize("action, expected", [
    ("Hold Train (1) for 5.5 minutes", 5.5),
    ("Hold Train (1) for 1 minute", 1.0),
    ("Hold Train until the other clears", 5.0),
])
def test_extract_hold_minutes(action, expected):
    assert extract_hold_minutes(action) == expected


def test_net_hold_accounting_is_never_feasible(crossing_pair):
    hold = top_recommendation(crossing_pair)

    outcome = simulate_recommendation(hold, crossing_pair, [])

    assert outcome.total_delay_reduction == 0
    assert outcome.feasible is False
    assert outcome.affected_trains == ["Y"]


def test_estimated_hold_clears_conflict(crossing_pair, estimated_options):
    hold = top_recommendation(crossing_pair)

    outcome = simulate_recommendation(hold, crossing_pair, [], options=estimated_options)

    assert outcome.total_delay_reduction == 2.5
    assert outcome.new_conflicts == []
    assert outcome.feasible is True


def test_simulation_does_not_touch_input(crossing_pair, estimated_options):
    hold = top_recommendation(crossing_pair)
    before = [t.model_dump() for t in crossing_pair]

    simulate_recommendation(hold, crossing_pair, [], options=estimated_options)

    assert [t.model_dump() for t in crossing_pair] == before


def test_remaining_conflict_makes_resolution_infeasible(crossing_pair, estimated_options):
    # C shares X's platform, so holding Y cannot clear the section
    crossing_pair.append(make_train("C", current_station="STN001", next_station="STN004", delay=40))
    conflicts = detect_conflicts(crossing_pair, [], [])
    crossing = next(c for c in conflicts if c.type == "crossing")
    hold = generate_recommendations(crossing, crossing_pair)[0]

    outcome = simulate_recommendation(hold, crossing_pair, [], options=estimated_options)

    assert outcome.total_delay_reduction > 0
    assert [c.type for c in outcome.new_conflicts] == ["platform"]
    assert outcome.feasible is False


def test_missing_target_is_infeasible(crossing_pair):
    ghost = Recommendation(id="r1", conflict_id="c1", type="hold", target_train="GHOST",
                           action="Hold GHOST for 5 minutes", reasoning="", confidence=0.9)

    outcome = simulate_recommendation(ghost, crossing_pair, [])

    assert outcome.feasible is False
    assert outcome.affected_trains == []


def test_reroute_credited_with_estimate(crossing_pair):
    conflict = detect_conflicts(crossing_pair, [], [])[0]
    reroute = next(r for r in generate_recommendations(conflict, crossing_pair) if r.type == "reroute")

    outcome = simulate_recommendation(reroute, crossing_pair, [])

    assert outcome.total_delay_reduction == reroute.estimated_impact.delay_reduction
    assert outcome.feasible is True


def test_priority_change_neutral_unless_credited(crossing_pair):
    change = Recommendation(id="r1", conflict_id="c1", type="priority_change", target_train="X",
                            action="Reduce priority", reasoning="", confidence=0.65)
    change.estimated_impact.delay_reduction = 1.0

    assert simulate_recommendation(change, crossing_pair, []).total_delay_reduction == 0
    credited = simulate_recommendation(change, crossing_pair, [],
                                       options=ResolutionOptions(credit_neutral_actions=True))
    assert credited.total_delay_reduction == 1.0


def test_apply_recommendation_mutates_in_place(crossing_pair):
    hold = top_recommendation(crossing_pair)

    target = apply_recommendation(hold, crossing_pair)

    assert target is crossing_pair[1]
    assert crossing_pair[1].delay == 6.0


def test_apply_priority_change_floors_at_one():
    low = make_train("L", priority=1)
    change = Recommendation(id="r1", conflict_id="c1", type="priority_change", target_train="L",
                            action="Reduce priority", reasoning="", confidence=0.65)

    apply_recommendation(change, [low])

    assert low.priority == 1


def test_tracks_only_rechecked_when_enabled(tracks):
    a = make_train("A", priority=9, current_station="STN001", next_station="STN002")
    b = make_train("B", priority=2, current_station="STN002", next_station="STN001", delay=30)
    proceed = Recommendation(id="r1", conflict_id="c1", type="proceed", target_train="A",
                             action="Proceed", reasoning="", confidence=0.6)

    default = ResolutionSimulator().simulate_recommendation(proceed, [a, b], [], tracks)
    strict = ResolutionSimulator(options=ResolutionOptions(revalidate_tracks=True)).simulate_recommendation(
        proceed, [a, b], [], tracks
    )

    assert default.new_conflicts == []
    assert [c.type for c in strict.new_conflicts] == ["track"]
