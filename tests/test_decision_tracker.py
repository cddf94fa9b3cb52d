import pytest
from conflict_advisor.decision_tracker import DecisionTracker, AIDecision, DecisionOutcome
from conflict_advisor.conflict_detector import detect_conflicts
from conflict_advisor.recommendations import generate_recommendations


def decision(user_action, resolved=None):
    outcome = DecisionOutcome(conflict_resolved=resolved) if resolved is not None else None
    return AIDecision(conflict_id="c1", recommendation_type="hold", recommendation="Hold Y for 5 minutes",
                      confidence=0.85, user_action=user_action, outcome=outcome)


def test_empty_tracker_rates():
    tracker = DecisionTracker()
    assert tracker.get_acceptance_rate() == 0
    assert tracker.get_success_rate() == 0


def test_acceptance_and_success_rates():
    tracker = DecisionTracker()
    for d in (decision("accepted", True), decision("accepted", False), decision("accepted"),
              decision("rejected")):
        tracker.log_decision(d)

    assert tracker.get_acceptance_rate() == 75
    assert tracker.get_success_rate() == 50
    assert len(tracker.get_decision_history()) == 4


def test_record_from_recommendation(crossing_pair):
    conflict = detect_conflicts(crossing_pair, [], [])[0]
    hold = generate_recommendations(conflict, crossing_pair)[0]
    tracker = DecisionTracker()

    logged = tracker.record(hold, conflict, "accepted")

    assert logged.recommendation == hold.action
    assert logged.context.severity == "critical"
    assert logged.context.train_ids == ["X", "Y"]


def test_save_and_load(tmp_path):
    path = tmp_path / "decisions.json"
    tracker = DecisionTracker(storage_path=str(path))
    tracker.log_decision(decision("accepted", True))
    tracker.log_decision(decision("rejected"))

    restored = DecisionTracker()
    restored.load(path)

    assert path.exists()
    assert restored.get_decision_history() == tracker.get_decision_history()
    assert restored.get_acceptance_rate() == 50


def test_load_missing_file_starts_empty(tmp_path):
    tracker = DecisionTracker()
    tracker.log_decision(decision("accepted"))
    assert tracker.load(tmp_path / "nope.json") == []


def test_invalid_user_action_rejected():
    with pytest.raises(ValueError):
        decision("ignored")
