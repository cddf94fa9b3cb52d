from conflict_advisor.optimizer import (
    OptimizationEngine, optimize_schedule, prioritize_conflicts, conflict_priority, create_optimization_engine,
)
from conflict_advisor.conflict_detector import detect_conflicts
from conflict_advisor.config import Settings
from conflict_advisor.models import Conflict


def make_conflict(conflict_id, severity, estimated_delay):
    return Conflict(id=conflict_id, type="crossing", trains=["A", "B"], severity=severity,
                    estimated_delay=estimated_delay)


def test_delay_can_outrank_severity():
    critical = make_conflict("critical", "critical", 5)  # 4 * 5 = 20
    low = make_conflict("low", "low", 30)  # 1 * 30 = 30

    ordered = prioritize_conflicts([critical, low])

    assert [c.id for c in ordered] == ["low", "critical"]
    assert conflict_priority(low) == 30


def test_prioritize_leaves_input_alone():
    conflicts = [make_conflict("a", "low", 1), make_conflict("b", "high", 10)]
    prioritize_conflicts(conflicts)
    assert [c.id for c in conflicts] == ["a", "b"]


def test_net_mode_skips_holds_and_copies_input(crossing_pair):
    conflicts = detect_conflicts(crossing_pair, [], [])

    result = optimize_schedule(crossing_pair, conflicts)

    assert result.resolved_conflicts == []
    assert result.total_delay_reduction == 0
    assert result.optimized_trains == crossing_pair
    assert result.optimized_trains[0] is not crossing_pair[0]


def test_estimated_mode_resolves_conflict(crossing_pair, estimated_options):
    conflicts = detect_conflicts(crossing_pair, [], [])

    result = optimize_schedule(crossing_pair, conflicts, options=estimated_options)

    assert result.resolved_conflicts == [conflicts[0].id]
    assert result.total_delay_reduction == 2.5
    held = next(t for t in result.optimized_trains if t.id == "Y")
    assert held.delay == 6.0
    assert crossing_pair[1].delay == 0.5


def test_engine_built_from_settings(estimated_options):
    engine = create_optimization_engine(Settings(options=estimated_options))
    assert isinstance(engine, OptimizationEngine)
    assert engine.simulator.options.hold_reduction_mode == "estimated"
    assert engine.detector.constraints is engine.constraints
