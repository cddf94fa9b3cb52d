"""
Minute-by-minute scenario simulation, what-if analysis and scenario comparison
"""
from typing import List, Dict, Optional, Sequence
from datetime import datetime, timedelta
from .models import (
    Train, Conflict, Recommendation, KPI, SimulationState, SimulationScenario, SimulationResult,
    TimelineEvent, EventImpact, KPIComparison, KPIImprovements, WhatIfAnalysis, ScenarioComparison,
    ScenarioModification, DelayInjection, TrainHold, PriorityChange, RerouteTrain, SignalFailure, TrackBlockage,
)
from .optimizer import OptimizationEngine
from .kpi import calculate_kpis
import copy
import logging
import time
import uuid

logger = logging.getLogger(__name__)

KPI_INTERVAL_MINUTES = 10
POSITION_STEP = 0.001  # degrees of latitude per km travelled

SCORE_WEIGHTS = {
    "punctuality": 0.4,
    "average_delay": 0.3,
    "throughput": 0.2,
    "conflicts_resolved": 0.1,
}


class ScenarioNotFoundError(KeyError):
    pass


def scenario_score(comparison: KPIComparison) -> float:
    improvements = comparison.improvements
    return (
        improvements.punctuality * SCORE_WEIGHTS["punctuality"]
        + improvements.average_delay * SCORE_WEIGHTS["average_delay"]
        + improvements.throughput * SCORE_WEIGHTS["throughput"]
        + improvements.conflicts_resolved * SCORE_WEIGHTS["conflicts_resolved"]
    )


def compare_kpis(baseline: KPI, simulated: KPI) -> KPIComparison:
    """Positive improvements are always better; average delay is inverted"""
    return KPIComparison(
        baseline=baseline,
        simulated=simulated,
        improvements=KPIImprovements(
            punctuality=simulated.punctuality - baseline.punctuality,
            average_delay=baseline.average_delay - simulated.average_delay,
            throughput=simulated.throughput - baseline.throughput,
            conflicts_resolved=simulated.conflicts_resolved - baseline.conflicts_resolved,
        ),
    )


class SimulationEngine:
    """
    Owns a registry of scenarios and their latest results.

    Every run works on its own deep copy of the scenario's baseline, so
    scenarios can be re-run and compared freely.
    """

    def __init__(self, engine: Optional[OptimizationEngine] = None):
        self.engine = engine or OptimizationEngine()
        self.scenarios: Dict[str, SimulationScenario] = {}
        self.results: Dict[str, SimulationResult] = {}

    def create_scenario(self, name: str, description: str, baseline_state: SimulationState,
                        modifications: Optional[Sequence[ScenarioModification]] = None,
                        duration: int = 120) -> SimulationScenario:
        scenario = SimulationScenario(
            id=f"scenario_{uuid.uuid4().hex}",
            name=name,
            description=description,
            baseline_state=copy.deepcopy(baseline_state),
            modifications=list(modifications or []),
            duration=duration,
        )
        self.scenarios[scenario.id] = scenario
        logger.debug(f"Created scenario {scenario.id} ({name}) with {len(scenario.modifications)} modifications")
        return scenario

    def run_simulation(self, scenario_id: str) -> SimulationResult:
        """
        Drive the scenario for ``duration + 1`` one-minute ticks.

        Each tick applies the modifications scheduled for that minute, nudges
        train positions, detects conflicts and records the ones not seen
        earlier in this run, auto-applies their recommendations above
        ``auto_apply_threshold`` and refreshes KPIs every tenth minute.
        """
        scenario = self.scenarios.get(scenario_id)
        if scenario is None:
            raise ScenarioNotFoundError(scenario_id)

        started = time.perf_counter()
        state = copy.deepcopy(scenario.baseline_state)
        auto_apply_threshold = self.engine.options.auto_apply_threshold
        acceptance_rate = state.kpis.ai_acceptance_rate if state.kpis else 0.0

        baseline_kpis = calculate_kpis(
            state.trains,
            ai_acceptance_rate=acceptance_rate,
            on_time_threshold=self.engine.constraints.on_time_threshold,
        )

        timeline: List[TimelineEvent] = []
        conflicts: List[Conflict] = []
        recommendations: List[Recommendation] = []
        seen = set()
        applied = 0

        pending = sorted(scenario.modifications, key=lambda m: m.applied_at)

        for minute in range(scenario.duration + 1):
            now = state.timestamp + timedelta(minutes=minute)

            for modification in [m for m in pending if m.applied_at == minute]:
                timeline.append(self._apply_modification(state, modification, now, minute))

            self._update_positions(state.trains)

            state.conflicts = self.engine.detect_conflicts(state.trains, state.stations, state.tracks)
            fresh_recommendations = []
            for conflict in state.conflicts:
                if conflict.signature in seen:
                    continue
                seen.add(conflict.signature)
                conflicts.append(conflict)

                conflict_recommendations = self.engine.generate_recommendations(conflict, state.trains)
                recommendations.extend(conflict_recommendations)
                fresh_recommendations.extend(conflict_recommendations)

                timeline.append(TimelineEvent(
                    timestamp=now,
                    minute=minute,
                    type="conflict_detected",
                    description=f"{conflict.type} conflict detected at {conflict.location}",
                    affected_entities=list(conflict.trains),
                    impact=EventImpact(delay_change=conflict.estimated_delay, conflicts_created=1),
                ))

            for rec in fresh_recommendations:
                if rec.confidence <= auto_apply_threshold:
                    continue
                if self.engine.apply_recommendation(rec, state.trains) is None:
                    continue
                applied += 1
                timeline.append(TimelineEvent(
                    timestamp=now,
                    minute=minute,
                    type="recommendation_applied",
                    description=f"Applied recommendation: {rec.action}",
                    affected_entities=[rec.target_train],
                    impact=EventImpact(
                        delay_change=-rec.estimated_impact.delay_reduction,
                        conflicts_resolved=1,
                    ),
                ))

            if minute % KPI_INTERVAL_MINUTES == 0:
                state.kpis = self._current_kpis(state.trains, applied, acceptance_rate)

        final_kpis = self._current_kpis(state.trains, applied, acceptance_rate)
        state.kpis = final_kpis
        comparison = compare_kpis(baseline_kpis, final_kpis)

        result = SimulationResult(
            scenario_id=scenario_id,
            final_state=state,
            timeline=timeline,
            kpi_comparison=comparison,
            conflicts=conflicts,
            recommendations=recommendations,
            success=not state.conflicts or comparison.improvements.punctuality > 0,
            execution_time=time.perf_counter() - started,
        )
        self.results[scenario_id] = result

        logger.info(
            f"Scenario {scenario.name} ({scenario_id}): {len(conflicts)} conflicts, "
            f"{applied} recommendations applied, success={result.success}"
        )
        return result

    def perform_what_if_analysis(self, question: str, baseline_state: SimulationState,
                                 alternative_modifications: Sequence[Sequence[ScenarioModification]],
                                 duration: int = 120) -> WhatIfAnalysis:
        """
        Run an unmodified baseline plus one scenario per modification list
        and recommend the alternative with the best weighted KPI score.
        """
        baseline = self.create_scenario(
            "Baseline", "Current state without modifications", baseline_state, duration=duration
        )
        scenarios = [baseline]
        for index, modifications in enumerate(alternative_modifications):
            scenarios.append(self.create_scenario(
                f"Alternative {index + 1}", f"What-if scenario {index + 1}", baseline_state,
                modifications, duration=duration,
            ))

        results = [self.run_simulation(s.id) for s in scenarios]

        candidates = results[1:] or results
        best = max(candidates, key=lambda r: scenario_score(r.kpi_comparison))

        return WhatIfAnalysis(
            question=question,
            scenarios=scenarios,
            results=results,
            recommended_scenario_id=best.scenario_id,
            recommendation=self._what_if_recommendation(question, best),
            confidence=self._what_if_confidence(results, best),
        )

    def create_predefined_scenarios(self, baseline_state: SimulationState) -> List[SimulationScenario]:
        return [
            self.create_scenario(
                "Signal Failure", "Signal failure at main junction for 30 minutes", baseline_state,
                [SignalFailure(target_id="STN002", applied_at=15, duration=30,
                               affected_signals=["GZB-S1", "GZB-S2"])],
            ),
            self.create_scenario(
                "Express Train Delay", "Major express train delayed by 20 minutes", baseline_state,
                [DelayInjection(target_id="TRN001", applied_at=10, delay=20, reason="Technical issue")],
            ),
            self.create_scenario(
                "Track Blockage", "Main track blocked for maintenance", baseline_state,
                [TrackBlockage(target_id="TRK001", applied_at=20, duration=45, reason="Emergency maintenance")],
            ),
            self.create_scenario(
                "Cascade Delays", "Multiple trains delayed due to weather", baseline_state,
                [
                    DelayInjection(target_id="TRN001", applied_at=5, delay=15, reason="Weather"),
                    DelayInjection(target_id="TRN002", applied_at=8, delay=10, reason="Weather"),
                ],
            ),
        ]

    def compare_scenarios(self, scenario_id1: str, scenario_id2: str) -> ScenarioComparison:
        """Compare the latest results of two scenarios; both must have been run"""
        for scenario_id in (scenario_id1, scenario_id2):
            if scenario_id not in self.results:
                raise ScenarioNotFoundError(scenario_id)

        result1, result2 = self.results[scenario_id1], self.results[scenario_id2]
        kpi1, kpi2 = result1.kpi_comparison.simulated, result2.kpi_comparison.simulated
        score1, score2 = scenario_score(result1.kpi_comparison), scenario_score(result2.kpi_comparison)

        scale = max(abs(score1), abs(score2))
        improvement = abs((score1 - score2) / scale * 100) if scale else 0.0

        return ScenarioComparison(
            scenario1=result1,
            scenario2=result2,
            better_punctuality=scenario_id1 if kpi1.punctuality > kpi2.punctuality else scenario_id2,
            lower_average_delay=scenario_id1 if kpi1.average_delay < kpi2.average_delay else scenario_id2,
            higher_throughput=scenario_id1 if kpi1.throughput > kpi2.throughput else scenario_id2,
            fewer_conflicts=scenario_id1 if len(result1.conflicts) < len(result2.conflicts) else scenario_id2,
            overall_better=scenario_id1 if score1 > score2 else scenario_id2,
            improvement_percentage=improvement,
        )

    def get_scenario(self, scenario_id: str) -> Optional[SimulationScenario]:
        return self.scenarios.get(scenario_id)

    def get_result(self, scenario_id: str) -> Optional[SimulationResult]:
        return self.results.get(scenario_id)

    def get_all_scenarios(self) -> List[SimulationScenario]:
        return list(self.scenarios.values())

    def get_all_results(self) -> List[SimulationResult]:
        return list(self.results.values())

    def delete_scenario(self, scenario_id: str) -> bool:
        self.results.pop(scenario_id, None)
        return self.scenarios.pop(scenario_id, None) is not None

    # Tick helpers

    def _current_kpis(self, trains: List[Train], applied: int, acceptance_rate: float) -> KPI:
        return calculate_kpis(
            trains,
            conflicts_resolved=applied,
            ai_acceptance_rate=acceptance_rate,
            on_time_threshold=self.engine.constraints.on_time_threshold,
        )

    def _update_positions(self, trains: List[Train]):
        # Linear placeholder, not route following
        for train in trains:
            if train.speed > 0 and train.status != "cancelled":
                direction = 1 if train.next_station else -1
                train.coordinates.lat += train.speed / 60 * POSITION_STEP * direction

    def _apply_modification(self, state: SimulationState, modification: ScenarioModification,
                            timestamp: datetime, minute: int) -> TimelineEvent:
        """
        Mutate ``state`` for one modification. ``duration`` is informational;
        effects are not reverted when it elapses.
        """
        constraints = self.engine.constraints
        affected: List[str] = []
        delay_change = 0.0
        description = None

        if isinstance(modification, (DelayInjection, TrainHold, PriorityChange, RerouteTrain)):
            train = next((t for t in state.trains if t.id == modification.target_id), None)
            if train is not None:
                affected.append(train.id)
                label = train.name or train.id
                if isinstance(modification, DelayInjection):
                    train.delay += modification.delay
                    train.status = "delayed"
                    delay_change = modification.delay
                    description = (f"Injected {modification.delay:g}m delay to {label} "
                                   f"({modification.reason or 'Unknown reason'})")
                elif isinstance(modification, TrainHold):
                    train.delay += modification.hold_minutes
                    train.status = "delayed"
                    delay_change = modification.hold_minutes
                    description = f"Held {label} for {modification.hold_minutes:g} minutes"
                elif isinstance(modification, PriorityChange):
                    new_priority = modification.priority if modification.priority is not None else train.priority + 1
                    train.priority = max(1, min(10, new_priority))
                    description = f"Changed priority of {label} to {train.priority}"
                else:
                    train.delay += constraints.rerouting_delay
                    train.status = "diverted"
                    delay_change = constraints.rerouting_delay
                    via = f" via {modification.via}" if modification.via else ""
                    description = f"Rerouted {label}{via}"

        elif isinstance(modification, SignalFailure):
            station = next((s for s in state.stations if s.id == modification.target_id), None)
            if station is not None:
                for train in state.trains:
                    if train.current_station == station.id:
                        train.delay += constraints.signal_failure_delay
                        delay_change += constraints.signal_failure_delay
                        affected.append(train.id)
                description = f"Signal failure at {station.name or station.id} affecting {len(affected)} trains"

        elif isinstance(modification, TrackBlockage):
            track = next((t for t in state.tracks if t.id == modification.target_id), None)
            if track is not None:
                track.status = "blocked"
                for train in state.trains:
                    if track.connects(train.current_station, train.next_station):
                        train.delay += constraints.track_blockage_delay
                        delay_change += constraints.track_blockage_delay
                        affected.append(train.id)
                description = f"Track blockage on {track.name or track.id} affecting {len(affected)} trains"

        if description is None:
            logger.warning(f"Modification {modification.type}: target {modification.target_id} not found")
            description = f"{modification.type} skipped, {modification.target_id} not found"

        return TimelineEvent(
            timestamp=timestamp,
            minute=minute,
            type="modification_applied",
            description=description,
            affected_entities=affected,
            impact=EventImpact(delay_change=delay_change),
        )

    # What-if helpers

    def _what_if_recommendation(self, question: str, best: SimulationResult) -> str:
        improvements = best.kpi_comparison.improvements
        scenario = self.scenarios.get(best.scenario_id)
        recommendation = f'Based on the simulation analysis for "{question}", '
        if scenario is not None:
            recommendation += f"{scenario.name} is recommended. "
        if improvements.punctuality > 5:
            recommendation += f"It improves punctuality by {improvements.punctuality:.1f}%. "
        if improvements.average_delay > 2:
            recommendation += f"It reduces average delays by {improvements.average_delay:.1f} minutes. "
        if improvements.throughput > 1:
            recommendation += f"System throughput increases by {improvements.throughput:.1f} trains per hour. "
        recommendation += "This scenario provides the best overall system performance."
        return recommendation

    def _what_if_confidence(self, results: List[SimulationResult], best: SimulationResult) -> float:
        best_score = scenario_score(best.kpi_comparison)
        mean_score = sum(scenario_score(r.kpi_comparison) for r in results) / len(results)
        if abs(mean_score) < 1e-9:
            improvement = 0.0 if abs(best_score) < 1e-9 else 1.0
        else:
            improvement = (best_score - mean_score) / abs(mean_score)
        return min(0.95, max(0.5, 0.7 + improvement * 0.3))
