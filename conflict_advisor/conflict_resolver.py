"""
Multi-strategy conflict resolution with simulation-backed scoring
"""
from typing import List, Dict, Optional, Tuple
from .models import (
    Train, Station, Conflict, Recommendation, SimulationOutcome, ConflictResolution,
    ResolutionEntry, SystemImpact, MultiResolutionResult,
)
from .optimizer import OptimizationEngine, conflict_priority, prioritize_conflicts
from .strategies import ResolutionStrategy, default_strategies
import copy
import logging

logger = logging.getLogger(__name__)

SEVERITY_BONUS = {"critical": 15, "high": 10, "medium": 5, "low": 0}
ALTERNATIVE_COUNT = 2


def score_recommendation(recommendation: Recommendation, simulation: SimulationOutcome,
                         conflict: Conflict) -> float:
    """0-100 score combining confidence, simulated benefit, feasibility and urgency"""
    score = recommendation.confidence * 40
    score += min(simulation.total_delay_reduction * 2, 30)
    if simulation.feasible:
        score += 20
    score -= len(simulation.new_conflicts) * 5
    score += SEVERITY_BONUS.get(conflict.severity, 0)
    return max(0.0, min(100.0, score))


class ConflictResolver:
    def __init__(self, engine: Optional[OptimizationEngine] = None,
                 strategies: Optional[Dict[str, ResolutionStrategy]] = None):
        self.engine = engine or OptimizationEngine()
        self.strategies = strategies if strategies is not None else default_strategies(self.engine.constraints)

    def register_strategy(self, strategy: ResolutionStrategy):
        self.strategies[strategy.key] = strategy

    def resolve_conflict(self, conflict: Conflict, trains: List[Train],
                         stations: List[Station]) -> Optional[ConflictResolution]:
        """
        Run every applicable strategy, simulate and score each candidate.

        Returns None when no strategy produced a candidate.
        """
        candidates: List[Recommendation] = []
        for strategy in self.strategies.values():
            if strategy.applies_to(conflict):
                candidates.extend(strategy.execute(conflict, trains))

        if not candidates:
            logger.debug(f"No strategy produced a candidate for conflict {conflict.id} ({conflict.type})")
            return None

        scored: List[Tuple[Recommendation, SimulationOutcome, float]] = []
        for rec in candidates:
            simulation = self.engine.simulate_recommendation(rec, trains, stations)
            scored.append((rec, simulation, score_recommendation(rec, simulation, conflict)))
        scored.sort(key=lambda item: item[2], reverse=True)

        best_rec, best_sim, best_score = scored[0]
        return ConflictResolution(
            conflict_id=conflict.id,
            primary_recommendation=best_rec,
            alternative_recommendations=[rec for rec, _, _ in scored[1:1 + ALTERNATIVE_COUNT]],
            score=best_score,
            confidence=best_score / 100,
            reasoning=self._explain(best_rec, best_sim, best_score),
        )

    def resolve_multiple_conflicts(self, conflicts: List[Conflict], trains: List[Train],
                                   stations: List[Station]) -> MultiResolutionResult:
        """
        Resolve a batch in priority order against one shared working copy.

        A primary recommendation is applied only when its confidence (score
        / 100) exceeds ``acceptance_threshold``; later conflicts are scored
        against the working copy as earlier resolutions left it.

        With the default options this applies nothing: the built-in strategies
        only propose holds, a hold is never feasible under "net" accounting,
        so no candidate scores above 49. Use ``hold_reduction_mode="estimated"``
        to have holds applied.
        """
        threshold = self.engine.options.acceptance_threshold
        working_trains = copy.deepcopy(trains)
        original_signatures = {c.signature for c in conflicts}

        resolutions = []
        total_delay_reduction = 0.0
        affected_trains = []
        created_signatures = set()

        for conflict in prioritize_conflicts(conflicts):
            resolution = self.resolve_conflict(conflict, working_trains, stations)
            if resolution is None or resolution.confidence <= threshold:
                continue

            primary = resolution.primary_recommendation
            self.engine.apply_recommendation(primary, working_trains)
            resolutions.append(ResolutionEntry(
                conflict_id=conflict.id,
                recommendation=primary,
                priority=conflict_priority(conflict),
                confidence=resolution.confidence,
            ))

            total_delay_reduction += primary.estimated_impact.delay_reduction
            for train_id in primary.estimated_impact.affected_trains:
                if train_id not in affected_trains:
                    affected_trains.append(train_id)

            after = self.engine.detect_conflicts(working_trains, stations, [])
            # a conflict introduced earlier and still standing is counted once
            created_signatures.update(c.signature for c in after if c.signature not in original_signatures)

        new_conflicts_created = len(created_signatures)

        logger.info(
            f"Resolved {len(resolutions)}/{len(conflicts)} conflicts, "
            f"{new_conflicts_created} new conflicts introduced"
        )
        return MultiResolutionResult(
            resolutions=resolutions,
            system_impact=SystemImpact(
                total_delay_reduction=total_delay_reduction,
                affected_trains=affected_trains,
                new_conflicts_created=new_conflicts_created,
            ),
            working_trains=working_trains,
        )

    def _explain(self, rec: Recommendation, simulation: SimulationOutcome, score: float) -> str:
        explanation = f"{rec.reasoning}. "
        if simulation.total_delay_reduction > 0:
            explanation += f"This action will reduce total system delay by {simulation.total_delay_reduction:g} minutes. "
        if simulation.new_conflicts:
            explanation += f"Note: {len(simulation.new_conflicts)} conflicts remain after this action. "
        explanation += f"Confidence: {round(score)}%"
        return explanation
