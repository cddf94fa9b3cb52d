"""
Rule-based recommendation engine for resolving a single conflict
"""
from typing import List, Dict, Optional
from .models import Train, Conflict, Recommendation, EstimatedImpact
from .config import OptimizationConstraints, ResolutionOptions
from .conflict_detector import generate_id
import logging

logger = logging.getLogger(__name__)

# Designer trust in each heuristic class, not calibrated probabilities.
# Ordering must stay hold > reroute > priority_change.
HOLD_CONFIDENCE = 0.85
REROUTE_CONFIDENCE = 0.72
PRIORITY_CHANGE_CONFIDENCE = 0.65

MIN_HOLD_MINUTES = 3
REROUTE_REDUCTION_SHARE = 0.6
PRIORITY_CHANGE_REDUCTION_SHARE = 0.4


def weighted_priority(train: Train, weights: Dict[str, float]) -> float:
    return train.priority * weights.get(train.type, 1.0)


def format_minutes(minutes: float) -> str:
    return f"{minutes:g}"


class RecommendationsEngine:
    def __init__(self, constraints: Optional[OptimizationConstraints] = None,
                 options: Optional[ResolutionOptions] = None):
        self.constraints = constraints or OptimizationConstraints()
        self.options = options or ResolutionOptions()

    def generate_recommendations(self, conflict: Conflict, trains: List[Train]) -> List[Recommendation]:
        """
        Candidate resolutions for one conflict, highest confidence first.

        A hold on the lower weighted-priority train is always offered. Reroute
        and priority change are added when the options allow them.
        """
        conflict_trains = [t for t in (self._get_train(trains, tid) for tid in conflict.trains) if t]
        if len(conflict_trains) < 2:
            logger.debug(f"Conflict {conflict.id}: fewer than two trains resolved, no recommendations")
            return []

        weights = self.constraints.priority_weights
        ranked = sorted(conflict_trains, key=lambda t: weighted_priority(t, weights), reverse=True)
        high_priority_train, low_priority_train = ranked[0], ranked[1]

        recommendations = [self._hold_recommendation(conflict, low_priority_train, high_priority_train)]

        if self.options.allow_rerouting:
            reroute = self._reroute_recommendation(conflict, low_priority_train)
            if reroute:
                recommendations.append(reroute)

        if self.options.allow_priority_override and conflict.severity == "critical":
            recommendations.append(
                self._priority_change_recommendation(conflict, high_priority_train, low_priority_train)
            )

        return sorted(recommendations, key=lambda r: r.confidence, reverse=True)

    def _hold_recommendation(self, conflict: Conflict, target: Train, priority_train: Train) -> Recommendation:
        hold_time = round(max(MIN_HOLD_MINUTES, conflict.estimated_delay + self.constraints.safety_buffer), 1)

        return Recommendation(
            id=generate_id(f"hold_{target.id}"),
            conflict_id=conflict.id,
            type="hold",
            target_train=target.id,
            action=f"Hold {target.name or target.id} ({target.number}) for {format_minutes(hold_time)} minutes",
            reasoning=f"Allow {priority_train.name or priority_train.id} to pass first. "
                      f"Priority: {priority_train.priority} vs {target.priority}",
            confidence=HOLD_CONFIDENCE,
            # holding is assumed to prevent the conflict entirely
            estimated_impact=EstimatedImpact(
                delay_reduction=conflict.estimated_delay,
                affected_trains=[target.id, priority_train.id],
            ),
        )

    def _reroute_recommendation(self, conflict: Conflict, target: Train) -> Optional[Recommendation]:
        if not target.current_station or not target.next_station:
            return None

        return Recommendation(
            id=generate_id(f"reroute_{target.id}"),
            conflict_id=conflict.id,
            type="reroute",
            target_train=target.id,
            action=f"Reroute {target.name or target.id} via alternate track",
            reasoning="Alternative route available with minimal delay impact",
            confidence=REROUTE_CONFIDENCE,
            estimated_impact=EstimatedImpact(
                delay_reduction=round(conflict.estimated_delay * REROUTE_REDUCTION_SHARE, 2),
                affected_trains=[target.id],
            ),
        )

    def _priority_change_recommendation(self, conflict: Conflict, high_priority_train: Train,
                                        low_priority_train: Train) -> Recommendation:
        return Recommendation(
            id=generate_id(f"priority_{high_priority_train.id}"),
            conflict_id=conflict.id,
            type="priority_change",
            target_train=high_priority_train.id,
            action=f"Temporarily reduce priority of {high_priority_train.name or high_priority_train.id}",
            reasoning="Critical situation requires priority adjustment to minimize system-wide delays",
            confidence=PRIORITY_CHANGE_CONFIDENCE,
            estimated_impact=EstimatedImpact(
                delay_reduction=round(conflict.estimated_delay * PRIORITY_CHANGE_REDUCTION_SHARE, 2),
                affected_trains=[high_priority_train.id, low_priority_train.id],
            ),
        )

    def _get_train(self, trains: List[Train], train_id: str) -> Optional[Train]:
        """Get train object by ID"""
        return next((t for t in trains if t.id == train_id), None)


def generate_recommendations(conflict: Conflict, trains: List[Train],
                             constraints: Optional[OptimizationConstraints] = None,
                             options: Optional[ResolutionOptions] = None) -> List[Recommendation]:
    """
    Main entry point for generating recommendations
    """
    engine = RecommendationsEngine(constraints, options)
    return engine.generate_recommendations(conflict, trains)
