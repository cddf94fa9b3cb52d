"""
Resolution strategies feeding the multi-conflict resolver.

Each strategy is a plain function ``(conflict, trains) -> [Recommendation]``
declared for a subset of conflict types. The resolver unions the output of
every strategy that applies to a conflict.
"""
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional
from .models import Train, Conflict, Recommendation, EstimatedImpact
from .config import OptimizationConstraints
from .conflict_detector import estimate_arrival_time, generate_id

StrategyFn = Callable[[Conflict, List[Train]], List[Recommendation]]


@dataclass
class ResolutionStrategy:
    key: str
    name: str
    description: str
    execute: StrategyFn
    applicable_conflict_types: List[str] = field(default_factory=list)

    def applies_to(self, conflict: Conflict) -> bool:
        return conflict.type in self.applicable_conflict_types


def _conflict_trains(conflict: Conflict, trains: List[Train]) -> List[Train]:
    return [t for t in trains if t.id in conflict.trains]


def first_come_first_served(conflict: Conflict, trains: List[Train],
                            constraints: Optional[OptimizationConstraints] = None) -> List[Recommendation]:
    """Hold whichever train is estimated to arrive later"""
    constraints = constraints or OptimizationConstraints()
    conflict_trains = _conflict_trains(conflict, trains)
    if len(conflict_trains) < 2:
        return []

    ordered = sorted(conflict_trains, key=lambda t: estimate_arrival_time(t, constraints))
    first, second = ordered[0], ordered[1]

    return [Recommendation(
        id=generate_id(f"fcfs_{conflict.id}"),
        conflict_id=conflict.id,
        type="hold",
        target_train=second.id,
        action=f"Hold {second.name or second.id} until {first.name or first.id} clears",
        reasoning="First-come-first-served principle applied",
        confidence=0.7,
        estimated_impact=EstimatedImpact(
            delay_reduction=round(conflict.estimated_delay * 0.5, 2),
            affected_trains=[first.id, second.id],
        ),
    )]


def priority_based(conflict: Conflict, trains: List[Train]) -> List[Recommendation]:
    """Hold the train with the lower raw priority"""
    conflict_trains = _conflict_trains(conflict, trains)
    if len(conflict_trains) < 2:
        return []

    ordered = sorted(conflict_trains, key=lambda t: t.priority, reverse=True)
    high, low = ordered[0], ordered[1]

    return [Recommendation(
        id=generate_id(f"priority_{conflict.id}"),
        conflict_id=conflict.id,
        type="hold",
        target_train=low.id,
        action=f"Hold {low.name or low.id} to allow {high.name or high.id} to proceed",
        reasoning=f"Priority-based resolution: {high.type} ({high.priority}) > {low.type} ({low.priority})",
        confidence=0.85,
        estimated_impact=EstimatedImpact(
            delay_reduction=round(conflict.estimated_delay * 0.7, 2),
            affected_trains=[high.id, low.id],
        ),
    )]


def minimum_system_delay(conflict: Conflict, trains: List[Train]) -> List[Recommendation]:
    """One hold candidate per train, scored by what holding it costs the others"""
    conflict_trains = _conflict_trains(conflict, trains)
    if len(conflict_trains) < 2:
        return []

    recommendations = []
    for held in conflict_trains:
        others = [t for t in conflict_trains if t.id != held.id]
        reduction = max(0, sum(t.priority for t in others) - 2 * held.priority)

        recommendations.append(Recommendation(
            id=generate_id(f"min_delay_{held.id}"),
            conflict_id=conflict.id,
            type="hold",
            target_train=held.id,
            action=f"Hold {held.name or held.id} for optimal system delay",
            reasoning=f"Holding this train minimizes total system delay by {reduction} minutes",
            confidence=0.8,
            estimated_impact=EstimatedImpact(
                delay_reduction=reduction,
                affected_trains=list(conflict.trains),
            ),
        ))

    return sorted(recommendations, key=lambda r: r.estimated_impact.delay_reduction, reverse=True)


def default_strategies(constraints: Optional[OptimizationConstraints] = None) -> Dict[str, ResolutionStrategy]:
    constraints = constraints or OptimizationConstraints()
    return {
        "fcfs": ResolutionStrategy(
            key="fcfs",
            name="First-Come-First-Served",
            description="Prioritize trains based on arrival order",
            applicable_conflict_types=["crossing", "platform"],
            execute=lambda conflict, trains: first_come_first_served(conflict, trains, constraints),
        ),
        "priority": ResolutionStrategy(
            key="priority",
            name="Priority-Based Resolution",
            description="Prioritize trains based on type and importance",
            applicable_conflict_types=["crossing", "platform", "track"],
            execute=priority_based,
        ),
        "min_delay": ResolutionStrategy(
            key="min_delay",
            name="Minimum System Delay",
            description="Minimize total system delay across all affected trains",
            applicable_conflict_types=["crossing", "platform", "track", "signal"],
            execute=minimum_system_delay,
        ),
    }
