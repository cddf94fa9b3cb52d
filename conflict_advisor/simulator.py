"""
Project the effect of a single recommendation on a cloned train set
"""
from typing import List, Optional
from .models import Train, Station, Track, Recommendation, SimulationOutcome
from .config import OptimizationConstraints, ResolutionOptions
from .conflict_detector import ConflictDetector
import copy
import re
import logging

logger = logging.getLogger(__name__)

HOLD_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*minutes?")


def extract_hold_minutes(action: str, default: float = 5) -> float:
    """Minute count embedded in the action text, or ``default`` if there is none"""
    match = HOLD_PATTERN.search(action)
    return float(match.group(1)) if match else default


def total_delay(trains: List[Train]) -> float:
    return sum(t.delay for t in trains)


def apply_recommendation(recommendation: Recommendation, trains: List[Train],
                         constraints: Optional[OptimizationConstraints] = None) -> Optional[Train]:
    """
    Mutate the target train in ``trains`` in place.

    Only ever call this on a working copy. Returns the mutated train, or None
    when the target is not in the list.
    """
    constraints = constraints or OptimizationConstraints()
    target = next((t for t in trains if t.id == recommendation.target_train), None)
    if target is None:
        logger.warning(f"Recommendation {recommendation.id}: target train {recommendation.target_train} not found")
        return None

    if recommendation.type == "hold":
        target.delay += extract_hold_minutes(recommendation.action, constraints.default_hold_minutes)
    elif recommendation.type == "reroute":
        target.delay += constraints.rerouting_delay
    elif recommendation.type == "priority_change":
        target.priority = max(1, target.priority - 1)
    # proceed leaves the train as it is

    return target


class ResolutionSimulator:
    def __init__(self, detector: Optional[ConflictDetector] = None,
                 constraints: Optional[OptimizationConstraints] = None,
                 options: Optional[ResolutionOptions] = None):
        self.constraints = constraints or OptimizationConstraints()
        self.options = options or ResolutionOptions()
        self.detector = detector or ConflictDetector(self.constraints)

    def simulate_recommendation(self, recommendation: Recommendation, trains: List[Train],
                                stations: List[Station],
                                tracks: Optional[List[Track]] = None) -> SimulationOutcome:
        """
        Apply ``recommendation`` to a deep copy of ``trains`` and re-detect.

        The caller's trains are never touched. ``new_conflicts`` holds every
        conflict left in the projected state; the recommendation is feasible
        only with a positive delay reduction and no conflicts left at all.
        Tracks are re-checked only when ``revalidate_tracks`` is set.
        """
        simulated = copy.deepcopy(trains)
        target = apply_recommendation(recommendation, simulated, self.constraints)
        if target is None:
            return SimulationOutcome(feasible=False)

        reduction = self._delay_reduction(recommendation, trains, simulated)

        detect_tracks = list(tracks or []) if self.options.revalidate_tracks else []
        new_conflicts = self.detector.detect_conflicts(simulated, stations, detect_tracks)

        feasible = reduction > 0 and not new_conflicts
        logger.debug(
            f"Simulated {recommendation.type} on {target.id}: reduction={reduction}, "
            f"remaining conflicts={len(new_conflicts)}, feasible={feasible}"
        )
        return SimulationOutcome(
            total_delay_reduction=reduction,
            affected_trains=[target.id],
            new_conflicts=new_conflicts,
            feasible=feasible,
        )

    def _delay_reduction(self, recommendation: Recommendation, original: List[Train],
                         simulated: List[Train]) -> float:
        estimated = recommendation.estimated_impact.delay_reduction

        if recommendation.type == "hold":
            if self.options.hold_reduction_mode == "estimated":
                return estimated
            return max(0.0, total_delay(original) - total_delay(simulated))
        if recommendation.type == "reroute":
            return estimated
        # priority_change and proceed add no delay of their own
        return estimated if self.options.credit_neutral_actions else 0.0


def simulate_recommendation(recommendation: Recommendation, trains: List[Train], stations: List[Station],
                            constraints: Optional[OptimizationConstraints] = None,
                            options: Optional[ResolutionOptions] = None) -> SimulationOutcome:
    simulator = ResolutionSimulator(constraints=constraints, options=options)
    return simulator.simulate_recommendation(recommendation, trains, stations)
