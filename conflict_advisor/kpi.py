"""
Scalar health metrics derived from a train/conflict snapshot
"""
from typing import List, Sequence
from .models import Train, Conflict, KPI

ON_TIME_THRESHOLD = 5  # minutes
CONFLICT_EFFICIENCY_PENALTY = 5


def active_trains(trains: Sequence[Train]) -> List[Train]:
    return [t for t in trains if t.status != "cancelled"]


def calculate_punctuality(trains: Sequence[Train], on_time_threshold: float = ON_TIME_THRESHOLD) -> float:
    """Percentage of trains with delay <= ``on_time_threshold``; 0 for no trains"""
    if not trains:
        return 0.0
    on_time = len([t for t in trains if t.delay <= on_time_threshold])
    return on_time / len(trains) * 100


def calculate_average_delay(trains: Sequence[Train]) -> float:
    if not trains:
        return 0.0
    return sum(t.delay for t in trains) / len(trains)


def calculate_throughput(trains: Sequence[Train], time_window_hours: float = 1.0, scale: float = 1.0) -> float:
    """Active train count per hour, a proxy for trains through the section"""
    if time_window_hours <= 0:
        return 0.0
    return len(active_trains(trains)) * scale / time_window_hours


def calculate_system_efficiency(trains: Sequence[Train], conflicts: Sequence[Conflict] = ()) -> float:
    return max(0.0, calculate_punctuality(trains) - CONFLICT_EFFICIENCY_PENALTY * len(conflicts))


def calculate_kpis(trains: Sequence[Train], conflicts_resolved: int = 0, ai_acceptance_rate: float = 0.0,
                   on_time_threshold: float = ON_TIME_THRESHOLD) -> KPI:
    """``ai_acceptance_rate`` is fed in from outside, never computed here"""
    return KPI(
        punctuality=calculate_punctuality(trains, on_time_threshold),
        average_delay=calculate_average_delay(trains),
        throughput=calculate_throughput(trains),
        conflicts_resolved=conflicts_resolved,
        ai_acceptance_rate=ai_acceptance_rate,
    )
