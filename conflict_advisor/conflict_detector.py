"""
Conflict detection for trains sharing a rail section
"""
from typing import List, Dict, Optional, Iterable, Set, Tuple
from datetime import datetime
from .models import Train, Station, Track, Conflict
from .config import OptimizationConstraints
import random
import string
import logging

logger = logging.getLogger(__name__)


def generate_id(prefix: str) -> str:
    """Unique per call: timestamp plus a random suffix. Never stable across passes."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"{prefix}_{int(datetime.now().timestamp() * 1000)}_{suffix}"


def estimate_arrival_time(train: Train, constraints: OptimizationConstraints) -> float:
    """
    Minutes until the train reaches its next station.

    A coarse proxy, not a routing calculation: a fixed nominal travel time
    scaled by speed relative to 60 km/h, plus the current delay. Speed is
    floored at ``min_train_speed`` before dividing.
    """
    safe_speed = max(train.speed, constraints.min_train_speed)
    return constraints.nominal_travel_time / (safe_speed / 60) + train.delay


def find_track_between(from_station: Optional[str], to_station: Optional[str],
                       tracks: Iterable[Track]) -> Optional[Track]:
    if not from_station or not to_station:
        return None
    return next((t for t in tracks if t.connects(from_station, to_station)), None)


class ConflictDetector:
    def __init__(self, constraints: Optional[OptimizationConstraints] = None):
        self.constraints = constraints or OptimizationConstraints()

    def detect_conflicts(self, trains: List[Train], stations: List[Station],
                         tracks: List[Track]) -> List[Conflict]:
        """
        Scan every active train pair for crossing, platform and track conflicts
        """
        conflicts = []
        seen: Set[Tuple[str, frozenset]] = set()
        active = [t for t in trains if t.status != "cancelled"]
        station_index = {s.id: s for s in stations}

        # Bucket by station; a train lands in its next and its current station bucket
        by_station: Dict[str, Dict[str, Train]] = {}
        for train in active:
            for station_id in (train.next_station, train.current_station):
                if station_id:
                    by_station.setdefault(station_id, {})[train.id] = train

        for station_id, bucket in by_station.items():
            station_trains = list(bucket.values())
            for i in range(len(station_trains)):
                for j in range(i + 1, len(station_trains)):
                    train1, train2 = station_trains[i], station_trains[j]

                    crossing = self._check_crossing_conflict(train1, train2)
                    if crossing:
                        self._collect(conflicts, seen, crossing)

                    platform = self._check_platform_conflict(train1, train2, station_index)
                    if platform:
                        self._collect(conflicts, seen, platform)

        # Track conflicts are not bucketed
        for i in range(len(active)):
            for j in range(i + 1, len(active)):
                track_conflict = self._check_track_conflict(active[i], active[j], tracks)
                if track_conflict:
                    self._collect(conflicts, seen, track_conflict)

        logger.debug(f"Detected {len(conflicts)} conflicts across {len(active)} active trains")
        return conflicts

    def _collect(self, conflicts: List[Conflict], seen: Set[Tuple[str, frozenset]], conflict: Conflict):
        # A pair sharing both its current and next station shows up in two
        # buckets; report each conflict type for a pair once per pass
        key = (conflict.type, frozenset(conflict.trains))
        if key in seen:
            return
        seen.add(key)
        conflicts.append(conflict)

    def _check_crossing_conflict(self, train1: Train, train2: Train) -> Optional[Conflict]:
        """Both trains head for the same station inside the safety buffer"""
        if not train1.next_station or train1.next_station != train2.next_station:
            return None

        gap = abs(estimate_arrival_time(train1, self.constraints) - estimate_arrival_time(train2, self.constraints))
        if gap >= self.constraints.safety_buffer:
            return None

        return Conflict(
            id=generate_id(f"crossing_{train1.id}_{train2.id}"),
            type="crossing",
            trains=[train1.id, train2.id],
            location=train1.next_station,
            severity="critical" if gap < 1 else "medium",
            estimated_delay=round(max(0.0, self.constraints.safety_buffer - gap), 2),
        )

    def _check_platform_conflict(self, train1: Train, train2: Train,
                                 station_index: Dict[str, Station]) -> Optional[Conflict]:
        """Both trains occupy the same station right now"""
        if not train1.current_station or train1.current_station != train2.current_station:
            return None

        capacity = self._station_capacity(train1.current_station, station_index)
        if capacity > 1:
            estimated_delay = self.constraints.multi_platform_delay
        else:
            estimated_delay = self.constraints.single_platform_delay

        return Conflict(
            id=generate_id(f"platform_{train1.id}_{train2.id}"),
            type="platform",
            trains=[train1.id, train2.id],
            location=train1.current_station,
            severity="medium",
            estimated_delay=estimated_delay,
        )

    def _check_track_conflict(self, train1: Train, train2: Train, tracks: List[Track]) -> Optional[Conflict]:
        track1 = find_track_between(train1.current_station, train1.next_station, tracks)
        track2 = find_track_between(train2.current_station, train2.next_station, tracks)
        if not track1 or not track2 or track1.id != track2.id:
            return None

        return Conflict(
            id=generate_id(f"track_{train1.id}_{train2.id}"),
            type="track",
            trains=[train1.id, train2.id],
            location=track1.id,
            severity="high",
            estimated_delay=self.constraints.track_conflict_delay,
        )

    def _station_capacity(self, station_id: str, station_index: Dict[str, Station]) -> int:
        if station_id in self.constraints.platform_capacity:
            return self.constraints.platform_capacity[station_id]
        station = station_index.get(station_id)
        return station.platforms if station else 1


def analyze_conflict_impact(conflicts: List[Conflict]) -> Dict:
    """Summarize a detection pass: counts, affected trains and delay risk"""
    critical_conflicts = len([c for c in conflicts if c.severity == "critical"])
    high_conflicts = len([c for c in conflicts if c.severity == "high"])

    affected_trains = set()
    for conflict in conflicts:
        affected_trains.update(conflict.trains)

    return {
        "total_conflicts": len(conflicts),
        "by_severity": {
            "critical": critical_conflicts,
            "high": high_conflicts,
            "medium": len([c for c in conflicts if c.severity == "medium"]),
            "low": len([c for c in conflicts if c.severity == "low"]),
        },
        "by_type": {
            conflict_type: len([c for c in conflicts if c.type == conflict_type])
            for conflict_type in ("crossing", "platform", "signal", "track")
        },
        "affected_trains": sorted(affected_trains),
        "affected_train_count": len(affected_trains),
        "estimated_delay_risk_minutes": round(sum(c.estimated_delay for c in conflicts), 2),
        "safety_score": max(0, 1.0 - (critical_conflicts * 0.3 + high_conflicts * 0.2)),
        "efficiency_score": max(0, 1.0 - (len(conflicts) * 0.1)),
    }


def detect_conflicts(trains: List[Train], stations: List[Station], tracks: List[Track],
                     constraints: Optional[OptimizationConstraints] = None) -> List[Conflict]:
    """
    Main entry point for conflict detection
    """
    detector = ConflictDetector(constraints)
    return detector.detect_conflicts(trains, stations, tracks)
