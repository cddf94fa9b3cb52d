from pydantic import BaseModel, Field
from typing import Optional, List, Literal, Dict, Union, Tuple, FrozenSet, Annotated
from datetime import datetime

TrainType = Literal["express", "freight", "suburban", "special", "maintenance"]
TrainStatus = Literal["on_time", "delayed", "cancelled", "diverted"]
ConflictType = Literal["crossing", "platform", "signal", "track"]
Severity = Literal["low", "medium", "high", "critical"]
RecommendationType = Literal["hold", "proceed", "reroute", "priority_change"]

SEVERITY_ORDER: Dict[str, int] = {"low": 0, "medium": 1, "high": 2, "critical": 3}
SEVERITY_WEIGHTS: Dict[str, int] = {"critical": 4, "high": 3, "medium": 2, "low": 1}


class Coordinates(BaseModel):
    lat: float = 0.0
    lng: float = 0.0


class ScheduleStop(BaseModel):
    station_id: str
    arrival_time: str
    departure_time: str
    platform: Optional[int] = None
    actual_arrival: Optional[str] = None
    actual_departure: Optional[str] = None
    delay: float = 0


class Station(BaseModel):
    id: str
    name: str = ""
    code: str = ""
    coordinates: Coordinates = Field(default_factory=Coordinates)
    platforms: int = 1


class Track(BaseModel):
    id: str
    name: str = ""
    from_station: str
    to_station: str
    length: float = 0.0  # km
    max_speed: float = 0.0  # km/h
    status: Literal["operational", "maintenance", "blocked"] = "operational"

    def connects(self, a: Optional[str], b: Optional[str]) -> bool:
        """Undirected match: A-B and B-A are the same track."""
        if not a or not b:
            return False
        return (self.from_station == a and self.to_station == b) or (
            self.from_station == b and self.to_station == a
        )


class Train(BaseModel):
    id: str
    number: str = ""
    name: str = ""
    type: TrainType = "express"
    priority: int = Field(5, ge=1, le=10)
    current_station: Optional[str] = None
    next_station: Optional[str] = None
    status: TrainStatus = "on_time"
    delay: float = Field(0, ge=0)  # minutes
    speed: float = 60  # km/h
    coordinates: Coordinates = Field(default_factory=Coordinates)
    schedule: List[ScheduleStop] = Field(default_factory=list)


class EstimatedImpact(BaseModel):
    delay_reduction: float = 0
    affected_trains: List[str] = Field(default_factory=list)


class Recommendation(BaseModel):
    id: str
    conflict_id: str
    type: RecommendationType
    target_train: str
    action: str
    reasoning: str
    confidence: float = Field(ge=0, le=1)
    estimated_impact: EstimatedImpact = Field(default_factory=EstimatedImpact)
    timestamp: datetime = Field(default_factory=datetime.now)


class Conflict(BaseModel):
    id: str
    type: ConflictType
    trains: List[str]
    location: str = "unknown"
    severity: Severity
    estimated_delay: float = 0
    recommendation: Optional[Recommendation] = None

    @property
    def signature(self) -> Tuple[str, FrozenSet[str], str]:
        # ids are synthesized per pass; the signature identifies the same
        # logical conflict across passes
        return (self.type, frozenset(self.trains), self.location)


class KPI(BaseModel):
    punctuality: float = 0.0  # percent
    average_delay: float = 0.0  # minutes
    throughput: float = 0.0  # trains/hour
    conflicts_resolved: int = 0
    ai_acceptance_rate: float = 0.0  # percent, fed in from outside


# Resolution results

class SimulationOutcome(BaseModel):
    total_delay_reduction: float = 0
    affected_trains: List[str] = Field(default_factory=list)
    new_conflicts: List[Conflict] = Field(default_factory=list)
    feasible: bool = False


class OptimizationResult(BaseModel):
    optimized_trains: List[Train]
    resolved_conflicts: List[str]
    total_delay_reduction: float


class ConflictResolution(BaseModel):
    conflict_id: str
    primary_recommendation: Recommendation
    alternative_recommendations: List[Recommendation] = Field(default_factory=list)
    score: float  # 0-100
    confidence: float  # score / 100
    reasoning: str


class ResolutionEntry(BaseModel):
    conflict_id: str
    recommendation: Recommendation
    priority: float
    confidence: float


class SystemImpact(BaseModel):
    total_delay_reduction: float = 0
    affected_trains: List[str] = Field(default_factory=list)
    new_conflicts_created: int = 0


class MultiResolutionResult(BaseModel):
    resolutions: List[ResolutionEntry]
    system_impact: SystemImpact
    working_trains: List[Train]


# Scenario modifications, one variant per type

class _ModificationBase(BaseModel):
    target_id: str
    applied_at: int = Field(0, ge=0)  # minutes from simulation start
    duration: Optional[int] = None


class DelayInjection(_ModificationBase):
    type: Literal["delay_injection"] = "delay_injection"
    delay: float = Field(0, ge=0)
    reason: Optional[str] = None


class TrainHold(_ModificationBase):
    type: Literal["train_hold"] = "train_hold"
    hold_minutes: float = Field(5, ge=0)


class PriorityChange(_ModificationBase):
    type: Literal["priority_change"] = "priority_change"
    priority: Optional[int] = None


class RerouteTrain(_ModificationBase):
    type: Literal["reroute"] = "reroute"
    via: Optional[str] = None


class SignalFailure(_ModificationBase):
    type: Literal["signal_failure"] = "signal_failure"
    affected_signals: List[str] = Field(default_factory=list)


class TrackBlockage(_ModificationBase):
    type: Literal["track_blockage"] = "track_blockage"
    reason: Optional[str] = None


ScenarioModification = Annotated[
    Union[DelayInjection, TrainHold, PriorityChange, RerouteTrain, SignalFailure, TrackBlockage],
    Field(discriminator="type"),
]


class SimulationState(BaseModel):
    trains: List[Train]
    stations: List[Station] = Field(default_factory=list)
    tracks: List[Track] = Field(default_factory=list)
    conflicts: List[Conflict] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=datetime.now)
    kpis: Optional[KPI] = None


class SimulationScenario(BaseModel):
    id: str
    name: str
    description: str
    baseline_state: SimulationState
    modifications: List[ScenarioModification] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)
    duration: int = Field(120, ge=0)  # minutes


class EventImpact(BaseModel):
    delay_change: float = 0
    conflicts_created: int = 0
    conflicts_resolved: int = 0


class TimelineEvent(BaseModel):
    timestamp: datetime
    minute: int
    type: Literal["train_movement", "conflict_detected", "recommendation_applied", "modification_applied"]
    description: str
    affected_entities: List[str] = Field(default_factory=list)
    impact: EventImpact = Field(default_factory=EventImpact)


class KPIImprovements(BaseModel):
    punctuality: float
    average_delay: float
    throughput: float
    conflicts_resolved: float


class KPIComparison(BaseModel):
    baseline: KPI
    simulated: KPI
    improvements: KPIImprovements


class SimulationResult(BaseModel):
    scenario_id: str
    final_state: SimulationState
    timeline: List[TimelineEvent]
    kpi_comparison: KPIComparison
    conflicts: List[Conflict]
    recommendations: List[Recommendation]
    success: bool
    execution_time: float  # seconds


class WhatIfAnalysis(BaseModel):
    question: str
    scenarios: List[SimulationScenario]
    results: List[SimulationResult]
    recommended_scenario_id: str
    recommendation: str
    confidence: float


class ScenarioComparison(BaseModel):
    scenario1: SimulationResult
    scenario2: SimulationResult
    better_punctuality: str
    lower_average_delay: str
    higher_throughput: str
    fewer_conflicts: str
    overall_better: str
    improvement_percentage: float
