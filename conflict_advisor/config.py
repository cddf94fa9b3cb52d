"""
Configuration for the conflict advisor.

Values come from keyword arguments, then ``RAIL_*`` environment variables
(optionally loaded from a ``.env`` file), then the defaults below.
"""
import json
import logging
import os
from typing import Dict, Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_PRIORITY_WEIGHTS = {
    "express": 1.0,
    "suburban": 0.8,
    "freight": 0.4,
    "special": 1.2,
    "maintenance": 0.2,
}


class OptimizationConstraints(BaseModel):
    max_delay: float = 30  # minutes
    priority_weights: Dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_PRIORITY_WEIGHTS))
    safety_buffer: float = 3  # minutes between trains
    platform_capacity: Dict[str, int] = Field(default_factory=dict)
    rerouting_delay: float = 10
    min_train_speed: float = Field(1, gt=0)
    single_platform_delay: float = 8
    multi_platform_delay: float = 3
    track_conflict_delay: float = 8
    nominal_travel_time: float = 30  # minutes to the next station at 60 km/h
    signal_failure_delay: float = 10
    track_blockage_delay: float = 15
    default_hold_minutes: float = 5
    on_time_threshold: float = 5


class ResolutionOptions(BaseModel):
    allow_rerouting: bool = True
    allow_priority_override: bool = False
    # accepted for forward compatibility, not read by any algorithm yet
    max_simulation_depth: int = 5
    optimization_objective: Literal["minimize_delay", "maximize_throughput", "balanced"] = "balanced"
    # both thresholds are on the 0-1 confidence scale
    acceptance_threshold: float = Field(0.5, ge=0, le=1)
    auto_apply_threshold: float = Field(0.8, ge=0, le=1)
    # "net": sum(delays before) - sum(delays after); "estimated": the
    # recommendation's own estimated_impact.delay_reduction
    hold_reduction_mode: Literal["net", "estimated"] = "net"
    # credit priority_change/proceed with their estimated reduction instead of 0
    credit_neutral_actions: bool = False
    # include tracks when re-detecting after a simulated change
    revalidate_tracks: bool = False


class Settings(BaseModel):
    constraints: OptimizationConstraints = Field(default_factory=OptimizationConstraints)
    options: ResolutionOptions = Field(default_factory=ResolutionOptions)
    log_level: str = "INFO"


_CONSTRAINT_ENV = {
    "max_delay": "RAIL_MAX_DELAY",
    "safety_buffer": "RAIL_SAFETY_BUFFER",
    "rerouting_delay": "RAIL_REROUTING_DELAY",
    "min_train_speed": "RAIL_MIN_TRAIN_SPEED",
    "single_platform_delay": "RAIL_SINGLE_PLATFORM_DELAY",
    "multi_platform_delay": "RAIL_MULTI_PLATFORM_DELAY",
    "track_conflict_delay": "RAIL_TRACK_CONFLICT_DELAY",
    "nominal_travel_time": "RAIL_NOMINAL_TRAVEL_TIME",
}

_OPTION_ENV = {
    "allow_rerouting": "RAIL_ALLOW_REROUTING",
    "allow_priority_override": "RAIL_ALLOW_PRIORITY_OVERRIDE",
    "max_simulation_depth": "RAIL_MAX_SIMULATION_DEPTH",
    "optimization_objective": "RAIL_OPTIMIZATION_OBJECTIVE",
    "acceptance_threshold": "RAIL_ACCEPTANCE_THRESHOLD",
    "auto_apply_threshold": "RAIL_AUTO_APPLY_THRESHOLD",
    "hold_reduction_mode": "RAIL_HOLD_REDUCTION_MODE",
    "credit_neutral_actions": "RAIL_CREDIT_NEUTRAL_ACTIONS",
    "revalidate_tracks": "RAIL_REVALIDATE_TRACKS",
}


def _read_env(mapping: Dict[str, str]) -> Dict[str, str]:
    values = {}
    for field_name, env_name in mapping.items():
        raw = os.getenv(env_name)
        if raw is not None and raw != "":
            values[field_name] = raw
    return values


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Build settings from the environment; pydantic coerces the strings."""
    load_dotenv(env_file)

    constraints = _read_env(_CONSTRAINT_ENV)
    weights = os.getenv("RAIL_PRIORITY_WEIGHTS")
    if weights:
        constraints["priority_weights"] = {**DEFAULT_PRIORITY_WEIGHTS, **json.loads(weights)}
    capacity = os.getenv("RAIL_PLATFORM_CAPACITY")
    if capacity:
        constraints["platform_capacity"] = json.loads(capacity)

    return Settings(
        constraints=OptimizationConstraints(**constraints),
        options=ResolutionOptions(**_read_env(_OPTION_ENV)),
        log_level=os.getenv("RAIL_LOG_LEVEL", "INFO"),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
