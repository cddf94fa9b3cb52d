"""
Controller decisions on recommendations, the source of the externally-fed
acceptance rate KPI
"""
from pydantic import BaseModel, Field, TypeAdapter
from typing import List, Literal, Optional
from datetime import datetime
from pathlib import Path
from .models import Conflict, Recommendation
import logging
import uuid

logger = logging.getLogger(__name__)


class DecisionOutcome(BaseModel):
    delay_reduction: float = 0
    conflict_resolved: bool = False
    additional_issues: List[str] = Field(default_factory=list)


class DecisionContext(BaseModel):
    train_ids: List[str] = Field(default_factory=list)
    location: str = "unknown"
    severity: str = "medium"
    time_of_day: str = ""
    weather_conditions: Optional[str] = None


class AIDecision(BaseModel):
    id: str = Field(default_factory=lambda: f"decision_{uuid.uuid4().hex}")
    timestamp: datetime = Field(default_factory=datetime.now)
    conflict_id: str
    recommendation_type: str
    recommendation: str
    reasoning: str = ""
    confidence: float = Field(ge=0, le=1)
    user_action: Literal["accepted", "rejected"]
    outcome: Optional[DecisionOutcome] = None
    context: DecisionContext = Field(default_factory=DecisionContext)


_DECISION_LIST = TypeAdapter(List[AIDecision])


class DecisionTracker:
    """
    In-memory decision log, optionally mirrored to a JSON file.

    With ``storage_path`` set, every logged decision rewrites the file.
    """

    def __init__(self, storage_path: Optional[str] = None):
        self.storage_path = Path(storage_path) if storage_path else None
        self.decisions: List[AIDecision] = []

    def log_decision(self, decision: AIDecision) -> AIDecision:
        self.decisions.append(decision)
        logger.debug(f"Logged {decision.user_action} decision on conflict {decision.conflict_id}")
        if self.storage_path:
            self.save(self.storage_path)
        return decision

    def record(self, recommendation: Recommendation, conflict: Conflict, user_action: str,
               outcome: Optional[DecisionOutcome] = None) -> AIDecision:
        """Log a decision built from the recommendation and its conflict"""
        now = datetime.now()
        return self.log_decision(AIDecision(
            timestamp=now,
            conflict_id=conflict.id,
            recommendation_type=recommendation.type,
            recommendation=recommendation.action,
            reasoning=recommendation.reasoning,
            confidence=recommendation.confidence,
            user_action=user_action,
            outcome=outcome,
            context=DecisionContext(
                train_ids=list(conflict.trains),
                location=conflict.location,
                severity=conflict.severity,
                time_of_day=now.strftime("%H:%M"),
            ),
        ))

    def get_decision_history(self) -> List[AIDecision]:
        return list(self.decisions)

    def get_acceptance_rate(self) -> float:
        """Percentage of decisions that accepted the recommendation"""
        if not self.decisions:
            return 0.0
        accepted = len([d for d in self.decisions if d.user_action == "accepted"])
        return accepted / len(self.decisions) * 100

    def get_success_rate(self) -> float:
        """Percentage of accepted decisions with a recorded outcome that resolved the conflict"""
        judged = [d for d in self.decisions if d.user_action == "accepted" and d.outcome]
        if not judged:
            return 0.0
        successful = len([d for d in judged if d.outcome.conflict_resolved])
        return successful / len(judged) * 100

    def save(self, path) -> None:
        path = Path(path)
        path.write_bytes(_DECISION_LIST.dump_json(self.decisions, indent=2))
        logger.debug(f"Saved {len(self.decisions)} decisions to {path}")

    def load(self, path) -> List[AIDecision]:
        """Replace the in-memory log with the file's contents; a missing file leaves it empty"""
        path = Path(path)
        if not path.exists():
            logger.warning(f"Decision file {path} not found, starting empty")
            self.decisions = []
            return self.decisions
        self.decisions = _DECISION_LIST.validate_json(path.read_bytes())
        logger.info(f"Loaded {len(self.decisions)} decisions from {path}")
        return self.decisions
