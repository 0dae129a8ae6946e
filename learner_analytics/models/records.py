# Data models for the stored learner entities (competency records, performance and behavior events)
# learner_analytics/models/records.py
from datetime import datetime, timezone
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field

from learner_analytics.models.enums import BehaviorType, Difficulty, InterventionType


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class HistoryEntry(BaseModel):
    timestamp: datetime
    level: int
    event: str  # e.g. "task_completed", "sub_topic_update"


class CompetencyRecord(BaseModel):
    """Mastery state of one learner in one topic."""
    user_id: str
    topic: str
    overall_level: int = Field(default=3, ge=1, le=5)
    sub_topics: Dict[str, int] = Field(default_factory=dict)
    tasks_completed: int = Field(default=0, ge=0)
    success_rate: float = Field(default=0.0, ge=0.0, le=100.0)
    average_time: float = Field(default=0.0, ge=0.0)
    last_practiced: datetime | None = None
    last_updated: datetime | None = None
    history: List[HistoryEntry] = Field(default_factory=list)


class TaskOutcome(BaseModel):
    """Result of a single task attempt as seen by the competency model."""
    model_config = ConfigDict(frozen=True)

    success: bool = False
    time_spent: float = Field(default=0.0, ge=0.0)  # seconds
    difficulty: Difficulty = Difficulty.MEDIUM
    hints_used: int = Field(default=0, ge=0)
    showed_solution: bool = False


class PerformanceEvent(TaskOutcome):
    """Immutable log entry for one task attempt."""
    topic: str
    sub_topic: str | None = None
    attempts: int = Field(default=1, ge=1)
    error_types: List[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=utc_now)


class BehaviorEvent(BaseModel):
    """Immutable log entry for one learner action."""
    model_config = ConfigDict(frozen=True)

    behavior_type: BehaviorType
    action: str | None = None
    context: Dict[str, Any] = Field(default_factory=dict)
    frequency: int = Field(default=1, ge=1)
    session_id: str | None = None
    timestamp: datetime = Field(default_factory=utc_now)

    @property
    def behavior_key(self) -> str:
        return f"{self.behavior_type.value}#{self.timestamp.isoformat()}"


class InterventionSignal(BaseModel):
    """One-shot recommendation emitted when a behavior threshold is crossed. Never stored."""
    type: InterventionType
    title: str
    message: str
    suggested_actions: List[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=utc_now)


class BehaviorLogResult(BaseModel):
    logged: bool
    intervention: InterventionSignal | None = None
