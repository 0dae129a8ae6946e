# Derived (never stored) results of the competency, performance and behavior analyses
# learner_analytics/models/analytics.py
from datetime import datetime
from typing import Any, Dict, List

from pydantic import BaseModel, Field

from learner_analytics.models.enums import Difficulty, Priority, Severity
from learner_analytics.models.records import CompetencyRecord


# --- Competency ---

class TopicArea(BaseModel):
    topic: str
    level: int
    success_rate: float


class SubTopicArea(BaseModel):
    topic: str
    sub_topic: str
    level: int


class AreaReport(BaseModel):
    """Topics and sub-topics on one side of a level threshold."""
    topics: List[TopicArea] = Field(default_factory=list)
    sub_topics: List[SubTopicArea] = Field(default_factory=list)


class PracticeRecommendation(BaseModel):
    topic: str
    sub_topic: str | None = None
    current_level: int
    reason: str
    suggested_difficulty: Difficulty


class CompetencySummary(BaseModel):
    total_topics: int = 0
    average_level: float = 0.0
    mastered_topics: int = 0


class CompetencyExport(BaseModel):
    user_id: str
    export_date: datetime
    competencies: Dict[str, CompetencyRecord]
    summary: CompetencySummary


# --- Performance ---

class PerformanceStats(BaseModel):
    tasks_completed: int = 0
    success_rate: float = Field(default=0.0, ge=0.0, le=100.0)
    average_time: float = 0.0
    hints_used_avg: float = 0.0
    solution_shown_rate: float = Field(default=0.0, ge=0.0, le=100.0)
    fluctuation_score: int = Field(default=0, ge=0, le=10)


class MotivationEstimate(BaseModel):
    level: int = Field(default=5, ge=1, le=10)
    factors: List[str] = Field(default_factory=list)
    interpretation: str = "Neutral"
    insufficient_data: bool = False


class Recommendation(BaseModel):
    type: str | None = None
    priority: Priority
    message: str
    action: str


class TopicFailurePattern(BaseModel):
    topic: str
    failure_count: int


class TopicStrengthPattern(BaseModel):
    topic: str
    success_rate: float


class PerformancePatterns(BaseModel):
    peak_performance_hour: int | None = None
    weakness_patterns: List[TopicFailurePattern] = Field(default_factory=list)
    strength_patterns: List[TopicStrengthPattern] = Field(default_factory=list)
    consistency_score: float = 50.0


# --- Behavior ---

class BehaviorPattern(BaseModel):
    """Aggregated occurrences of one behavior type over a period."""
    count: int = 0
    last_occurrence: datetime | None = None
    contexts: List[Dict[str, Any]] = Field(default_factory=list)


class ProblemPattern(BaseModel):
    type: str
    severity: Severity
    message: str
    count: int | None = None
    ratio: float | None = None


class SessionAnalysis(BaseModel):
    total_behaviors: int = 0
    recent_behaviors: int = 0
    solution_requests: int = 0
    hint_requests: int = 0
    task_abandons: int = 0
    quick_solutions: int = 0
    self_solve_attempts: int = 0
    help_seeking_ratio: float = 0.0


class BehaviorSummary(BaseModel):
    total_behaviors: int = 0
    problem_count: int = 0
    help_seeking_ratio: float = 0.0


class BehaviorExport(BaseModel):
    user_id: str
    export_date: datetime
    time_range: int
    patterns: Dict[str, BehaviorPattern]
    problems: List[ProblemPattern]
    session_analysis: SessionAnalysis
    summary: BehaviorSummary
