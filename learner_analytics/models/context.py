# Aggregated learner snapshots handed to the prompt-construction layer
# learner_analytics/models/context.py
from datetime import datetime
from typing import Any, Dict, List

from pydantic import BaseModel, Field

from learner_analytics.models.analytics import (
    AreaReport,
    BehaviorPattern,
    MotivationEstimate,
    PerformanceStats,
    ProblemPattern,
    Recommendation,
    TopicArea,
)
from learner_analytics.models.enums import Difficulty, OverallStatus, Priority, Trend
from learner_analytics.models.records import CompetencyRecord, PerformanceEvent, utc_now


class ContextSummary(BaseModel):
    total_topics: int = 0
    average_level: float = 0.0
    success_rate: float = 0.0
    motivation_level: int = 5
    trend: Trend = Trend.INSUFFICIENT_DATA
    overall_status: OverallStatus = OverallStatus.UNKNOWN


class UserContext(BaseModel):
    """Point-in-time view over everything known about a learner. Computed per request."""
    user_id: str
    timestamp: datetime = Field(default_factory=utc_now)
    current_topic: str | None = None
    competencies: Dict[str, CompetencyRecord] = Field(default_factory=dict)
    performance: PerformanceStats = Field(default_factory=PerformanceStats)
    behavior: Dict[str, BehaviorPattern] = Field(default_factory=dict)
    weak_areas: AreaReport = Field(default_factory=AreaReport)
    strong_areas: AreaReport = Field(default_factory=AreaReport)
    motivation: MotivationEstimate = Field(default_factory=MotivationEstimate)
    trend: Trend = Trend.INSUFFICIENT_DATA
    summary: ContextSummary = Field(default_factory=ContextSummary)


class TopicAnalysis(BaseModel):
    ready_for_advanced: bool = False
    needs_review: bool = False
    practicing: bool = False


class TopicContext(BaseModel):
    topic: str
    competency: CompetencyRecord
    performance: PerformanceStats
    recent_history: List[PerformanceEvent] = Field(default_factory=list)
    analysis: TopicAnalysis = Field(default_factory=TopicAnalysis)


class FocusArea(BaseModel):
    priority: Priority
    type: str  # weakness, motivation, behavior, next_practice
    suggested_action: str | None = None
    topic: str | None = None
    sub_topic: str | None = None
    reason: str | None = None
    current_level: int | None = None
    suggested_difficulty: Difficulty | None = None
    problems: List[ProblemPattern] = Field(default_factory=list)


class Insight(BaseModel):
    type: str  # competency, trend, motivation, strength, weakness
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class LearningProgress(BaseModel):
    overall_level: float = 0.0
    improvement: float = 0.0  # percentage points, second half minus first half
    strengths: List[TopicArea] = Field(default_factory=list)
    weaknesses: List[TopicArea] = Field(default_factory=list)
    recommendations: List[Recommendation] = Field(default_factory=list)
