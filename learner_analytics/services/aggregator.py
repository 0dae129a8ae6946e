# Composes competency, performance and behavior analyses into learner snapshots for the prompt layer
# learner_analytics/services/aggregator.py
import asyncio
from datetime import datetime
from typing import Callable, List

from learner_analytics.models.analytics import MotivationEstimate, PerformanceStats
from learner_analytics.models.context import (
    ContextSummary,
    FocusArea,
    Insight,
    LearningProgress,
    TopicAnalysis,
    TopicContext,
    UserContext,
)
from learner_analytics.models.enums import OverallStatus, Priority, StoreStatus, Trend
from learner_analytics.models.records import CompetencyRecord, PerformanceEvent, utc_now
from learner_analytics.services.behavior import BehaviorMonitor
from learner_analytics.services.competency import CompetencyModel, average_level
from learner_analytics.services.performance import PerformanceAnalyzer
from learner_analytics.utils.config import settings
from learner_analytics.utils.logger import logger
from learner_analytics.utils.stats import split_halves, success_rate

TREND_MESSAGES = {
    Trend.IMPROVING: "Your performance is improving!",
    Trend.STABLE: "Your performance is stable.",
    Trend.DECLINING: "Your performance is dropping. Time for a break?",
}


def overall_status(stats: PerformanceStats, motivation: MotivationEstimate, trend: Trend) -> OverallStatus:
    if stats.success_rate < 50 or motivation.level < 4 or trend == Trend.DECLINING:
        return OverallStatus.NEEDS_ATTENTION
    if stats.success_rate > 75 and motivation.level >= 7 and trend == Trend.IMPROVING:
        return OverallStatus.EXCELLENT
    return OverallStatus.GOOD


def improvement(events: List[PerformanceEvent]) -> float:
    """Success-rate change in percentage points between the two halves; 0 below 4 events."""
    if len(events) < 4:
        return 0.0
    first_half, second_half = split_halves(events)
    return round(success_rate(second_half) - success_rate(first_half), 1)


class ContextAggregator:
    """
    Read-only composition layer. Every public method falls back to a neutral
    result instead of raising, so the prompt layer always gets something usable.
    """

    def __init__(
        self,
        competency: CompetencyModel,
        performance: PerformanceAnalyzer,
        behavior: BehaviorMonitor,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.competency = competency
        self.performance = performance
        self.behavior = behavior
        self.clock = clock

    # --- User Context Aggregation ---

    async def get_user_context(self, user_id: str, current_topic: str | None = None) -> UserContext:
        try:
            (
                competency_result,
                history_result,
                patterns_result,
                weak_areas,
                strong_areas,
                motivation,
                trend,
            ) = await asyncio.gather(
                self.competency.lookup_competency(user_id),
                self.performance.fetch_history(user_id, topic=current_topic, days=30),
                self.behavior.fetch_patterns(user_id, 30),
                self.competency.get_weak_areas(user_id),
                self.competency.get_strong_areas(user_id),
                self.performance.estimate_motivation(user_id, 7),
                self.performance.calculate_trend(user_id, current_topic, 14),
            )
        except Exception as e:
            logger.exception(f"get_user_context failed for {user_id}, returning default context: {e}")
            return self._empty_context(user_id, current_topic)

        failed = [r.error for r in (competency_result, history_result, patterns_result)
                  if r.status == StoreStatus.UNAVAILABLE]
        if failed:
            logger.warning(f"Store unavailable while building context for {user_id}, returning default context: {failed[0]}")
            return self._empty_context(user_id, current_topic)

        competencies = competency_result.value_or({})
        performance_stats = self.performance.compute_stats(history_result.value_or([]))
        behavior_patterns = patterns_result.value_or({})

        return UserContext(
            user_id=user_id,
            timestamp=self.clock(),
            current_topic=current_topic,
            competencies=competencies,
            performance=performance_stats,
            behavior=behavior_patterns,
            weak_areas=weak_areas,
            strong_areas=strong_areas,
            motivation=motivation,
            trend=trend,
            summary=ContextSummary(
                total_topics=len(competencies),
                average_level=average_level(competencies),
                success_rate=performance_stats.success_rate,
                motivation_level=motivation.level,
                trend=trend,
                overall_status=overall_status(performance_stats, motivation, trend),
            ),
        )

    async def get_topic_context(self, user_id: str, topic: str) -> TopicContext:
        try:
            competency, performance_stats, recent_history = await asyncio.gather(
                self.competency.get_competency(user_id, topic),
                self.performance.get_stats(user_id, topic, 30),
                self.performance.get_history(user_id, topic=topic, limit=10),
            )
        except Exception as e:
            logger.exception(f"get_topic_context failed for {user_id}/{topic}: {e}")
            competency, performance_stats, recent_history = None, PerformanceStats(), []

        return TopicContext(
            topic=topic,
            competency=competency or self._empty_competency(user_id, topic),
            performance=performance_stats,
            recent_history=recent_history,
            analysis=self._analyze_topic_performance(competency, performance_stats, recent_history),
        )

    # --- Data Analysis ---

    async def analyze_learning_progress(self, user_id: str, days: float = 30) -> LearningProgress:
        try:
            (
                competencies,
                history,
                weak_areas,
                strong_areas,
                performance_recs,
                behavior_recs,
            ) = await asyncio.gather(
                self.competency.get_all_competencies(user_id),
                self.performance.get_history(user_id, days=days),
                self.competency.get_weak_areas(user_id),
                self.competency.get_strong_areas(user_id),
                self.performance.generate_recommendations(user_id),
                self.behavior.generate_behavior_recommendations(user_id),
            )
        except Exception as e:
            logger.exception(f"analyze_learning_progress failed for {user_id}: {e}")
            return LearningProgress()

        return LearningProgress(
            overall_level=average_level(competencies),
            improvement=improvement(history),
            strengths=strong_areas.topics,
            weaknesses=weak_areas.topics,
            recommendations=[*performance_recs, *behavior_recs],
        )

    async def identify_focus_areas(self, user_id: str) -> List[FocusArea]:
        """Ordered: weakest topic, motivation, behavior problems, next practice. One entry each at most."""
        try:
            weak_areas, motivation, behavior_problems, next_recommendation = await asyncio.gather(
                self.competency.get_weak_areas(user_id),
                self.performance.estimate_motivation(user_id),
                self.behavior.identify_problematic_patterns(user_id),
                self.competency.recommend_next_practice(user_id),
            )
        except Exception as e:
            logger.exception(f"identify_focus_areas failed for {user_id}: {e}")
            return []

        focus_areas: List[FocusArea] = []

        if weak_areas.topics:
            # sorted() is stable, so ties keep store order
            most_critical = sorted(weak_areas.topics, key=lambda t: t.level)[0]
            focus_areas.append(FocusArea(
                priority=Priority.HIGH,
                type="weakness",
                topic=most_critical.topic,
                current_level=most_critical.level,
                reason=f"Lowest competency level ({most_critical.level}/5)",
                suggested_action="practice_basics",
            ))

        if motivation.level < 4:
            focus_areas.append(FocusArea(
                priority=Priority.HIGH,
                type="motivation",
                reason=motivation.interpretation,
                suggested_action="take_break_or_change_topic",
            ))

        if behavior_problems:
            focus_areas.append(FocusArea(
                priority=Priority.MEDIUM,
                type="behavior",
                problems=behavior_problems,
                suggested_action="adjust_learning_approach",
            ))

        if next_recommendation is not None:
            focus_areas.append(FocusArea(
                priority=Priority.NORMAL,
                type="next_practice",
                topic=next_recommendation.topic,
                sub_topic=next_recommendation.sub_topic,
                current_level=next_recommendation.current_level,
                reason=next_recommendation.reason,
                suggested_difficulty=next_recommendation.suggested_difficulty,
            ))

        return focus_areas

    # --- Contextual Insights ---

    async def generate_insights(self, user_id: str, current_topic: str | None = None) -> List[Insight]:
        context = await self.get_user_context(user_id, current_topic)
        insights: List[Insight] = []

        if current_topic and current_topic in context.competencies:
            competency = context.competencies[current_topic]
            insights.append(Insight(
                type="competency",
                message=f"Your competency level in {current_topic}: {competency.overall_level}/5",
                details={"competency": competency.model_dump(mode="json")},
            ))

        if context.trend != Trend.INSUFFICIENT_DATA:
            insights.append(Insight(
                type="trend",
                message=TREND_MESSAGES.get(context.trend, "Trend unknown"),
                details={"trend": context.trend.value},
            ))

        insights.append(Insight(
            type="motivation",
            message=f"Motivation level: {context.motivation.interpretation}",
            details={"level": context.motivation.level, "factors": list(context.motivation.factors)},
        ))

        if context.strong_areas.topics:
            insights.append(Insight(
                type="strength",
                message=f"Strengths: {', '.join(t.topic for t in context.strong_areas.topics)}",
                details={"areas": context.strong_areas.model_dump(mode="json")},
            ))

        if context.weak_areas.topics:
            insights.append(Insight(
                type="weakness",
                message=f"Areas to improve: {', '.join(t.topic for t in context.weak_areas.topics)}",
                details={"areas": context.weak_areas.model_dump(mode="json")},
            ))

        return insights

    # --- Helper Methods ---

    @staticmethod
    def _analyze_topic_performance(
        competency: CompetencyRecord | None,
        performance_stats: PerformanceStats,
        recent_history: List[PerformanceEvent],
    ) -> TopicAnalysis:
        analysis = TopicAnalysis()
        if competency and competency.overall_level >= 4 and performance_stats.success_rate > 80:
            analysis.ready_for_advanced = True
        if (competency and competency.overall_level <= 2) or performance_stats.success_rate < 40:
            analysis.needs_review = True
        if len(recent_history) >= 3:
            analysis.practicing = True
        return analysis

    def _empty_context(self, user_id: str, current_topic: str | None) -> UserContext:
        return UserContext(
            user_id=user_id,
            timestamp=self.clock(),
            current_topic=current_topic,
            motivation=MotivationEstimate(level=5, factors=[], interpretation="Unknown"),
            trend=Trend.INSUFFICIENT_DATA,
            summary=ContextSummary(overall_status=OverallStatus.UNKNOWN),
        )

    @staticmethod
    def _empty_competency(user_id: str, topic: str) -> CompetencyRecord:
        return CompetencyRecord(user_id=user_id, topic=topic, overall_level=settings.competency_default_level)
