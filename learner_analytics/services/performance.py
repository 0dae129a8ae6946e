# learner_analytics/services/performance.py
import time
from datetime import datetime
from typing import Callable, Dict, List

from learner_analytics.models.analytics import (
    MotivationEstimate,
    PerformancePatterns,
    PerformanceStats,
    Recommendation,
    TopicFailurePattern,
    TopicStrengthPattern,
)
from learner_analytics.models.enums import Difficulty, Priority, Trend
from learner_analytics.models.records import PerformanceEvent, utc_now
from learner_analytics.models.results import StoreResult
from learner_analytics.stores.base import LearnerStore, StorageUnavailable
from learner_analytics.utils.config import settings
from learner_analytics.utils.logger import logger
from learner_analytics.utils.stats import (
    clamp,
    round_half_up,
    sliding_windows,
    split_halves,
    std_dev,
    success_rate,
)

CONSISTENCY_WINDOW = 5


def fluctuation_score(events: List[PerformanceEvent]) -> int:
    """
    Standard deviation of the success rate (in percent) over sliding windows,
    divided by 5 and clamped to 0-10. Neutral 5 below the minimum sample size.
    """
    window = settings.fluctuation_window
    if len(events) < max(settings.fluctuation_min_events, window):
        return 5
    rates = [success_rate(w) for w in sliding_windows(events, window)]
    return int(clamp(round_half_up(std_dev(rates) / 5), 0, 10))


def interpret_motivation(score: int) -> str:
    if score >= 8:
        return "Very motivated"
    if score >= 6:
        return "Well motivated"
    if score >= 4:
        return "Neutral"
    if score >= 2:
        return "Low motivation"
    return "Very low motivation"


def classify_trend(events: List[PerformanceEvent]) -> Trend:
    if len(events) < settings.trend_min_events:
        return Trend.INSUFFICIENT_DATA
    first_half, second_half = split_halves(events)
    difference = success_rate(second_half) - success_rate(first_half)
    if difference > settings.trend_threshold_pp:
        return Trend.IMPROVING
    if difference < -settings.trend_threshold_pp:
        return Trend.DECLINING
    return Trend.STABLE


class PerformanceAnalyzer:
    def __init__(self, store: LearnerStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock
        logger.info(f"PerformanceAnalyzer initialized with store {type(store).__name__}")

    # --- Logging ---

    async def log_performance(self, user_id: str, event: PerformanceEvent) -> StoreResult:
        try:
            logged = await self.store.log_performance_event(user_id, event)
        except StorageUnavailable as e:
            logger.error(f"Performance event for {user_id} could not be stored: {e}")
            return StoreResult.unavailable(e)
        logger.debug(
            f"Logged performance for {user_id}: topic={event.topic}, success={event.success}, "
            f"time={event.time_spent:.0f}s, hints={event.hints_used}"
        )
        return StoreResult.ok(logged)

    # --- History ---

    async def fetch_history(
        self,
        user_id: str,
        topic: str | None = None,
        days: float | None = None,
        limit: int | None = None,
    ) -> StoreResult:
        """Chronological events, with "no events" and "store down" kept apart."""
        try:
            events = await self.store.query_performance_events(
                user_id, topic=topic, since_days=days, limit=limit
            )
        except StorageUnavailable as e:
            logger.warning(f"Performance history unavailable for {user_id}: {e}")
            return StoreResult.unavailable(e)
        return StoreResult.ok(events) if events else StoreResult.not_found()

    async def get_history(
        self,
        user_id: str,
        topic: str | None = None,
        days: float | None = None,
        limit: int | None = None,
    ) -> List[PerformanceEvent]:
        result = await self.fetch_history(user_id, topic=topic, days=days, limit=limit)
        return result.value_or([])

    # --- Statistics ---

    @staticmethod
    def compute_stats(events: List[PerformanceEvent]) -> PerformanceStats:
        if not events:
            return PerformanceStats()
        count = len(events)
        return PerformanceStats(
            tasks_completed=count,
            success_rate=clamp(success_rate(events), 0.0, 100.0),
            average_time=sum(e.time_spent for e in events) / count,
            hints_used_avg=sum(e.hints_used for e in events) / count,
            solution_shown_rate=clamp(sum(1 for e in events if e.showed_solution) / count * 100, 0.0, 100.0),
            fluctuation_score=fluctuation_score(events),
        )

    async def get_stats(self, user_id: str, topic: str | None = None, days: float = 30) -> PerformanceStats:
        """Aggregates over the trailing window; all-zero stats when there is nothing in range."""
        events = await self.get_history(user_id, topic=topic, days=days)
        return self.compute_stats(events)

    async def calculate_trend(self, user_id: str, topic: str | None = None, days: float = 14) -> Trend:
        events = await self.get_history(user_id, topic=topic, days=days)
        trend = classify_trend(events)
        logger.debug(f"Trend for {user_id} (topic={topic}, {days}d, n={len(events)}): {trend.value}")
        return trend

    async def calculate_fluctuation(self, user_id: str, days: float = 7) -> int:
        events = await self.get_history(user_id, days=days)
        return fluctuation_score(events)

    async def estimate_motivation(self, user_id: str, days: float = 7) -> MotivationEstimate:
        """
        Additive heuristic around a neutral 5: success rate, help usage,
        fluctuation and activity level each move the score. Clamped to 1-10.
        """
        events = await self.get_history(user_id, days=days)
        if not events:
            return MotivationEstimate(
                level=5,
                factors=[],
                interpretation=interpret_motivation(5),
                insufficient_data=True,
            )

        stats = self.compute_stats(events)
        score = 5
        factors: List[str] = []

        if stats.success_rate > 70:
            score += 2
            factors.append("High success rate")
        elif stats.success_rate < 30:
            score -= 2
            factors.append("Low success rate (potential frustration)")

        if stats.solution_shown_rate > 50:
            score -= 1
            factors.append("Frequently shows solutions (low engagement)")
        elif stats.hints_used_avg < 1:
            score += 1
            factors.append("Solves independently (high engagement)")

        if fluctuation_score(events) > 7:
            score -= 1
            factors.append("High performance fluctuation (distraction)")

        tasks_per_day = len(events) / days if days > 0 else 0.0
        if tasks_per_day > 3:
            score += 1
            factors.append("High activity level")
        elif tasks_per_day < 0.5:
            score -= 1
            factors.append("Low activity level")

        level = int(clamp(score, 1, 10))
        logger.debug(f"Motivation for {user_id}: {level} ({', '.join(factors) or 'no factors'})")
        return MotivationEstimate(level=level, factors=factors, interpretation=interpret_motivation(level))

    # --- Recommendations ---

    async def generate_recommendations(self, user_id: str, days: float = 14) -> List[Recommendation]:
        """Every rule is checked; all that fire are returned in rule order."""
        stats = await self.get_stats(user_id, days=days)
        motivation = await self.estimate_motivation(user_id, days)
        trend = await self.calculate_trend(user_id, days=days)
        recommendations: List[Recommendation] = []

        # Difficulty
        if stats.success_rate < 50:
            recommendations.append(Recommendation(
                type="difficulty",
                priority=Priority.HIGH,
                message="Try easier tasks to build up confidence.",
                action="lower_difficulty",
            ))

        # Engagement
        if stats.solution_shown_rate > 60:
            recommendations.append(Recommendation(
                type="engagement",
                priority=Priority.MEDIUM,
                message="You often open the worked solution. Try solving more on your own, hints are fine!",
                action="encourage_hints",
            ))

        # Motivation
        if motivation.level < 4:
            recommendations.append(Recommendation(
                type="motivation",
                priority=Priority.HIGH,
                message="Take a break or switch to a topic you enjoy more.",
                action="suggest_break",
            ))

        # Trend
        if trend == Trend.DECLINING:
            recommendations.append(Recommendation(
                type="performance",
                priority=Priority.HIGH,
                message="Your performance is dropping. Time to review the basics?",
                action="review_basics",
            ))
        elif trend == Trend.IMPROVING:
            recommendations.append(Recommendation(
                type="encouragement",
                priority=Priority.LOW,
                message="Great! You are improving steadily. Keep it up!",
                action="positive_feedback",
            ))

        # Time management
        if stats.average_time > settings.slow_task_seconds:
            recommendations.append(Recommendation(
                type="time",
                priority=Priority.MEDIUM,
                message="You spend a lot of time per task. Practice time management with a timer.",
                action="suggest_timer",
            ))

        return recommendations

    # --- Patterns ---

    async def identify_patterns(self, user_id: str, days: float = 30) -> PerformancePatterns:
        events = await self.get_history(user_id, days=days)
        return PerformancePatterns(
            peak_performance_hour=self._find_peak_hour(events),
            weakness_patterns=self._find_weakness_patterns(events),
            strength_patterns=self._find_strength_patterns(events),
            consistency_score=self._calculate_consistency(events),
        )

    @staticmethod
    def _find_peak_hour(events: List[PerformanceEvent]) -> int | None:
        """Hour of day (UTC) with the highest success rate; earliest hour wins ties."""
        hourly: Dict[int, List[PerformanceEvent]] = {}
        for event in events:
            hourly.setdefault(event.timestamp.hour, []).append(event)
        peak_hour, peak_rate = None, 0.0
        for hour in sorted(hourly):
            rate = success_rate(hourly[hour])
            if rate > peak_rate:
                peak_hour, peak_rate = hour, rate
        return peak_hour

    @staticmethod
    def _find_weakness_patterns(events: List[PerformanceEvent]) -> List[TopicFailurePattern]:
        failures: Dict[str, int] = {}
        for event in events:
            if not event.success:
                failures[event.topic] = failures.get(event.topic, 0) + 1
        return [TopicFailurePattern(topic=t, failure_count=c) for t, c in failures.items() if c >= 3]

    @staticmethod
    def _find_strength_patterns(events: List[PerformanceEvent]) -> List[TopicStrengthPattern]:
        by_topic: Dict[str, List[PerformanceEvent]] = {}
        for event in events:
            by_topic.setdefault(event.topic, []).append(event)
        strengths = []
        for topic, topic_events in by_topic.items():
            rate = success_rate(topic_events)
            if rate >= 80 and len(topic_events) >= 3:
                strengths.append(TopicStrengthPattern(topic=topic, success_rate=rate))
        return strengths

    @staticmethod
    def _calculate_consistency(events: List[PerformanceEvent]) -> float:
        """0-100, higher is steadier. 50 below one full window."""
        if len(events) < CONSISTENCY_WINDOW:
            return 50.0
        rates = [success_rate(w) for w in sliding_windows(events, CONSISTENCY_WINDOW)]
        return clamp(100 - std_dev(rates), 0.0, 100.0)


class TaskTimer:
    """
    Tracks one running task attempt for a learner session: start time and
    hints taken, turned into a PerformanceEvent when the task ends.
    """

    def __init__(self, topic: str, difficulty: Difficulty = Difficulty.MEDIUM,
                 sub_topic: str | None = None, monotonic: Callable[[], float] = time.monotonic):
        self.topic = topic
        self.difficulty = difficulty
        self.sub_topic = sub_topic
        self._monotonic = monotonic
        self._started = monotonic()
        self.hints_used = 0

    def record_hint_used(self) -> None:
        self.hints_used += 1

    def elapsed_seconds(self) -> float:
        return max(0.0, self._monotonic() - self._started)

    def finish(self, success: bool, showed_solution: bool = False,
               time_spent: float | None = None, attempts: int = 1) -> PerformanceEvent:
        return PerformanceEvent(
            topic=self.topic,
            sub_topic=self.sub_topic,
            difficulty=self.difficulty,
            success=success,
            time_spent=self.elapsed_seconds() if time_spent is None else time_spent,
            hints_used=self.hints_used,
            showed_solution=showed_solution,
            attempts=attempts,
        )
