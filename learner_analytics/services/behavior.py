# learner_analytics/services/behavior.py
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List

from learner_analytics.models.analytics import (
    BehaviorExport,
    BehaviorPattern,
    BehaviorSummary,
    ProblemPattern,
    Recommendation,
    SessionAnalysis,
)
from learner_analytics.models.enums import BehaviorType, Priority, Severity
from learner_analytics.models.records import BehaviorEvent, BehaviorLogResult, utc_now
from learner_analytics.models.results import StoreResult
from learner_analytics.services.intervention import check_intervention
from learner_analytics.stores.base import LearnerStore, StorageUnavailable
from learner_analytics.utils.config import settings
from learner_analytics.utils.logger import logger


class BehaviorSession:
    """In-memory list of one learner's behaviors since login. Never persisted."""

    def __init__(self, user_id: str, started_at: datetime):
        self.user_id = user_id
        self.session_id = f"session_{uuid.uuid4().hex}"
        self.started_at = started_at
        self.last_activity = started_at
        self.behaviors: List[BehaviorEvent] = []

    def add(self, event: BehaviorEvent) -> None:
        self.behaviors.append(event)
        self.last_activity = event.timestamp

    def recent(self, now: datetime, window: timedelta) -> List[BehaviorEvent]:
        return [b for b in self.behaviors if now - b.timestamp < window]


class SessionRegistry:
    """
    Behavior sessions keyed by user id. A session ends on logout or after
    `ttl` without activity.
    """

    def __init__(self, ttl: timedelta | None = None, clock: Callable[[], datetime] = utc_now):
        self.ttl = ttl or timedelta(minutes=settings.session_ttl_minutes)
        self.clock = clock
        self._sessions: Dict[str, BehaviorSession] = {}

    def evict_expired(self) -> int:
        now = self.clock()
        expired = [uid for uid, s in self._sessions.items() if now - s.last_activity > self.ttl]
        for uid in expired:
            del self._sessions[uid]
        if expired:
            logger.debug(f"Evicted {len(expired)} idle behavior sessions")
        return len(expired)

    def get(self, user_id: str) -> BehaviorSession | None:
        self.evict_expired()
        return self._sessions.get(user_id)

    def get_or_start(self, user_id: str) -> BehaviorSession:
        session = self.get(user_id)
        if session is None:
            session = BehaviorSession(user_id, self.clock())
            self._sessions[user_id] = session
            logger.info(f"Started behavior session {session.session_id} for user {user_id}")
        return session

    def end(self, user_id: str) -> bool:
        return self._sessions.pop(user_id, None) is not None

    def __len__(self) -> int:
        return len(self._sessions)


def _count(behaviors: List[BehaviorEvent], behavior_type: BehaviorType) -> int:
    return sum(1 for b in behaviors if b.behavior_type == behavior_type)


class BehaviorMonitor:
    def __init__(
        self,
        store: LearnerStore,
        clock: Callable[[], datetime] = utc_now,
        sessions: SessionRegistry | None = None,
    ):
        self.store = store
        self.clock = clock
        self.sessions = sessions or SessionRegistry(clock=clock)
        self.window = timedelta(minutes=settings.session_window_minutes)
        logger.info(f"BehaviorMonitor initialized with store {type(store).__name__}, window={self.window}")

    # --- Behavior Logging ---

    async def log_behavior(
        self, user_id: str, behavior_type: BehaviorType | str, context: Dict[str, Any] | None = None
    ) -> BehaviorLogResult:
        """
        Persists the behavior, adds it to the learner's session and checks the
        intervention rules against the trailing session window.
        """
        behavior_type = BehaviorType(behavior_type)
        context = dict(context or {})
        now = self.clock()
        session = self.sessions.get_or_start(user_id)
        event = BehaviorEvent(
            behavior_type=behavior_type,
            action=str(context.get("action", behavior_type.value)),
            context=context,
            session_id=session.session_id,
            timestamp=now,
        )

        logged = True
        try:
            await self.store.log_behavior_event(user_id, event)
        except StorageUnavailable as e:
            # The session rules still run on the in-memory list.
            logger.error(f"Behavior event {event.behavior_key} for {user_id} could not be stored: {e}")
            logged = False

        session.add(event)
        analysis = self.analyze_session(user_id)
        intervention = check_intervention(user_id, behavior_type, analysis, now)
        return BehaviorLogResult(logged=logged, intervention=intervention)

    async def track_solution_request(self, user_id: str, context: Dict[str, Any] | None = None) -> BehaviorLogResult:
        return await self.log_behavior(user_id, BehaviorType.SOLUTION_REQUEST, context)

    async def track_hint_request(self, user_id: str, context: Dict[str, Any] | None = None) -> BehaviorLogResult:
        return await self.log_behavior(user_id, BehaviorType.HINT_REQUEST, context)

    async def track_task_abandon(self, user_id: str, context: Dict[str, Any] | None = None) -> BehaviorLogResult:
        return await self.log_behavior(user_id, BehaviorType.TASK_ABANDON, context)

    async def track_quick_solution(self, user_id: str, context: Dict[str, Any] | None = None) -> BehaviorLogResult:
        return await self.log_behavior(user_id, BehaviorType.QUICK_SOLUTION, context)

    async def track_self_solve_attempt(self, user_id: str, context: Dict[str, Any] | None = None) -> BehaviorLogResult:
        return await self.log_behavior(user_id, BehaviorType.SELF_SOLVE_ATTEMPT, context)

    async def track_task_repeat(self, user_id: str, context: Dict[str, Any] | None = None) -> BehaviorLogResult:
        return await self.log_behavior(user_id, BehaviorType.TASK_REPEAT, context)

    # --- Session ---

    def analyze_session(self, user_id: str) -> SessionAnalysis:
        session = self.sessions.get(user_id)
        if session is None:
            return SessionAnalysis()
        recent = session.recent(self.clock(), self.window)

        analysis = SessionAnalysis(
            total_behaviors=len(session.behaviors),
            recent_behaviors=len(recent),
            solution_requests=_count(recent, BehaviorType.SOLUTION_REQUEST),
            hint_requests=_count(recent, BehaviorType.HINT_REQUEST),
            task_abandons=_count(recent, BehaviorType.TASK_ABANDON),
            quick_solutions=_count(recent, BehaviorType.QUICK_SOLUTION),
            self_solve_attempts=_count(recent, BehaviorType.SELF_SOLVE_ATTEMPT),
        )
        help_requests = analysis.solution_requests + analysis.hint_requests
        total_actions = help_requests + analysis.self_solve_attempts
        analysis.help_seeking_ratio = help_requests / total_actions if total_actions > 0 else 0.0
        return analysis

    def end_session(self, user_id: str) -> None:
        """Drops the in-memory session, e.g. on logout."""
        if self.sessions.end(user_id):
            logger.info(f"Ended behavior session for user {user_id}")

    # --- Pattern Analysis ---

    async def fetch_patterns(self, user_id: str, days: float = 30) -> StoreResult:
        try:
            events = await self.store.query_behavior_events(user_id, since_days=days)
        except StorageUnavailable as e:
            logger.warning(f"Behavior history unavailable for {user_id}: {e}")
            return StoreResult.unavailable(e)
        if not events:
            return StoreResult.not_found()

        patterns: Dict[str, BehaviorPattern] = {}
        for event in events:
            pattern = patterns.setdefault(event.behavior_type.value, BehaviorPattern())
            pattern.count += event.frequency
            pattern.last_occurrence = event.timestamp
            if event.context:
                pattern.contexts.append(dict(event.context))
        return StoreResult.ok(patterns)

    async def get_patterns(self, user_id: str, days: float = 30) -> Dict[str, BehaviorPattern]:
        """Per behavior type: summed count, last occurrence and contexts."""
        result = await self.fetch_patterns(user_id, days)
        return result.value_or({})

    async def identify_problematic_patterns(self, user_id: str, days: float = 14) -> List[ProblemPattern]:
        patterns = await self.get_patterns(user_id, days)
        problems: List[ProblemPattern] = []

        solution_requests = patterns.get(BehaviorType.SOLUTION_REQUEST.value)
        if solution_requests and solution_requests.count > settings.pattern_max_solution_requests:
            problems.append(ProblemPattern(
                type="excessive_solution_requests",
                severity=Severity.HIGH,
                count=solution_requests.count,
                message="You open the worked solution very often instead of trying yourself.",
            ))

        task_abandons = patterns.get(BehaviorType.TASK_ABANDON.value)
        if task_abandons and task_abandons.count > settings.pattern_max_task_abandons:
            problems.append(ProblemPattern(
                type="frequent_abandons",
                severity=Severity.MEDIUM,
                count=task_abandons.count,
                message="You often abandon tasks. Maybe they are too hard?",
            ))

        self_solve = patterns.get(BehaviorType.SELF_SOLVE_ATTEMPT.value)
        total_actions = sum(p.count for p in patterns.values())
        self_solve_ratio = self_solve.count / total_actions if self_solve and total_actions else 0.0
        if self_solve_ratio < settings.pattern_min_self_solve_ratio and total_actions > settings.pattern_min_total_actions:
            problems.append(ProblemPattern(
                type="low_self_solve",
                severity=Severity.MEDIUM,
                ratio=self_solve_ratio,
                message="You rely heavily on help. Try solving more on your own!",
            ))

        if problems:
            logger.info(f"Problematic behavior patterns for {user_id}: {[p.type for p in problems]}")
        return problems

    async def generate_behavior_recommendations(self, user_id: str, days: float = 14) -> List[Recommendation]:
        patterns = await self.get_patterns(user_id, days)
        problems = await self.identify_problematic_patterns(user_id, days)
        recommendations: List[Recommendation] = []

        for problem in problems:
            if problem.type == "excessive_solution_requests":
                recommendations.append(Recommendation(
                    type="behavior",
                    priority=Priority.HIGH,
                    message="Use hints more instead of going straight to the worked solution.",
                    action="encourage_hints",
                ))
            elif problem.type == "frequent_abandons":
                recommendations.append(Recommendation(
                    type="behavior",
                    priority=Priority.MEDIUM,
                    message="Try easier tasks or take breaks more often.",
                    action="adjust_difficulty_or_break",
                ))
            elif problem.type == "low_self_solve":
                recommendations.append(Recommendation(
                    type="behavior",
                    priority=Priority.MEDIUM,
                    message="Build confidence by solving tasks on your own.",
                    action="encourage_independence",
                ))

        self_solve = patterns.get(BehaviorType.SELF_SOLVE_ATTEMPT.value)
        if self_solve and self_solve.count > 10:
            recommendations.append(Recommendation(
                type="behavior",
                priority=Priority.LOW,
                message="Great! You work very independently. Keep it up!",
                action="positive_feedback",
            ))

        return recommendations

    async def export_data(self, user_id: str, days: float = 30) -> BehaviorExport:
        patterns = await self.get_patterns(user_id, days)
        problems = await self.identify_problematic_patterns(user_id, days)
        session_analysis = self.analyze_session(user_id)
        return BehaviorExport(
            user_id=user_id,
            export_date=self.clock(),
            time_range=int(days),
            patterns=patterns,
            problems=problems,
            session_analysis=session_analysis,
            summary=BehaviorSummary(
                total_behaviors=sum(p.count for p in patterns.values()),
                problem_count=len(problems),
                help_seeking_ratio=session_analysis.help_seeking_ratio,
            ),
        )
