# learner_analytics/services/competency.py
from datetime import datetime
from typing import Callable, Dict, List

from learner_analytics.models.analytics import (
    AreaReport,
    CompetencyExport,
    CompetencySummary,
    PracticeRecommendation,
    SubTopicArea,
    TopicArea,
)
from learner_analytics.models.enums import Difficulty, StoreStatus
from learner_analytics.models.records import CompetencyRecord, HistoryEntry, TaskOutcome, utc_now
from learner_analytics.models.results import StoreResult
from learner_analytics.services.topic_catalog import TopicCatalog, topic_catalog
from learner_analytics.stores.base import LearnerStore, StorageUnavailable
from learner_analytics.utils.config import settings
from learner_analytics.utils.locks import KeyedLock
from learner_analytics.utils.logger import logger
from learner_analytics.utils.stats import clamp, round_half_up

MIN_LEVEL = 1
MAX_LEVEL = 5

# Sub-topic level change per task outcome, keyed by difficulty
SUCCESS_DELTAS = {Difficulty.HARD: 1.0, Difficulty.MEDIUM: 0.5, Difficulty.EASY: 0.3}
FAILURE_DELTAS = {Difficulty.EASY: -1.0, Difficulty.MEDIUM: -0.5, Difficulty.HARD: -0.3}


def level_score(success_rate: float, tasks_completed: int, success: bool) -> float:
    """Weighted 0-1 score: 60% overall success rate, 20% practice volume, 20% latest result."""
    success_rate_factor = clamp(success_rate / 100, 0.0, 1.0)
    task_count_factor = min(tasks_completed / settings.competency_tasks_for_full_credit, 1.0)
    recent_success = 1.0 if success else 0.0
    return (success_rate_factor * 0.6) + (task_count_factor * 0.2) + (recent_success * 0.2)


def score_to_level(score: float) -> int:
    if score < 0.2:
        return 1
    if score < 0.4:
        return 2
    if score < 0.6:
        return 3
    if score < 0.8:
        return 4
    return 5


def smooth_level(current_level: int, target_level: int) -> int:
    """Moves at most one level towards the target."""
    if abs(target_level - current_level) > 1:
        target_level = current_level + (1 if target_level > current_level else -1)
    return int(clamp(target_level, MIN_LEVEL, MAX_LEVEL))


def sub_topic_delta(outcome: TaskOutcome) -> float:
    """
    Signed level change for a sub-topic. Harder successes count more, easier
    failures cost more. Heavy hint use halves the gain; a shown solution
    earns nothing.
    """
    if outcome.success:
        delta = SUCCESS_DELTAS[outcome.difficulty]
        if outcome.hints_used > 2:
            delta *= 0.5
        if outcome.showed_solution:
            delta = 0.0
        return delta
    return FAILURE_DELTAS[outcome.difficulty]


def suggest_difficulty(level: int) -> Difficulty:
    if level <= 2:
        return Difficulty.EASY
    if level == 3:
        return Difficulty.MEDIUM
    return Difficulty.HARD


class CompetencyModel:
    def __init__(
        self,
        store: LearnerStore,
        catalog: TopicCatalog = topic_catalog,
        clock: Callable[[], datetime] = utc_now,
        locks: KeyedLock | None = None,
    ):
        self.store = store
        self.catalog = catalog
        self.clock = clock
        self._locks = locks or KeyedLock()
        logger.info(f"CompetencyModel initialized with store {type(store).__name__}")

    # --- Reads ---

    async def lookup_competency(self, user_id: str, topic: str | None = None) -> StoreResult:
        """
        Reads one record (topic given) or the topic -> record map of the user.
        Distinguishes a missing record from a failing store.
        """
        try:
            data = await self.store.get_competency(user_id, topic)
        except StorageUnavailable as e:
            logger.warning(f"Competency read failed for {user_id}/{topic}: {e}")
            return StoreResult.unavailable(e)

        if topic is not None:
            return StoreResult.ok(data) if data is not None else StoreResult.not_found()
        competency_map = {record.topic: record for record in data}
        return StoreResult.ok(competency_map) if competency_map else StoreResult.not_found()

    async def get_competency(self, user_id: str, topic: str | None = None):
        """Returns the record (or None) for a topic, or the full map (possibly empty) without one."""
        result = await self.lookup_competency(user_id, topic)
        if topic is not None:
            return result.value if result.is_ok else None
        return result.value_or({})

    async def get_all_competencies(self, user_id: str) -> Dict[str, CompetencyRecord]:
        return await self.get_competency(user_id)

    # --- Updates ---

    def _initialize_competency(self, user_id: str, topic: str) -> CompetencyRecord:
        default_level = settings.competency_default_level
        return CompetencyRecord(
            user_id=user_id,
            topic=topic,
            overall_level=default_level,
            sub_topics={sub: default_level for sub in self.catalog.get_sub_topics(topic)},
        )

    async def _load_for_update(self, user_id: str, topic: str) -> StoreResult:
        current = await self.lookup_competency(user_id, topic)
        if current.status == StoreStatus.NOT_FOUND:
            logger.info(f"Initializing competency for user {user_id} in topic '{topic}'")
            return StoreResult.ok(self._initialize_competency(user_id, topic))
        return current

    async def _save(self, user_id: str, topic: str, record: CompetencyRecord, event: str) -> StoreResult:
        now = self.clock()
        history = list(record.history)
        history.append(HistoryEntry(timestamp=now, level=record.overall_level, event=event))
        # Keep only the most recent entries
        history = history[-settings.competency_history_limit:]
        record = record.model_copy(update={"history": history, "last_updated": now})
        try:
            saved = await self.store.put_competency(user_id, topic, record)
        except StorageUnavailable as e:
            logger.error(f"Competency write failed for {user_id}/{topic}: {e}")
            return StoreResult.unavailable(e)
        return StoreResult.ok(saved)

    def _calculate_new_level(self, record: CompetencyRecord, outcome: TaskOutcome) -> int:
        """Calculates the smoothed level for an already updated record without committing it."""
        score = level_score(record.success_rate, record.tasks_completed, outcome.success)
        target = score_to_level(score)
        new_level = smooth_level(record.overall_level, target)
        logger.debug(
            f"Level score={score:.3f}, target={target}, current={record.overall_level}, new={new_level}"
        )
        return new_level

    async def update_after_task(self, user_id: str, topic: str, outcome: TaskOutcome) -> StoreResult:
        """
        Folds one task outcome into the topic record: running success rate and
        mean time over tasks_completed + 1 samples, then a level move of at
        most one step.
        """
        async with self._locks.hold((user_id, topic)):
            loaded = await self._load_for_update(user_id, topic)
            if not loaded.is_ok:
                return loaded
            record: CompetencyRecord = loaded.value

            tasks_completed = record.tasks_completed + 1
            previous_successes = record.tasks_completed * record.success_rate / 100
            successes = previous_successes + (1 if outcome.success else 0)
            success_rate = clamp(successes / tasks_completed * 100, 0.0, 100.0)
            previous_time_total = record.tasks_completed * record.average_time
            average_time = (previous_time_total + outcome.time_spent) / tasks_completed

            record = record.model_copy(update={
                "tasks_completed": tasks_completed,
                "success_rate": success_rate,
                "average_time": average_time,
                "last_practiced": self.clock(),
            })
            new_level = self._calculate_new_level(record, outcome)
            if new_level != record.overall_level:
                logger.info(
                    f"Competency level change for {user_id} in '{topic}': "
                    f"{record.overall_level} -> {new_level} (success rate {success_rate:.1f}%)"
                )
                record = record.model_copy(update={"overall_level": new_level})

            return await self._save(user_id, topic, record, event="task_completed")

    async def _write_sub_topic_level(
        self, user_id: str, topic: str, record: CompetencyRecord, sub_topic: str, level: float
    ) -> StoreResult:
        new_level = int(clamp(round_half_up(level), MIN_LEVEL, MAX_LEVEL))
        sub_topics = dict(record.sub_topics)
        sub_topics[sub_topic] = new_level
        record = record.model_copy(update={"sub_topics": sub_topics})
        logger.debug(f"Sub-topic {topic}/{sub_topic} for {user_id} set to {new_level}")
        return await self._save(user_id, topic, record, event="sub_topic_update")

    async def update_sub_topic(self, user_id: str, topic: str, sub_topic: str, delta: float) -> StoreResult:
        """
        |delta| <= 1 is a relative change to the current level (3 if unset);
        anything larger is taken as the absolute target level.
        """
        async with self._locks.hold((user_id, topic)):
            loaded = await self._load_for_update(user_id, topic)
            if not loaded.is_ok:
                return loaded
            record: CompetencyRecord = loaded.value
            current_level = record.sub_topics.get(sub_topic, settings.competency_default_level)
            new_level = current_level + delta if abs(delta) <= 1 else delta
            return await self._write_sub_topic_level(user_id, topic, record, sub_topic, new_level)

    async def adjust_sub_topic_from_performance(
        self, user_id: str, topic: str, sub_topic: str, outcome: TaskOutcome
    ) -> StoreResult | None:
        """
        Moves a sub-topic level according to one task outcome. Returns None when
        the change is below the minimum step and nothing is written.
        """
        delta = sub_topic_delta(outcome)
        async with self._locks.hold((user_id, topic)):
            loaded = await self._load_for_update(user_id, topic)
            if not loaded.is_ok:
                return loaded
            record: CompetencyRecord = loaded.value
            current_level = record.sub_topics.get(sub_topic, settings.competency_default_level)
            target = clamp(current_level + delta, MIN_LEVEL, MAX_LEVEL)

            if abs(target - current_level) < settings.sub_topic_min_change:
                logger.debug(
                    f"Skipping sub-topic update {topic}/{sub_topic} for {user_id}: "
                    f"change {target - current_level:+.2f} below threshold"
                )
                return None
            return await self._write_sub_topic_level(user_id, topic, record, sub_topic, target)

    # --- Analysis & Recommendations ---

    async def get_weak_areas(self, user_id: str, threshold: int | None = None) -> AreaReport:
        threshold = settings.competency_weak_threshold if threshold is None else threshold
        competencies = await self.get_all_competencies(user_id)
        return self._partition(competencies, lambda level: level < threshold)

    async def get_strong_areas(self, user_id: str, threshold: int | None = None) -> AreaReport:
        threshold = settings.competency_strong_threshold if threshold is None else threshold
        competencies = await self.get_all_competencies(user_id)
        return self._partition(competencies, lambda level: level >= threshold)

    @staticmethod
    def _partition(competencies: Dict[str, CompetencyRecord], matches: Callable[[int], bool]) -> AreaReport:
        report = AreaReport()
        for topic, competency in competencies.items():
            if matches(competency.overall_level):
                report.topics.append(TopicArea(
                    topic=topic, level=competency.overall_level, success_rate=competency.success_rate
                ))
            for sub_topic, level in competency.sub_topics.items():
                if matches(level):
                    report.sub_topics.append(SubTopicArea(topic=topic, sub_topic=sub_topic, level=level))
        return report

    async def recommend_next_practice(self, user_id: str) -> PracticeRecommendation | None:
        """
        Lowest unmastered topic (level < 4, first one wins on ties) and its
        weakest sub-topic. When everything is mastered, a random catalog topic
        on hard difficulty.
        """
        competencies = await self.get_all_competencies(user_id)

        lowest: CompetencyRecord | None = None
        for competency in competencies.values():
            if competency.overall_level < 4 and (lowest is None or competency.overall_level < lowest.overall_level):
                lowest = competency

        if lowest is not None:
            weakest_sub_topic: str | None = None
            weakest_level = MAX_LEVEL + 1
            for sub_topic, level in lowest.sub_topics.items():
                if level < weakest_level:
                    weakest_level = level
                    weakest_sub_topic = sub_topic
            return PracticeRecommendation(
                topic=lowest.topic,
                sub_topic=weakest_sub_topic,
                current_level=lowest.overall_level,
                reason="Needs improvement",
                suggested_difficulty=suggest_difficulty(lowest.overall_level),
            )

        random_topic = self.catalog.random_topic()
        if random_topic is None:
            return None
        return PracticeRecommendation(
            topic=random_topic,
            sub_topic=None,
            current_level=MAX_LEVEL,
            reason="All topics mastered - practice advanced",
            suggested_difficulty=Difficulty.HARD,
        )

    async def export_data(self, user_id: str) -> CompetencyExport:
        competencies = await self.get_all_competencies(user_id)
        return CompetencyExport(
            user_id=user_id,
            export_date=self.clock(),
            competencies=competencies,
            summary=CompetencySummary(
                total_topics=len(competencies),
                average_level=average_level(competencies),
                mastered_topics=sum(1 for c in competencies.values() if c.overall_level >= 4),
            ),
        )


def average_level(competencies: Dict[str, CompetencyRecord]) -> float:
    levels = [c.overall_level for c in competencies.values()]
    if not levels:
        return 0.0
    return sum(levels) / len(levels)
