# Engine entry point; wires one store into the analytics components and manages startup/shutdown
# learner_analytics/engine.py
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Dict, List

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncEngine

from learner_analytics.models.context import FocusArea, Insight, LearningProgress, TopicContext, UserContext
from learner_analytics.models.enums import BehaviorType
from learner_analytics.models.records import (
    BehaviorLogResult,
    CompetencyRecord,
    PerformanceEvent,
    utc_now,
)
from learner_analytics.services.aggregator import ContextAggregator
from learner_analytics.services.behavior import BehaviorMonitor
from learner_analytics.services.competency import CompetencyModel
from learner_analytics.services.performance import PerformanceAnalyzer
from learner_analytics.services.topic_catalog import TopicCatalog, topic_catalog
from learner_analytics.stores.base import LearnerStore
from learner_analytics.stores.memory import InMemoryLearnerStore
from learner_analytics.stores.sql import SqlLearnerStore, init_models
from learner_analytics.utils.config import Settings, settings
from learner_analytics.utils.db import make_engine, make_session_factory
from learner_analytics.utils.logger import logger


class TaskRecordResult(BaseModel):
    logged: bool
    competency: CompetencyRecord | None = None
    sub_topic_level: int | None = None


class LearnerAnalyticsEngine:
    def __init__(
        self,
        store: LearnerStore,
        catalog: TopicCatalog = topic_catalog,
        clock: Callable[[], datetime] = utc_now,
        db_engine: AsyncEngine | None = None,
    ):
        self.store = store
        self.competency = CompetencyModel(store, catalog=catalog, clock=clock)
        self.performance = PerformanceAnalyzer(store, clock=clock)
        self.behavior = BehaviorMonitor(store, clock=clock)
        self.aggregator = ContextAggregator(self.competency, self.performance, self.behavior, clock=clock)
        self._db_engine = db_engine

    async def record_task_outcome(self, user_id: str, event: PerformanceEvent) -> TaskRecordResult:
        """
        Logs a finished task and folds it into the learner's competency record
        and, when the task names one, the sub-topic level.
        """
        logged = await self.performance.log_performance(user_id, event)
        updated = await self.competency.update_after_task(user_id, event.topic, event)

        competency = updated.value if updated.is_ok else None

        sub_topic_level = None
        if event.sub_topic:
            adjusted = await self.competency.adjust_sub_topic_from_performance(
                user_id, event.topic, event.sub_topic, event
            )
            if adjusted is not None and adjusted.is_ok:
                competency = adjusted.value
            if competency is not None:
                sub_topic_level = competency.sub_topics.get(event.sub_topic)

        return TaskRecordResult(logged=logged.is_ok, competency=competency, sub_topic_level=sub_topic_level)

    async def log_behavior(
        self, user_id: str, behavior_type: BehaviorType | str, context: Dict[str, Any] | None = None
    ) -> BehaviorLogResult:
        return await self.behavior.log_behavior(user_id, behavior_type, context)

    def end_session(self, user_id: str) -> None:
        self.behavior.end_session(user_id)

    # --- Prompt-layer surface ---

    async def get_user_context(self, user_id: str, current_topic: str | None = None) -> UserContext:
        return await self.aggregator.get_user_context(user_id, current_topic)

    async def get_topic_context(self, user_id: str, topic: str) -> TopicContext:
        return await self.aggregator.get_topic_context(user_id, topic)

    async def identify_focus_areas(self, user_id: str) -> List[FocusArea]:
        return await self.aggregator.identify_focus_areas(user_id)

    async def generate_insights(self, user_id: str, current_topic: str | None = None) -> List[Insight]:
        return await self.aggregator.generate_insights(user_id, current_topic)

    async def analyze_learning_progress(self, user_id: str, days: float = 30) -> LearningProgress:
        return await self.aggregator.analyze_learning_progress(user_id, days)

    async def close(self) -> None:
        if self._db_engine is not None:
            await self._db_engine.dispose()
            self._db_engine = None


async def build_engine(config: Settings = settings, catalog: TopicCatalog = topic_catalog) -> LearnerAnalyticsEngine:
    """Creates the engine on the configured store; SQL tables are created if missing."""
    if config.storage_backend == "sql":
        db_engine = make_engine(config.database_url)
        await init_models(db_engine)
        store = SqlLearnerStore(make_session_factory(db_engine))
        logger.info(f"Learner analytics engine using SQL store at {db_engine.url.render_as_string(hide_password=True)}")
        return LearnerAnalyticsEngine(store, catalog=catalog, db_engine=db_engine)

    logger.info("Learner analytics engine using in-memory store")
    return LearnerAnalyticsEngine(InMemoryLearnerStore(), catalog=catalog)


@asynccontextmanager
async def open_engine(config: Settings = settings) -> AsyncIterator[LearnerAnalyticsEngine]:
    """
    Manages engine startup and shutdown.
    """
    engine = await build_engine(config)
    try:
        yield engine
    finally:
        await engine.close()
        logger.info("Learner analytics engine shut down.")
