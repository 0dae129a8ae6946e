# Relational store on async SQLAlchemy; one row per competency record and per logged event
# learner_analytics/stores/sql.py
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.future import select

from learner_analytics.models.enums import BehaviorType, Difficulty
from learner_analytics.models.records import (
    BehaviorEvent,
    CompetencyRecord,
    HistoryEntry,
    PerformanceEvent,
)
from learner_analytics.models.tables import Base, BehaviorEventRow, CompetencyRow, PerformanceEventRow
from learner_analytics.stores.base import LearnerStore, StorageUnavailable
from learner_analytics.utils.logger import logger


def _to_db_time(value: datetime | None) -> datetime | None:
    """Columns hold naive UTC."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _from_db_time(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def _competency_from_row(row: CompetencyRow) -> CompetencyRecord:
    return CompetencyRecord(
        user_id=row.user_id,
        topic=row.topic,
        overall_level=row.overall_level,
        sub_topics=dict(row.sub_topics or {}),
        tasks_completed=row.tasks_completed,
        success_rate=row.success_rate,
        average_time=row.average_time,
        last_practiced=_from_db_time(row.last_practiced),
        last_updated=_from_db_time(row.last_updated),
        history=[HistoryEntry.model_validate(h) for h in (row.history or [])],
    )


def _performance_from_row(row: PerformanceEventRow) -> PerformanceEvent:
    return PerformanceEvent(
        topic=row.topic,
        sub_topic=row.sub_topic,
        difficulty=Difficulty(row.difficulty),
        success=row.success,
        time_spent=row.time_spent,
        hints_used=row.hints_used,
        showed_solution=row.showed_solution,
        attempts=row.attempts,
        error_types=list(row.error_types or []),
        timestamp=_from_db_time(row.timestamp),
    )


def _behavior_from_row(row: BehaviorEventRow) -> BehaviorEvent:
    return BehaviorEvent(
        behavior_type=BehaviorType(row.behavior_type),
        action=row.action,
        context=dict(row.context or {}),
        frequency=row.frequency,
        session_id=row.session_id,
        timestamp=_from_db_time(row.timestamp),
    )


async def init_models(engine: AsyncEngine) -> None:
    """Creates the tables if they don't exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


class SqlLearnerStore(LearnerStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], **kwargs):
        super().__init__(**kwargs)
        self.session_factory = session_factory

    async def get_competency(self, user_id, topic=None):
        try:
            async with self.session_factory() as session:
                if topic is not None:
                    row = await session.get(CompetencyRow, (user_id, topic))
                    return _competency_from_row(row) if row else None
                result = await session.execute(
                    select(CompetencyRow).filter_by(user_id=user_id).order_by(CompetencyRow.topic)
                )
                return [_competency_from_row(r) for r in result.scalars().all()]
        except SQLAlchemyError as e:
            logger.error(f"get_competency failed for {user_id}/{topic}: {e}")
            raise StorageUnavailable(str(e)) from e

    async def put_competency(self, user_id, topic, record):
        history = [h.model_dump(mode="json") for h in record.history]
        try:
            async with self.session_factory() as session:
                row = await session.get(CompetencyRow, (user_id, topic))
                if row is None:
                    row = CompetencyRow(user_id=user_id, topic=topic)
                    session.add(row)
                row.overall_level = record.overall_level
                row.sub_topics = dict(record.sub_topics)
                row.tasks_completed = record.tasks_completed
                row.success_rate = record.success_rate
                row.average_time = record.average_time
                row.last_practiced = _to_db_time(record.last_practiced)
                row.last_updated = _to_db_time(record.last_updated)
                row.history = history
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"put_competency failed for {user_id}/{topic}: {e}")
            raise StorageUnavailable(str(e)) from e
        return record.model_copy(update={"user_id": user_id, "topic": topic})

    async def log_performance_event(self, user_id, event):
        try:
            async with self.session_factory() as session:
                session.add(PerformanceEventRow(
                    user_id=user_id,
                    timestamp=_to_db_time(event.timestamp),
                    topic=event.topic,
                    sub_topic=event.sub_topic,
                    difficulty=event.difficulty.value,
                    success=event.success,
                    time_spent=event.time_spent,
                    hints_used=event.hints_used,
                    showed_solution=event.showed_solution,
                    attempts=event.attempts,
                    error_types=list(event.error_types),
                ))
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"log_performance_event failed for {user_id}: {e}")
            raise StorageUnavailable(str(e)) from e
        return event

    async def query_performance_events(self, user_id, topic=None, since_days=None, limit=None):
        query = select(PerformanceEventRow).filter_by(user_id=user_id)
        if topic is not None:
            query = query.filter_by(topic=topic)
        cutoff = self._cutoff(since_days)
        if cutoff is not None:
            query = query.where(PerformanceEventRow.timestamp >= _to_db_time(cutoff))
        # Newest first so the limit keeps the most recent rows, then flip back.
        query = query.order_by(PerformanceEventRow.timestamp.desc(), PerformanceEventRow.id.desc())
        if limit is not None:
            query = query.limit(max(limit, 0))
        try:
            async with self.session_factory() as session:
                result = await session.execute(query)
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"query_performance_events failed for {user_id}: {e}")
            raise StorageUnavailable(str(e)) from e
        return [_performance_from_row(r) for r in reversed(rows)]

    async def log_behavior_event(self, user_id, event):
        try:
            async with self.session_factory() as session:
                session.add(BehaviorEventRow(
                    user_id=user_id,
                    behavior_key=event.behavior_key,
                    behavior_type=event.behavior_type.value,
                    action=event.action,
                    context=dict(event.context),
                    frequency=event.frequency,
                    timestamp=_to_db_time(event.timestamp),
                    session_id=event.session_id,
                ))
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"log_behavior_event failed for {user_id}: {e}")
            raise StorageUnavailable(str(e)) from e
        return event

    async def query_behavior_events(self, user_id, behavior_type=None, since_days=None):
        query = select(BehaviorEventRow).filter_by(user_id=user_id)
        if behavior_type is not None:
            query = query.filter_by(behavior_type=BehaviorType(behavior_type).value)
        cutoff = self._cutoff(since_days)
        if cutoff is not None:
            query = query.where(BehaviorEventRow.timestamp >= _to_db_time(cutoff))
        query = query.order_by(BehaviorEventRow.timestamp, BehaviorEventRow.id)
        try:
            async with self.session_factory() as session:
                result = await session.execute(query)
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"query_behavior_events failed for {user_id}: {e}")
            raise StorageUnavailable(str(e)) from e
        return [_behavior_from_row(r) for r in rows]
