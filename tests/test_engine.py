# tests/test_engine.py
import pytest

from learner_analytics.engine import LearnerAnalyticsEngine, build_engine, open_engine
from learner_analytics.models.enums import BehaviorType, Difficulty, InterventionType, OverallStatus
from learner_analytics.models.records import PerformanceEvent
from learner_analytics.stores.memory import InMemoryLearnerStore
from learner_analytics.stores.sql import SqlLearnerStore
from learner_analytics.utils.config import Settings

USER_ID = "engine_tester"


@pytest.fixture
def engine(store, catalog, clock):
    return LearnerAnalyticsEngine(store, catalog=catalog, clock=clock)


@pytest.mark.asyncio
async def test_record_task_outcome_updates_topic_and_sub_topic(engine, store, clock, hard_success):
    result = await engine.record_task_outcome(USER_ID, hard_success.model_copy(update={"timestamp": clock()}))

    assert result.logged is True
    assert result.competency.overall_level == 4
    assert result.competency.tasks_completed == 1
    assert result.sub_topic_level == 4
    assert len(await store.query_performance_events(USER_ID)) == 1


@pytest.mark.asyncio
async def test_record_task_outcome_without_sub_topic(engine, clock):
    event = PerformanceEvent(topic="geometry", success=False, difficulty=Difficulty.EASY, timestamp=clock())
    result = await engine.record_task_outcome(USER_ID, event)

    assert result.competency.overall_level == 2
    assert result.sub_topic_level is None


@pytest.mark.asyncio
async def test_record_task_outcome_skipped_sub_topic_reports_current_level(engine, clock):
    event = PerformanceEvent(topic="algebra", sub_topic="systems", success=True,
                             showed_solution=True, timestamp=clock())
    result = await engine.record_task_outcome(USER_ID, event)
    assert result.sub_topic_level == 3


@pytest.mark.asyncio
async def test_record_task_outcome_with_store_down(failing_store, catalog, clock, hard_success):
    engine = LearnerAnalyticsEngine(failing_store, catalog=catalog, clock=clock)
    result = await engine.record_task_outcome(USER_ID, hard_success)

    assert result.logged is False
    assert result.competency is None
    assert result.sub_topic_level is None


@pytest.mark.asyncio
async def test_engine_behavior_and_context_surface(engine, clock):
    for _ in range(4):
        clock.advance(seconds=20)
        result = await engine.log_behavior(USER_ID, BehaviorType.SOLUTION_REQUEST)
    assert result.intervention.type == InterventionType.PROMPT_ADVICE

    engine.end_session(USER_ID)
    assert engine.behavior.analyze_session(USER_ID).total_behaviors == 0

    context = await engine.get_user_context(USER_ID)
    assert context.behavior["solution_request"].count == 4
    assert context.summary.overall_status == OverallStatus.NEEDS_ATTENTION

    insights = await engine.generate_insights(USER_ID)
    assert insights[0].type == "motivation"


@pytest.mark.asyncio
async def test_build_engine_in_memory():
    engine = await build_engine(Settings(storage_backend="memory"))
    assert isinstance(engine.store, InMemoryLearnerStore)
    await engine.close()


@pytest.mark.asyncio
async def test_open_engine_on_sqlite(tmp_path, hard_success):
    config = Settings(
        storage_backend="sql",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'engine.db'}",
    )
    async with open_engine(config) as engine:
        assert isinstance(engine.store, SqlLearnerStore)
        result = await engine.record_task_outcome(USER_ID, hard_success)
        assert result.logged is True
        assert result.sub_topic_level == 4

        topic_context = await engine.get_topic_context(USER_ID, "algebra")
        assert topic_context.competency.overall_level == 4
        assert len(topic_context.recent_history) == 1

    assert engine._db_engine is None


def test_settings_reject_unknown_backend():
    with pytest.raises(ValueError):
        Settings(storage_backend="redis")
