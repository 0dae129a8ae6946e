# tests/test_sql_store.py
from datetime import timedelta

import pytest
import pytest_asyncio

from conftest import make_events
from learner_analytics.models.enums import BehaviorType, Difficulty
from learner_analytics.models.records import BehaviorEvent, CompetencyRecord, HistoryEntry, PerformanceEvent
from learner_analytics.services.competency import CompetencyModel
from learner_analytics.stores.base import StorageUnavailable
from learner_analytics.stores.sql import SqlLearnerStore, init_models
from learner_analytics.utils.db import make_engine, make_session_factory

USER_ID = "sql_tester"


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'learner_analytics_test.db'}")
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def sql_store(db_engine, clock):
    await init_models(db_engine)
    return SqlLearnerStore(make_session_factory(db_engine), clock=clock)


@pytest.mark.storage
@pytest.mark.asyncio
async def test_competency_roundtrip_and_overwrite(sql_store, clock):
    assert await sql_store.get_competency(USER_ID, "algebra") is None

    record = CompetencyRecord(
        user_id=USER_ID,
        topic="algebra",
        overall_level=4,
        sub_topics={"equations": 4, "systems": 2},
        tasks_completed=7,
        success_rate=71.4,
        average_time=95.0,
        last_practiced=clock(),
        history=[HistoryEntry(timestamp=clock(), level=4, event="task_completed")],
    )
    await sql_store.put_competency(USER_ID, "algebra", record)

    loaded = await sql_store.get_competency(USER_ID, "algebra")
    assert loaded == record
    assert loaded.last_practiced.tzinfo is not None

    await sql_store.put_competency(USER_ID, "algebra", record.model_copy(update={"overall_level": 5}))
    await sql_store.put_competency(USER_ID, "geometry", CompetencyRecord(user_id=USER_ID, topic="geometry"))

    records = await sql_store.get_competency(USER_ID)
    assert [(r.topic, r.overall_level) for r in records] == [("algebra", 5), ("geometry", 3)]
    assert await sql_store.get_competency("someone_else") == []


@pytest.mark.storage
@pytest.mark.asyncio
async def test_performance_events_query(sql_store, clock):
    events = make_events(clock, [True, False, True, True], topic="algebra", difficulty=Difficulty.HARD)
    for event in reversed(events):
        await sql_store.log_performance_event(USER_ID, event)
    await sql_store.log_performance_event(USER_ID, PerformanceEvent(
        topic="geometry", success=False, error_types=["sign_error"], timestamp=clock() - timedelta(days=10)
    ))

    history = await sql_store.query_performance_events(USER_ID, topic="algebra")
    assert [e.timestamp for e in history] == [e.timestamp for e in events]
    assert history[0].difficulty == Difficulty.HARD

    latest = await sql_store.query_performance_events(USER_ID, limit=2)
    assert [e.success for e in latest] == [True, True]
    assert latest[-1].timestamp == clock()

    recent = await sql_store.query_performance_events(USER_ID, since_days=7)
    assert len(recent) == 4

    everything = await sql_store.query_performance_events(USER_ID)
    assert everything[0].topic == "geometry"
    assert everything[0].error_types == ["sign_error"]


@pytest.mark.storage
@pytest.mark.asyncio
async def test_behavior_events_query(sql_store, clock):
    await sql_store.log_behavior_event(USER_ID, BehaviorEvent(
        behavior_type=BehaviorType.HINT_REQUEST, action="open_hint",
        context={"task_id": "t1"}, session_id="session_abc", timestamp=clock(),
    ))
    await sql_store.log_behavior_event(USER_ID, BehaviorEvent(
        behavior_type=BehaviorType.TASK_ABANDON, timestamp=clock() - timedelta(hours=1),
    ))
    await sql_store.log_behavior_event(USER_ID, BehaviorEvent(
        behavior_type=BehaviorType.HINT_REQUEST, timestamp=clock() - timedelta(days=40),
    ))

    events = await sql_store.query_behavior_events(USER_ID, since_days=30)
    assert [e.behavior_type for e in events] == [BehaviorType.TASK_ABANDON, BehaviorType.HINT_REQUEST]
    assert events[1].context == {"task_id": "t1"}
    assert events[1].session_id == "session_abc"

    hints = await sql_store.query_behavior_events(USER_ID, behavior_type=BehaviorType.HINT_REQUEST)
    assert len(hints) == 2


@pytest.mark.storage
@pytest.mark.asyncio
async def test_missing_tables_raise_storage_unavailable(db_engine, clock):
    store = SqlLearnerStore(make_session_factory(db_engine), clock=clock)
    with pytest.raises(StorageUnavailable):
        await store.get_competency(USER_ID, "algebra")
    with pytest.raises(StorageUnavailable):
        await store.query_performance_events(USER_ID)


@pytest.mark.storage
@pytest.mark.asyncio
async def test_competency_model_on_sql_store(sql_store, catalog, clock):
    model = CompetencyModel(sql_store, catalog=catalog, clock=clock)
    outcome = PerformanceEvent(topic="algebra", success=True, difficulty=Difficulty.HARD, timestamp=clock())

    await model.update_after_task(USER_ID, "algebra", outcome)
    await model.adjust_sub_topic_from_performance(USER_ID, "algebra", "equations", outcome)

    record = await model.get_competency(USER_ID, "algebra")
    assert record.overall_level == 4
    assert record.sub_topics["equations"] == 4
    assert [h.event for h in record.history] == ["task_completed", "sub_topic_update"]
