# tests/test_performance.py
from datetime import timedelta

import pytest

from conftest import log_events, make_events
from learner_analytics.models.enums import Difficulty, StoreStatus, Trend
from learner_analytics.models.records import PerformanceEvent
from learner_analytics.services.performance import (
    PerformanceAnalyzer,
    TaskTimer,
    classify_trend,
    fluctuation_score,
    interpret_motivation,
)

USER_ID = "performance_tester"


# --- Pure helpers ---

@pytest.mark.performance
class TestTrendAndFluctuation:
    def test_improving_trend(self, clock):
        events = make_events(clock, [True, False, True, False, False, True, True, False, True, True])
        assert classify_trend(events) == Trend.IMPROVING  # 40% -> 80%

    def test_declining_trend(self, clock):
        events = make_events(clock, [True, True, True, True, False, False, False, True, False, False])
        assert classify_trend(events) == Trend.DECLINING  # 80% -> 20%

    def test_stable_trend(self, clock):
        events = make_events(clock, [True, False, True, True, False, True])
        assert classify_trend(events) == Trend.STABLE

        events = make_events(clock, [True, False, True, False, False] * 2)
        assert classify_trend(events) == Trend.STABLE  # 40% -> 40%

    def test_too_few_events_for_trend(self, clock):
        events = make_events(clock, [True, True, False, False])
        assert classify_trend(events) == Trend.INSUFFICIENT_DATA

    def test_fluctuation_neutral_below_minimum(self, clock):
        assert fluctuation_score([]) == 5
        assert fluctuation_score(make_events(clock, [True, False])) == 5

    def test_fluctuation_zero_for_constant_results(self, clock):
        assert fluctuation_score(make_events(clock, [True] * 8)) == 0

    def test_fluctuation_alternating_results(self, clock):
        # Window rates 66.7/33.3 alternate: std 16.7 -> 3.3 -> 3
        events = make_events(clock, [True, False, True, False, True, False])
        assert fluctuation_score(events) == 3

    def test_fluctuation_is_bounded(self, clock):
        events = make_events(clock, [True, True, True, False, False, False] * 3)
        assert 0 <= fluctuation_score(events) <= 10

    @pytest.mark.parametrize("score,label", [
        (10, "Very motivated"), (8, "Very motivated"), (7, "Well motivated"),
        (5, "Neutral"), (3, "Low motivation"), (1, "Very low motivation"),
    ])
    def test_interpret_motivation(self, score, label):
        assert interpret_motivation(score) == label


# --- History & stats ---

@pytest.mark.performance
@pytest.mark.asyncio
async def test_history_is_chronological_and_limited(performance_analyzer, store, clock):
    events = make_events(clock, [True, False, True, True, False])
    # Log out of order
    await log_events(store, USER_ID, list(reversed(events)))

    history = await performance_analyzer.get_history(USER_ID)
    assert [e.timestamp for e in history] == [e.timestamp for e in events]

    latest = await performance_analyzer.get_history(USER_ID, limit=2)
    assert [e.timestamp for e in latest] == [e.timestamp for e in events[-2:]]


@pytest.mark.performance
@pytest.mark.asyncio
async def test_history_filters_by_topic_and_days(performance_analyzer, store, clock):
    await log_events(store, USER_ID, make_events(clock, [True, True], topic="algebra"))
    await log_events(store, USER_ID, make_events(clock, [False], topic="geometry"))
    old = PerformanceEvent(topic="algebra", success=False, timestamp=clock() - timedelta(days=40))
    await store.log_performance_event(USER_ID, old)

    assert len(await performance_analyzer.get_history(USER_ID, topic="algebra")) == 3
    assert len(await performance_analyzer.get_history(USER_ID, topic="algebra", days=30)) == 2
    assert len(await performance_analyzer.get_history(USER_ID, days=30)) == 3


@pytest.mark.performance
@pytest.mark.asyncio
async def test_fetch_history_separates_empty_from_unavailable(performance_analyzer, failing_store, clock):
    empty = await performance_analyzer.fetch_history(USER_ID)
    assert empty.status == StoreStatus.NOT_FOUND

    broken = PerformanceAnalyzer(failing_store, clock=clock)
    result = await broken.fetch_history(USER_ID)
    assert result.status == StoreStatus.UNAVAILABLE
    assert await broken.get_history(USER_ID) == []


@pytest.mark.performance
@pytest.mark.asyncio
async def test_get_stats(performance_analyzer, store, clock):
    events = [
        PerformanceEvent(topic="algebra", success=True, time_spent=60, hints_used=0, timestamp=clock()),
        PerformanceEvent(topic="algebra", success=False, time_spent=120, hints_used=2,
                         showed_solution=True, timestamp=clock()),
        PerformanceEvent(topic="algebra", success=True, time_spent=90, hints_used=1, timestamp=clock()),
        PerformanceEvent(topic="algebra", success=True, time_spent=30, hints_used=1, timestamp=clock()),
    ]
    await log_events(store, USER_ID, events)

    stats = await performance_analyzer.get_stats(USER_ID)
    assert stats.tasks_completed == 4
    assert stats.success_rate == pytest.approx(75.0)
    assert stats.average_time == pytest.approx(75.0)
    assert stats.hints_used_avg == pytest.approx(1.0)
    assert stats.solution_shown_rate == pytest.approx(25.0)
    assert 0 <= stats.fluctuation_score <= 10


@pytest.mark.performance
@pytest.mark.asyncio
async def test_get_stats_without_events_is_all_zero(performance_analyzer):
    stats = await performance_analyzer.get_stats(USER_ID)
    assert stats.tasks_completed == 0
    assert stats.success_rate == 0
    assert stats.average_time == 0
    assert stats.fluctuation_score == 0


@pytest.mark.performance
@pytest.mark.asyncio
async def test_calculate_trend_uses_window(performance_analyzer, store, clock):
    await log_events(store, USER_ID, make_events(clock, [False] * 5 + [True] * 5, spacing_minutes=60))
    assert await performance_analyzer.calculate_trend(USER_ID) == Trend.IMPROVING

    clock.advance(days=20)
    assert await performance_analyzer.calculate_trend(USER_ID) == Trend.INSUFFICIENT_DATA


# --- Motivation ---

@pytest.mark.performance
@pytest.mark.asyncio
async def test_motivation_without_events_is_neutral(performance_analyzer):
    motivation = await performance_analyzer.estimate_motivation(USER_ID)
    assert motivation.level == 5
    assert motivation.factors == []
    assert motivation.insufficient_data is True


@pytest.mark.performance
@pytest.mark.asyncio
async def test_motivation_for_independent_successful_learner(performance_analyzer, store, clock):
    await log_events(store, USER_ID, make_events(clock, [True] * 10))

    motivation = await performance_analyzer.estimate_motivation(USER_ID)
    assert motivation.level == 8
    assert motivation.interpretation == "Very motivated"
    assert motivation.factors == ["High success rate", "Solves independently (high engagement)"]
    assert motivation.insufficient_data is False


@pytest.mark.performance
@pytest.mark.asyncio
async def test_motivation_for_struggling_learner(performance_analyzer, store, clock):
    await log_events(store, USER_ID, make_events(clock, [False] * 10, showed_solution=True, hints_used=3))

    motivation = await performance_analyzer.estimate_motivation(USER_ID)
    assert motivation.level == 2
    assert motivation.interpretation == "Low motivation"
    assert "Low success rate (potential frustration)" in motivation.factors
    assert "Frequently shows solutions (low engagement)" in motivation.factors


@pytest.mark.performance
@pytest.mark.asyncio
async def test_motivation_stays_in_bounds(performance_analyzer, store, clock):
    # One task in a week: low activity on top of everything else
    await log_events(store, USER_ID, make_events(clock, [False], showed_solution=True))
    motivation = await performance_analyzer.estimate_motivation(USER_ID)
    assert 1 <= motivation.level <= 10
    assert motivation.level == 1
    assert "Low activity level" in motivation.factors


# --- Recommendations ---

@pytest.mark.performance
@pytest.mark.asyncio
async def test_recommendations_for_struggling_learner(performance_analyzer, store, clock):
    await log_events(store, USER_ID, make_events(clock, [False] * 10, showed_solution=True, time_spent=30))

    recommendations = await performance_analyzer.generate_recommendations(USER_ID)
    assert [r.type for r in recommendations] == ["difficulty", "engagement", "motivation"]
    assert recommendations[0].action == "lower_difficulty"


@pytest.mark.performance
@pytest.mark.asyncio
async def test_recommendations_for_improving_slow_learner(performance_analyzer, store, clock):
    await log_events(store, USER_ID, make_events(clock, [False] * 4 + [True] * 6, time_spent=900))

    recommendations = await performance_analyzer.generate_recommendations(USER_ID)
    assert [r.type for r in recommendations] == ["encouragement", "time"]


# --- Patterns ---

@pytest.mark.performance
@pytest.mark.asyncio
async def test_identify_patterns(performance_analyzer, store, clock):
    await log_events(store, USER_ID, make_events(clock, [False] * 3, topic="geometry", spacing_minutes=5))
    await log_events(store, USER_ID, make_events(clock, [True] * 4, topic="algebra", spacing_minutes=5))

    patterns = await performance_analyzer.identify_patterns(USER_ID)
    assert [(p.topic, p.failure_count) for p in patterns.weakness_patterns] == [("geometry", 3)]
    assert [(p.topic, p.success_rate) for p in patterns.strength_patterns] == [("algebra", 100.0)]
    assert patterns.peak_performance_hour is not None
    assert 0 <= patterns.consistency_score <= 100


@pytest.mark.performance
@pytest.mark.asyncio
async def test_identify_patterns_without_events(performance_analyzer):
    patterns = await performance_analyzer.identify_patterns(USER_ID)
    assert patterns.peak_performance_hour is None
    assert patterns.weakness_patterns == []
    assert patterns.consistency_score == 50.0


# --- Task timer ---

@pytest.mark.performance
def test_task_timer_builds_event():
    ticks = iter([100.0, 145.5])
    timer = TaskTimer("algebra", difficulty=Difficulty.HARD, sub_topic="systems", monotonic=lambda: next(ticks))
    timer.record_hint_used()
    timer.record_hint_used()

    event = timer.finish(success=True)
    assert event.topic == "algebra"
    assert event.sub_topic == "systems"
    assert event.difficulty == Difficulty.HARD
    assert event.time_spent == pytest.approx(45.5)
    assert event.hints_used == 2
    assert event.showed_solution is False


@pytest.mark.performance
def test_task_timer_explicit_time():
    timer = TaskTimer("geometry", monotonic=lambda: 0.0)
    event = timer.finish(success=False, showed_solution=True, time_spent=12.0, attempts=3)
    assert event.time_spent == 12.0
    assert event.attempts == 3
    assert event.difficulty == Difficulty.MEDIUM
