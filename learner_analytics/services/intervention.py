# Intervention rules: looks at the recent session window and decides whether to emit a signal
# learner_analytics/services/intervention.py
from datetime import datetime

from learner_analytics.models.analytics import SessionAnalysis
from learner_analytics.models.enums import BehaviorType, InterventionType
from learner_analytics.models.records import InterventionSignal
from learner_analytics.utils.config import settings
from learner_analytics.utils.logger import logger


def _create_intervention(type_: InterventionType, title: str, message: str,
                         suggested_actions: list[str], timestamp: datetime) -> InterventionSignal:
    return InterventionSignal(
        type=type_,
        title=title,
        message=message,
        suggested_actions=suggested_actions,
        timestamp=timestamp,
    )


def check_intervention(
    user_id: str,
    behavior_type: BehaviorType,
    window: SessionAnalysis,
    now: datetime,
) -> InterventionSignal | None:
    """
    Checks the trailing session window in fixed priority order; the first rule
    that matches wins. The count rules only fire on the behavior that moved
    the count. There is no cooldown: a rule fires again on every qualifying
    event.
    """

    # 1. Repeated solution requests: the tutor should ask about difficulties
    if (behavior_type == BehaviorType.SOLUTION_REQUEST
            and window.solution_requests >= settings.threshold_solution_requests):
        logger.info(f"Intervention Triggered (User: {user_id}): solution requests ({window.solution_requests}) >= {settings.threshold_solution_requests}")
        return _create_intervention(
            InterventionType.PROMPT_ADVICE,
            "Solution request intervention",
            "Proactively ask the learner about their difficulties before showing another solution.",
            ["ask_about_difficulties", "explain_extra_detailed", "encourage_questions"],
            now,
        )

    # 2. Solutions revealed without an attempt
    if (behavior_type == BehaviorType.QUICK_SOLUTION
            and window.quick_solutions >= settings.threshold_quick_solutions):
        logger.info(f"Intervention Triggered (User: {user_id}): quick solutions ({window.quick_solutions}) >= {settings.threshold_quick_solutions}")
        return _create_intervention(
            InterventionType.WARNING,
            "Try it yourself first!",
            "You often open the solution right away. Give the task a go on your own first, even if it looks hard!",
            ["encourage_attempt", "motivate"],
            now,
        )

    # 3. Abandoned tasks
    if (behavior_type == BehaviorType.TASK_ABANDON
            and window.task_abandons >= settings.threshold_task_abandons):
        logger.info(f"Intervention Triggered (User: {user_id}): abandons ({window.task_abandons}) >= {settings.threshold_task_abandons}")
        return _create_intervention(
            InterventionType.SUGGESTION,
            "Tasks too hard?",
            "You have dropped several tasks. Should we lower the difficulty or take a short break?",
            ["lower_difficulty", "suggest_break"],
            now,
        )

    # 4. Mostly help-seeking, little own work
    if (window.help_seeking_ratio > settings.help_seeking_ratio_limit
            and window.recent_behaviors >= settings.help_seeking_min_events):
        logger.info(f"Intervention Triggered (User: {user_id}): help-seeking ratio {window.help_seeking_ratio:.2f} over {window.recent_behaviors} events")
        return _create_intervention(
            InterventionType.ENCOURAGEMENT,
            "You can do this!",
            "You are using a lot of help, and that is okay! Now try solving one task completely on your own. You might surprise yourself!",
            ["motivate", "build_confidence"],
            now,
        )

    logger.debug(f"No intervention triggered for User: {user_id} after {behavior_type.value}")
    return None
