# learner_analytics/models/enums.py
from enum import Enum

class Difficulty(str, Enum):
    """Difficulty grade of a practice task."""
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

class BehaviorType(str, Enum):
    """Learner actions tracked by the behavior monitor."""
    SOLUTION_REQUEST = "solution_request"
    HINT_REQUEST = "hint_request"
    TASK_ABANDON = "task_abandon"
    QUICK_SOLUTION = "quick_solution"
    SELF_SOLVE_ATTEMPT = "self_solve_attempt"
    TASK_REPEAT = "task_repeat"

class Trend(str, Enum):
    """Direction of recent performance."""
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"
    INSUFFICIENT_DATA = "insufficient_data"

class InterventionType(str, Enum):
    PROMPT_ADVICE = "prompt_advice"
    WARNING = "warning"
    SUGGESTION = "suggestion"
    ENCOURAGEMENT = "encouragement"

class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NORMAL = "normal"

class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"

class OverallStatus(str, Enum):
    """Summary status of a learner context."""
    NEEDS_ATTENTION = "needs_attention"
    GOOD = "good"
    EXCELLENT = "excellent"
    UNKNOWN = "unknown"

class StoreStatus(str, Enum):
    """Outcome of a call against the learner store."""
    OK = "ok"
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"
