# Two-level subject taxonomy (topic -> sub-topics) used to seed competency records
# learner_analytics/services/topic_catalog.py
import random
from typing import Dict, List

from pydantic import BaseModel

from learner_analytics.utils.logger import logger


class TopicInfo(BaseModel):
    name: str
    sub_topics: List[str]


DEFAULT_TOPICS: Dict[str, TopicInfo] = {
    "functions": TopicInfo(
        name="Functions",
        sub_topics=["linear", "quadratic", "exponential", "trigonometric", "logarithmic"],
    ),
    "integration": TopicInfo(
        name="Integration",
        sub_topics=["basic", "substitution", "partial", "byParts", "definite"],
    ),
    "differentiation": TopicInfo(
        name="Differentiation",
        sub_topics=["basic", "productRule", "quotientRule", "chainRule", "implicit"],
    ),
    "geometry": TopicInfo(
        name="Geometry",
        sub_topics=["triangles", "circles", "vectors", "coordinates", "transformations"],
    ),
    "algebra": TopicInfo(
        name="Algebra",
        sub_topics=["equations", "inequalities", "polynomials", "systems", "factoring"],
    ),
    "statistics": TopicInfo(
        name="Statistics",
        sub_topics=["descriptive", "probability", "distributions", "hypothesis", "correlation"],
    ),
    "trigonometry": TopicInfo(
        name="Trigonometry",
        sub_topics=["basicIdentities", "equations", "graphing", "applications", "inverses"],
    ),
}


class TopicCatalog:
    def __init__(self, topics: Dict[str, TopicInfo] | None = None, rng: random.Random | None = None):
        self._topics = dict(topics if topics is not None else DEFAULT_TOPICS)
        self._rng = rng or random.Random()
        logger.debug(f"TopicCatalog loaded with {len(self._topics)} topics")

    def get_all_topics(self) -> List[str]:
        return list(self._topics.keys())

    def get_topic(self, topic: str) -> TopicInfo | None:
        return self._topics.get(topic)

    def get_sub_topics(self, topic: str) -> List[str]:
        info = self._topics.get(topic)
        return list(info.sub_topics) if info else []

    def random_topic(self) -> str | None:
        """Uniform pick over the whole catalog."""
        topics = self.get_all_topics()
        if not topics:
            return None
        return self._rng.choice(topics)

topic_catalog = TopicCatalog()
