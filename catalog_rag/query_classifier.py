"""
Query classification for the catalog assistant.

Maps raw query text to a Classification by a fixed precedence of cheap
heuristics. The first rule that fires wins:

1. classification cache (normalized text)
2. greeting fast path                     -> simple_conversation (0.95)
3. keyword route, longest keyword first   -> route (0.96) + route filter
4. technical vocabulary word              -> knowledge_base (0.9)
5. question patterns (length > 8)         -> intelligent_response (0.8 / 0.75)
6. length > 15                            -> intelligent_response (0.65)
7. default                                -> simple_conversation (0.6)

Example:
    >>> classifier = QueryClassifier()
    >>> result = classifier.classify("What are the specs of DL380 Gen12?")
    >>> result.type, result.confidence, result.rule_name
    (<ClassificationType.ROUTE: 'route'>, 0.96, 'specs_queries')
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .caching import BoundedCache
from .config import get_cache_config
from .filters import Filter, parse_filter
from .observability.metrics import record_cache_lookup, record_classification
from .text_similarity import normalize

logger = logging.getLogger(__name__)


class ClassificationType(str, Enum):
    SIMPLE_CONVERSATION = "simple_conversation"
    ROUTE = "route"
    KNOWLEDGE_BASE = "knowledge_base"
    INTELLIGENT_RESPONSE = "intelligent_response"


@dataclass(frozen=True)
class Classification:
    """How a query should be handled."""

    type: ClassificationType
    confidence: float
    reason: str
    route: Optional[Filter] = None
    rule_name: Optional[str] = None


# Rule name -> trigger keywords and the metadata filter the rule routes to
DEFAULT_ROUTING_RULES: Dict[str, Dict[str, Any]] = {
    "specs_queries": {
        "match": ["spec", "specification"],
        "route": {"document_type": "family-guide", "category": "specs"},
    },
    "performance_queries": {
        "match": ["performance", "benchmark", "speed"],
        "route": {"document_type": "benchmark-results", "category": "performance"},
    },
    "how_to_queries": {
        "match": ["how to", "manage", "management", "solution"],
        "route": {"document_type": "solution-brief", "category": "management"},
    },
    "customer_proof": {
        "match": ["customer", "case study", "reference", "success stories", "success story", "customer success"],
        "route": {"document_type": "customer-case-study"},
    },
    "latest_info": {
        "match": ["latest", "recent", "update", "news"],
        "route": {"document_id": "web-scraped-content"},
    },
    "virtualization": {
        "match": ["vmware", "kvm", "virtualization", "hypervisor", "vmware alternative"],
        "route": {
            "$or": [
                {"category": "virtualization"},
                {"topics": {"$in": ["virtualization", "vmware-alternative"]}},
            ]
        },
    },
    "ai_inference": {
        "match": ["ai inference", "inference", "ml ai", "model benchmark"],
        "route": {"topics": "ai-inference", "document_type": "benchmark-results"},
    },
}

TECHNICAL_KEYWORDS = frozenset({
    'processor', 'memory', 'storage', 'ilo', 'com', 'feature', 'price', 'cost',
    'compare', 'comparison', 'difference', 'generation', 'gen11', 'gen12',
    'sku', 'part number', 'model', 'configuration',
    'power', 'cooling', 'rack', 'dimensions',
    'warranty', 'support', 'service', 'hpe', 'proliant',
    'dl380', 'dl360', 'dl20', 'ml350', 'ml30', 'dl384', 'dl580',
    'success', 'stories', 'customer',
})

GREETING_PATTERN = re.compile(r"^(hi|hello|hey|yes|no|ok|thanks)$", re.IGNORECASE)

QUESTION_PATTERNS = (
    re.compile(r"what (is|are|can|does|do)", re.IGNORECASE),
    re.compile(r"how (many|much|does|do|can)", re.IGNORECASE),
    re.compile(r"which (one|model|server)", re.IGNORECASE),
    re.compile(r"tell me about", re.IGNORECASE),
    re.compile(r"can (you|it|they)", re.IGNORECASE),
    re.compile(r"does (it|this|that)", re.IGNORECASE),
)

ASSISTANCE_PATTERN = re.compile(
    r"tell me|what about|explain|describe|i want|i need|help me|can you|problem with|issue with|sales in",
    re.IGNORECASE,
)

GREETING_MAX_LENGTH = 8
QUESTION_MIN_LENGTH = 8
EXTENDED_TEXT_MIN_LENGTH = 15


class QueryClassifier:
    """
    Rule-based query classifier with a bounded classification cache.

    Pattern tables are built once at construction and never change; only the
    cache is mutable.
    """

    def __init__(
        self,
        routing_rules: Optional[Mapping[str, Mapping[str, Any]]] = None,
        technical_keywords: Optional[Iterable[str]] = None,
        cache_size: Optional[int] = None,
    ):
        """Initialize classifier.

        Args:
            routing_rules: Rule name -> {"match": [keywords], "route": dict filter}
                (default: DEFAULT_ROUTING_RULES)
            technical_keywords: Vocabulary for the knowledge-base fast path
            cache_size: Classification cache capacity (default from config)
        """
        rules = DEFAULT_ROUTING_RULES if routing_rules is None else routing_rules
        self._keyword_routes = self._build_keyword_routes(rules)
        # Longest first; sorted() is stable so equal lengths keep rule order
        self._sorted_keywords: Tuple[str, ...] = tuple(
            sorted(self._keyword_routes, key=len, reverse=True)
        )
        self._technical_keywords = frozenset(
            TECHNICAL_KEYWORDS if technical_keywords is None else (k.lower() for k in technical_keywords)
        )

        if cache_size is None:
            cache_size = get_cache_config().classification_cache_size
        self._cache: BoundedCache[str, Classification] = BoundedCache(max_size=cache_size)

    @staticmethod
    def _build_keyword_routes(
        rules: Mapping[str, Mapping[str, Any]],
    ) -> Dict[str, Tuple[Filter, str]]:
        keyword_routes: Dict[str, Tuple[Filter, str]] = {}
        for rule_name, rule in rules.items():
            route = parse_filter(rule["route"])
            for keyword in rule["match"]:
                keyword_routes[keyword.lower()] = (route, rule_name)
        return keyword_routes

    @property
    def sorted_keywords(self) -> Tuple[str, ...]:
        return self._sorted_keywords

    def classify(self, text: str) -> Classification:
        """Classify a query.

        Args:
            text: Raw query text

        Returns:
            Classification (cached by normalized text)
        """
        key = normalize(text)

        cached = self._cache.get(key)
        record_cache_lookup("classification", cached is not None)
        if cached is not None:
            logger.debug(f"Classification cache hit for '{key}'")
            return cached

        result = self._classify_uncached(key)
        self._cache.set(key, result)
        record_classification(result.type.value)
        logger.debug(f"Classified '{key}' as {result.type.value} ({result.confidence})")
        return result

    def _classify_uncached(self, lower_text: str) -> Classification:
        length = len(lower_text)

        if length < GREETING_MAX_LENGTH or GREETING_PATTERN.match(lower_text):
            return Classification(ClassificationType.SIMPLE_CONVERSATION, 0.95, "Very short greeting")

        for keyword in self._sorted_keywords:
            if keyword in lower_text:
                route, rule_name = self._keyword_routes[keyword]
                return Classification(
                    ClassificationType.ROUTE,
                    0.96,
                    f"Matched: {rule_name}",
                    route=route,
                    rule_name=rule_name,
                )

        if any(word in self._technical_keywords for word in lower_text.split()):
            return Classification(
                ClassificationType.KNOWLEDGE_BASE, 0.9, "Contains technical/product keywords"
            )

        if length > QUESTION_MIN_LENGTH:
            if any(pattern.search(lower_text) for pattern in QUESTION_PATTERNS):
                return Classification(
                    ClassificationType.INTELLIGENT_RESPONSE, 0.8, "Question that needs intelligent response"
                )
            if ASSISTANCE_PATTERN.search(lower_text):
                return Classification(
                    ClassificationType.INTELLIGENT_RESPONSE, 0.75, "Requires intelligent response"
                )

        if length > EXTENDED_TEXT_MIN_LENGTH:
            return Classification(
                ClassificationType.INTELLIGENT_RESPONSE, 0.65, "Extended text needs intelligent handling"
            )

        return Classification(ClassificationType.SIMPLE_CONVERSATION, 0.6, "Simple conversation")

    def batch_classify(self, texts: Iterable[str]) -> List[Classification]:
        return [self.classify(text) for text in texts]

    def clear_cache(self) -> None:
        self._cache.clear()

    def get_cache_stats(self) -> Dict[str, Any]:
        """Cache metrics plus rule table sizes."""
        stats = self._cache.get_metrics()
        stats["total_keywords"] = len(self._sorted_keywords)
        return stats


def should_use_rag(classification: Classification) -> bool:
    """True for routed queries and confident knowledge-base queries."""
    return classification.type == ClassificationType.ROUTE or (
        classification.type == ClassificationType.KNOWLEDGE_BASE and classification.confidence > 0.65
    )


def should_use_intelligent_response(classification: Classification) -> bool:
    return classification.type in (
        ClassificationType.ROUTE,
        ClassificationType.KNOWLEDGE_BASE,
        ClassificationType.INTELLIGENT_RESPONSE,
    )
