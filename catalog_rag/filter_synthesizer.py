"""
Filter synthesis: query text -> metadata filter.

Order of checks (first match wins):

1. Case-study / success-story phrasing -> no filter. Case studies are tagged
   ``product: "all"``, so narrowing them by product would hide them.
2. Product name (DL380, ML350, ...)    -> product filter
3. Category pattern                    -> flexible category filter
4. Category synonym                    -> flexible category filter
5. Nothing                             -> no filter
"""

import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .caching import BoundedCache
from .config import get_cache_config
from .filters import Equals, Filter, In, Or
from .observability.metrics import record_cache_lookup
from .text_similarity import normalize

logger = logging.getLogger(__name__)


CASE_STUDY_PATTERN = re.compile(
    r"case stud|success stor|customer success|customer stor|customer case|customer proof|who uses",
    re.IGNORECASE,
)

PRODUCT_PATTERNS: Tuple[Tuple[re.Pattern, str], ...] = (
    (re.compile(r"\bdl\s?380a?\b", re.IGNORECASE), "DL380"),
    (re.compile(r"\bdl\s?384\b", re.IGNORECASE), "DL384"),
    (re.compile(r"\bdl\s?360\b", re.IGNORECASE), "DL360"),
    (re.compile(r"\bdl\s?20\b", re.IGNORECASE), "DL20"),
    (re.compile(r"\bml\s?350\b", re.IGNORECASE), "ML350"),
    (re.compile(r"\bml\s?30\b", re.IGNORECASE), "ML30"),
    (re.compile(r"\bdl\s?580\b", re.IGNORECASE), "DL580"),
)

CATEGORY_PATTERNS: Tuple[Tuple[re.Pattern, str], ...] = (
    (re.compile(r"\b(price|cost|pricing)\b", re.IGNORECASE), "pricing"),
    (re.compile(r"\b(spec|specification)\b", re.IGNORECASE), "specs"),
    (re.compile(r"\b(performance|benchmark)\b", re.IGNORECASE), "performance"),
    (re.compile(r"\b(virtualization|vmware|kvm|hypervisor)\b", re.IGNORECASE), "virtualization"),
    (re.compile(r"\bmanagement\b", re.IGNORECASE), "management"),
    (re.compile(r"\bcase study\b", re.IGNORECASE), "customer-case-study"),
    (re.compile(r"\b(ai inference|model benchmark)\b", re.IGNORECASE), "ai-inference"),
)

CATEGORY_SYNONYMS: Dict[str, List[str]] = {
    "pricing": ["pricing", "price", "cost", "tco", "total cost", "roi"],
    "specs": ["specs", "specifications", "technical specs", "datasheet", "configuration"],
    "performance": ["performance", "benchmark", "speed", "throughput", "latency"],
    "virtualization": [
        "virtualization", "vmware", "vsphere", "hypervisor", "vmware alternative", "kvm", "virtual machine",
    ],
    "management": ["management", "oneview", "ilo", "compute ops", "ops management", "remote management"],
    "customer-case-study": ["customer case", "case study", "success story", "reference", "customer proof"],
    "ai-inference": ["ai inference", "ai", "ml", "machine learning", "inference", "gpu acceleration"],
}

# Metadata fields a category term is matched against
EQUALITY_FIELDS = ("category", "document_type", "document_id")
MEMBERSHIP_FIELDS = ("topics", "referenced_products", "key_features", "use_cases", "search_keywords", "tags")

# Cached stand-in for "no filter", so a cached None is distinguishable from a miss
_NO_FILTER = object()


def _normalize_term(term: Any) -> str:
    return term.strip().lower() if isinstance(term, str) else ""


def text_contains_synonym(text: str, term: str) -> bool:
    """Word-boundary match for single words, substring match for phrases."""
    normalized = _normalize_term(term)
    if not normalized:
        return False
    if " " in normalized:
        return normalized in text
    return re.search(rf"\b{re.escape(normalized)}\b", text) is not None


def build_product_filter(product: str) -> Filter:
    """Documents about ``product``, documents for all products, or documents referencing it."""
    return Or((
        Equals("product", product),
        Equals("product", "all"),
        In("referenced_products", (product,)),
    ))


def build_flexible_category_filter(
    category: str,
    synonyms: Optional[Mapping[str, Sequence[str]]] = None,
) -> Optional[Filter]:
    """Disjunction over every metadata field that could carry the category or a synonym.

    Args:
        category: Category keyword
        synonyms: Category -> synonyms table (default: CATEGORY_SYNONYMS)

    Returns:
        Or filter, or None if the category is empty
    """
    synonyms = CATEGORY_SYNONYMS if synonyms is None else synonyms
    normalized_category = _normalize_term(category)
    if not normalized_category:
        return None

    terms = [normalized_category]
    for synonym in synonyms.get(normalized_category, ()):
        term = _normalize_term(synonym)
        if term and term not in terms:
            terms.append(term)

    clauses: List[Filter] = []
    seen = set()
    for term in terms:
        candidates = [Equals(field, term) for field in EQUALITY_FIELDS]
        candidates += [In(field, (term,)) for field in MEMBERSHIP_FIELDS]
        for clause in candidates:
            if clause not in seen:
                seen.add(clause)
                clauses.append(clause)

    return Or(clauses) if clauses else None


class FilterSynthesizer:
    """
    Derives a metadata filter from query text, with a bounded filter cache.

    Example:
        >>> synthesizer = FilterSynthesizer()
        >>> synthesizer.extract("Tell me about DL360 performance").to_dict()
        {'$or': [{'product': 'DL360'}, {'product': 'all'}, {'referenced_products': {'$in': ['DL360']}}]}
        >>> synthesizer.extract("Customer case studies") is None
        True
    """

    def __init__(
        self,
        product_patterns: Sequence[Tuple[re.Pattern, str]] = PRODUCT_PATTERNS,
        category_patterns: Sequence[Tuple[re.Pattern, str]] = CATEGORY_PATTERNS,
        category_synonyms: Optional[Mapping[str, Sequence[str]]] = None,
        cache_size: Optional[int] = None,
    ):
        self._product_patterns = tuple(product_patterns)
        self._category_patterns = tuple(category_patterns)
        self._category_synonyms = dict(CATEGORY_SYNONYMS if category_synonyms is None else category_synonyms)

        if cache_size is None:
            cache_size = get_cache_config().filter_cache_size
        self._cache: BoundedCache[str, Any] = BoundedCache(max_size=cache_size)

    def extract(self, text: str) -> Optional[Filter]:
        """Synthesize a filter for ``text`` (None = search everything)."""
        key = normalize(text)

        cached = self._cache.get(key)
        record_cache_lookup("filter", cached is not None)
        if cached is not None:
            logger.debug(f"Filter cache hit for '{key}'")
            return None if cached is _NO_FILTER else cached

        result = self._synthesize(key)
        self._cache.set(key, _NO_FILTER if result is None else result)
        return result

    def _synthesize(self, lower_text: str) -> Optional[Filter]:
        if CASE_STUDY_PATTERN.search(lower_text):
            logger.debug("No filter for case study / success story query")
            return None

        for pattern, product in self._product_patterns:
            if pattern.search(lower_text):
                return build_product_filter(product)

        category = self.match_category(lower_text)
        if category is not None:
            return build_flexible_category_filter(category, self._category_synonyms)

        return None

    def match_category(self, text: str) -> Optional[str]:
        """Category implied by ``text`` via the category patterns, then the synonym table."""
        lower_text = normalize(text)

        for pattern, category in self._category_patterns:
            if pattern.search(lower_text):
                return category

        for category, synonyms in self._category_synonyms.items():
            if any(text_contains_synonym(lower_text, term) for term in synonyms):
                return category

        return None

    def clear_cache(self) -> None:
        self._cache.clear()

    def get_cache_stats(self) -> Dict[str, Any]:
        stats = self._cache.get_metrics()
        stats["product_patterns"] = len(self._product_patterns)
        stats["category_patterns"] = len(self._category_patterns)
        return stats
