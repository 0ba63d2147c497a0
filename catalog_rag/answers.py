"""
Answer assembly: prompt construction, generation and sentence finalization.

Every generated answer, streamed or not, passes through
``ensure_complete_sentence`` before it is returned or cached, so a reply cut
off by the completion token limit never ends mid-sentence.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .config import LLMConfig, get_llm_config
from .llm import CompletionProvider, Message
from .observability.metrics import record_collaborator_failure, track_latency
from .query_classifier import Classification
from .retrieval import SearchResult

logger = logging.getLogger(__name__)


NO_RESULTS_MESSAGE = (
    "I don’t have that information right now. For more details, please contact "
    "the HPE support team or your account representative directly."
)
GENERATION_FALLBACK_MESSAGE = "I could not assemble a confident answer this time."

SYSTEM_PROMPT_TEMPLATE = """You are a product specialist for HPE ProLiant Compute servers.

Answer the customer's question in a warm, consultative tone, in at most 110 words.
Do not discuss pricing, discounts, SLAs, contracts or non-ProLiant products; offer
to arrange a callback with an HPE expert instead.

Use ONLY the context below to provide accurate information about HPE ProLiant servers.

Context:
{context}"""

_TERMINATORS = ".!?"
# A trailing fragment is dropped only if the last terminator sits past this share of the text
_TRUNCATION_THRESHOLD = 0.6

# (token, text_so_far) -> None, or an awaitable for async consumers
TokenCallback = Callable[[str, str], Any]


def ensure_complete_sentence(text: Optional[str]) -> Optional[str]:
    """End ``text`` on a sentence boundary.

    - empty or whitespace-only text is returned unchanged
    - text already ending in . ! or ? is returned trimmed
    - otherwise, if the last terminator lies past 60% of the trimmed text,
      the trailing fragment after it is dropped
    - otherwise a single "." is appended

    Example:
        >>> ensure_complete_sentence("The DL380 supports up to 32 DIMMs")
        'The DL380 supports up to 32 DIMMs.'
        >>> ensure_complete_sentence("The DL380 Gen12 is a 2U server. Its memory is sca")
        'The DL380 Gen12 is a 2U server.'
    """
    if not text or not text.strip():
        return text

    trimmed = text.strip()
    if trimmed[-1] in _TERMINATORS:
        return trimmed

    last_break = max(trimmed.rfind(terminator) for terminator in _TERMINATORS)
    if last_break > 0 and last_break > len(trimmed) * _TRUNCATION_THRESHOLD:
        return trimmed[: last_break + 1].strip()

    return f"{trimmed}."


@dataclass(frozen=True)
class Answer:
    """Outcome of resolving one query.

    ``method`` records how the text was produced: "rag", "conversation",
    "no_results" or "generation_failed".
    """

    text: str
    sources: Tuple[Dict[str, Any], ...] = ()
    confidence: float = 0.0
    no_results: bool = False
    cached: bool = False
    method: str = "rag"
    classification: Optional[Classification] = None
    latency_ms: float = 0.0
    used_fallback: bool = False


def no_results_answer(classification: Optional[Classification] = None) -> Answer:
    return Answer(
        text=NO_RESULTS_MESSAGE,
        confidence=0.0,
        no_results=True,
        method="no_results",
        classification=classification,
    )


def build_sources(results: Sequence[SearchResult]) -> Tuple[Dict[str, Any], ...]:
    return tuple(
        {"source": result.metadata.get("source"), "score": round(float(result.score), 3)}
        for result in results
    )


def build_prompt_messages(
    query: str,
    results: Sequence[SearchResult],
    config: Optional[LLMConfig] = None,
) -> List[Message]:
    """System prompt carrying the top passages, then the user query.

    Only the first ``config.context_passages`` results are used, each cut to
    ``config.passage_char_budget`` characters.
    """
    config = config or get_llm_config()
    passages = [
        str(result.metadata.get("text", ""))[: config.passage_char_budget]
        for result in results[: config.context_passages]
    ]
    context = "\n\n".join(passages)
    return [
        {"role": "system", "content": SYSTEM_PROMPT_TEMPLATE.format(context=context)},
        {"role": "user", "content": query},
    ]


class AnswerGenerator:
    """Composes an Answer from search results with a completion provider."""

    def __init__(self, completion: CompletionProvider, config: Optional[LLMConfig] = None):
        self.completion = completion
        self.config = config or get_llm_config()

    async def _stream(self, messages: List[Message], on_token: TokenCallback) -> str:
        text = ""
        async for token in self.completion.stream(messages):
            text += token
            result = on_token(token, text)
            if asyncio.iscoroutine(result):
                await result
        return text

    async def generate(
        self,
        query: str,
        results: Sequence[SearchResult],
        on_token: Optional[TokenCallback] = None,
        classification: Optional[Classification] = None,
    ) -> Answer:
        """Generate an answer grounded in ``results``.

        Args:
            query: User query
            results: Search results, best first
            on_token: Streaming callback; when given the completion is streamed
            classification: Carried through onto the Answer

        Returns:
            Answer; ``method="generation_failed"`` if the completion provider
            raised or produced nothing
        """
        if not results:
            return no_results_answer(classification)

        messages = build_prompt_messages(query, results, self.config)
        method = "rag"
        try:
            with track_latency(stage="generate"):
                if on_token is not None:
                    text = await self._stream(messages, on_token)
                else:
                    text = await self.completion.complete(messages)
        except Exception as e:
            logger.error(f"Answer generation failed for '{query}': {e}")
            record_collaborator_failure("completion")
            text = ""
            method = "generation_failed"

        if not text or not text.strip():
            text = GENERATION_FALLBACK_MESSAGE
            method = "generation_failed"

        return Answer(
            text=ensure_complete_sentence(text),
            sources=build_sources(results),
            confidence=float(results[0].score),
            method=method,
            classification=classification,
        )
