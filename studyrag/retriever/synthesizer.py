"""
Synthesizer

Answers a question from the owner's own data:
classify intent → retrieve → assemble a bounded context → generate.

Key principle: only what was retrieved may be stated.
- Context entries are added whole, in ranked order, until the budget is hit
- Confidence is derived from the similarity of the entries actually used
- Without a working LLM the used entries are listed verbatim instead
"""

import asyncio
import logging
from typing import List, Optional, Sequence, Tuple
from dataclasses import dataclass, field

from ..common.config import AssistantConfig, LLMConfig, RetrieverConfig
from ..common.llm_client import LLMClient
from ..common.llm_utils import clean_llm_response
from ..common.schemas import ContentKind, SearchResult, TaskStatus, render_context_entry
from .query_processor import QueryIntent, QueryProcessor
from .searcher import Searcher

logger = logging.getLogger("studyrag.retriever.synthesizer")


@dataclass
class SynthesizedAnswer:
    """Answer plus the records it was built from"""
    answer: str
    confidence: float  # percent, 0.0 to max_confidence
    sources: List[SearchResult] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


# Answer prompt template
ANSWER_PROMPT = """You are {assistant_name}, an AI study assistant. Answer the user's question based ONLY on their personal data provided below.

Critical rules:
1. ONLY use information from the context below. Do NOT use general knowledge.
2. Be concise and direct (2-3 paragraphs max).
3. Pay attention to task STATUS (todo, in_progress, completed) and report it exactly.
4. If asked about "pending" or "should do", ONLY mention incomplete tasks.
5. Reference specific tasks with their status, priority and due dates.
6. If the context shows all tasks are completed, say "All tasks are completed!"
7. Do NOT make up information.
8. Prioritize higher-match entries; they are more relevant.{pending_note}

User's personal data:
{context}
Question: {question}

Answer (be specific about task status and dates):"""

PENDING_ONLY_NOTE = (
    "\n\nIMPORTANT: The user is asking about PENDING/INCOMPLETE tasks ONLY. "
    "Do NOT mention completed tasks."
)

NOTHING_PENDING_TEMPLATE = """**Great news!** All your tasks are completed!

There are no pending tasks at the moment. You're all caught up.

**Suggestions:**
- Add new tasks in the planner if you have upcoming work
- Review your completed tasks to track your progress
- Plan ahead for next week's assignments"""

NO_DATA_TEMPLATE = """I couldn't find relevant information in your indexed data to answer this question.

**Tips:**
- Re-index your latest tasks and courses
- Make sure you have tasks or courses added in the planner
- Try asking about specific tasks, deadlines or courses you've created

Or switch to general chat mode for questions that are not about your own data."""

CONTEXT_BUDGET_TEMPLATE = """I found related items in your data, but none of them fit in the space available for answering.

Try a more specific question, or ask about a single task or course."""

ERROR_RESPONSE = "I encountered an error while searching your data. Please try again."

FALLBACK_TEMPLATE = """## Results for: "{question}"

Found {count} relevant item(s) in your data:

{formatted_results}

---
**Note**: This is a direct listing without AI synthesis.
Configure an LLM API key for natural language answers.
"""


class Synthesizer:
    """
    Retrieval-augmented answering over one owner's data.

    Steps of one `answer` call run strictly in sequence. Provider problems
    degrade to templated answers; nothing is raised to the caller.
    """

    def __init__(
        self,
        searcher: Searcher,
        query_processor: Optional[QueryProcessor] = None,
        llm_client: Optional[LLMClient] = None,
        config: Optional[RetrieverConfig] = None,
        assistant: Optional[AssistantConfig] = None,
        llm_config: Optional[LLMConfig] = None,
    ):
        """
        Initialize synthesizer.

        Args:
            searcher: Owner-scoped searcher
            query_processor: Intent classifier
            llm_client: Generation client (optional; listing fallback without it)
            config: Retrieval thresholds and context budget
            assistant: Assistant persona and response cleaning settings
            llm_config: Generation limits (max tokens, timeout)
        """
        self._searcher = searcher
        self._query_processor = query_processor or QueryProcessor()
        self._llm = llm_client
        self._config = config or RetrieverConfig()
        self._assistant = assistant or AssistantConfig()
        self._llm_config = llm_config or LLMConfig()

    @property
    def has_llm(self) -> bool:
        """Check if LLM is available"""
        return self._llm is not None and self._llm.is_available

    async def answer(
        self,
        question: str,
        owner_id: str,
        include_kinds: Optional[Sequence[ContentKind]] = None,
        course_id: Optional[str] = None,
        max_context_length: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> SynthesizedAnswer:
        """
        Answer a question from the owner's indexed data.

        Args:
            question: Free-text question
            owner_id: Owner scope
            include_kinds: Restrict retrieval to these kinds (overrides intent)
            course_id: Restrict retrieval to one course
            max_context_length: Context budget in characters
            timeout: Generation timeout in seconds

        Returns:
            SynthesizedAnswer; never raises
        """
        try:
            return await self._answer(
                question,
                owner_id,
                include_kinds=include_kinds,
                course_id=course_id,
                max_context_length=max_context_length or self._config.max_context_length,
                timeout=timeout or self._llm_config.timeout,
            )
        except Exception:
            logger.error("Answering with context failed", exc_info=True)
            return SynthesizedAnswer(answer=ERROR_RESPONSE, confidence=0.0)

    async def _answer(
        self,
        question: str,
        owner_id: str,
        include_kinds: Optional[Sequence[ContentKind]],
        course_id: Optional[str],
        max_context_length: int,
        timeout: float,
    ) -> SynthesizedAnswer:
        intent = self._query_processor.classify(question)

        results = await self._searcher.semantic_search(
            question,
            owner_id,
            limit=self._config.topk,
            kinds=include_kinds or intent.kind_filter,
            course_id=course_id,
            min_similarity=self._config.answer_min_similarity,
            status_filter=intent.status_filter,
            priority_filter=intent.priority_filter,
        )

        if not results:
            return await self._answer_without_results(question, owner_id, intent)

        context, used = self._build_context(results, max_context_length)
        if not used:
            logger.info(
                "No context entry fits in %d chars (%d candidate(s))",
                max_context_length,
                len(results),
            )
            return SynthesizedAnswer(
                answer=CONTEXT_BUDGET_TEMPLATE,
                confidence=0.0,
                warnings=["Context budget too small for any retrieved item"],
            )

        confidence = self._calculate_confidence(used)
        prompt = ANSWER_PROMPT.format(
            assistant_name=self._assistant.name,
            pending_note=PENDING_ONLY_NOTE if intent.exclude_completed else "",
            context=context,
            question=question,
        )

        return await self._generate(question, prompt, used, confidence, timeout)

    async def _answer_without_results(
        self,
        question: str,
        owner_id: str,
        intent: QueryIntent,
    ) -> SynthesizedAnswer:
        """Distinguish "everything is done" from "nothing indexed"."""
        completed = await self._searcher.semantic_search(
            question,
            owner_id,
            limit=1,
            kinds=[ContentKind.TASK],
            min_similarity=self._config.recovery_min_similarity,
            status_filter=[TaskStatus.COMPLETED.value],
        )

        if completed and intent.exclude_completed:
            return SynthesizedAnswer(
                answer=NOTHING_PENDING_TEMPLATE,
                confidence=self._calculate_confidence(completed),
                sources=completed,
            )

        return SynthesizedAnswer(
            answer=NO_DATA_TEMPLATE,
            confidence=0.0,
            warnings=["No relevant indexed data found"],
        )

    def _build_context(
        self,
        results: List[SearchResult],
        max_length: int,
    ) -> Tuple[str, List[SearchResult]]:
        """Concatenate whole entries in ranked order while they fit."""
        context = ""
        used = []

        for result in results:
            entry = render_context_entry(result)
            if len(context) + len(entry) > max_length:
                break
            context += entry
            used.append(result)

        return context, used

    def _calculate_confidence(self, results: List[SearchResult]) -> float:
        """Mean similarity as a percentage, capped"""
        if not results:
            return 0.0

        mean = sum(r.similarity for r in results) / len(results)
        return round(min(mean * 100, self._config.max_confidence), 1)

    async def _generate(
        self,
        question: str,
        prompt: str,
        used: List[SearchResult],
        confidence: float,
        timeout: float,
    ) -> SynthesizedAnswer:
        """Generate with the LLM, falling back to a listing of `used`."""
        if not self.has_llm:
            return self._fallback(question, used, confidence, "LLM not available - showing raw results")

        try:
            raw = await self._llm.agenerate(
                prompt,
                max_tokens=self._llm_config.max_tokens,
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Answer generation timed out after %.1fs", timeout)
            return self._fallback(question, used, confidence, "Answer generation timed out - showing raw results")
        except Exception as e:
            logger.warning("Answer generation failed: %s", e)
            return self._fallback(question, used, confidence, "Answer generation failed - showing raw results")

        answer = clean_llm_response(
            raw,
            assistant_name=self._assistant.name,
            min_length=self._assistant.min_response_length,
        )
        return SynthesizedAnswer(answer=answer, confidence=confidence, sources=used)

    def _fallback(
        self,
        question: str,
        used: List[SearchResult],
        confidence: float,
        warning: str,
    ) -> SynthesizedAnswer:
        """Listing of the used context entries without synthesis"""
        formatted_results = []
        for i, r in enumerate(used, 1):
            formatted_results.append(
                f"### {i}. {r.title}\n"
                f"**Kind**: {r.kind.value} | **Match**: {r.similarity:.0%}\n\n"
                f"{r.content}\n"
            )

        answer = FALLBACK_TEMPLATE.format(
            question=question,
            count=len(used),
            formatted_results="\n".join(formatted_results),
        )
        return SynthesizedAnswer(
            answer=answer,
            confidence=confidence,
            sources=used,
            warnings=[warning],
        )


def format_answer_for_display(answer: SynthesizedAnswer) -> str:
    """Format synthesized answer for chat UI display"""
    lines = [
        answer.answer,
        "",
        f"**Confidence**: {answer.confidence:.0f}%",
    ]

    if answer.warnings:
        lines.append("")
        lines.append("**Warnings**:")
        for w in answer.warnings:
            lines.append(f"  - {w}")

    if answer.sources:
        lines.append("")
        lines.append("**Sources**:")
        for s in answer.sources[:3]:
            lines.append(f"  - [{s.id}] {s.summary}")

    return "\n".join(lines)
