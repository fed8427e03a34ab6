"""Query orchestration: question + window + chunk snapshot -> one generation call."""
from __future__ import annotations

import re
import time

from .document_manager import DocumentSession
from .errors import EmptyQuestion, GenerationFailed, MissingCredential, NoDocumentLoaded, StaleAnswer
from .memory_manager import ConversationMemory
from .models import ConversationWindowView, DocumentSnapshot, Message
from .observability import get_logger
from .rag_pipeline import AnswerGenerator, LangChainAnswerGenerator, RetrievalHook

logger = get_logger(__name__)

_THINK_RE = re.compile(r"<think>.*?</think>", flags=re.DOTALL)


class QueryOrchestrator:
    """
    Answers one question against a consistent document snapshot.
    Only completed exchanges reach the conversation memory; failures leave it untouched.
    With a DocumentSession wired in, an answer whose document was replaced or
    closed mid-generation is discarded with StaleAnswer.
    """

    def __init__(
        self,
        *,
        memory: ConversationMemory,
        documents: DocumentSession | None = None,
        generator: AnswerGenerator | None = None,
        retrieval_hook: RetrievalHook | None = None,
    ):
        self.memory = memory
        self.documents = documents
        self.generator = generator or LangChainAnswerGenerator()
        self.retrieval_hook = retrieval_hook

    def _record(self, snapshot: DocumentSnapshot, question: str, answer: str):
        if self.documents is None:
            self.memory.record_exchange(question, answer)
            return
        if not self.documents.record_exchange(snapshot.generation, question, answer):
            logger.info("answer_discarded_stale", filename=snapshot.filename)
            raise StaleAnswer()

    def _select_chunks(self, question: str, snapshot: DocumentSnapshot) -> list:
        if self.retrieval_hook is None:
            return list(snapshot.chunks)
        return list(self.retrieval_hook(question, snapshot.chunks))

    def ask(
        self,
        question: str,
        snapshot: DocumentSnapshot,
        window: ConversationWindowView | None,
        credential: str | None,
    ) -> Message:
        clean_question = str(question or "").strip()
        if snapshot.is_empty:
            raise NoDocumentLoaded()
        if not str(credential or "").strip():
            raise MissingCredential()
        if not clean_question:
            raise EmptyQuestion()

        selected = self._select_chunks(clean_question, snapshot)
        start = time.perf_counter()
        try:
            raw_answer = self.generator.generate(clean_question, selected, window, str(credential).strip())
        except Exception as exc:
            logger.warning(
                "generation_failed",
                filename=snapshot.filename,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise GenerationFailed(str(exc)) from exc

        if not isinstance(raw_answer, str):
            raise GenerationFailed(f"unexpected answer payload of type {type(raw_answer).__name__}")
        answer = _THINK_RE.sub("", raw_answer).strip()
        if not answer:
            raise GenerationFailed("the model returned an empty answer")

        self._record(snapshot, clean_question, answer)
        latency_ms = (time.perf_counter() - start) * 1000.0
        logger.info(
            "query_answered",
            filename=snapshot.filename,
            chunks_total=len(snapshot.chunks),
            chunks_sent=len(selected),
            with_history=window is not None,
            latency_ms=round(latency_ms, 1),
        )
        return Message(text=answer, type="response")
