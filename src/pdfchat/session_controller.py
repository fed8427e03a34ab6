"""
Single owner of one chat session's state.

Wires the document session, conversation memory, upload coordinator and query
orchestrator together and serializes user actions with explicit busy flags.
Long-running actions can be submitted as futures; the busy flag is claimed
before submission so a second action is rejected immediately.
"""
from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass

import httpx

from .config import API_BASE_URL, RETRIEVAL_TOP_K
from .document_manager import DocumentSession
from .errors import LoadInProgress, QueryError, QueryInProgress
from .memory_manager import ConversationMemory
from .models import ConversationWindowView, DocumentFile, Message, SessionStatus
from .observability import get_logger
from .query_processor import QueryOrchestrator
from .rag_pipeline import AnswerGenerator, RetrievalHook, keyword_retrieval_hook
from .upload_coordinator import LoadOutcome, UploadCoordinator

logger = get_logger(__name__)


@dataclass(frozen=True)
class QueryOutcome:
    status: SessionStatus
    answer: Message | None = None
    error: QueryError | None = None

    @property
    def succeeded(self) -> bool:
        return self.answer is not None


class SessionController:
    def __init__(
        self,
        *,
        client: httpx.Client | None = None,
        api_base_url: str = API_BASE_URL,
        generator: AnswerGenerator | None = None,
        retrieval_hook: RetrievalHook | None = None,
    ):
        self.memory = ConversationMemory()
        self.documents = DocumentSession(self.memory)
        self.coordinator = UploadCoordinator(self.documents, client=client, api_base_url=api_base_url)
        if retrieval_hook is None and RETRIEVAL_TOP_K > 0:
            retrieval_hook = keyword_retrieval_hook(RETRIEVAL_TOP_K)
        self.orchestrator = QueryOrchestrator(
            memory=self.memory,
            documents=self.documents,
            generator=generator,
            retrieval_hook=retrieval_hook,
        )
        self._credential = ""
        self._flags_lock = threading.Lock()
        self._loading = False
        self._querying = False
        # One worker per action kind: a load and a query may overlap, two of a kind may not.
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="pdfchat")

    def __enter__(self):
        return self

    def __exit__(self, *_exc):
        self.close()

    def close(self):
        self._executor.shutdown(wait=True)
        self.coordinator.close()

    # --- Read-only views ---

    @property
    def status(self) -> SessionStatus:
        return self.documents.status

    @property
    def current_filename(self) -> str:
        return self.documents.current_filename

    @property
    def is_loading(self) -> bool:
        with self._flags_lock:
            return self._loading

    @property
    def is_querying(self) -> bool:
        with self._flags_lock:
            return self._querying

    @property
    def has_credential(self) -> bool:
        return bool(self._credential)

    def messages(self) -> tuple[Message, ...]:
        return self.memory.messages()

    def window(self) -> ConversationWindowView | None:
        return self.memory.window()

    # --- Document actions ---

    def set_credential(self, credential: str | None):
        self._credential = str(credential or "").strip()

    def select_file(self, file: DocumentFile):
        self.documents.select_candidate(file)

    def close_file(self):
        if self.is_loading:
            raise LoadInProgress()
        self.documents.clear()

    def _claim_load(self):
        with self._flags_lock:
            if self._loading:
                logger.info("load_rejected_busy")
                raise LoadInProgress()
            self._loading = True

    def _run_load(self) -> LoadOutcome:
        try:
            return self.coordinator.load()
        finally:
            with self._flags_lock:
                self._loading = False

    def load(self) -> LoadOutcome:
        """Runs a load attempt for the selected file and blocks until it is terminal."""
        self._claim_load()
        return self._run_load()

    def submit_load(self) -> Future:
        self._claim_load()
        try:
            return self._executor.submit(self._run_load)
        except RuntimeError:
            with self._flags_lock:
                self._loading = False
            raise

    # --- Query actions ---

    def _claim_query(self):
        with self._flags_lock:
            if self._querying:
                logger.info("query_rejected_busy")
                raise QueryInProgress()
            self._querying = True

    def _run_ask(self, question: str) -> QueryOutcome:
        try:
            snapshot = self.documents.snapshot()
            try:
                answer = self.orchestrator.ask(question, snapshot, self.memory.window(), self._credential)
            except QueryError as exc:
                # A load or close that landed mid-query owns the status line.
                status = exc.to_status()
                self.documents.set_status_if_current(snapshot.generation, status)
                logger.info("query_rejected", reason=type(exc).__name__)
                return QueryOutcome(status=status, error=exc)
            status = SessionStatus(kind="success", message=f'Answered from "{snapshot.filename}".')
            self.documents.set_status_if_current(snapshot.generation, status)
            return QueryOutcome(status=status, answer=answer)
        finally:
            with self._flags_lock:
                self._querying = False

    def ask(self, question: str) -> QueryOutcome:
        """Answers a question against the current chunk set and blocks until done."""
        self._claim_query()
        return self._run_ask(question)

    def submit_ask(self, question: str) -> Future:
        self._claim_query()
        try:
            return self._executor.submit(self._run_ask, question)
        except RuntimeError:
            with self._flags_lock:
                self._querying = False
            raise
