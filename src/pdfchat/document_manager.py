# /pdfchat/document_manager.py
"""
Tracks the single current document, its chunk set and the session status.
All chunk-set changes go through DocumentSession.commit().
"""
import threading

# Local Imports
from .config import MAX_UPLOAD_BYTES, MAX_UPLOAD_SIZE_MB
from .errors import AlreadyLoaded, NoFileChosen, TooLarge, ValidationError
from .memory_manager import LOADED_GREETING, ConversationMemory
from .models import Chunk, DocumentFile, DocumentSnapshot, SessionStatus, SplitResult, StatusKind
from .observability import get_logger

logger = get_logger(__name__)

_RESULT_TO_STATUS: dict[str, StatusKind] = {
    "success": "success",
    "error": "error",
    "neutral": "idle",
}


class DocumentSession:
    """Owns the staged candidate, the current document and its chunks."""

    def __init__(self, conversation: ConversationMemory, max_upload_bytes: int = MAX_UPLOAD_BYTES):
        self._lock = threading.RLock()
        self._conversation = conversation
        self.max_upload_bytes = int(max_upload_bytes)
        self._candidate: DocumentFile | None = None
        self._current_filename = ""
        self._chunks: tuple[Chunk, ...] = ()
        self._status = SessionStatus()
        self._generation = 0

    @property
    def status(self) -> SessionStatus:
        with self._lock:
            return self._status

    @property
    def candidate(self) -> DocumentFile | None:
        with self._lock:
            return self._candidate

    @property
    def current_filename(self) -> str:
        with self._lock:
            return self._current_filename

    def set_status(self, status: SessionStatus):
        with self._lock:
            self._status = status

    def select_candidate(self, file: DocumentFile):
        """Records a candidate without starting ingestion."""
        if file is None:
            raise ValueError("select_candidate() needs a file")
        with self._lock:
            self._candidate = file
        logger.info("candidate_selected", filename=file.filename, bytes=file.size)

    def validate_and_stage(self) -> DocumentFile:
        """
        Checks the staged candidate and moves the session to 'loading'.
        Raises NoFileChosen, AlreadyLoaded or TooLarge; the status reflects the failure.
        """
        with self._lock:
            candidate = self._candidate
            try:
                if candidate is None:
                    raise NoFileChosen()
                if candidate.filename == self._current_filename:
                    raise AlreadyLoaded()
                if candidate.size > self.max_upload_bytes:
                    raise TooLarge(candidate.size_mb, MAX_UPLOAD_SIZE_MB)
            except ValidationError as exc:
                self._status = exc.to_status()
                logger.info(
                    "candidate_rejected",
                    reason=type(exc).__name__,
                    filename=candidate.filename if candidate else None,
                )
                raise

            self._status = SessionStatus(kind="loading", message=f'Loading "{candidate.filename}"...')
            return candidate

    def commit(self, filename: str, result: SplitResult):
        """
        Applies a chunking outcome atomically.
        A non-empty docs list replaces the chunk set and filename; a successful
        outcome also restarts the conversation.
        """
        with self._lock:
            if result.docs or result.type == "success":
                self._generation += 1
            if result.docs:
                self._chunks = tuple(result.docs)
                self._current_filename = filename
            self._status = SessionStatus(kind=_RESULT_TO_STATUS[result.type], message=result.message)
            if result.type == "success":
                self._conversation.reset(LOADED_GREETING)
        logger.info(
            "chunk_set_committed",
            filename=filename,
            outcome=result.type,
            chunks=len(result.docs),
            replaced=bool(result.docs),
        )

    def clear(self):
        """Releases the candidate, current document and chunk set."""
        with self._lock:
            self._candidate = None
            self._current_filename = ""
            self._chunks = ()
            self._status = SessionStatus()
            self._generation += 1
        logger.info("document_cleared")

    def snapshot(self) -> DocumentSnapshot:
        with self._lock:
            return DocumentSnapshot(
                filename=self._current_filename,
                chunks=self._chunks,
                generation=self._generation,
            )

    def set_status_if_current(self, generation: int, status: SessionStatus) -> bool:
        with self._lock:
            if generation != self._generation:
                return False
            self._status = status
            return True

    def record_exchange(self, generation: int, question: str, answer: str) -> bool:
        """
        Records a completed exchange only if no commit or clear happened since the
        snapshot it was answered from. Returns False when the answer is stale.
        """
        with self._lock:
            if generation != self._generation:
                logger.info("stale_exchange_dropped", generation=generation, current=self._generation)
                return False
            self._conversation.record_exchange(question, answer)
            return True
