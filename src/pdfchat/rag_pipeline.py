# /pdfchat/rag_pipeline.py
"""
Generation side of the pipeline: prompt construction, LLM initialization
and the optional retrieval hook that narrows the chunk set per question.
"""
import re
from collections.abc import Callable, Sequence
from typing import Any, Protocol

from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate
from langchain_openai import ChatOpenAI

# Local Imports
from .config import API_MODEL_NAME, LLM_BASE_URL, LLM_TEMPERATURE, LLM_TIMEOUT_S
from .models import Chunk, ConversationWindowView
from .observability import get_logger

logger = get_logger(__name__)

RetrievalHook = Callable[[str, Sequence[Chunk]], Sequence[Chunk]]

_UNICODE_WORD_RE = re.compile(r"\w+", flags=re.UNICODE)

QA_SYSTEM_PROMPT = """You are a helpful assistant answering questions about a PDF the user loaded.
Answer ONLY using the provided context. Do not invent facts.
When you use a passage, cite its page like (p. 3).
If the context does not contain the answer, say that the PDF does not cover it.
The previous exchange, when present, is there to resolve follow-up questions."""

QA_PROMPT = ChatPromptTemplate.from_messages(
    [
        ("system", QA_SYSTEM_PROMPT),
        ("human", "CONTEXT:\n{context}\n\n{history}QUESTION:\n{question}"),
    ]
)


class AnswerGenerator(Protocol):
    def generate(
        self,
        question: str,
        chunks: Sequence[Chunk],
        window: ConversationWindowView | None,
        credential: str,
    ) -> str:
        ...


def format_context(chunks: Sequence[Chunk]) -> str:
    return "\n\n".join(f"[p. {chunk.page}] {chunk.text.strip()}" for chunk in chunks)


def format_history(window: ConversationWindowView | None) -> str:
    if window is None:
        return ""
    return (
        f"PREVIOUS QUESTION:\n{window.previous_request_text}\n\n"
        f"PREVIOUS ANSWER:\n{window.previous_response_text}\n\n"
    )


def build_prompt_inputs(
    question: str,
    chunks: Sequence[Chunk],
    window: ConversationWindowView | None,
) -> dict[str, str]:
    return {
        "context": format_context(chunks),
        "history": format_history(window),
        "question": str(question).strip(),
    }


# --- LLM & Chain Initialization ---

def _initialize_llm(credential: str):
    """Initializes the chat model for one caller credential."""
    # Retries stay off: one generation attempt per question.
    return ChatOpenAI(
        model=API_MODEL_NAME,
        api_key=credential,
        base_url=LLM_BASE_URL,
        temperature=LLM_TEMPERATURE,
        timeout=LLM_TIMEOUT_S,
        max_retries=0,
    )


class LangChainAnswerGenerator:
    """Answers questions with a prompt | chat model | parser chain."""

    def __init__(self, llm_factory: Callable[[str], Any] = _initialize_llm):
        self.llm_factory = llm_factory

    def build_chain(self, credential: str):
        return QA_PROMPT | self.llm_factory(credential) | StrOutputParser()

    def generate(
        self,
        question: str,
        chunks: Sequence[Chunk],
        window: ConversationWindowView | None,
        credential: str,
    ) -> str:
        chain = self.build_chain(credential)
        answer = chain.invoke(build_prompt_inputs(question, chunks, window))
        logger.info(
            "answer_generated",
            model=API_MODEL_NAME,
            context_chunks=len(chunks),
            with_history=window is not None,
            answer_chars=len(str(answer or "")),
        )
        return answer


# --- Retrieval Hook ---

def tokenize_for_matching(text: str, *, min_len: int = 2) -> set[str]:
    """Unicode-aware, casefolded word set used for lexical overlap scoring."""
    safe_min_len = max(1, int(min_len))
    tokens = set()
    for raw in _UNICODE_WORD_RE.findall(str(text or "").casefold()):
        token = raw.strip("_")
        if len(token) >= safe_min_len:
            tokens.add(token)
    return tokens


def keyword_retrieval_hook(top_k: int) -> RetrievalHook:
    """
    Builds a hook keeping the top_k chunks with the most question-word overlap.
    Ties go to the earlier chunk and the selection is returned in reading order.
    """
    limit = max(1, int(top_k))

    def _select(question: str, chunks: Sequence[Chunk]) -> list[Chunk]:
        query_tokens = tokenize_for_matching(question)
        if not query_tokens or len(chunks) <= limit:
            return list(chunks)
        scored = [
            (len(query_tokens & tokenize_for_matching(chunk.text)), chunk.index, chunk)
            for chunk in chunks
        ]
        best = sorted(scored, key=lambda item: (-item[0], item[1]))[:limit]
        return [chunk for _, _, chunk in sorted(best, key=lambda item: item[1])]

    return _select
