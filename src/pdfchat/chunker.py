# /pdfchat/chunker.py
"""
Splits an uploaded PDF into ordered, page-traceable chunks.
Extraction runs page by page with PyMuPDF; each page is split with a
fixed-size recursive splitter so adjacent chunks share an overlap margin.
"""
import time
from contextlib import closing
from dataclasses import dataclass

import fitz
from langchain_text_splitters import RecursiveCharacterTextSplitter

# Local Imports
from .config import CHUNK_OVERLAP, CHUNK_SIZE, SUPPORTED_DOCUMENT_TYPE
from .errors import NoExtractableText, UnreadableDocument, UnsupportedType
from .models import Chunk
from .observability import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PageText:
    page: int
    text: str


def _normalize_type(declared_type: str | None) -> str:
    return str(declared_type or "").split(";", 1)[0].strip().lower()


def is_supported_type(declared_type: str | None) -> bool:
    return _normalize_type(declared_type) == SUPPORTED_DOCUMENT_TYPE


def extract_pages(raw_bytes: bytes) -> list[PageText]:
    """Extracts plain text for every page in reading order (pages are 1-based)."""
    try:
        pdf_doc = fitz.open(stream=bytes(raw_bytes or b""), filetype="pdf")
    except (RuntimeError, ValueError) as exc:
        raise UnreadableDocument(f"The PDF could not be read: {exc}") from exc

    pages = []
    with closing(pdf_doc):
        for pdf_page in pdf_doc:
            pages.append(PageText(page=int(pdf_page.number) + 1, text=pdf_page.get_text("text")))
    return pages


class DocumentChunker:
    """Deterministic fixed-size chunker with a fixed overlap margin."""

    def __init__(self, chunk_size: int = CHUNK_SIZE, chunk_overlap: int = CHUNK_OVERLAP):
        if chunk_overlap >= chunk_size:
            raise ValueError("chunk_overlap must be smaller than chunk_size")
        self.chunk_size = int(chunk_size)
        self.chunk_overlap = int(chunk_overlap)

    def _splitter(self) -> RecursiveCharacterTextSplitter:
        # Whitespace is kept so chunk spans map back onto the page text exactly.
        return RecursiveCharacterTextSplitter(
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
            add_start_index=True,
            strip_whitespace=False,
        )

    def split_pages(self, pages: list[PageText], source: str = "") -> list[Chunk]:
        splitter = self._splitter()
        chunks: list[Chunk] = []
        for page in pages:
            if not page.text.strip():
                continue
            for doc in splitter.create_documents([page.text], metadatas=[{"page": page.page}]):
                text = doc.page_content
                if not text.strip():
                    continue
                start = int(doc.metadata["start_index"])
                chunks.append(
                    Chunk(
                        index=len(chunks),
                        text=text,
                        page=page.page,
                        start_char=start,
                        end_char=start + len(text),
                        source=source,
                    )
                )
        return chunks

    def chunk(self, raw_bytes: bytes, declared_type: str | None, source: str = "") -> list[Chunk]:
        """
        Chunks one document.
        Raises UnsupportedType, UnreadableDocument or NoExtractableText.
        """
        if not is_supported_type(declared_type):
            raise UnsupportedType(declared_type)

        start = time.perf_counter()
        pages = extract_pages(raw_bytes)
        chunks = self.split_pages(pages, source=source)
        elapsed_ms = (time.perf_counter() - start) * 1000.0
        if not chunks:
            logger.warning("document_has_no_text", source=source, pages=len(pages))
            raise NoExtractableText()

        logger.info(
            "document_chunked",
            source=source,
            pages=len(pages),
            chunks=len(chunks),
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
            elapsed_ms=round(elapsed_ms, 1),
        )
        return chunks


def chunk(raw_bytes: bytes, declared_type: str | None, source: str = "") -> list[Chunk]:
    """Chunks a document with the configured size and overlap."""
    return DocumentChunker().chunk(raw_bytes, declared_type, source=source)
