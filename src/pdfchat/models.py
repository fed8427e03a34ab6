"""
Data model shared by the session, chunking and query layers.
Wire payloads are pydantic models; in-process state uses frozen dataclasses.
"""
from __future__ import annotations

import mimetypes
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

StatusKind = Literal["idle", "loading", "success", "error"]
MessageType = Literal["request", "response"]
ResultType = Literal["success", "error", "neutral"]


class Chunk(BaseModel):
    """A zero-indexed slice of one page's extracted text."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    index: int = Field(..., ge=0)
    text: str
    page: int = Field(..., ge=1, description="1-based page number the span belongs to")
    start_char: int = Field(..., ge=0)
    end_char: int = Field(..., ge=0)
    source: str = ""


class UploadTarget(BaseModel):
    url: str
    fields: dict[str, str] = Field(default_factory=dict)


class SplitResult(BaseModel):
    type: ResultType
    message: str = ""
    docs: list[Chunk] = Field(default_factory=list)


class SplitResponse(BaseModel):
    result: SplitResult


@dataclass(frozen=True)
class DocumentFile:
    """A user-selected file, identified by its filename."""

    filename: str
    content: bytes
    content_type: str = "application/pdf"

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def size_mb(self) -> float:
        return self.size / (1024 * 1024)

    @classmethod
    def from_path(cls, path: str | Path) -> "DocumentFile":
        source = Path(path)
        guessed, _ = mimetypes.guess_type(source.name)
        return cls(
            filename=source.name,
            content=source.read_bytes(),
            content_type=guessed or "application/octet-stream",
        )


@dataclass(frozen=True)
class Message:
    text: str
    type: MessageType


@dataclass(frozen=True)
class SessionStatus:
    kind: StatusKind = "idle"
    message: str = ""


@dataclass(frozen=True)
class ConversationWindowView:
    previous_request_text: str
    previous_response_text: str


@dataclass(frozen=True)
class DocumentSnapshot:
    """Consistent read of the current filename and its chunk set."""

    filename: str = ""
    chunks: tuple[Chunk, ...] = field(default_factory=tuple)
    # Bumped by every commit and clear.
    generation: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.chunks
