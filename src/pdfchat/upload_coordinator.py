"""
Runs one load attempt end to end:
validate -> acquire upload target -> transfer bytes -> trigger chunking -> commit.
Every stage is a single attempt; the first failure ends the attempt.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Literal

import httpx

from .config import API_BASE_URL, HTTP_TIMEOUT_S, SPLIT_PATH, UPLOAD_TARGET_PATH
from .document_manager import DocumentSession
from .errors import AlreadyLoaded, PdfChatError, TransportError, ValidationError
from .models import DocumentFile, SessionStatus, SplitResponse, SplitResult, UploadTarget
from .observability import get_logger

logger = get_logger(__name__)

LoadStage = Literal["validating", "awaiting_transfer_target", "transferring", "chunking"]
LoadState = Literal["succeeded", "unchanged", "failed"]


@dataclass(frozen=True)
class LoadOutcome:
    """
    Terminal result of one load attempt.
    "unchanged" means the selected file is already the current document; its
    status is informational and the conversation is left as it was.
    """

    state: LoadState
    stage: LoadStage
    status: SessionStatus
    filename: str | None = None
    chunk_count: int = 0
    error: PdfChatError | None = None

    @property
    def succeeded(self) -> bool:
        return self.state == "succeeded"


def _body_text(response: httpx.Response) -> str:
    try:
        return response.text.strip()
    except UnicodeDecodeError:
        return ""


class UploadCoordinator:
    """Drives the upload/chunk protocol for the staged candidate of one session."""

    def __init__(
        self,
        session: DocumentSession,
        client: httpx.Client | None = None,
        api_base_url: str = API_BASE_URL,
        timeout_s: float = HTTP_TIMEOUT_S,
    ):
        self.session = session
        self._owns_client = client is None
        self._client = client if client is not None else httpx.Client(timeout=timeout_s)
        base = str(api_base_url or "").rstrip("/")
        self.upload_target_url = f"{base}{UPLOAD_TARGET_PATH}"
        self.split_url = f"{base}{SPLIT_PATH}"

    def close(self):
        if self._owns_client:
            self._client.close()

    def _acquire_target(self, candidate: DocumentFile) -> UploadTarget:
        try:
            response = self._client.get(
                self.upload_target_url,
                params={"fileName": candidate.filename, "fileType": candidate.content_type},
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"Could not reach the upload service: {exc}") from exc

        if not response.is_success:
            body = _body_text(response)
            raise TransportError(
                f"Could not get an upload URL.\n{response.status_code} {body}",
                status_code=response.status_code,
                body=body,
            )
        try:
            return UploadTarget.model_validate(response.json())
        except ValueError as exc:
            raise TransportError(
                "The upload service returned a malformed upload target.",
                status_code=response.status_code,
                body=_body_text(response),
            ) from exc

    def _transfer(self, target: UploadTarget, candidate: DocumentFile):
        # Storage expects the signed fields first and the file part last.
        files = {"file": (candidate.filename, candidate.content, candidate.content_type)}
        try:
            response = self._client.post(target.url, data=dict(target.fields), files=files)
        except httpx.HTTPError as exc:
            raise TransportError(f"Upload to storage failed.\n{exc}") from exc

        if not response.is_success:
            body = _body_text(response)
            raise TransportError(
                f"Upload to storage failed.\n{response.status_code} {body}",
                status_code=response.status_code,
                body=body,
            )

    def _trigger_chunking(self, filename: str) -> SplitResult:
        try:
            response = self._client.get(self.split_url, params={"fileName": filename})
        except httpx.HTTPError as exc:
            raise TransportError(f"Could not reach the chunking service: {exc}") from exc

        if not response.is_success:
            body = _body_text(response)
            raise TransportError(
                f"Chunking failed.\n{response.status_code} {body}",
                status_code=response.status_code,
                body=body,
            )
        try:
            return SplitResponse.model_validate(response.json()).result
        except ValueError as exc:
            raise TransportError(
                "The chunking service returned a malformed response.",
                status_code=response.status_code,
                body=_body_text(response),
            ) from exc

    def _failed(self, stage: LoadStage, exc: PdfChatError, filename: str | None) -> LoadOutcome:
        return LoadOutcome(
            state="failed",
            stage=stage,
            status=self.session.status,
            filename=filename,
            error=exc,
        )

    def load(self) -> LoadOutcome:
        """Runs one load attempt for the staged candidate and returns its terminal outcome."""
        start = time.perf_counter()
        stage: LoadStage = "validating"
        filename = None
        try:
            candidate = self.session.validate_and_stage()
            filename = candidate.filename
            logger.info("load_started", filename=filename, bytes=candidate.size)

            stage = "awaiting_transfer_target"
            target = self._acquire_target(candidate)

            stage = "transferring"
            self._transfer(target, candidate)
            logger.info("load_transferred", filename=filename)

            stage = "chunking"
            result = self._trigger_chunking(filename)
        except AlreadyLoaded as exc:
            return LoadOutcome(
                state="unchanged",
                stage=stage,
                status=self.session.status,
                filename=self.session.current_filename,
                error=exc,
            )
        except ValidationError as exc:
            return self._failed(stage, exc, filename)
        except TransportError as exc:
            self.session.set_status(exc.to_status())
            logger.warning(
                "load_failed",
                filename=filename,
                stage=stage,
                status_code=exc.status_code,
                error=exc.message,
            )
            return self._failed(stage, exc, filename)

        self.session.commit(filename, result)
        elapsed_ms = (time.perf_counter() - start) * 1000.0
        state: LoadState = "succeeded" if result.type == "success" else "failed"
        logger.info(
            "load_finished",
            filename=filename,
            outcome=result.type,
            chunks=len(result.docs),
            elapsed_ms=round(elapsed_ms, 1),
        )
        return LoadOutcome(
            state=state,
            stage=stage,
            status=self.session.status,
            filename=filename,
            chunk_count=len(result.docs),
        )
