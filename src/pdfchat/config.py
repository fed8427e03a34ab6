# /pdfchat/config.py
"""
Centralized configuration for the PDF chat application.
Includes upload limits, chunking knobs, collaborator endpoints and model settings.
"""
import os
import secrets
from pathlib import Path
from dotenv import load_dotenv
from rich.console import Console
from .observability import configure_logging

# ==============================================================================
# CONSOLE & ENVIRONMENT
# ==============================================================================
console = Console()
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return bool(default)
    return str(raw).strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None:
        return int(default)
    try:
        value = int(raw)
    except ValueError:
        return int(default)
    return max(minimum, value)


def _env_float(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.getenv(name)
    if raw is None:
        return float(default)
    try:
        value = float(raw)
    except ValueError:
        return float(default)
    return max(float(minimum), value)


# ==============================================================================
# GLOBAL CONFIGURATION
# ==============================================================================
# --- Fixed Limits (not overridable) ---
MAX_UPLOAD_SIZE_MB = 16
MAX_UPLOAD_BYTES = MAX_UPLOAD_SIZE_MB * 1024 * 1024
CONVERSATION_WINDOW_EXCHANGES = 1
SUPPORTED_DOCUMENT_TYPE = "application/pdf"

# --- Chunking Configuration ---
CHUNK_SIZE = _env_int("CHUNK_SIZE", 1000, minimum=128)
CHUNK_OVERLAP = _env_int("CHUNK_OVERLAP", 150, minimum=0)
if CHUNK_OVERLAP >= CHUNK_SIZE:
    CHUNK_OVERLAP = max(0, CHUNK_SIZE // 4)

# --- Collaborator Endpoints ---
API_BASE_URL = os.getenv("PDFCHAT_API_URL", "http://127.0.0.1:8000").rstrip("/")
UPLOAD_TARGET_PATH = "/api/upload-target"
BLOB_UPLOAD_PATH = "/api/blobs"
SPLIT_PATH = "/api/split"
HTTP_TIMEOUT_S = _env_float("HTTP_TIMEOUT_S", 60.0, minimum=1.0)
UPLOAD_TARGET_TTL_S = _env_int("UPLOAD_TARGET_TTL_S", 300, minimum=10)
# A per-process secret keeps upload targets valid only for the running service.
UPLOAD_SIGNING_SECRET = os.getenv("UPLOAD_SIGNING_SECRET") or secrets.token_hex(32)

# --- Model Names ---
API_MODEL_NAME = os.getenv("API_MODEL_NAME", "gpt-4o-mini")
LLM_BASE_URL = os.getenv("LLM_BASE_URL") or None
LLM_TEMPERATURE = _env_float("LLM_TEMPERATURE", 0.2, minimum=0.0)
LLM_TIMEOUT_S = _env_float("LLM_TIMEOUT_S", 60.0, minimum=1.0)

# --- Retrieval ---
# 0 forwards the full chunk set to the generation model.
RETRIEVAL_TOP_K = _env_int("RETRIEVAL_TOP_K", 0, minimum=0)

# --- Server ---
SERVER_HOST = os.getenv("PDFCHAT_HOST", "127.0.0.1")
SERVER_PORT = _env_int("PDFCHAT_PORT", 8000, minimum=1)
SERVER_RELOAD = _env_bool("PDFCHAT_RELOAD", False)

# --- Path Configuration ---
# Data directory is at ../../data relative to this file (src/pdfchat/config.py)
_BASE_DIR = Path(__file__).resolve().parent.parent.parent
_DATA_DIR = _BASE_DIR / "data"

STORAGE_DIR = Path(os.getenv("STORAGE_DIR", str(_DATA_DIR / "blobs")))
LOG_PATH = Path(os.getenv("LOG_PATH", str(_DATA_DIR / "logs" / "app.log")))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# --- Create necessary directories ---
STORAGE_DIR.mkdir(parents=True, exist_ok=True)
LOG_PATH.parent.mkdir(parents=True, exist_ok=True)
configure_logging(LOG_PATH, level=LOG_LEVEL)
