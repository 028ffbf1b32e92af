import os
from pathlib import Path
from dotenv import load_dotenv

# Override=True so changes in backend/.env take effect on process reload (and not get
# stuck on old environment variables).
#
# For automated tests (SQLite), we need to prevent backend/.env from overriding the
# test DATABASE_URL. Set DISABLE_DOTENV=1 to skip loading .env.
if os.getenv("DISABLE_DOTENV") != "1":
    load_dotenv(override=True)

_TRUTHY = {"1", "true", "True", "yes", "YES"}

_raw_database_url = (os.getenv("DATABASE_URL") or "").strip()
# Default to a local SQLite DB for dev so the backend can start out-of-the-box.
# Use an absolute path so it works regardless of current working directory.
_default_sqlite_path = (Path(__file__).resolve().parent.parent / "feed.db").as_posix()
DATABASE_URL = _raw_database_url or f"sqlite:///{_default_sqlite_path}"

# -------------------- Explanations (Gemini) --------------------
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
GEMINI_BASE_URL = os.getenv("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com")
GEMINI_API_VERSION = os.getenv("GEMINI_API_VERSION", "v1")

# Feed requests are interactive; per-call timeouts stay short.
AI_TIMEOUT_S = float(os.getenv("AI_TIMEOUT_S", "8") or "8")
AI_MAX_RETRIES = int(os.getenv("AI_MAX_RETRIES", "1") or "1")
AI_LOG_PAYLOADS = (os.getenv("AI_LOG_PAYLOADS", "0") or "0").strip() in _TRUTHY

# -------------------- Embeddings (local) --------------------
EMBEDDINGS_ENABLED = (os.getenv("EMBEDDINGS_ENABLED", "1") or "1").strip() in _TRUTHY
EMBEDDINGS_PROVIDER = os.getenv("EMBEDDINGS_PROVIDER", "local")
EMBEDDINGS_MODEL = os.getenv("EMBEDDINGS_MODEL", "BAAI/bge-small-en-v1.5")

# -------------------- Feed ranking --------------------
FEED_EXPLORE_RATE = float(os.getenv("FEED_EXPLORE_RATE", "0.15") or "0.15")
# Max explanation calls per feed request.
FEED_EXPLAIN_TOP_N = int(os.getenv("FEED_EXPLAIN_TOP_N", "8") or "8")
FEED_MAX_CONCURRENCY = int(os.getenv("FEED_MAX_CONCURRENCY", "4") or "4")
FEED_EMBED_TIMEOUT_S = float(os.getenv("FEED_EMBED_TIMEOUT_S", "15") or "15")
FEED_EXPLAIN_TIMEOUT_S = float(os.getenv("FEED_EXPLAIN_TIMEOUT_S", "12") or "12")
# Candidate pools are the most recent N rows.
FEED_JOB_POOL_LIMIT = int(os.getenv("FEED_JOB_POOL_LIMIT", "80") or "80")
FEED_WORKER_POOL_LIMIT = int(os.getenv("FEED_WORKER_POOL_LIMIT", "200") or "200")
