import os
import sys
import tempfile
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker


# Ensure `import backend.app...` works regardless of where pytest is run from.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Must be set before anything imports backend.app.config.
os.environ["DISABLE_DOTENV"] = "1"
os.environ["DATABASE_URL"] = f"sqlite+pysqlite:///{Path(tempfile.mkdtemp()) / 'import.sqlite3'}"
# Tests never call external AI providers even if the developer machine has keys set.
os.environ["GEMINI_API_KEY"] = ""
# No local embedding model downloads; tests inject or monkeypatch embedders.
os.environ["EMBEDDINGS_ENABLED"] = "0"


class FakeVectorStore:
    """Dict-backed stand-in for SqlVectorStore."""

    def __init__(self):
        self.rows = {}
        self.inserts = 0

    def read_cached_vector(self, key):
        return self.rows.get(key)

    def insert_vector_if_absent(self, key, vector):
        if key in self.rows:
            return False
        self.rows[key] = list(vector)
        self.inserts += 1
        return True


class FakeInteractionStore:
    """In-memory stand-in for SqlInteractionStore."""

    def __init__(self, ratings=None, cancels=None, events=None):
        # ratings: {(target_id, kind): [stars newest first]}
        self.ratings = ratings or {}
        self.cancels = cancels or {}
        # events: {(actor_id, target_kind, target_id): {event_type: count}}
        self.events = events or {}

    def read_recent_ratings(self, target_id, target_kind, limit):
        return list(self.ratings.get((target_id, target_kind), []))[:limit]

    def count_cancel_events(self, actor_id):
        return int(self.cancels.get(actor_id, 0))

    def read_event_counts(self, actor_id, target_kind, target_id):
        return dict(self.events.get((actor_id, target_kind, target_id), {}))


FAKE_VOCAB = (
    "carpentry",
    "painting",
    "cooking",
    "coffee",
    "swimming",
    "desk",
    "weekend",
    "sousse",
    "monastir",
    "tunis",
    "sfax",
)


def fake_embed_text(text: str) -> list[float]:
    """Keyword-count vector with a constant bias term so it is never all zeros."""
    t = (text or "").lower()
    return [1.0] + [float(t.count(word)) for word in FAKE_VOCAB]


@pytest.fixture()
def vector_store() -> FakeVectorStore:
    return FakeVectorStore()


@pytest.fixture()
def interaction_store() -> FakeInteractionStore:
    return FakeInteractionStore()


@pytest.fixture()
def fake_embed():
    return fake_embed_text


@pytest.fixture(scope="session")
def test_db_path(tmp_path_factory: pytest.TempPathFactory) -> Path:
    return tmp_path_factory.mktemp("db") / "test.sqlite3"


@pytest.fixture()
def app(test_db_path: Path) -> FastAPI:
    """
    The real FastAPI app wired to a temporary SQLite DB.
    """
    from backend.app import database as db

    engine = create_engine(
        f"sqlite+pysqlite:///{test_db_path}",
        connect_args={"check_same_thread": False},
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    # Patch the shared database module so router dependencies use the test DB.
    db.engine = engine
    db.SessionLocal = TestingSessionLocal

    db.import_models()
    db.Base.metadata.drop_all(bind=engine)
    db.Base.metadata.create_all(bind=engine)

    from backend.app.main import app as fastapi_app

    return fastapi_app


@pytest.fixture()
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture()
def db_session(app: FastAPI):
    """
    Direct SQLAlchemy session bound to the same temporary SQLite DB used by the test app.
    """
    from backend.app.database import SessionLocal

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
