"""
Pytest fixtures for the bhajan signup API tests.

Provides a seeded in-memory connection for calling route functions and
helpers directly, a seeded on-disk database for TestClient tests, and an
autouse fixture that resets the global rate-limit window between tests.

Seed data (Bhajan_Signups):

    id  diety    tempo   signedUp  offering_on          offeringStatus
    s1  Shiva    Fast    1         2024-05-12T18:00:00  NEXT-SUNDAY
    s2  Ganesha  Slow    1         2024-05-12T23:59:00  NEXT-SUNDAY
    s3  Krishna  Medium  0         2024-05-12T10:00:00  PENDING
    s4  Sai      Fast    1         2024-05-13T00:00:01  PENDING
    s5  Shiva    Lento   1         2024-05-11T19:00:00  PENDING

``Lento`` is not a known tempo; it exercises the icon fallback and is
ignored by the tempo distribution.
"""

import sqlite3
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from utils.database import batch_insert, init_schema  # noqa: E402
from utils.query import CATALOG_TABLE, SIGNUPS_TABLE  # noqa: E402


def _signup(sid, created_at, title, position, singer, details, signed_up,
            tempo, diety, offering_on, status):
    return {
        "id": sid,
        "created_at": created_at,
        "title": title,
        "position": position,
        "singer": singer,
        "details": details,
        "signedUp": signed_up,
        "tempo": tempo,
        "diety": diety,
        "offering_on": offering_on,
        "offeringStatus": status,
    }


SIGNUP_ROWS = [
    _signup("s1", "2024-05-01T10:00:00", "Om Namah Shivaya", 1, "Lakshmi Rao",
            None, 1, "Fast", "Shiva", "2024-05-12T18:00:00", "NEXT-SUNDAY"),
    _signup("s2", "2024-05-02T09:00:00", "Gajanana", 2, "Ravi",
            None, 1, "Slow", "Ganesha", "2024-05-12T23:59:00", "NEXT-SUNDAY"),
    _signup("s3", "2024-05-03T08:30:00", "Govinda Hare", 3, "lakshmi k",
            "with harmonium", 0, "Medium", "Krishna", "2024-05-12T10:00:00",
            "PENDING"),
    _signup("s4", "2024-05-04T12:00:00", "Sai Ram", 0, "Anand",
            None, 1, "Fast", "Sai", "2024-05-13T00:00:01", "PENDING"),
    _signup("s5", "2024-05-05T07:15:00", "Hara Hara", 0, "Meera",
            None, 1, "Lento", "Shiva", "2024-05-11T19:00:00", "PENDING"),
]


def _catalog(title, deity, tempo, language, level, raga=None, beat=None):
    return {
        "title": title,
        "lyrics": f"{title} ...",
        "meaning": None,
        "deity": deity,
        "tempo": tempo,
        "language": language,
        "level": level,
        "raga": raga,
        "beat": beat,
        "gents_pitch": None,
        "ladies_pitch": None,
        "lyrics_link": None,
        "audio_link": None,
    }


CATALOG_ROWS = [
    _catalog("Om Namah Shivaya", "Shiva", "Fast", "Sanskrit", "Beginner",
             "Hindolam", "Keherwa"),
    _catalog("Gajanana Gajanana", "Ganesha", "Slow", "Sanskrit", "Beginner",
             "Mohanam", "Dadra"),
    _catalog("Prema Mudita Manasa Kaho", "Rama", "Medium Fast", "Sanskrit",
             "Intermediate", "Yaman", "Keherwa"),
    _catalog("Allah Tum Ho", "Multi Faith Bhajan", "Medium", "Hindi",
             "Advanced", None, "Keherwa"),
    _catalog("Shiva Shiva Shiva Bolo", "Shiva", "Medium Slow", "Hindi",
             "Intermediate", "Bhairavi", "Rupak"),
]


def seed(conn: sqlite3.Connection) -> None:
    """Create the schema and load the sample rows."""
    init_schema(conn)
    batch_insert(conn, SIGNUPS_TABLE, SIGNUP_ROWS)
    batch_insert(conn, CATALOG_TABLE, CATALOG_ROWS)


@pytest.fixture()
def db():
    """Seeded in-memory database with row_factory set."""
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    seed(conn)
    yield conn
    conn.close()


@pytest.fixture()
def db_path(tmp_path):
    """Seeded on-disk database for TestClient tests."""
    path = tmp_path / "bhajans.sqlite"
    conn = sqlite3.connect(str(path))
    seed(conn)
    conn.close()
    return path


@pytest.fixture()
def client(db_path):
    """TestClient over an app bound to the seeded database."""
    from fastapi.testclient import TestClient
    from api.app import create_app

    app = create_app(db_path=db_path)
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture(autouse=True)
def _restore_db_path(monkeypatch):
    """create_app(db_path=...) rebinds the module-level path; undo it after each test."""
    import api.database as db_module

    monkeypatch.setattr(db_module, "_DB_PATH", db_module._DB_PATH)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Each test starts with a fresh rate-limit window."""
    import api.app as app_module

    app_module._reset_rate_limiter()
    yield
    app_module._reset_rate_limiter()
