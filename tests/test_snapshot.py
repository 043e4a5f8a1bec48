import sqlite3

import pytest
from fastapi.testclient import TestClient

from db import database
from main import app


@pytest.fixture
def client(kioku_home):
    with TestClient(app) as client:
        yield client


def test_download_snapshot_returns_sqlite_file(client):
    response = client.get("/admin/snapshot")
    assert response.status_code == 200
    assert response.content.startswith(database.SQLITE_HEADER)
    assert response.headers["content-type"] == "application/x-sqlite3"
    assert "kioku_backup_" in response.headers["content-disposition"]


def test_restore_snapshot_replaces_cards(client, kioku_home):
    client.post("/cards", json={"question": "a", "answers": ["x"]})
    snapshot = client.get("/admin/snapshot").content
    client.post("/cards", json={"question": "b", "answers": ["y"]})

    response = client.post("/admin/snapshot", files={"file": ("kioku.db", snapshot, "application/x-sqlite3")})
    assert response.status_code == 200
    assert response.json() == {"imported": True, "cards": 1}
    assert [c["question"] for c in client.get("/cards").json()] == ["a"]
    assert len(list((kioku_home / "backups").glob("safety-*.db"))) == 1


def test_restore_rejects_invalid_files(client):
    client.post("/cards", json={"question": "a", "answers": ["x"]})

    response = client.post("/admin/snapshot", files={"file": ("kioku.db", b"not a database", "application/octet-stream")})
    assert response.status_code == 400
    assert "valid SQLite" in response.json()["detail"]
    assert len(client.get("/cards").json()) == 1


def test_restore_refused_during_session(client):
    client.post("/cards", json={"question": "a", "answers": ["x"]})
    snapshot = client.get("/admin/snapshot").content
    client.post("/review/start", json={})

    response = client.post("/admin/snapshot", files={"file": ("kioku.db", snapshot, "application/x-sqlite3")})
    assert response.status_code == 409


def test_validate_snapshot_requires_cards_table(tmp_path):
    path = tmp_path / "other.db"
    conn = sqlite3.connect(path)
    conn.execute("CREATE TABLE notes (id INTEGER PRIMARY KEY)")
    conn.commit()
    conn.close()

    with pytest.raises(database.SnapshotError, match="missing cards table"):
        database.validate_snapshot(path.read_bytes())


def test_validate_snapshot_requires_card_columns(tmp_path):
    path = tmp_path / "old.db"
    conn = sqlite3.connect(path)
    conn.execute("CREATE TABLE cards (question TEXT PRIMARY KEY)")
    conn.commit()
    conn.close()

    with pytest.raises(database.SnapshotError, match="answers"):
        database.validate_snapshot(path.read_bytes())


def test_import_migrates_older_card_tables(kioku_home, tmp_path):
    path = tmp_path / "legacy.db"
    conn = sqlite3.connect(path)
    conn.execute("CREATE TABLE cards (question TEXT PRIMARY KEY, answers TEXT NOT NULL)")
    conn.execute("INSERT INTO cards (question, answers) VALUES (?, ?)", ("a", '["a", "x"]'))
    conn.commit()
    conn.close()

    database.import_snapshot_bytes(path.read_bytes())

    with database.get_conn() as conn:
        row = conn.execute("SELECT * FROM cards WHERE question = ?", ("a",)).fetchone()
        assert row["efactor"] == 2.5
        assert row["repetitions"] == 0
        assert database.get_schema_version(conn) == 2


def _write_db(path, ddl, rows):
    conn = sqlite3.connect(path)
    conn.execute(ddl)
    conn.executemany(f"INSERT INTO cards VALUES ({', '.join('?' * len(rows[0]))})", rows)
    conn.commit()
    conn.close()
    return path.read_bytes()


@pytest.mark.parametrize(
    "ddl, rows, message",
    [
        (
            "CREATE TABLE cards (question TEXT PRIMARY KEY, answers TEXT)",
            [("x", "not json")],
            "unreadable card row",
        ),
        (
            "CREATE TABLE cards (question TEXT PRIMARY KEY, answers TEXT, efactor REAL)",
            [("x", '["x", "y"]', 1.0)],
            "unreadable card row",
        ),
        (
            "CREATE TABLE cards (question TEXT, answers TEXT)",
            [("x", '["x", "y"]')],
            "keyed by question",
        ),
    ],
)
def test_restore_rejects_unloadable_cards_and_keeps_store(client, tmp_path, ddl, rows, message):
    client.post("/cards", json={"question": "a", "answers": ["x"]})
    snapshot = _write_db(tmp_path / "bad.db", ddl, rows)

    response = client.post("/admin/snapshot", files={"file": ("kioku.db", snapshot, "application/x-sqlite3")})
    assert response.status_code == 400
    assert message in response.json()["detail"]

    assert [c["question"] for c in client.get("/cards").json()] == ["a"]
    starred = client.post("/cards/star", json={"question": "a"})
    assert starred.status_code == 200
    assert starred.json()["is_starred"] is True


def test_validate_snapshot_leaves_bytes_unchanged(tmp_path):
    data = _write_db(
        tmp_path / "legacy.db",
        "CREATE TABLE cards (question TEXT PRIMARY KEY, answers TEXT NOT NULL)",
        [("a", '["a", "x"]')],
    )
    database.validate_snapshot(data)
    assert (tmp_path / "legacy.db").read_bytes() == data
