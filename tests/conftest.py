import pytest

import config
from db import database
from utils.card_store import CardStore


@pytest.fixture
def kioku_home(tmp_path, monkeypatch):
    config_dir = tmp_path / ".kioku"
    config_dir.mkdir()
    monkeypatch.setattr(config, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(config, "CONFIG_PATH", config_dir / "config.toml")
    monkeypatch.setattr(database, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(database, "DB_PATH", config_dir / "kioku.db")
    monkeypatch.setattr(database, "BACKUP_DIR", config_dir / "backups")
    for name in ("KIOKU_LOG_LEVEL", "KIOKU_AUTO_ADVANCE_SECONDS", "KIOKU_SHUFFLE"):
        monkeypatch.delenv(name, raising=False)
    database.init_db()
    return config_dir


@pytest.fixture
def store(kioku_home):
    card_store = CardStore()
    card_store.load()
    return card_store
