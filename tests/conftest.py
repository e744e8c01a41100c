import pytest

from rumasta.config import settings
from rumasta.database import init_db


@pytest.fixture
def db(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "DB_DIR", str(tmp_path / "db"))
    monkeypatch.setattr(settings, "LOG_DIR", str(tmp_path / "log"))
    init_db()
    return tmp_path
