import pytest

from app.security import reset_rate_limits
from core.db.schema import init_db


@pytest.fixture(autouse=True)
def _clean_db(tmp_path, monkeypatch):
    """Point every test at its own empty SQLite database."""
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'birdtrail-test.db'}")
    init_db()
    reset_rate_limits()
    yield
    reset_rate_limits()
