"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from quarry.db.connection import Database
from quarry.db.repository import Repository
from quarry.db.schema import initialize


@pytest.fixture
def db(tmp_path):
    """Database handle on a migrated file in tmp_path."""
    database = Database(tmp_path / ".quarry.db")
    with database as conn:
        initialize(conn)
    return database


@pytest.fixture
def tmp_db(db):
    """Open connection on the migrated database, closed after the test."""
    conn = db.connect()
    yield conn
    conn.close()


@pytest.fixture
def repo(tmp_db):
    return Repository(tmp_db)


@pytest.fixture
def project(tmp_path, monkeypatch):
    """Initialized Quarry project as the working directory.

    The user's global config, QUARRY_* env vars and logger setup are kept
    out of the way so CLI output is deterministic.
    """
    from typer.testing import CliRunner

    from quarry.cli.main import app

    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("quarry.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml")
    monkeypatch.setattr("quarry.cli.runtime.setup_logger", lambda *args, **kwargs: None)
    for var in (
        "QUARRY_EMBEDDING_MODEL",
        "QUARRY_GENERATION_MODEL",
        "QUARRY_API_BASE",
        "QUARRY_LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)

    result = CliRunner().invoke(app, ["init", str(tmp_path)])
    assert result.exit_code == 0, result.output
    return tmp_path


@pytest.fixture
def project_repo(project):
    """Repository on the project's database, for seeding and inspecting state."""
    conn = Database(project / ".quarry.db").connect()
    yield Repository(conn)
    conn.close()
