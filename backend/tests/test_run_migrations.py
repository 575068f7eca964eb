from __future__ import annotations

import types

import pytest
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from scripts import run_migrations as runner


def _placeholder_config() -> Config:
    config = Config()
    config.set_main_option("sqlalchemy.url", "%%(USERPREFS_DATABASE_URL)s")
    config.set_main_option("script_location", "alembic")
    return config


def test_resolve_database_url_prefers_env(monkeypatch) -> None:
    monkeypatch.setenv("USERPREFS_DATABASE_URL", "sqlite://")
    config = _placeholder_config()

    assert runner.resolve_database_url(config) == "sqlite://"
    assert config.get_main_option("sqlalchemy.url") == "sqlite://"


def test_resolve_database_url_keeps_explicit_url(monkeypatch) -> None:
    monkeypatch.delenv("USERPREFS_DATABASE_URL", raising=False)
    config = Config()
    config.set_main_option("sqlalchemy.url", "sqlite:///explicit.sqlite")

    assert runner.resolve_database_url(config) == "sqlite:///explicit.sqlite"


def test_resolve_database_url_requires_configuration(monkeypatch) -> None:
    monkeypatch.delenv("USERPREFS_DATABASE_URL", raising=False)

    with pytest.raises(RuntimeError):
        runner.resolve_database_url(_placeholder_config())


def test_wait_for_database_succeeds_with_sqlite(tmp_path) -> None:
    db_path = tmp_path / "test.sqlite"
    url = f"sqlite:///{db_path}"
    runner.wait_for_database(url, timeout=2, poll_interval=0.1)


def test_wait_for_database_times_out(monkeypatch) -> None:
    class DummyEngine:
        def connect(self) -> types.SimpleNamespace:
            raise runner.OperationalError("SELECT 1", {}, Exception("boom"))

        def dispose(self) -> None:
            pass

    monkeypatch.setattr(runner, "create_engine", lambda *_, **__: DummyEngine())
    with pytest.raises(RuntimeError):
        runner.wait_for_database("postgresql://example", timeout=0, poll_interval=0)


def test_run_migrations_invokes_upgrade(monkeypatch) -> None:
    monkeypatch.setenv("USERPREFS_DATABASE_URL", "sqlite://")
    config = _placeholder_config()
    recorded: dict[str, object] = {}

    def fake_wait(url: str, *, timeout: int, poll_interval: float) -> None:
        recorded["wait"] = (url, timeout, poll_interval)

    def fake_upgrade(cfg, revision: str) -> None:
        recorded["revision"] = revision
        recorded["config_script_location"] = cfg.get_main_option("script_location")

    monkeypatch.setattr(runner, "wait_for_database", fake_wait)
    monkeypatch.setattr(runner.command, "upgrade", fake_upgrade)

    runner.run_migrations("head", timeout=5, poll_interval=0.1, config=config)

    assert recorded["revision"] == "head"
    assert recorded["wait"] == ("sqlite://", 5, 0.1)
    assert recorded["config_script_location"] == "alembic"


def test_run_migrations_downgrade(monkeypatch) -> None:
    monkeypatch.setenv("USERPREFS_DATABASE_URL", "sqlite://")
    calls: list[str] = []
    monkeypatch.setattr(runner, "wait_for_database", lambda *_, **__: None)
    monkeypatch.setattr(runner.command, "downgrade", lambda cfg, revision: calls.append(revision))
    monkeypatch.setattr(runner.command, "upgrade", lambda cfg, revision: calls.append("unexpected"))

    runner.run_migrations("base", timeout=1, poll_interval=0, downgrade=True, config=_placeholder_config())

    assert calls == ["base"]


def test_upgrade_head_creates_preference_tables(tmp_path, monkeypatch) -> None:
    url = f"sqlite:///{tmp_path / 'migrated.sqlite'}"
    monkeypatch.setenv("USERPREFS_DATABASE_URL", url)

    runner.run_migrations(
        "head",
        timeout=2,
        poll_interval=0.1,
        config=runner.load_config(str(runner.BACKEND_ROOT / "alembic.ini")),
    )

    engine = create_engine(url, future=True)
    try:
        tables = set(inspect(engine).get_table_names())
    finally:
        engine.dispose()
    assert {
        "portal_profiles",
        "profile_agent_mappings",
        "structure_stylesheets",
        "theme_stylesheets",
        "user_preferences",
        "user_layouts",
    } <= tables


def test_main_reports_failure(monkeypatch) -> None:
    def explode(*_, **__) -> None:
        raise RuntimeError("Database did not become ready in time.")

    monkeypatch.setattr(runner, "run_migrations", explode)

    assert runner.main(["--timeout", "0"]) == 1
