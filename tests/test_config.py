"""
tests/test_config.py — Configuration & Wiring Tests
====================================================
"""

from __future__ import annotations

import pytest

from conftest import add_user
from questlog.app import Application
from questlog.config import QuestlogConfig, load_config
from questlog.services.xp_authority import (
    DatabaseXpAuthority,
    HttpXpAuthority,
    LocalXpAuthority,
    MirroredXpAuthority,
)
from questlog.store.blob import MemoryBlobStore


# ---------------------------------------------------------------------------
# load_config
# ---------------------------------------------------------------------------
class TestLoadConfig:
    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "config.yaml")

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(path) == QuestlogConfig()

    def test_values_are_read(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "storage_backend: memory\n"
            "poll_interval_ms: 500\n"
            "skip_overlapping_ticks: false\n"
            "xp_api_url: http://xp.local\n"
            "xp_floor: null\n"
        )
        cfg = load_config(path)
        assert cfg.storage_backend == "memory"
        assert cfg.poll_interval_ms == 500
        assert cfg.skip_overlapping_ticks is False
        assert cfg.xp_api_url == "http://xp.local"
        assert cfg.xp_floor is None

    @pytest.mark.parametrize(
        "body",
        ["storage_backend: s3\n", "poll_interval_ms: 0\n", "xp_api_timeout: -1\n"],
    )
    def test_invalid_values(self, tmp_path, body):
        path = tmp_path / "config.yaml"
        path.write_text(body)
        with pytest.raises(ValueError):
            load_config(path)


# ---------------------------------------------------------------------------
# Application wiring
# ---------------------------------------------------------------------------
class TestApplication:
    def test_local_authority_by_default(self):
        cfg = QuestlogConfig(storage_backend="memory")
        with Application.from_config(cfg) as app:
            assert isinstance(app.authority, LocalXpAuthority)
            member_id = app.members.create("Ada", "u1")
            app.gamification.add_xp(member_id, 120)
            assert app.members.get_by_id(member_id).level == 2

    def test_http_authority_when_url_set(self):
        cfg = QuestlogConfig(storage_backend="memory", xp_api_url="http://xp.local")
        with Application.from_config(cfg) as app:
            assert isinstance(app.authority, MirroredXpAuthority)
            assert isinstance(app.authority.upstream, HttpXpAuthority)

    def test_database_backend_uses_given_engine(self, db_engine):
        cfg = QuestlogConfig(storage_backend="database")
        with Application.from_config(cfg, engine=db_engine) as app:
            assert isinstance(app.authority, MirroredXpAuthority)
            assert isinstance(app.authority.upstream, DatabaseXpAuthority)
            app.store.save("tasks", [{"id": "t1"}])
            assert app.store.get("tasks") == [{"id": "t1"}]

    def test_database_xp_reaches_collection_member(self, db_engine):
        add_user(db_engine, "u1")
        cfg = QuestlogConfig(storage_backend="database")
        with Application.from_config(cfg, engine=db_engine) as app:
            member_id = app.members.create("Ada", "u1")
            levelled = app.gamification.add_xp(member_id, 150)
            assert levelled is not None
            assert levelled.id == member_id
            stored = app.members.get_by_id(member_id)
            assert (stored.xp, stored.level) == (150, 2)
            assert app.authority.upstream.get_member("u1").xp == 150

    def test_database_task_award_reaches_collection_member(self, db_engine):
        add_user(db_engine, "u1")
        cfg = QuestlogConfig(storage_backend="database")
        with Application.from_config(cfg, engine=db_engine) as app:
            member_id = app.members.create("Ada", "u1")
            task_id = app.tasks.create("Report", member_id, "u1")
            app.task_service.toggle_task_complete(task_id)
            assert app.members.get_by_id(member_id).xp == 50

    def test_database_xp_for_member_without_user_row(self, db_engine):
        cfg = QuestlogConfig(storage_backend="database")
        with Application.from_config(cfg, engine=db_engine) as app:
            member_id = app.members.create("Ada", "ghost")
            assert app.gamification.add_xp(member_id, 150) is None
            assert app.members.get_by_id(member_id).xp == 0

    def test_file_backend(self, tmp_path):
        cfg = QuestlogConfig(storage_dir=str(tmp_path))
        with Application.from_config(cfg) as app:
            app.store.save("members", [])
        assert (tmp_path / "questlog-members.json").exists()

    def test_close_stops_subscriptions(self):
        cfg = QuestlogConfig(storage_backend="memory", poll_interval_ms=50)
        app = Application.from_config(cfg, blob=MemoryBlobStore())
        app.sync.subscribe("tasks", lambda s: None)
        app.close()
        assert app.sync.active_subscriptions == 0
