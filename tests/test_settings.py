from __future__ import annotations

from pathlib import Path

import blockcheck.engine.settings as settings_mod
from blockcheck.config import load_effective_settings
from blockcheck.engine.settings import (
    DEFAULT_BLOCK_IPS,
    CheckSettings,
    pick_user_agent,
    settings_from_env,
    settings_from_mapping,
)
from blockcheck.storage import set_setting


def test_defaults_match_known_block_configuration():
    settings = CheckSettings()
    assert settings.block_ips == frozenset(DEFAULT_BLOCK_IPS)
    assert settings.sinkhole_markers == ("internetpositif", "uzone.id")
    assert settings.listed_marker == "ADA"
    assert settings.registry_timeout == 10.0
    assert settings.https_timeout == 3.5
    assert settings.max_redirects == 5
    assert settings.deadline is None
    assert settings.port == 8000


def test_settings_from_env_parses_lists_numbers_and_flags():
    settings = settings_from_env(
        {
            "BLOCKCHECK_BLOCK_IPS": "1.1.1.1, 2.2.2.2,,",
            "BLOCKCHECK_SINKHOLE_MARKERS": "Notice.Example",
            "BLOCKCHECK_HTTPS_TIMEOUT": "4",
            "BLOCKCHECK_DNS": "9.9.9.9",
            "BLOCKCHECK_REGISTRY_ENABLED": "false",
            "BLOCKCHECK_DEADLINE": "12.5",
            "BLOCKCHECK_PORT": "9000",
            "UNRELATED": "x",
        }
    )
    assert settings.block_ips == frozenset({"1.1.1.1", "2.2.2.2"})
    assert settings.sinkhole_markers == ("notice.example",)
    assert settings.https_timeout == 4.0
    assert settings.dns_server == "9.9.9.9"
    assert settings.registry_enabled is False
    assert settings.deadline == 12.5
    assert settings.port == 9000


def test_malformed_values_keep_lower_layer():
    base = CheckSettings(https_timeout=2.0, max_redirects=3)
    settings = settings_from_mapping(
        {"https_timeout": "fast", "max_redirects": "-1", "verify_tls": "maybe", "deadline": "0"},
        base=base,
    )
    assert settings.https_timeout == 2.0
    assert settings.max_redirects == 3
    assert settings.verify_tls is True
    assert settings.deadline is None


def test_with_overrides_ignores_none_values():
    settings = CheckSettings().with_overrides(https_timeout=None, dns_server="8.8.8.8", block_ips=["3.3.3.3 "])
    assert settings.https_timeout == 3.5
    assert settings.dns_server == "8.8.8.8"
    assert settings.block_ips == frozenset({"3.3.3.3"})


def test_saved_setup_overrides_environment(tmp_path: Path, monkeypatch):
    db_path = tmp_path / "reports.db"
    for key in list(settings_mod.os.environ):
        if key.startswith("BLOCKCHECK_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("BLOCKCHECK_HTTPS_TIMEOUT", "5")
    monkeypatch.setenv("BLOCKCHECK_REGISTRY_TIMEOUT", "7")
    set_setting("runtime.https_timeout", "6", db_path=db_path)
    set_setting("runtime.unknown_field", "ignored", db_path=db_path)

    settings = load_effective_settings(db_path=db_path)
    assert settings.https_timeout == 6.0
    assert settings.registry_timeout == 7.0

    env_only = load_effective_settings(db_path=db_path, use_saved=False)
    assert env_only.https_timeout == 5.0


def test_pick_user_agent(monkeypatch):
    assert pick_user_agent("MyAgent/1.0") == "MyAgent/1.0"
    monkeypatch.setattr(settings_mod.random, "choice", lambda items: items[0])
    assert pick_user_agent("random") == settings_mod.USER_AGENTS[0]
    assert pick_user_agent(None) == settings_mod.USER_AGENTS[0]


def test_zero_clears_deadline_and_concurrency_limits(tmp_path: Path, monkeypatch):
    base = CheckSettings(deadline=5.0, max_concurrency=4)
    cleared = settings_from_mapping({"deadline": "0", "max_concurrency": "0"}, base=base)
    assert cleared.deadline is None
    assert cleared.max_concurrency is None

    kept = settings_from_mapping({"deadline": "-3", "max_concurrency": "many"}, base=base)
    assert kept.deadline == 5.0
    assert kept.max_concurrency == 4

    assert base.with_overrides(deadline=0, max_concurrency=0).deadline is None
    assert base.with_overrides(max_concurrency=0).max_concurrency is None

    db_path = tmp_path / "reports.db"
    for key in list(settings_mod.os.environ):
        if key.startswith("BLOCKCHECK_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("BLOCKCHECK_DEADLINE", "8")
    set_setting("runtime.deadline", "0", db_path=db_path)
    assert load_effective_settings(db_path=db_path).deadline is None
