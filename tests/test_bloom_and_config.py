from __future__ import annotations

from proxyharvest.bloom import TimeWindowBloom
from proxyharvest.config import load_config_from_env


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_bloom_membership_after_add():
    bf = TimeWindowBloom(window_seconds=10, slices=2, capacity_per_slice=10, error_rate=0.01)
    assert not bf.contains("hello"), "unexpected membership before add"
    bf.add("hello")
    assert "hello" in bf, "expected membership after add"


def test_bloom_forgets_after_window():
    clock = FakeClock()
    bf = TimeWindowBloom(window_seconds=10, slices=2, capacity_per_slice=100, clock=clock)
    bf.add("1.1.1.1:80")
    clock.now += 6
    assert bf.contains("1.1.1.1:80")
    clock.now += 6
    assert not bf.contains("1.1.1.1:80")


def test_config_defaults(monkeypatch):
    for key in ("PROXYHARVEST_DB_FILE", "PROXYHARVEST_WORKERS", "PROXYHARVEST_VERIFY_SSL", "PROXYHARVEST_LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)
    cfg = load_config_from_env()
    assert cfg.db_file == "proxies.db"
    assert cfg.bucket == "proxies"
    assert cfg.workers == 8
    assert cfg.verify_ssl is True
    assert cfg.log_level == "INFO"


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("PROXYHARVEST_DB_FILE", "/tmp/x.db")
    monkeypatch.setenv("PROXYHARVEST_WORKERS", "0")
    monkeypatch.setenv("PROXYHARVEST_VERIFY_SSL", "off")
    monkeypatch.setenv("PROXYHARVEST_FETCH_TIMEOUT", "2.5")
    monkeypatch.setenv("PROXYHARVEST_LOG_LEVEL", "debug")
    cfg = load_config_from_env()
    assert cfg.db_file == "/tmp/x.db"
    assert cfg.workers == 1
    assert cfg.verify_ssl is False
    assert cfg.fetch_timeout == 2.5
    assert cfg.log_level == "DEBUG"
