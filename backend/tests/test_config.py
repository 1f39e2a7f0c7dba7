import pytest

from scout.config import Settings, get_settings


@pytest.fixture
def fresh_settings():
    get_settings.cache_clear()
    yield get_settings
    get_settings.cache_clear()


def test_defaults():
    s = Settings()
    assert s.crawl_delay_ms == 300
    assert s.request_timeout_sec == 120.0
    assert s.ollama_model == "llama3.1:8b"
    assert s.ddg_fallback is False
    assert s.llm_enabled is False


def test_values_come_from_environment(monkeypatch, fresh_settings):
    monkeypatch.setenv("SCOUT_CRAWL_DELAY_MS", "50")
    monkeypatch.setenv("SCOUT_DDG_FALLBACK", "1")
    monkeypatch.setenv("SCOUT_OLLAMA_URL", "http://ollama.test:11434")
    s = fresh_settings()
    assert s.crawl_delay_ms == 50
    assert s.ddg_fallback is True
    assert s.llm_enabled is True
    assert fresh_settings() is s


def test_empty_values_count_as_unset(monkeypatch, fresh_settings):
    monkeypatch.setenv("SERPER_API_KEY", "")
    monkeypatch.setenv("SCOUT_OLLAMA_URL", "")
    s = fresh_settings()
    assert s.serper_api_key is None
    assert s.llm_enabled is False


def test_invalid_values_are_reported(monkeypatch, fresh_settings):
    monkeypatch.setenv("SCOUT_CRAWL_DELAY_MS", "soon")
    with pytest.raises(RuntimeError, match="SCOUT_CRAWL_DELAY_MS"):
        fresh_settings()
