"""Tests for environment-driven editor configuration."""

from flowsketch.config import EditorConfig
from flowsketch.constants import AUTOSAVE_DELAY_MS


def test_defaults_from_empty_environment():
    config = EditorConfig.from_env({})
    assert config == EditorConfig()
    assert config.autosave_ms == AUTOSAVE_DELAY_MS
    assert not config.has_generation
    assert not config.has_supabase
    assert not config.smoke


def test_reads_prefixed_variables():
    config = EditorConfig.from_env({
        "FLOWSKETCH_AI_ENDPOINT": "https://ai.example.com",
        "FLOWSKETCH_AI_API_KEY": "key",
        "FLOWSKETCH_SUPABASE_URL": "https://project.supabase.co",
        "FLOWSKETCH_SUPABASE_KEY": "anon",
        "FLOWSKETCH_ACCESS_TOKEN": "token",
        "FLOWSKETCH_USER_ID": "user-1",
        "FLOWSKETCH_AUTOSAVE_MS": "500",
        "FLOWSKETCH_DIAGRAM_PATH": "/tmp/diagram.json",
        "FLOWSKETCH_SMOKE": "1",
    })
    assert config.has_generation
    assert config.has_supabase
    assert config.user_id == "user-1"
    assert config.autosave_ms == 500
    assert config.diagram_path == "/tmp/diagram.json"
    assert config.smoke


def test_blank_values_are_unset():
    config = EditorConfig.from_env({"FLOWSKETCH_AI_ENDPOINT": "   ", "FLOWSKETCH_AI_API_KEY": "key"})
    assert config.ai_endpoint is None
    assert not config.has_generation


def test_invalid_autosave_interval_falls_back():
    assert EditorConfig.from_env({"FLOWSKETCH_AUTOSAVE_MS": "soon"}).autosave_ms == AUTOSAVE_DELAY_MS
