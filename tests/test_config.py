"""Tests for settings and the credential store."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from luminarias.config import BATCH_SIZE, DEFAULT_MODEL, CredentialStore, Settings


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self, monkeypatch):
        """Test default values when nothing is configured."""
        monkeypatch.delenv("LUMINARIAS_BATCH_SIZE", raising=False)
        monkeypatch.delenv("LUMINARIAS_MODEL", raising=False)
        settings = Settings(_env_file=None)
        assert settings.batch_size == BATCH_SIZE == 50
        assert settings.model == DEFAULT_MODEL

    def test_env_overrides(self, monkeypatch, tmp_path: Path):
        """Test LUMINARIAS_ environment variables."""
        monkeypatch.setenv("LUMINARIAS_HOME", str(tmp_path))
        monkeypatch.setenv("LUMINARIAS_BATCH_SIZE", "10")
        settings = Settings(_env_file=None)
        assert settings.batch_size == 10
        assert settings.store_dir == tmp_path / "store"
        assert settings.credential_path == tmp_path / "settings.json"

    def test_rejects_zero_batch_size(self):
        """Test batch size validation."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, batch_size=0)


class TestCredentialStore:
    """Tests for CredentialStore load/save."""

    def test_load_empty(self, tmp_path: Path):
        """Test no saved key and no environment."""
        assert CredentialStore(tmp_path / "settings.json", env={}).load() == ""

    def test_save_then_load(self, tmp_path: Path):
        """Test a saved key is returned, trimmed."""
        path = tmp_path / "nested" / "settings.json"
        CredentialStore(path, env={}).save("  secret  ")
        assert CredentialStore(path, env={}).load() == "secret"

    def test_env_fallback_order(self, tmp_path: Path):
        """Test GEMINI_API_KEY wins over API_KEY."""
        path = tmp_path / "settings.json"
        env = {"GEMINI_API_KEY": "gemini", "API_KEY": "generic"}
        assert CredentialStore(path, env=env).load() == "gemini"
        assert CredentialStore(path, env={"API_KEY": "generic"}).load() == "generic"

    def test_saved_key_wins_over_env(self, tmp_path: Path):
        """Test the operator's key overrides the environment."""
        path = tmp_path / "settings.json"
        store = CredentialStore(path, env={"GEMINI_API_KEY": "env"})
        store.save("saved")
        assert store.load() == "saved"

    def test_unreadable_file_falls_back(self, tmp_path: Path):
        """Test a corrupt settings file is ignored."""
        path = tmp_path / "settings.json"
        path.write_text("{not json", encoding="utf-8")
        assert CredentialStore(path, env={"API_KEY": "env"}).load() == "env"
