"""Unit tests for configuration management."""

import json
import stat

import pytest

from property_minutes.core.config_manager import ConfigManager, Configuration
from property_minutes.utils.exceptions import ConfigurationError


class TestConfigManager:
    """Test suite for ConfigManager."""

    def test_defaults_written_on_first_run(self, temp_config_dir):
        manager = ConfigManager(config_dir=temp_config_dir)

        assert manager.config_file.exists()
        config = manager.get_config()
        assert isinstance(config, Configuration)
        assert config.defaults.location == "tokyo"
        assert config.defaults.retrieval_period == 1
        assert config.google.gmail_label == "物件情報"
        assert config.ai.model_name == "gemini-2.0-flash"

    def test_config_file_is_private(self, config_manager):
        mode = stat.S_IMODE(config_manager.config_file.stat().st_mode)
        assert mode == 0o600

    def test_home_from_environment(self, temp_config_dir, monkeypatch):
        monkeypatch.setenv("PROPERTY_MINUTES_HOME", str(temp_config_dir / "home"))

        manager = ConfigManager()

        assert manager.config_dir == temp_config_dir / "home"

    def test_load_existing_document(self, temp_config_dir):
        (temp_config_dir / "config.json").write_text(
            json.dumps({"company": {"name": "株式会社サンプル"}, "google": {"gmail_label": "物件"}}),
            encoding="utf-8",
        )

        config = ConfigManager(config_dir=temp_config_dir).get_config()

        assert config.company.name == "株式会社サンプル"
        assert config.google.gmail_label == "物件"
        # Sections missing from the document keep their defaults
        assert config.google.drive_folder_path == "定例会"
        assert config.participants.president == "山田太郎"

    def test_unknown_keys_rejected(self, temp_config_dir):
        (temp_config_dir / "config.json").write_text(
            json.dumps({"google": {"unknown": 1}}), encoding="utf-8"
        )

        with pytest.raises(ConfigurationError):
            ConfigManager(config_dir=temp_config_dir)

    def test_invalid_json(self, temp_config_dir):
        (temp_config_dir / "config.json").write_text("{not json", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            ConfigManager(config_dir=temp_config_dir)

    def test_to_dict_hides_secrets(self, config_manager):
        config_manager.set_refresh_token("secret-token")
        config_manager.update_section("ai", gemini_api_key="secret-key")

        settings = config_manager.to_dict()

        assert "refresh_token" not in settings["google"]
        assert "gemini_api_key" not in settings["ai"]
        assert config_manager.to_dict(include_secrets=True)["google"]["refresh_token"] == "secret-token"

    def test_save_all_keeps_refresh_token(self, config_manager, temp_config_dir):
        config_manager.set_refresh_token("secret-token")
        settings = config_manager.to_dict()
        settings["company"]["name"] = "株式会社新社名"

        config_manager.save_all(settings)

        assert config_manager.get_refresh_token() == "secret-token"
        reloaded = ConfigManager(config_dir=temp_config_dir)
        assert reloaded.get_config().company.name == "株式会社新社名"
        assert reloaded.get_refresh_token() == "secret-token"

    def test_save_all_keeps_gemini_key(self, config_manager):
        config_manager.set_gemini_api_key("AIzaSECRETKEY")

        config_manager.save_all(config_manager.to_dict())

        assert config_manager.get_gemini_api_key() == "AIzaSECRETKEY"

    def test_save_all_stores_entered_key(self, config_manager):
        settings = config_manager.to_dict()
        settings["ai"]["gemini_api_key"] = "new-key"

        config_manager.save_all(settings)

        assert config_manager.get_gemini_api_key() == "new-key"
        assert "new-key" not in config_manager.config_file.read_text(encoding="utf-8")

    def test_secrets_stay_out_of_config_file(self, config_manager, keyring_store):
        config_manager.set_refresh_token("1//secret-refresh")
        config_manager.set_gemini_api_key("AIzaSECRETKEY")

        document = config_manager.config_file.read_text(encoding="utf-8")
        assert "1//secret-refresh" not in document
        assert "AIzaSECRETKEY" not in document
        assert "refresh_token" not in json.loads(document)["google"]

        # Keyring holds ciphertext only
        stored = keyring_store.passwords[("property-minutes", "google:refresh_token")]
        assert "secret-refresh" not in stored

    def test_secrets_in_document_move_to_keyring(self, temp_config_dir):
        (temp_config_dir / "config.json").write_text(
            json.dumps({"google": {"refresh_token": "hand-written"}, "ai": {"gemini_api_key": ""}}),
            encoding="utf-8",
        )

        manager = ConfigManager(config_dir=temp_config_dir)

        assert manager.get_refresh_token() == "hand-written"
        assert "hand-written" not in manager.config_file.read_text(encoding="utf-8")

    def test_unavailable_keyring(self, temp_config_dir, keyring_store, monkeypatch):
        def broken(*args):
            raise RuntimeError("No recommended backend was available")

        monkeypatch.setattr(keyring_store, "get_password", broken)

        with pytest.raises(ConfigurationError):
            ConfigManager(config_dir=temp_config_dir)

    def test_clear_refresh_token(self, config_manager):
        config_manager.set_refresh_token("secret-token")

        config_manager.clear_refresh_token()

        assert config_manager.get_refresh_token() is None

    def test_update_section(self, config_manager):
        config_manager.update_section("defaults", location="nagano")
        assert config_manager.get_config().defaults.location == "nagano"

        with pytest.raises(ConfigurationError):
            config_manager.update_section("defaults", unknown=True)
        with pytest.raises(ConfigurationError):
            config_manager.update_section("missing", name="x")

    def test_gemini_key_environment_wins(self, config_manager, monkeypatch):
        assert config_manager.get_gemini_api_key() is None

        config_manager.update_section("ai", gemini_api_key="stored-key")
        assert config_manager.get_gemini_api_key() == "stored-key"

        monkeypatch.setenv("GEMINI_API_KEY", "env-key")
        assert config_manager.get_gemini_api_key() == "env-key"

    def test_credentials_path(self, config_manager, temp_config_dir):
        assert config_manager.get_credentials_path() == temp_config_dir / "credentials.json"

        config_manager.update_section("google", credentials_path=str(temp_config_dir / "client.json"))
        assert config_manager.get_credentials_path() == temp_config_dir / "client.json"

    def test_validate_configuration(self, config_manager):
        assert config_manager.validate_configuration() is True

        config_manager.update_section("defaults", start_time="16:00")
        assert config_manager.validate_configuration() is False

    def test_reset(self, config_manager):
        config_manager.set_refresh_token("secret-token")
        config_manager.update_section("company", name="株式会社サンプル")

        config_manager.reset()

        assert config_manager.get_refresh_token() is None
        assert config_manager.get_config().company.name == "株式会社〇〇〇〇"
