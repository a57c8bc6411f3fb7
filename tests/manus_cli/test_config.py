"""Tests for configuration loading, saving and secrets."""

import yaml

from manus_cli.config import (
    DEFAULT_CONFIG,
    get_config_path,
    get_env_path,
    get_env_value,
    get_manus_home,
    load_config,
    redact_key,
    save_config,
    set_config_value,
)


class TestPaths:
    def test_home_from_env(self, isolated_home):
        """MANUS_RESEARCH_HOME decides where config lives."""
        assert get_manus_home() == isolated_home / ".manus-research"
        assert get_config_path().name == "config.yaml"
        assert get_env_path().name == ".env"


class TestLoadConfig:
    """config.yaml is deep-merged over the defaults."""

    def test_defaults_without_file(self):
        """No file means exactly the defaults."""
        assert load_config() == DEFAULT_CONFIG

    def test_deep_merge(self):
        """Nested sections merge key by key; top-level scalars replace."""
        get_manus_home().mkdir(parents=True)
        get_config_path().write_text(yaml.dump({
            "agent_profile": "manus-1.6-max",
            "credentials": {"name": "manus:work"},
        }))

        config = load_config()
        assert config["agent_profile"] == "manus-1.6-max"
        assert config["credentials"]["name"] == "manus:work"
        assert config["credentials"]["auth_profiles_path"] == DEFAULT_CONFIG["credentials"]["auth_profiles_path"]

    def test_defaults_not_mutated(self):
        """Merging user config never changes DEFAULT_CONFIG."""
        save_config({"credentials": {"name": "manus:other"}})
        load_config()
        assert DEFAULT_CONFIG["credentials"]["name"] == "manus:default"

    def test_broken_yaml_falls_back(self, caplog):
        """Invalid YAML is logged and the defaults are used."""
        get_manus_home().mkdir(parents=True)
        get_config_path().write_text("api_base: [unclosed")
        assert load_config() == DEFAULT_CONFIG
        assert "Failed to load config" in caplog.text


class TestSetConfigValue:
    """manus-research config set KEY VALUE."""

    def test_nested_key_and_coercion(self):
        """Dotted keys write nested values with numeric coercion."""
        set_config_value("request_timeout", "45")
        set_config_value("credentials.name", "manus:work")
        config = load_config()
        assert config["request_timeout"] == 45
        assert config["credentials"]["name"] == "manus:work"

    def test_bool_and_float(self):
        """true/false and decimals are coerced."""
        set_config_value("max_wait_minutes", "7.5")
        set_config_value("extra.flag", "yes")
        config = load_config()
        assert config["max_wait_minutes"] == 7.5
        assert config["extra"]["flag"] is True

    def test_api_key_goes_to_env_file(self):
        """MANUS_API_KEY is written to .env, not config.yaml."""
        set_config_value("manus_api_key", "mk-secret")
        assert "mk-secret" in get_env_path().read_text()
        assert "MANUS_API_KEY" not in load_config()
        assert get_env_value("MANUS_API_KEY") == "mk-secret"

    def test_environment_beats_env_file(self, monkeypatch):
        """The process environment takes priority over .env."""
        set_config_value("MANUS_API_KEY", "from-file")
        monkeypatch.setenv("MANUS_API_KEY", "from-env")
        assert get_env_value("MANUS_API_KEY") == "from-env"


class TestRedactKey:
    def test_long_key(self):
        """Long keys keep four characters on each side."""
        assert redact_key("mk-1234567890abcd") == "mk-1...abcd"

    def test_short_key(self):
        """Short keys are fully hidden."""
        assert redact_key("short") == "***"

    def test_missing_key(self):
        """Missing keys show (not set)."""
        assert "(not set)" in redact_key(None)
