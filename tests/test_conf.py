"""Tests for Config validation and loading."""
from pathlib import Path

import pytest
from pydantic import ValidationError

from onepass.conf import Config, SESSION_TTL, load_config, read_config_file
from onepass.exceptions import ConfigError


def settings_file(tmp_path, text):
    path = tmp_path / "config"
    path.write_text(text)
    return path


class TestConfig:
    """Tests for Config validation."""

    def test_defaults(self):
        """Test the default settings."""
        config = Config(self_key="KEY", email="a@b.c", subdomain="my")
        assert config.session_ttl == SESSION_TTL == 1740
        assert config.clear_seconds == 30
        assert config.sealer == "gpg"
        assert config.home == Path("~/.onepass").expanduser()

    def test_derived_paths(self, tmp_path):
        """Test the paths derived from home."""
        config = Config(self_key="K", email="a@b.c", subdomain="my", home=tmp_path)
        assert config.session_path == tmp_path / "cache" / "_session.sealed"
        assert config.index_backup_path == tmp_path / "cache" / "_index.sealed.bak"
        assert config.items_dir == tmp_path / "cache" / "items"
        assert config.key_path == tmp_path / "keys"

    def test_frozen(self):
        """Test that Config is immutable."""
        config = Config(self_key="K", email="a@b.c", subdomain="my")
        with pytest.raises(ValidationError):
            config.email = "x@y.z"

    @pytest.mark.parametrize("field", ["self_key", "email", "subdomain"])
    def test_required_non_empty(self, field):
        """Test that identity settings must not be empty."""
        values = {"self_key": "K", "email": "a@b.c", "subdomain": "my"}
        values[field] = "  "
        with pytest.raises(ValidationError):
            Config(**values)

    def test_email_shape(self):
        """Test that email must look like an address."""
        with pytest.raises(ValidationError):
            Config(self_key="K", email="nobody", subdomain="my")

    def test_unknown_sealer(self):
        """Test that an unknown sealer is rejected."""
        with pytest.raises(ValidationError):
            Config(self_key="K", email="a@b.c", subdomain="my", sealer="rot13")


class TestLoadConfig:
    """Tests for loading settings from file and environment."""

    def test_from_file(self, tmp_path):
        """Test reading a settings file."""
        path = settings_file(tmp_path, (
            '# onepass settings\n'
            'self_key="0xDEADBEEF"\n'
            "email='me@example.com'\n"
            'subdomain=my  # team\n'
            'unknown="ignored"\n'
        ))
        config = load_config(path, environ={})
        assert (config.self_key, config.email, config.subdomain) == ("0xDEADBEEF", "me@example.com", "my")

    def test_environment_overrides_file(self, tmp_path):
        """Test that environment variables override the file."""
        path = settings_file(tmp_path, 'self_key="A"\nemail="a@b.c"\nsubdomain="my"\n')
        config = load_config(path, environ={
            "ONEPASS_SELF_KEY": "B",
            "ONEPASS_CLEAR_SECONDS": "5",
            "ONEPASS_SEALER": "keyfile",
        })
        assert config.self_key == "B"
        assert config.clear_seconds == 5
        assert config.sealer == "keyfile"

    def test_gpg_agent_from_environment(self, tmp_path):
        """Test that ONEPASS_GPG_AGENT sets the agent client path."""
        path = settings_file(tmp_path, 'self_key="A"\nemail="a@b.c"\nsubdomain="my"\n')
        assert load_config(path, environ={}).gpg_agent_path is None
        config = load_config(path, environ={"ONEPASS_GPG_AGENT": "/opt/bin/gpg-connect-agent"})
        assert config.gpg_agent_path == "/opt/bin/gpg-connect-agent"

    def test_environment_only(self, tmp_path):
        """Test settings taken only from the environment."""
        config = load_config(tmp_path / "missing", environ={
            "ONEPASS_SELF_KEY": "K",
            "ONEPASS_EMAIL": "a@b.c",
            "ONEPASS_SUBDOMAIN": "my",
            "ONEPASS_HOME": str(tmp_path),
        })
        assert config.home == tmp_path

    def test_default_path_under_home(self, tmp_path):
        """Test the default settings path under ONEPASS_HOME."""
        settings_file(tmp_path, 'self_key="K"\nemail="a@b.c"\nsubdomain="my"\n')
        config = load_config(environ={"ONEPASS_HOME": str(tmp_path)})
        assert config.self_key == "K"

    def test_missing_settings(self, tmp_path):
        """Test that missing settings raise ConfigError."""
        with pytest.raises(ConfigError, match="email"):
            load_config(tmp_path / "missing", environ={"ONEPASS_SELF_KEY": "K", "ONEPASS_SUBDOMAIN": "my"})

    def test_bad_line(self, tmp_path):
        """Test a line that is not name=value."""
        path = settings_file(tmp_path, "just some words\n")
        with pytest.raises(ConfigError, match="name=value"):
            read_config_file(path)

    def test_unbalanced_quotes(self, tmp_path):
        """Test a line with unbalanced quotes."""
        path = settings_file(tmp_path, 'email="a@b.c\n')
        with pytest.raises(ConfigError):
            read_config_file(path)
