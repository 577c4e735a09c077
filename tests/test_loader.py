"""
Tests for ssh_broker.config.loader (broker.yml and authorized_keys loading).
"""

import pytest

from ssh_broker.config.loader import BrokerConfig, load_authorized_keys
from ssh_broker.exceptions import ConfigurationFailure


@pytest.fixture
def config_file(tmp_path, mocker, monkeypatch):
    """Point the loader at an empty temp broker.yml and clear the cache."""
    path = tmp_path / "broker.yml"
    mocker.patch("ssh_broker.config.loader.BROKER_CONFIG_FILE", path)
    monkeypatch.setattr(BrokerConfig, "_config", {})
    monkeypatch.setattr(BrokerConfig, "_typed_config", None)
    for env_key in (
        "SSH_BROKER_LISTEN_ADDRESS",
        "SSH_BROKER_LISTEN_PORT",
        "SSH_BROKER_CLIENT_KEYS_DIR",
        "SSH_BROKER_SERVER_KEY",
        "SSH_BROKER_GRACE_MINUTES",
        "DOCKER_HOST",
    ):
        monkeypatch.delenv(env_key, raising=False)
    return path


# ---------------------------------------------------------------------------
# BrokerConfig
# ---------------------------------------------------------------------------

class TestBrokerConfig:

    def test_missing_file_uses_defaults(self, config_file):
        settings = BrokerConfig.reload()
        assert settings.server.listen_port == 2222
        assert settings.grace_period_seconds == 3600

    def test_yaml_merged_over_defaults(self, config_file):
        config_file.write_text(
            "server:\n  listen_port: 2200\nlifecycle:\n  grace_period_minutes: 5\n"
        )
        settings = BrokerConfig.reload()
        assert settings.server.listen_port == 2200
        assert settings.server.listen_address == "0.0.0.0"
        assert settings.grace_period_seconds == 300

    def test_env_overrides_yaml(self, config_file, monkeypatch):
        config_file.write_text("server:\n  listen_port: 2200\n")
        monkeypatch.setenv("SSH_BROKER_LISTEN_PORT", "2022")
        monkeypatch.setenv("SSH_BROKER_CLIENT_KEYS_DIR", "/etc/broker/keys")
        settings = BrokerConfig.reload()
        assert settings.server.listen_port == 2022
        assert settings.server.authorized_keys_dir == "/etc/broker/keys"

    def test_docker_host_left_to_docker_sdk(self, config_file, monkeypatch):
        """DOCKER_HOST does not become base_url, so from_env keeps its TLS settings."""
        monkeypatch.setenv("DOCKER_HOST", "tcp://127.0.0.1:2376")
        assert BrokerConfig.reload().docker.base_url == ""

    def test_invalid_yaml_falls_back(self, config_file):
        config_file.write_text("server: [unclosed\n")
        assert BrokerConfig.reload().server.listen_port == 2222

    def test_non_mapping_yaml_falls_back(self, config_file):
        config_file.write_text("- just\n- a list\n")
        assert BrokerConfig.reload().server.listen_port == 2222

    def test_invalid_values_fall_back(self, config_file):
        """Values failing validation discard the whole file."""
        config_file.write_text("server:\n  listen_port: 70000\n")
        assert BrokerConfig.reload().server.listen_port == 2222

    def test_get_nested(self, config_file):
        config_file.write_text("docker:\n  stop_timeout: 4\n")
        BrokerConfig.reload()
        assert BrokerConfig.get("docker", "stop_timeout") == 4
        assert BrokerConfig.get("docker", "missing", default="x") == "x"

    def test_load_is_cached(self, config_file):
        first = BrokerConfig.load()
        config_file.write_text("server:\n  listen_port: 2200\n")
        assert BrokerConfig.load() is first

    def test_deep_merge(self):
        merged = BrokerConfig._deep_merge(
            {"a": {"b": 1, "c": 2}, "d": 3},
            {"a": {"b": 10}, "e": 4},
        )
        assert merged == {"a": {"b": 10, "c": 2}, "d": 3, "e": 4}


# ---------------------------------------------------------------------------
# load_authorized_keys
# ---------------------------------------------------------------------------

class TestLoadAuthorizedKeys:

    def test_one_file_per_user(self, tmp_path, make_key, authorized_line):
        alice1, alice2, bob = make_key(), make_key("ssh-rsa"), make_key()
        (tmp_path / "alice").write_text(
            f"{authorized_line(alice1)}\n{authorized_line(alice2, 'laptop')}\n"
        )
        (tmp_path / "bob").write_text(authorized_line(bob) + "\n")

        table = load_authorized_keys(tmp_path)

        assert table == {"alice": frozenset({alice1, alice2}), "bob": frozenset({bob})}

    def test_comments_blanks_and_bad_lines_skipped(self, tmp_path, make_key, authorized_line):
        key = make_key()
        (tmp_path / "alice").write_text(
            "# provisioned by ops\n"
            "\n"
            "ssh-ed25519\n"
            "ssh-ed25519 not*base64!\n"
            f"{authorized_line(key)}\n"
        )
        assert load_authorized_keys(tmp_path) == {"alice": frozenset({key})}

    def test_user_without_valid_keys(self, tmp_path):
        """A user file with no usable keys yields an empty set, not an error."""
        (tmp_path / "carol").write_text("# nothing yet\n")
        assert load_authorized_keys(tmp_path) == {"carol": frozenset()}

    def test_dotfiles_and_directories_ignored(self, tmp_path, make_key, authorized_line):
        (tmp_path / ".keep").write_text("")
        (tmp_path / "archive").mkdir()
        (tmp_path / "alice").write_text(authorized_line(make_key()))
        assert list(load_authorized_keys(tmp_path)) == ["alice"]

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ConfigurationFailure, match="not found"):
            load_authorized_keys(tmp_path / "absent")

    def test_loaded_keys_authenticate(self, tmp_path, make_key, authorized_line):
        from ssh_broker.domain.auth import AuthGate

        key = make_key()
        (tmp_path / "alice").write_text(authorized_line(key))
        gate = AuthGate(load_authorized_keys(tmp_path))
        assert gate.check("alice", key) is True
