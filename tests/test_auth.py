"""
Tests for ssh_broker.domain.auth (PublicKey, AuthGate).
"""

import base64
import struct

import pytest

from ssh_broker.domain.auth import AuthGate, PublicKey
from ssh_broker.exceptions import AuthenticationFailure, ConfigurationFailure


# ---------------------------------------------------------------------------
# PublicKey parsing
# ---------------------------------------------------------------------------

class TestPublicKeyParsing:

    def test_parse_authorized_line(self, alice_key, authorized_line):
        """A well-formed line round-trips to an equal key."""
        parsed = PublicKey.from_authorized_line(authorized_line(alice_key, "alice@laptop"))
        assert parsed == alice_key
        assert parsed.algorithm == "ssh-ed25519"

    def test_parse_without_comment(self, alice_key, authorized_line):
        line = authorized_line(alice_key).rsplit(" ", 1)[0]
        assert PublicKey.from_authorized_line(line) == alice_key

    def test_parse_rejects_single_field(self):
        with pytest.raises(ConfigurationFailure):
            PublicKey.from_authorized_line("ssh-ed25519")

    def test_parse_rejects_bad_base64(self):
        with pytest.raises(ConfigurationFailure, match="base64"):
            PublicKey.from_authorized_line("ssh-ed25519 not*base64! me@host")

    def test_parse_rejects_type_mismatch(self, alice_key, authorized_line):
        """Declared type must match the type encoded in the blob."""
        line = authorized_line(alice_key).replace("ssh-ed25519", "ssh-rsa", 1)
        with pytest.raises(ConfigurationFailure, match="does not match"):
            PublicKey.from_authorized_line(line)

    def test_parse_rejects_truncated_blob(self):
        blob = struct.pack(">I", 50) + b"ssh-ed25519"
        line = f"ssh-ed25519 {base64.b64encode(blob).decode()}"
        with pytest.raises(ConfigurationFailure, match="truncated"):
            PublicKey.from_authorized_line(line)

    def test_fingerprint_format(self, alice_key):
        fp = alice_key.fingerprint
        assert fp.startswith("SHA256:")
        assert not fp.endswith("=")

    def test_equality_ignores_algorithm_label(self, alice_key):
        """Keys compare by blob; e.g. rsa-sha2-256 vs ssh-rsa names."""
        relabelled = PublicKey(algorithm="other", blob=alice_key.blob)
        assert relabelled == alice_key
        assert hash(relabelled) == hash(alice_key)


# ---------------------------------------------------------------------------
# AuthGate
# ---------------------------------------------------------------------------

class TestAuthGate:

    def test_accepts_exact_match(self, alice_key):
        gate = AuthGate({"alice": [alice_key]})
        assert gate.check("alice", alice_key) is True

    def test_rejects_unknown_user(self, alice_key):
        gate = AuthGate({"alice": [alice_key]})
        assert gate.check("mallory", alice_key) is False

    def test_rejects_key_not_in_set(self, alice_key, make_key):
        gate = AuthGate({"alice": [alice_key]})
        assert gate.check("alice", make_key()) is False

    def test_rejects_other_users_key(self, alice_key, bob_key):
        gate = AuthGate({"alice": [alice_key], "bob": [bob_key]})
        assert gate.check("alice", bob_key) is False

    def test_rejects_prefix_of_key(self, alice_key):
        """No partial matches: a truncated blob is a different key."""
        gate = AuthGate({"alice": [alice_key]})
        partial = PublicKey(algorithm=alice_key.algorithm, blob=alice_key.blob[:-1])
        assert gate.check("alice", partial) is False

    def test_multiple_keys_per_user(self, alice_key, make_key):
        second = make_key("ecdsa-sha2-nistp256")
        gate = AuthGate({"alice": [alice_key, second]})
        assert gate.check("alice", alice_key)
        assert gate.check("alice", second)

    def test_user_with_empty_key_set(self, alice_key):
        gate = AuthGate({"alice": []})
        assert gate.check("alice", alice_key) is False

    def test_table_is_immutable_after_construction(self, alice_key, make_key):
        """Mutating the source mapping does not change the gate."""
        source = {"alice": [alice_key]}
        gate = AuthGate(source)
        intruder = make_key()
        source["alice"].append(intruder)
        source["mallory"] = [intruder]
        assert gate.check("alice", intruder) is False
        assert gate.check("mallory", intruder) is False
        assert gate.users() == ["alice"]

    def test_require_raises_for_unknown_user(self, alice_key):
        gate = AuthGate({"alice": [alice_key]})
        with pytest.raises(AuthenticationFailure) as exc_info:
            gate.require("mallory", alice_key)
        assert exc_info.value.reason == "unknown user"

    def test_require_raises_for_wrong_key(self, alice_key, make_key):
        gate = AuthGate({"alice": [alice_key]})
        with pytest.raises(AuthenticationFailure):
            gate.require("alice", make_key())

    def test_require_passes(self, alice_key):
        AuthGate({"alice": [alice_key]}).require("alice", alice_key)
