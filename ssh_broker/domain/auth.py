"""
Public-key authentication gate.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import struct
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping

from ssh_broker.exceptions import AuthenticationFailure, ConfigurationFailure


@dataclass(frozen=True)
class PublicKey:
    """
    An SSH public key in wire format.

    Equality and hashing use the raw blob only: the algorithm name is
    already encoded at the head of the blob.
    """

    algorithm: str = field(compare=False)
    blob: bytes

    @classmethod
    def from_blob(cls, blob: bytes) -> PublicKey:
        """Build a key from its wire blob, reading the embedded algorithm name."""
        if len(blob) < 4:
            raise ConfigurationFailure("key blob is truncated")
        (length,) = struct.unpack(">I", blob[:4])
        if length == 0 or len(blob) < 4 + length:
            raise ConfigurationFailure("key blob is truncated")
        try:
            algorithm = blob[4:4 + length].decode("ascii")
        except UnicodeDecodeError as e:
            raise ConfigurationFailure("key type is not ASCII") from e
        return cls(algorithm=algorithm, blob=blob)

    @classmethod
    def from_authorized_line(cls, line: str) -> PublicKey:
        """
        Parse one authorized_keys line: ``<type> <base64> [comment]``.

        Args:
            line: A single authorized_keys entry

        Returns:
            The parsed key

        Raises:
            ConfigurationFailure: If the line is malformed
        """
        parts = line.split()
        if len(parts) < 2:
            raise ConfigurationFailure("expected '<type> <base64> [comment]'")
        key_type, encoded = parts[0], parts[1]
        try:
            blob = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ConfigurationFailure(f"invalid base64 key data: {e}") from e

        key = cls.from_blob(blob)
        if key.algorithm != key_type:
            raise ConfigurationFailure(
                f"key type {key_type!r} does not match encoded type {key.algorithm!r}"
            )
        return key

    @property
    def fingerprint(self) -> str:
        """OpenSSH-style SHA256 fingerprint."""
        digest = hashlib.sha256(self.blob).digest()
        return "SHA256:" + base64.b64encode(digest).decode("ascii").rstrip("=")

    def __repr__(self) -> str:
        return f"PublicKey({self.algorithm}, {self.fingerprint})"


class AuthGate:
    """
    Validates offered keys against each user's authorized set.

    The table is frozen at construction, so ``check`` needs no locking.
    """

    def __init__(self, authorized: Mapping[str, Iterable[PublicKey]]) -> None:
        self._table: Mapping[str, frozenset[PublicKey]] = MappingProxyType(
            {user: frozenset(keys) for user, keys in authorized.items()}
        )

    def check(self, username: str, credential: PublicKey) -> bool:
        """True iff ``username`` is known and ``credential`` is one of its keys."""
        keys = self._table.get(username)
        if keys is None:
            return False
        return credential in keys

    def require(self, username: str, credential: PublicKey) -> None:
        """
        Like :meth:`check` but raises on rejection.

        Raises:
            AuthenticationFailure: If the user is unknown or the key is not authorized
        """
        if username not in self._table:
            raise AuthenticationFailure(username, "unknown user")
        if not self.check(username, credential):
            raise AuthenticationFailure(username)

    def users(self) -> list[str]:
        return sorted(self._table)
