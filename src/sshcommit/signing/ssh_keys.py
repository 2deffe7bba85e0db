"""
SSH Keys Module

Key handles used across signing and verification: ``SSHPublicKey`` wraps the
OpenSSH public key blob (the identity embedded in every SSH signature) and
``SigningKey`` wraps a decrypted private key for the duration of one signing
operation.
"""

import base64
import hashlib
from pathlib import Path
from typing import Optional, Union

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa

from .wire import SSHReader

PrivateKeyTypes = Union[
    ed25519.Ed25519PrivateKey,
    ec.EllipticCurvePrivateKey,
    rsa.RSAPrivateKey,
]
PublicKeyTypes = Union[
    ed25519.Ed25519PublicKey,
    ec.EllipticCurvePublicKey,
    rsa.RSAPublicKey,
]


class SSHPublicKey:
    """An OpenSSH public key, identified by its wire-format blob."""

    def __init__(self, blob: bytes, comment: str = ""):
        self.blob = bytes(blob)
        self.comment = comment
        try:
            self.key_type = SSHReader(self.blob).read_text()
        except ValueError as exc:
            raise ValueError("Invalid SSH public key blob") from exc

    @classmethod
    def from_openssh(cls, line: Union[str, bytes]) -> 'SSHPublicKey':
        """
        Parse a public key in ``authorized_keys`` form.

        Args:
            line: Text such as ``ssh-ed25519 AAAAC3Nza... user@host``

        Returns:
            SSHPublicKey instance
        """
        if isinstance(line, bytes):
            line = line.decode('utf-8')
        parts = line.strip().split(None, 2)
        if len(parts) < 2:
            raise ValueError(f"Not an OpenSSH public key: {line.strip()!r}")
        key_type, b64 = parts[0], parts[1]
        try:
            blob = base64.b64decode(b64, validate=True)
        except ValueError as exc:
            raise ValueError(f"Invalid base64 in OpenSSH public key of type {key_type}") from exc
        key = cls(blob, comment=parts[2] if len(parts) > 2 else "")
        if key.key_type != key_type:
            raise ValueError(
                f"Public key type mismatch: line says {key_type}, blob says {key.key_type}"
            )
        return key

    @classmethod
    def from_cryptography(cls, public_key: PublicKeyTypes, comment: str = "") -> 'SSHPublicKey':
        """Build from a ``cryptography`` public key object."""
        openssh = public_key.public_bytes(
            encoding=serialization.Encoding.OpenSSH,
            format=serialization.PublicFormat.OpenSSH
        )
        return cls(base64.b64decode(openssh.split()[1]), comment=comment)

    @classmethod
    def from_file(cls, file_path: Union[str, Path]) -> 'SSHPublicKey':
        """Load a ``.pub`` file."""
        path = Path(file_path).expanduser()
        if not path.exists():
            raise FileNotFoundError(f"Public key file not found: {path}")
        return cls.from_openssh(path.read_text())

    @property
    def fingerprint(self) -> str:
        """SHA-256 fingerprint in the ``ssh-keygen -l`` spelling."""
        digest = hashlib.sha256(self.blob).digest()
        return 'SHA256:' + base64.b64encode(digest).decode('ascii').rstrip('=')

    def to_openssh(self) -> str:
        text = f"{self.key_type} {base64.b64encode(self.blob).decode('ascii')}"
        if self.comment:
            text += f" {self.comment}"
        return text

    def to_cryptography(self) -> PublicKeyTypes:
        """Load the key with ``cryptography`` for signature checks."""
        line = self.key_type.encode('ascii') + b' ' + base64.b64encode(self.blob)
        return serialization.load_ssh_public_key(line)

    def __eq__(self, other) -> bool:
        if not isinstance(other, SSHPublicKey):
            return NotImplemented
        return self.blob == other.blob

    def __hash__(self) -> int:
        return hash(self.blob)

    def __repr__(self) -> str:
        return f"SSHPublicKey({self.key_type} {self.fingerprint})"


class SigningKey:
    """
    Decrypted private key material for a single signing operation.

    The handle is read-only after loading. ``discard()`` (or leaving the
    ``with`` block) drops the private key; a discarded key can no longer
    sign.
    """

    def __init__(self,
                 private_key: PrivateKeyTypes,
                 source: Optional[Path] = None,
                 was_encrypted: bool = False):
        self._private_key = private_key
        self.source = source
        self.was_encrypted = was_encrypted
        self.public_key = SSHPublicKey.from_cryptography(private_key.public_key())

    @property
    def private_key(self) -> Optional[PrivateKeyTypes]:
        return self._private_key

    @property
    def is_discarded(self) -> bool:
        return self._private_key is None

    @property
    def key_type(self) -> str:
        return self.public_key.key_type

    @property
    def fingerprint(self) -> str:
        return self.public_key.fingerprint

    def discard(self) -> None:
        """Drop the reference to the private key."""
        self._private_key = None

    def __enter__(self) -> 'SigningKey':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.discard()

    def __repr__(self) -> str:
        state = "discarded" if self.is_discarded else "loaded"
        return f"SigningKey({self.key_type} {self.fingerprint}, {state})"
