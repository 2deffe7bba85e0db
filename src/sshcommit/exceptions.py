"""
Exceptions Module

Error taxonomy for commit signing and verification. Every failure kind has
its own class so a command line layer can tell "wrong passphrase" apart from
"unsupported key type" without the core making UI decisions.
"""

from typing import List, Optional


class CommitSigningError(Exception):
    """Base exception for commit signing errors.

    Args:
        message: Error description.
        errors: Optional list of detailed error messages.
    """

    errors: Optional[List[str]]

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors

    def __str__(self) -> str:
        s = super().__str__()
        if self.errors:
            s = '%s: (%s)' % (s, ', '.join(self.errors))
        return s


class KeyNotFoundError(CommitSigningError, FileNotFoundError):
    """The private key path does not resolve to a readable file."""


class UnsupportedKeyFormatError(CommitSigningError):
    """The key file encoding or key algorithm is not recognized."""


class DecryptionFailedError(CommitSigningError):
    """The supplied passphrase did not decrypt the private key."""


class SigningFailedError(CommitSigningError):
    """The underlying private key operation failed."""


class EmbeddingFailedError(CommitSigningError):
    """The commit payload is structurally malformed for embedding."""


class MalformedSignatureBlockError(CommitSigningError, ValueError):
    """The signature header is missing or cannot be parsed."""


class UnknownSignerError(CommitSigningError):
    """No trusted key matches the key embedded in the signature."""


class InvalidSignatureError(CommitSigningError):
    """The signer is trusted but the cryptographic check failed."""
