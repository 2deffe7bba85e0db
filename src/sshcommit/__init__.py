"""
sshcommit - SSH signing for git commit objects

Loads an SSH private key, signs the canonical commit payload with an SSHSIG
signature, embeds it under the ``gpgsig`` header, and verifies such commits
against a set of trusted keys.
"""

__version__ = '0.1.0'

from .commit import CommitPayload, Identity, SignatureEmbedder
from .config import SigningConfig
from .exceptions import (
    CommitSigningError,
    DecryptionFailedError,
    EmbeddingFailedError,
    InvalidSignatureError,
    KeyNotFoundError,
    MalformedSignatureBlockError,
    SigningFailedError,
    UnknownSignerError,
    UnsupportedKeyFormatError,
)
from .pipeline import CommitSigner, SignedCommit
from .signing import DetachedSignature, KeyLoader, SignatureEngine, SigningKey, SSHPublicKey
from .storage import DulwichObjectWriter, InMemoryObjectWriter, ObjectWriter
from .verification import AllowedSigners, SignatureVerifier, VerificationResult, VerificationStatus

__all__ = [
    '__version__',
    'CommitPayload',
    'Identity',
    'SignatureEmbedder',
    'SigningConfig',
    'CommitSigner',
    'SignedCommit',
    'KeyLoader',
    'SigningKey',
    'SSHPublicKey',
    'DetachedSignature',
    'SignatureEngine',
    'ObjectWriter',
    'InMemoryObjectWriter',
    'DulwichObjectWriter',
    'AllowedSigners',
    'SignatureVerifier',
    'VerificationResult',
    'VerificationStatus',
    'CommitSigningError',
    'KeyNotFoundError',
    'UnsupportedKeyFormatError',
    'DecryptionFailedError',
    'SigningFailedError',
    'EmbeddingFailedError',
    'MalformedSignatureBlockError',
    'UnknownSignerError',
    'InvalidSignatureError',
]
