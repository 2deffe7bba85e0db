"""
sshcommit - Signing Module

This module loads SSH private keys and produces detached SSHSIG signatures
over commit payloads.
"""

from .key_loader import KeyLoader
from .passphrase import CachedPassphrase, EnvironmentPassphrase, PromptPassphrase, StaticPassphrase
from .ssh_keys import SigningKey, SSHPublicKey
from .sshsig import DetachedSignature, SignatureEngine

__all__ = [
    'KeyLoader',
    'SigningKey',
    'SSHPublicKey',
    'DetachedSignature',
    'SignatureEngine',
    'StaticPassphrase',
    'PromptPassphrase',
    'EnvironmentPassphrase',
    'CachedPassphrase',
]
