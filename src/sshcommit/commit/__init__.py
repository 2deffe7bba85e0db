"""
sshcommit - Commit Module

Canonical commit payload serialization and signature header embedding.
"""

from .payload_builder import CommitPayload, Identity, build
from .signature_embedder import SignatureEmbedder, embed

__all__ = ['CommitPayload', 'Identity', 'build', 'SignatureEmbedder', 'embed']
