"""
Commit Signing Pipeline

Ties the components together: load key, build payload, sign, embed, and
optionally store the object and move a reference.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Union

from .commit.payload_builder import CommitPayload, Identity
from .commit.signature_embedder import SignatureEmbedder
from .config import SigningConfig
from .signing.key_loader import KeyLoader
from .signing.passphrase import PassphraseSupplier
from .signing.ssh_keys import SigningKey
from .signing.sshsig import DetachedSignature, SignatureEngine
from .storage.object_writer import HEAD_REF, ObjectWriter

logger = logging.getLogger(__name__)


class SignedCommit:
    """A signed commit object ready to be written."""

    def __init__(self, payload: bytes, signature: DetachedSignature, raw: bytes):
        self.payload = payload
        self.signature = signature
        self.raw = raw

    @property
    def fingerprint(self) -> str:
        return self.signature.fingerprint

    def to_dict(self) -> Dict[str, Any]:
        return {
            'fingerprint': self.fingerprint,
            'signature_algorithm': self.signature.signature_algorithm,
            'hash_algorithm': self.signature.hash_algorithm,
            'namespace': self.signature.namespace,
            'size': len(self.raw),
        }


class CommitSigner:
    """Signs commits with an SSH key."""

    def __init__(self,
                 config: Optional[SigningConfig] = None,
                 key_loader: Optional[KeyLoader] = None,
                 engine: Optional[SignatureEngine] = None,
                 embedder: Optional[SignatureEmbedder] = None):
        """
        Initialize the commit signer.

        Args:
            config: Signing settings (default: built-in defaults)
            key_loader: Key loader (default: searches ``~/.ssh``)
            engine: Signature engine (default: from ``config.hash_algorithm``)
            embedder: Signature embedder (default: from ``config.header_field``)
        """
        self.config = config or SigningConfig()
        self.key_loader = key_loader or KeyLoader()
        self.engine = engine or SignatureEngine(self.config.hash_algorithm)
        self.embedder = embedder or SignatureEmbedder(self.config.header_field)

    def sign_payload(self, payload: bytes, key: SigningKey) -> SignedCommit:
        """Sign an already-built payload and embed the signature."""
        signature = self.engine.sign(key, payload, self.config.namespace)
        raw = self.embedder.embed(payload, signature)
        return SignedCommit(payload, signature, raw)

    def load_key(self,
                 key_path: Optional[Union[str, Path]] = None,
                 passphrase_supplier: Optional[PassphraseSupplier] = None) -> SigningKey:
        """Load the signing key (``config.key_path`` or the key store default)."""
        return self.key_loader.load(key_path or self.config.key_path, passphrase_supplier)

    def sign_commit(self,
                    tree_id: str,
                    parent_ids: Sequence[str],
                    author: Union[Identity, str],
                    committer: Union[Identity, str],
                    message: Union[bytes, str],
                    key_path: Optional[Union[str, Path]] = None,
                    passphrase_supplier: Optional[PassphraseSupplier] = None,
                    key: Optional[SigningKey] = None) -> SignedCommit:
        """
        Build and sign a commit object.

        Unless an already loaded ``key`` is passed, the key is loaded for this
        call only and discarded afterwards, also when signing fails. A passed
        key stays owned by the caller.

        Returns:
            SignedCommit
        """
        payload = CommitPayload(tree_id, parent_ids, author, committer, message).to_bytes()
        if key is not None:
            signed = self.sign_payload(payload, key)
        else:
            with self.load_key(key_path, passphrase_supplier) as loaded:
                signed = self.sign_payload(payload, loaded)
        logger.debug('Signed commit on tree %s with %s', tree_id, signed.fingerprint)
        return signed

    def commit(self,
               writer: ObjectWriter,
               tree_id: str,
               parent_ids: Sequence[str],
               author: Union[Identity, str],
               committer: Union[Identity, str],
               message: Union[bytes, str],
               key_path: Optional[Union[str, Path]] = None,
               passphrase_supplier: Optional[PassphraseSupplier] = None,
               ref_name: str = HEAD_REF,
               key: Optional[SigningKey] = None) -> str:
        """
        Sign a commit, store it, and point ``ref_name`` at it.

        Returns:
            The new commit id
        """
        signed = self.sign_commit(tree_id, parent_ids, author, committer, message,
                                  key_path=key_path, passphrase_supplier=passphrase_supplier,
                                  key=key)
        commit_id = writer.write_commit(signed.raw)
        writer.update_ref(ref_name, commit_id)
        logger.info('Created signed commit %s on %s', commit_id, ref_name)
        return commit_id
