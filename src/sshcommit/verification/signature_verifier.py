"""
Signature Verifier Module

Verifies signed commit objects: extracts the signature header, rebuilds the
unsigned payload, and checks the SSH signature against a set of trusted keys.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from ..commit.signature_embedder import GPGSIG_HEADER, SignatureEmbedder
from ..exceptions import (
    InvalidSignatureError,
    MalformedSignatureBlockError,
    UnknownSignerError,
)
from ..signing.ssh_keys import SSHPublicKey
from ..signing.sshsig import GIT_NAMESPACE, DetachedSignature
from .allowed_signers import AllowedSigners
from .signature_format import SIGNATURE_FORMAT_SSH, detect_signature_format

logger = logging.getLogger(__name__)

TrustedKeys = Union[AllowedSigners, Iterable[Union[SSHPublicKey, str]]]
FallbackVerifier = Callable[[bytes, bytes, str], Tuple[bool, Optional[str]]]


class VerificationStatus(Enum):
    VALID = "valid"
    INVALID = "invalid"
    UNKNOWN_SIGNER = "unknown_signer"


class VerificationResult:
    """Result of verifying a signed commit object."""

    def __init__(self,
                 status: VerificationStatus,
                 message: str = "",
                 signer: Optional[SSHPublicKey] = None,
                 fingerprint: Optional[str] = None,
                 signature_format: str = SIGNATURE_FORMAT_SSH,
                 principals: Optional[List[str]] = None):
        self.status = status
        self.message = message
        self.signer = signer
        self.fingerprint = fingerprint
        self.signature_format = signature_format
        self.principals = principals or []

    @property
    def is_valid(self) -> bool:
        return self.status is VerificationStatus.VALID

    def raise_for_status(self) -> 'VerificationResult':
        """Raise InvalidSignatureError or UnknownSignerError unless valid."""
        if self.status is VerificationStatus.UNKNOWN_SIGNER:
            raise UnknownSignerError(self.message)
        if self.status is VerificationStatus.INVALID:
            raise InvalidSignatureError(self.message)
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert verification result to dictionary."""
        return {
            'status': self.status.value,
            'is_valid': self.is_valid,
            'message': self.message,
            'signer': self.signer.to_openssh() if self.signer else None,
            'fingerprint': self.fingerprint,
            'signature_format': self.signature_format,
            'principals': self.principals,
        }

    def __repr__(self) -> str:
        return f"VerificationResult({self.status.value}, {self.fingerprint})"


def _normalize_trusted(trusted_keys: TrustedKeys, namespace: str) -> List[SSHPublicKey]:
    if isinstance(trusted_keys, AllowedSigners):
        return list(trusted_keys.keys_for_namespace(namespace))
    keys = []
    for key in trusted_keys:
        if isinstance(key, SSHPublicKey):
            keys.append(key)
        else:
            keys.append(SSHPublicKey.from_openssh(key))
    return keys


class SignatureVerifier:
    """Verifies SSH signatures embedded in commit objects."""

    def __init__(self,
                 namespace: str = GIT_NAMESPACE,
                 header_field: str = GPGSIG_HEADER,
                 fallback: Optional[FallbackVerifier] = None):
        """
        Initialize the verifier.

        Args:
            namespace: Namespace the signature must have been made for
            header_field: Signature header to read
            fallback: Called as ``fallback(payload, signature, format)`` for
                non-SSH signatures, returning (is_valid, message)
        """
        self.namespace = namespace
        self.embedder = SignatureEmbedder(header_field)
        self.fallback = fallback

    def verify(self, signed_object: bytes, trusted_keys: TrustedKeys) -> VerificationResult:
        """
        Verify a signed commit object.

        Args:
            signed_object: Raw commit object bytes carrying a signature header
            trusted_keys: SSHPublicKey objects, OpenSSH public key lines,
                or an AllowedSigners store

        Returns:
            VerificationResult with status VALID, INVALID or UNKNOWN_SIGNER

        Raises:
            MalformedSignatureBlockError: no signature header, or one that
                cannot be parsed
        """
        payload, armored = self.embedder.extract(signed_object)
        if armored is None:
            raise MalformedSignatureBlockError(
                f"Commit object carries no {self.embedder.header_field} header"
            )

        try:
            signature_format = detect_signature_format(armored)
        except ValueError as exc:
            raise MalformedSignatureBlockError(str(exc)) from exc

        if signature_format != SIGNATURE_FORMAT_SSH:
            return self._verify_foreign(payload, armored, signature_format)

        signature = DetachedSignature.from_armored(armored)
        signer = signature.public_key
        logger.debug('Commit signed by %s (%s, namespace %s)',
                      signer.fingerprint, signature.hash_algorithm, signature.namespace)

        candidates = [key for key in _normalize_trusted(trusted_keys, self.namespace)
                      if key.fingerprint == signer.fingerprint]
        if not candidates:
            return VerificationResult(
                status=VerificationStatus.UNKNOWN_SIGNER,
                message=f"No trusted key matches signer {signer.fingerprint}",
                fingerprint=signer.fingerprint
            )

        principals = []
        if isinstance(trusted_keys, AllowedSigners):
            principals = trusted_keys.principals_for(signer)

        for key in candidates:
            if signature.verify(payload, key, self.namespace):
                return VerificationResult(
                    status=VerificationStatus.VALID,
                    message="Signature verification successful",
                    signer=key,
                    fingerprint=key.fingerprint,
                    principals=principals
                )

        return VerificationResult(
            status=VerificationStatus.INVALID,
            message=f"Signature by {signer.fingerprint} does not match the commit contents",
            fingerprint=signer.fingerprint,
            principals=principals
        )

    def _verify_foreign(self, payload: bytes, armored: bytes, signature_format: str) -> VerificationResult:
        if self.fallback is None:
            raise MalformedSignatureBlockError(
                f"Commit carries a {signature_format} signature and no fallback verifier is configured"
            )
        logger.debug('Delegating %s signature to fallback verifier', signature_format)
        is_valid, detail = self.fallback(payload, armored, signature_format)
        return VerificationResult(
            status=VerificationStatus.VALID if is_valid else VerificationStatus.INVALID,
            message=detail or "",
            signature_format=signature_format
        )

    def verify_many(self, signed_objects: List[bytes], trusted_keys: TrustedKeys) -> List[VerificationResult]:
        """Verify several commit objects against the same trust set."""
        results = []
        for signed_object in signed_objects:
            try:
                results.append(self.verify(signed_object, trusted_keys))
            except MalformedSignatureBlockError as e:
                results.append(VerificationResult(status=VerificationStatus.INVALID, message=str(e)))
        return results

    @staticmethod
    def get_verification_summary(results: List[VerificationResult]) -> Dict[str, Any]:
        total = len(results)
        valid = sum(1 for result in results if result.is_valid)
        unknown = sum(1 for result in results if result.status is VerificationStatus.UNKNOWN_SIGNER)
        return {
            'total_verified': total,
            'valid_signatures': valid,
            'invalid_signatures': total - valid - unknown,
            'unknown_signers': unknown,
            'signers': sorted({r.fingerprint for r in results if r.is_valid and r.fingerprint}),
        }


def verify(signed_object: bytes, trusted_keys: TrustedKeys) -> VerificationResult:
    """Verify ``signed_object`` in the ``git`` namespace."""
    return SignatureVerifier().verify(signed_object, trusted_keys)
