"""
Signature Format Module

The commit signature header carries SSH, OpenPGP or X.509 signatures under
the same key. Format detection and the ``gpg`` command vendor come from
dulwich; non-SSH signatures are handed to the vendor as a fallback verifier.
"""

import logging
from typing import Iterable, Optional, Tuple

from dulwich.signature import (
    SIGNATURE_FORMAT_OPENPGP,
    SIGNATURE_FORMAT_SSH,
    SIGNATURE_FORMAT_X509,
    GPGCliSignatureVendor,
    SignatureVerificationError,
    detect_signature_format,
)

logger = logging.getLogger(__name__)

__all__ = [
    'SIGNATURE_FORMAT_OPENPGP',
    'SIGNATURE_FORMAT_SSH',
    'SIGNATURE_FORMAT_X509',
    'GPGCliVerifier',
    'detect_signature_format',
]


class GPGCliVerifier:
    """
    Fallback verifier for OpenPGP-signed commits.

    Instances are callables taking (payload, signature, signature_format)
    and returning (is_valid, message). A missing ``gpg`` binary is not a
    verification verdict, so the OSError from starting it propagates.
    """

    def __init__(self, gpg_command: str = "gpg", keyids: Optional[Iterable[str]] = None):
        """
        Initialize the fallback verifier.

        Args:
            gpg_command: Path to the gpg program
            keyids: Trusted OpenPGP key ids; any key gpg trusts when omitted
        """
        self.vendor = GPGCliSignatureVendor(gpg_command=gpg_command, keyids=keyids)

    @property
    def gpg_command(self) -> str:
        return self.vendor.gpg_command

    def __call__(self, payload: bytes, signature: bytes, signature_format: str) -> Tuple[bool, str]:
        if signature_format != SIGNATURE_FORMAT_OPENPGP:
            return False, f"{signature_format} signatures are not supported by {self.gpg_command}"

        logger.debug('Verifying OpenPGP signature with %s', self.gpg_command)
        try:
            self.vendor.verify(payload, signature)
        except SignatureVerificationError as exc:
            # BadSignature and UntrustedSignature alike
            return False, str(exc).strip()
        return True, f"Good OpenPGP signature (checked by {self.gpg_command})"
