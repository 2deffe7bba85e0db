"""
sshcommit - Verification Module

This module verifies SSH-signed commit objects against trusted keys.
"""

from .allowed_signers import AllowedSigners
from .signature_format import GPGCliVerifier, detect_signature_format
from .signature_verifier import SignatureVerifier, VerificationResult, VerificationStatus, verify

__all__ = [
    'AllowedSigners',
    'GPGCliVerifier',
    'SignatureVerifier',
    'VerificationResult',
    'VerificationStatus',
    'detect_signature_format',
    'verify',
]
