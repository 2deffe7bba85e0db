"""
SSH Signature Module

Produces and parses detached signatures in the OpenSSH "SSHSIG" format, the
format written by ``ssh-keygen -Y sign`` and accepted by ``git`` for commits
signed with ``gpg.format=ssh``.

The signature never covers the payload directly. It covers a wrapper binding
a namespace token and a digest of the payload::

    "SSHSIG" || string(namespace) || string(reserved) ||
    string(hash_algorithm) || string(H(payload))
"""

import base64
import binascii
import hashlib
import logging
from typing import Optional, Union

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)

from ..exceptions import MalformedSignatureBlockError, SigningFailedError
from .ssh_keys import PublicKeyTypes, SigningKey, SSHPublicKey
from .wire import SSHReader, encode_mpint, encode_string, encode_uint32

logger = logging.getLogger(__name__)

MAGIC_PREAMBLE = b'SSHSIG'
SIG_VERSION = 1
GIT_NAMESPACE = 'git'

BEGIN_MARKER = '-----BEGIN SSH SIGNATURE-----'
END_MARKER = '-----END SSH SIGNATURE-----'
LINE_WIDTH = 70

HASH_ALGORITHMS = {
    'sha256': hashlib.sha256,
    'sha512': hashlib.sha512,
}
DEFAULT_HASH_ALGORITHM = 'sha256'

# curve name -> (SSH key type, digest used by ECDSA)
ECDSA_CURVES = {
    'secp256r1': ('ecdsa-sha2-nistp256', hashes.SHA256),
    'secp384r1': ('ecdsa-sha2-nistp384', hashes.SHA384),
    'secp521r1': ('ecdsa-sha2-nistp521', hashes.SHA512),
}
RSA_SIGNATURE_ALGORITHMS = {
    'rsa-sha2-256': hashes.SHA256,
    'rsa-sha2-512': hashes.SHA512,
}
RSA_DEFAULT_SIGNATURE_ALGORITHM = 'rsa-sha2-512'


def signed_data(payload: bytes, namespace: str, hash_algorithm: str, reserved: bytes = b'') -> bytes:
    """Build the namespaced, hashed wrapper that is actually signed."""
    if hash_algorithm not in HASH_ALGORITHMS:
        raise ValueError(f"Unsupported hash algorithm: {hash_algorithm}")
    digest = HASH_ALGORITHMS[hash_algorithm](payload).digest()
    return (MAGIC_PREAMBLE
            + encode_string(namespace)
            + encode_string(reserved)
            + encode_string(hash_algorithm)
            + encode_string(digest))


class DetachedSignature:
    """An SSHSIG detached signature."""

    def __init__(self,
                 public_key_blob: bytes,
                 namespace: str,
                 hash_algorithm: str,
                 signature_blob: bytes,
                 reserved: bytes = b'',
                 version: int = SIG_VERSION):
        self.public_key_blob = public_key_blob
        self.namespace = namespace
        self.hash_algorithm = hash_algorithm
        self.signature_blob = signature_blob
        self.reserved = reserved
        self.version = version

    @property
    def public_key(self) -> SSHPublicKey:
        return SSHPublicKey(self.public_key_blob)

    @property
    def fingerprint(self) -> str:
        return self.public_key.fingerprint

    @property
    def signature_algorithm(self) -> str:
        return SSHReader(self.signature_blob).read_text()

    def to_bytes(self) -> bytes:
        """Serialize to the SSHSIG binary structure."""
        return (MAGIC_PREAMBLE
                + encode_uint32(self.version)
                + encode_string(self.public_key_blob)
                + encode_string(self.namespace)
                + encode_string(self.reserved)
                + encode_string(self.hash_algorithm)
                + encode_string(self.signature_blob))

    def armor(self) -> str:
        """
        Serialize to the armored text form.

        Base64 lines are folded at 70 columns, as ``ssh-keygen`` writes them.
        The result ends with a newline.
        """
        b64 = base64.b64encode(self.to_bytes()).decode('ascii')
        lines = [BEGIN_MARKER]
        lines.extend(b64[i:i + LINE_WIDTH] for i in range(0, len(b64), LINE_WIDTH))
        lines.append(END_MARKER)
        return '\n'.join(lines) + '\n'

    @classmethod
    def from_bytes(cls, data: bytes) -> 'DetachedSignature':
        """Parse the SSHSIG binary structure."""
        try:
            reader = SSHReader(data)
            if reader.read_raw(len(MAGIC_PREAMBLE)) != MAGIC_PREAMBLE:
                raise MalformedSignatureBlockError("Missing SSHSIG magic preamble")
            version = reader.read_uint32()
            if version != SIG_VERSION:
                raise MalformedSignatureBlockError(f"Unsupported SSHSIG version: {version}")
            public_key_blob = reader.read_string()
            SSHPublicKey(public_key_blob)
            namespace = reader.read_text()
            reserved = reader.read_string()
            hash_algorithm = reader.read_text()
            signature_blob = reader.read_string()
            reader.expect_end()
        except MalformedSignatureBlockError:
            raise
        except ValueError as exc:
            raise MalformedSignatureBlockError(f"Corrupt SSHSIG structure: {exc}") from exc

        if hash_algorithm not in HASH_ALGORITHMS:
            raise MalformedSignatureBlockError(f"Unsupported hash algorithm: {hash_algorithm}")

        return cls(public_key_blob=public_key_blob,
                   namespace=namespace,
                   hash_algorithm=hash_algorithm,
                   signature_blob=signature_blob,
                   reserved=reserved,
                   version=version)

    @classmethod
    def from_armored(cls, text: Union[str, bytes]) -> 'DetachedSignature':
        """Parse an armored ``-----BEGIN SSH SIGNATURE-----`` block."""
        if isinstance(text, bytes):
            try:
                text = text.decode('ascii')
            except UnicodeDecodeError as exc:
                raise MalformedSignatureBlockError("Signature block is not ASCII") from exc

        lines = [line.strip() for line in text.strip().splitlines()]
        if len(lines) < 3 or lines[0] != BEGIN_MARKER or lines[-1] != END_MARKER:
            raise MalformedSignatureBlockError("Missing SSH signature armor markers")
        try:
            data = base64.b64decode(''.join(lines[1:-1]), validate=True)
        except binascii.Error as exc:
            raise MalformedSignatureBlockError("Invalid base64 in SSH signature") from exc
        return cls.from_bytes(data)

    def verify(self, payload: bytes, public_key: SSHPublicKey, namespace: str = GIT_NAMESPACE) -> bool:
        """
        Check the signature over ``payload`` with ``public_key``.

        The wrapper is rebuilt with the caller's ``namespace`` so a signature
        made for another namespace fails here.

        Returns:
            True if the signature is valid, False otherwise
        """
        message = signed_data(payload, namespace, self.hash_algorithm)
        try:
            _verify_blob(public_key, self.signature_blob, message)
        except (InvalidSignature, UnsupportedAlgorithm, ValueError) as exc:
            logger.debug('Signature check failed for %s: %s', public_key.fingerprint, exc)
            return False
        return True

    def __repr__(self) -> str:
        return (f"DetachedSignature({self.signature_algorithm}, {self.fingerprint}, "
                f"namespace={self.namespace!r}, hash={self.hash_algorithm})")


def _verify_blob(public_key: SSHPublicKey, signature_blob: bytes, message: bytes) -> None:
    """Raise InvalidSignature or ValueError unless the SSH signature blob checks out."""
    reader = SSHReader(signature_blob)
    algorithm = reader.read_text()
    raw = reader.read_string()
    key: PublicKeyTypes = public_key.to_cryptography()

    if isinstance(key, ed25519.Ed25519PublicKey):
        if algorithm != 'ssh-ed25519':
            raise ValueError(f"Signature algorithm {algorithm} does not match ed25519 key")
        key.verify(raw, message)
    elif isinstance(key, ec.EllipticCurvePublicKey):
        key_type, digest = ECDSA_CURVES[key.curve.name]
        if algorithm != key_type:
            raise ValueError(f"Signature algorithm {algorithm} does not match {key_type} key")
        inner = SSHReader(raw)
        r, s = inner.read_mpint(), inner.read_mpint()
        key.verify(encode_dss_signature(r, s), message, ec.ECDSA(digest()))
    elif isinstance(key, rsa.RSAPublicKey):
        if algorithm not in RSA_SIGNATURE_ALGORITHMS:
            raise ValueError(f"Unsupported RSA signature algorithm: {algorithm}")
        key.verify(raw, message, padding.PKCS1v15(), RSA_SIGNATURE_ALGORITHMS[algorithm]())
    else:
        raise ValueError(f"Unsupported public key type: {public_key.key_type}")


class SignatureEngine:
    """Creates SSHSIG detached signatures with a loaded private key."""

    def __init__(self, hash_algorithm: str = DEFAULT_HASH_ALGORITHM):
        """
        Initialize the signature engine.

        Args:
            hash_algorithm: Payload digest, 'sha256' (default) or 'sha512'
        """
        if hash_algorithm not in HASH_ALGORITHMS:
            raise ValueError(
                f"Unsupported hash algorithm: {hash_algorithm}. "
                f"Supported: {sorted(HASH_ALGORITHMS)}"
            )
        self.hash_algorithm = hash_algorithm

    def sign(self, key: SigningKey, payload: bytes, namespace: str = GIT_NAMESPACE) -> DetachedSignature:
        """
        Sign a payload.

        Args:
            key: Loaded signing key
            payload: Exact bytes to authenticate
            namespace: Namespace token bound into the signature

        Returns:
            DetachedSignature

        Raises:
            SigningFailedError: the key is discarded, of an unsupported type,
                or the key operation failed
        """
        if not namespace:
            raise ValueError("Namespace must not be empty")
        private_key = key.private_key
        if private_key is None:
            raise SigningFailedError("Signing key has already been discarded")

        message = signed_data(payload, namespace, self.hash_algorithm)
        try:
            signature_blob = self._sign_blob(private_key, message)
        except SigningFailedError:
            raise
        except Exception as exc:
            raise SigningFailedError(f"{key.key_type} signing operation failed: {exc}") from exc

        logger.debug('Signed %d byte payload with %s (%s, namespace %s)',
                     len(payload), key.fingerprint, self.hash_algorithm, namespace)
        return DetachedSignature(public_key_blob=key.public_key.blob,
                                 namespace=namespace,
                                 hash_algorithm=self.hash_algorithm,
                                 signature_blob=signature_blob)

    def _sign_blob(self, private_key, message: bytes) -> bytes:
        """Sign with the key's algorithm and wrap it as an SSH signature blob."""
        if isinstance(private_key, ed25519.Ed25519PrivateKey):
            return self._sign_with_ed25519(private_key, message)
        elif isinstance(private_key, ec.EllipticCurvePrivateKey):
            return self._sign_with_ecdsa(private_key, message)
        elif isinstance(private_key, rsa.RSAPrivateKey):
            return self._sign_with_rsa(private_key, message)
        else:
            raise SigningFailedError(f"Unsupported key type for SSH signatures: {type(private_key).__name__}")

    def _sign_with_ed25519(self, private_key: ed25519.Ed25519PrivateKey, message: bytes) -> bytes:
        signature = private_key.sign(message)
        return encode_string('ssh-ed25519') + encode_string(signature)

    def _sign_with_ecdsa(self, private_key: ec.EllipticCurvePrivateKey, message: bytes) -> bytes:
        curve = private_key.curve.name
        if curve not in ECDSA_CURVES:
            raise SigningFailedError(f"Unsupported elliptic curve: {curve}")
        key_type, digest = ECDSA_CURVES[curve]
        der = private_key.sign(message, ec.ECDSA(digest()))
        r, s = decode_dss_signature(der)
        return encode_string(key_type) + encode_string(encode_mpint(r) + encode_mpint(s))

    def _sign_with_rsa(self, private_key: rsa.RSAPrivateKey, message: bytes) -> bytes:
        algorithm = RSA_DEFAULT_SIGNATURE_ALGORITHM
        signature = private_key.sign(message, padding.PKCS1v15(), RSA_SIGNATURE_ALGORITHMS[algorithm]())
        return encode_string(algorithm) + encode_string(signature)


def sign(key: SigningKey,
         payload: bytes,
         namespace: str = GIT_NAMESPACE,
         hash_algorithm: Optional[str] = None) -> DetachedSignature:
    """Sign ``payload`` with a default-configured engine."""
    return SignatureEngine(hash_algorithm or DEFAULT_HASH_ALGORITHM).sign(key, payload, namespace)
