"""
Signature Embedder Module

Splices an armored signature into a commit payload as a multi-line header
field, and reverses the operation for verification. The header field is the
conventional ``gpgsig`` key: the object format makes no distinction between
SSH and OpenPGP signatures.
"""

import logging
import re
from typing import List, Optional, Tuple, Union

from ..exceptions import EmbeddingFailedError
from ..signing.sshsig import DetachedSignature
from .payload_builder import AUTHOR_HEADER, COMMITTER_HEADER, TREE_HEADER

logger = logging.getLogger(__name__)

GPGSIG_HEADER = 'gpgsig'
GPGSIG_SHA256_HEADER = 'gpgsig-sha256'
SIGNATURE_HEADERS = (GPGSIG_HEADER, GPGSIG_SHA256_HEADER)

CONTINUATION = b' '
_LINE_END_RE = re.compile(rb'(?<=\n)')

SignatureInput = Union[DetachedSignature, str, bytes]


def _split_header(raw: bytes) -> Optional[int]:
    """Return the offset just past the last header line, or None."""
    end = raw.find(b'\n\n')
    if end < 0:
        return None
    return end + 1


def _header_lines(header: bytes) -> List[bytes]:
    """Split after each LF only; a CR inside an identity is not a line break."""
    return [line for line in _LINE_END_RE.split(header) if line]


def _armored_bytes(signature: SignatureInput) -> bytes:
    if isinstance(signature, DetachedSignature):
        signature = signature.armor()
    if isinstance(signature, str):
        signature = signature.encode('ascii')
    return signature


def format_signature_header(field: str, signature: SignatureInput) -> bytes:
    """
    Fold an armored signature into a header field.

    The first armor line follows the field name; every following line is
    prefixed with a single space continuation marker.
    """
    text = _armored_bytes(signature).strip(b'\n')
    if not text:
        raise EmbeddingFailedError("Refusing to embed an empty signature")
    lines = text.split(b'\n')
    block = [field.encode('ascii') + b' ' + lines[0] + b'\n']
    block.extend(CONTINUATION + line + b'\n' for line in lines[1:])
    return b''.join(block)


class SignatureEmbedder:
    """Embeds and extracts commit signature headers."""

    def __init__(self, header_field: str = GPGSIG_HEADER):
        """
        Initialize the embedder.

        Args:
            header_field: 'gpgsig' for SHA-1 repositories, 'gpgsig-sha256'
                for SHA-256 object-format repositories
        """
        if header_field not in SIGNATURE_HEADERS:
            raise ValueError(f"Unsupported signature header: {header_field}")
        self.header_field = header_field

    def _check_structure(self, raw: bytes) -> int:
        header_end = _split_header(raw)
        if header_end is None:
            raise EmbeddingFailedError("Commit payload has no header/message separator")

        fields = [line.split(b' ', 1)[0] for line in _header_lines(raw[:header_end])
                  if not line.startswith(CONTINUATION)]
        if not fields or fields[0] != TREE_HEADER:
            raise EmbeddingFailedError("Commit payload must start with a tree line")
        missing = [f.decode() for f in (AUTHOR_HEADER, COMMITTER_HEADER) if f not in fields]
        if missing:
            raise EmbeddingFailedError("Commit payload is missing header lines", errors=missing)
        if self.header_field.encode('ascii') in fields:
            raise EmbeddingFailedError(f"Commit payload already carries a {self.header_field} header")
        return header_end

    def embed(self, payload: bytes, signature: SignatureInput) -> bytes:
        """
        Insert the signature header before the blank line ending the headers.

        Args:
            payload: Unsigned commit payload bytes
            signature: DetachedSignature or armored signature text

        Returns:
            Signed commit object bytes

        Raises:
            EmbeddingFailedError: the payload is structurally malformed
        """
        header_end = self._check_structure(payload)
        block = format_signature_header(self.header_field, signature)
        logger.debug('Embedding %d byte %s header at offset %d', len(block), self.header_field, header_end)
        return payload[:header_end] + block + payload[header_end:]

    def extract(self, signed_object: bytes) -> Tuple[bytes, Optional[bytes]]:
        """
        Split a signed commit into its unsigned payload and signature.

        Only the header region is inspected. Other multi-line headers, such
        as ``mergetag``, are kept in the payload untouched.

        Returns:
            Tuple of (payload bytes, armored signature or None if unsigned)
        """
        header_end = _split_header(signed_object)
        if header_end is None:
            return signed_object, None

        prefix = self.header_field.encode('ascii') + b' '
        kept: List[bytes] = []
        signature_lines: List[bytes] = []
        in_signature = False
        found = False

        for line in _header_lines(signed_object[:header_end]):
            if in_signature and line.startswith(CONTINUATION):
                signature_lines.append(line[len(CONTINUATION):])
                continue
            in_signature = False
            if line.startswith(prefix) and not found:
                found = True
                in_signature = True
                signature_lines.append(line[len(prefix):])
                continue
            kept.append(line)

        if not found:
            return signed_object, None
        return b''.join(kept) + signed_object[header_end:], b''.join(signature_lines)

    def strip_signature(self, signed_object: bytes) -> bytes:
        """Return the payload with the signature header removed."""
        payload, _signature = self.extract(signed_object)
        return payload


def embed(payload: bytes, signature: SignatureInput) -> bytes:
    """Embed ``signature`` under the ``gpgsig`` header."""
    return SignatureEmbedder().embed(payload, signature)
