"""
Commit Payload Builder Module

Assembles the canonical, signature-free serialization of a commit object.
These exact bytes are what the signature engine signs, so serialization is a
pure function of the commit fields.
"""

import re
import time
from datetime import datetime
from typing import List, Optional, Sequence, Union

from dulwich.objects import format_timezone, parse_timezone

_HEX_RE = re.compile(r'^[0-9a-f]+$')
_IDENTITY_RE = re.compile(r'^(?P<name>[^<>\n]*?) ?<(?P<email>[^<>\n]*)> (?P<time>-?\d+) (?P<tz>[+-]\d{4})$')
_TZ_RE = re.compile(r'^[+-][0-9]{4}$')

OBJECT_ID_LENGTHS = (40, 64)  # SHA-1 and SHA-256 object formats

TREE_HEADER = b'tree'
PARENT_HEADER = b'parent'
AUTHOR_HEADER = b'author'
COMMITTER_HEADER = b'committer'
ENCODING_HEADER = b'encoding'


def _format_tz(offset: int, negative_utc: bool = False) -> str:
    tz = format_timezone(offset, negative_utc and offset == 0).decode('ascii')
    if len(tz) != 5:
        raise ValueError(f"Timezone offset out of range: {offset}")
    return tz


def _parse_tz(text: str):
    """Parse ``+hhmm``/``-hhmm`` into (seconds east of UTC, negative_utc)."""
    if not _TZ_RE.match(text) or int(text[3:5]) > 59:
        raise ValueError(f"Invalid timezone: {text!r}")
    return parse_timezone(text.encode('ascii'))


def validate_object_id(object_id: str, what: str = 'object id') -> str:
    if not isinstance(object_id, str):
        raise ValueError(f"{what} must be a hex string, got {type(object_id).__name__}")
    if len(object_id) not in OBJECT_ID_LENGTHS or not _HEX_RE.match(object_id):
        raise ValueError(f"Malformed {what}: {object_id!r}")
    return object_id


class Identity:
    """An author or committer: name, email and a timestamp with timezone."""

    def __init__(self,
                 name: str,
                 email: str,
                 timestamp: int,
                 tz_offset: int = 0,
                 negative_utc: bool = False):
        for label, value in (('name', name), ('email', email)):
            if any(c in value for c in '<>\n'):
                raise ValueError(f"Identity {label} must not contain '<', '>' or newlines: {value!r}")
        if not name.strip():
            # git refuses empty ident names too
            raise ValueError("Identity name must not be empty")
        self.name = name
        self.email = email
        self.timestamp = int(timestamp)
        self.tz_offset = tz_offset
        self.negative_utc = negative_utc
        _format_tz(tz_offset)

    @classmethod
    def now(cls, name: str, email: str) -> 'Identity':
        """Stamp the current time in the local timezone."""
        timestamp = int(time.time())
        offset = datetime.fromtimestamp(timestamp).astimezone().utcoffset()
        return cls(name, email, timestamp, int(offset.total_seconds()) if offset else 0)

    @classmethod
    def parse(cls, text: str) -> 'Identity':
        """Parse ``Name <email> 1700000000 +0000``."""
        match = _IDENTITY_RE.match(text)
        if match is None:
            raise ValueError(f"Malformed identity: {text!r}")
        offset, negative_utc = _parse_tz(match.group('tz'))
        return cls(match.group('name'), match.group('email'), int(match.group('time')),
                   offset, negative_utc)

    def to_bytes(self) -> bytes:
        tz = _format_tz(self.tz_offset, self.negative_utc)
        return f"{self.name} <{self.email}> {self.timestamp} {tz}".encode('utf-8')

    def __str__(self) -> str:
        return self.to_bytes().decode('utf-8')

    def __eq__(self, other) -> bool:
        if not isinstance(other, Identity):
            return NotImplemented
        return self.to_bytes() == other.to_bytes()

    def __repr__(self) -> str:
        return f"Identity({str(self)!r})"


def _as_identity(value: Union[Identity, str], what: str) -> Identity:
    if isinstance(value, Identity):
        return value
    if isinstance(value, str):
        return Identity.parse(value)
    raise ValueError(f"{what} must be an Identity or string, got {type(value).__name__}")


class CommitPayload:
    """The fields of a commit object, without any signature."""

    def __init__(self,
                 tree_id: str,
                 parent_ids: Sequence[str],
                 author: Union[Identity, str],
                 committer: Union[Identity, str],
                 message: Union[bytes, str],
                 encoding: Optional[str] = None):
        self.tree_id = validate_object_id(tree_id, 'tree id')
        self.parent_ids: List[str] = [validate_object_id(p, 'parent id') for p in parent_ids]
        if any(len(p) != len(self.tree_id) for p in self.parent_ids):
            raise ValueError("Parent ids must use the same object format as the tree id")
        self.author = _as_identity(author, 'author')
        self.committer = _as_identity(committer, 'committer')
        if isinstance(message, str):
            message = message.encode('utf-8')
        if not isinstance(message, bytes):
            raise ValueError(f"message must be bytes or str, got {type(message).__name__}")
        self.message = message
        if encoding is not None and ('\n' in encoding or not encoding.strip()):
            raise ValueError(f"Malformed encoding: {encoding!r}")
        self.encoding = encoding

    def headers(self) -> List[tuple]:
        """Header (field, value) pairs in serialization order."""
        headers = [(TREE_HEADER, self.tree_id.encode('ascii'))]
        for parent in self.parent_ids:
            headers.append((PARENT_HEADER, parent.encode('ascii')))
        headers.append((AUTHOR_HEADER, self.author.to_bytes()))
        headers.append((COMMITTER_HEADER, self.committer.to_bytes()))
        if self.encoding:
            headers.append((ENCODING_HEADER, self.encoding.encode('ascii')))
        return headers

    def to_bytes(self) -> bytes:
        lines = [field + b' ' + value + b'\n' for field, value in self.headers()]
        # the header/message separator is written even for an empty message
        return b''.join(lines) + b'\n' + self.message


def build(tree_id: str,
          parent_ids: Sequence[str],
          author: Union[Identity, str],
          committer: Union[Identity, str],
          message: Union[bytes, str],
          encoding: Optional[str] = None) -> bytes:
    """
    Serialize a commit payload.

    Args:
        tree_id: Hex id of the root tree
        parent_ids: Parent commit ids, in order
        author: Author identity
        committer: Committer identity
        message: Commit message, kept verbatim
        encoding: Optional ``encoding`` header value

    Returns:
        Canonical commit bytes, the exact signing input
    """
    return CommitPayload(tree_id, parent_ids, author, committer, message, encoding).to_bytes()
